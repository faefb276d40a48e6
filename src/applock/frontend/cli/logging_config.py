"""Logging setup for the applock command line."""

import logging
import sys


def configure_logging(verbose: bool = False) -> None:
    # stdout carries command output; diagnostics go to stderr
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )
    # keyring backends log their probing at DEBUG; only surface it on request
    logging.getLogger("keyring").setLevel(level)
