"""
Command line front end for the app lock.

    applock status
    applock configure
    applock unlock
    applock lock
    applock disable
    applock change-passphrase
    applock backup-reset

Passphrases are prompted for with getpass, or read one per line from stdin
with ``--passphrase-stdin``. Runtime state does not outlive the process, so
``unlock`` here only reports whether the passphrase opens the keyset.
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import json
import logging
import sys
from typing import Callable, List, Optional

from applock.core.config import AppLockConfig
from applock.core.exceptions import AppLockError
from applock.security.lifecycle import AppLockController

from .logging_config import configure_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_WRONG_PASSPHRASE = 2


class PassphraseReader:
    """Reads passphrases interactively or from a stream."""

    def __init__(self, from_stdin: bool = False, prompt: Callable[[str], str] = getpass.getpass):
        self.from_stdin = from_stdin
        self.prompt = prompt

    def read(self, label: str) -> str:
        if self.from_stdin:
            line = sys.stdin.readline()
            return line.rstrip("\r\n")
        return self.prompt(f"{label}: ")

    def read_new(self, label: str) -> str:
        passphrase = self.read(label)
        if not self.from_stdin:
            confirm = self.prompt(f"Confirm {label.lower()}: ")
            if confirm != passphrase:
                raise AppLockError("Passphrases do not match")
        return passphrase


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="applock", description="Passphrase lock for the local database key")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    parser.add_argument(
        "--passphrase-stdin",
        action="store_true",
        help="read passphrases from stdin, one per line",
    )

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("status", help="show whether the lock is configured and unlocked")
    sub.add_parser("configure", help="protect the database key with a passphrase")
    sub.add_parser("unlock", help="check a passphrase against the stored keyset")
    sub.add_parser("lock", help="clear the session key")
    sub.add_parser("disable", help="remove passphrase protection")
    sub.add_parser("change-passphrase", help="re-wrap the database key under a new passphrase")
    sub.add_parser("backup-reset", help="move the encrypted database aside")
    return parser


async def _dispatch(args: argparse.Namespace, controller: AppLockController, reader: PassphraseReader) -> int:
    command = args.command

    if command == "status":
        print(json.dumps(controller.status().to_dict()))
    elif command == "configure":
        await controller.configure(reader.read_new("New passphrase"))
        print("App lock configured.")
    elif command == "unlock":
        if not await controller.unlock(reader.read("Passphrase")):
            print("Incorrect passphrase.", file=sys.stderr)
            return EXIT_WRONG_PASSPHRASE
        print("Unlocked.")
    elif command == "lock":
        controller.lock()
        print("Locked.")
    elif command == "disable":
        await controller.disable(reader.read("Passphrase"))
        print("App lock disabled.")
    elif command == "change-passphrase":
        current = reader.read("Current passphrase")
        new = reader.read_new("New passphrase")
        await controller.change_passphrase(current, new)
        print("Passphrase changed.")
    elif command == "backup-reset":
        backup_path = await controller.backup_and_reset_secure_db()
        print(backup_path if backup_path is not None else "No database to back up.")
    return EXIT_OK


def main(
    argv: Optional[List[str]] = None,
    config: Optional[AppLockConfig] = None,
    controller: Optional[AppLockController] = None,
    reader: Optional[PassphraseReader] = None,
) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    if controller is None:
        controller = AppLockController(config or AppLockConfig.from_env())
    if reader is None:
        reader = PassphraseReader(from_stdin=args.passphrase_stdin)

    try:
        return asyncio.run(_dispatch(args, controller, reader))
    except AppLockError as e:
        logger.debug("command %s failed", args.command, exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR
    finally:
        controller.shutdown()
