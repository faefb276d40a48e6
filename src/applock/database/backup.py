"""Backup-and-reset of the encrypted database file and its sidecars."""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Optional

from ..core.exceptions import StorageError

logger = logging.getLogger(__name__)

SIDECAR_SUFFIXES = ("-wal", "-shm")


def _append_suffix(path: Path, suffix: str) -> Path:
    return path.with_name(path.name + suffix)


def move_to_backup(path: Path, backup_suffix: str) -> Optional[Path]:
    """Rename ``path`` to ``<name>.backup-<suffix>``; None if it does not exist."""
    if not path.exists():
        return None

    backup_path = _append_suffix(path, f".backup-{backup_suffix}")
    try:
        os.replace(path, backup_path)
    except OSError as e:
        raise StorageError(f"Failed to move {path} to backup {backup_path}: {e}") from e
    return backup_path


def backup_and_reset(db_path: Path | str, now: Optional[float] = None) -> Optional[Path]:
    """
    Move the database and its write-ahead/shared-memory files out of the way.

    Returns the backup path of the main database file, or None when there was
    no database to back up. Sidecars are moved whenever present.
    """
    db_path = Path(db_path)
    backup_suffix = str(int(time.time() if now is None else now))

    db_backup_path = move_to_backup(db_path, backup_suffix)
    for suffix in SIDECAR_SUFFIXES:
        move_to_backup(_append_suffix(db_path, suffix), backup_suffix)

    if db_backup_path is not None:
        logger.info("secure database moved to %s", db_backup_path)
    return db_backup_path
