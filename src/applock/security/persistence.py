"""Two-tier persistence for the keyset and the open DEK.

Write: the fallback file under the app data directory first (authoritative,
errors propagate), then a best-effort mirror into the secret store (errors
logged and dropped).

Read: the secret store first, re-syncing the fallback file on a hit; on a miss
or error, the fallback file. Neither present means "no record".

Delete: best-effort from the secret store, then remove the fallback file
(removal errors propagate).
"""
from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from applock.core.exceptions import AppLockError, CodecError, StorageError

from .crypto import decode_hex_key, encode_hex_key
from .keyset import Keyset
from .keystore import SecretStore

logger = logging.getLogger(__name__)


class RecordStore:
    """One raw string record kept in the secret store and a fallback file."""

    __slots__ = ("secret_store", "storage_key", "fallback_path")

    def __init__(self, secret_store: SecretStore, storage_key: str, fallback_path: Path | str):
        self.secret_store = secret_store
        self.storage_key = storage_key
        self.fallback_path = Path(fallback_path)

    def _ensure_dir(self) -> None:
        directory = self.fallback_path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create directory {directory}: {e}") from e

    def write_file(self, raw: str) -> None:
        """Atomically replace the fallback file with ``raw``."""
        self._ensure_dir()
        fd, tmp_name = tempfile.mkstemp(
            dir=str(self.fallback_path.parent), prefix=f".{self.fallback_path.name}."
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(raw)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.fallback_path)
        except OSError as e:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise StorageError(f"Failed to write {self.fallback_path}: {e}") from e

    def read_file(self) -> Optional[str]:
        if not self.fallback_path.exists():
            return None
        try:
            return self.fallback_path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to read {self.fallback_path}: {e}") from e

    def write(self, raw: str) -> None:
        self.write_file(raw)
        try:
            self.secret_store.set(self.storage_key, raw)
        except AppLockError as e:
            logger.warning("secret store mirror of %s failed: %s", self.storage_key, e)

    def read_store(self) -> Optional[str]:
        """Return the secret store copy, or None on a miss or store failure."""
        try:
            return self.secret_store.get(self.storage_key)
        except AppLockError as e:
            logger.warning("secret store read of %s failed: %s", self.storage_key, e)
            return None

    def resync_file(self, raw: str) -> None:
        # self-heal a missing or stale fallback file from the vault copy
        try:
            self.write_file(raw)
        except StorageError as e:
            logger.warning("could not re-sync %s: %s", self.fallback_path, e)

    def delete(self) -> None:
        try:
            self.secret_store.delete(self.storage_key)
        except AppLockError as e:
            logger.warning("secret store delete of %s failed: %s", self.storage_key, e)

        if self.fallback_path.exists():
            try:
                self.fallback_path.unlink()
            except OSError as e:
                raise StorageError(f"Failed to remove {self.fallback_path}: {e}") from e


class KeysetStore:
    """Reads and writes the persisted :class:`Keyset`."""

    def __init__(self, records: RecordStore):
        self.records = records

    def read(self) -> Optional[Keyset]:
        raw = self.records.read_store()
        if raw is not None:
            try:
                keyset = Keyset.from_json(raw)
            except CodecError as e:
                # the file is ground truth; a damaged vault copy is not
                logger.warning("ignoring malformed keyset in secret store: %s", e)
            else:
                self.records.resync_file(raw)
                return keyset

        raw = self.records.read_file()
        if raw is None:
            return None
        return Keyset.from_json(raw)

    def exists(self) -> bool:
        return self.read() is not None

    def write(self, keyset: Keyset) -> None:
        self.records.write(keyset.to_json())

    def delete(self) -> None:
        self.records.delete()


class OpenDekStore:
    """Reads and writes the unwrapped DEK used while no passphrase is configured."""

    def __init__(self, records: RecordStore):
        self.records = records

    def read(self) -> Optional[bytes]:
        raw = self.records.read_store()
        if raw is not None:
            try:
                dek = decode_hex_key(raw)
            except CodecError as e:
                logger.warning("ignoring malformed open DEK in secret store: %s", e)
            else:
                self.records.resync_file(encode_hex_key(dek))
                return dek

        raw = self.records.read_file()
        if raw is None:
            return None
        return decode_hex_key(raw)

    def write(self, dek: bytes) -> None:
        self.records.write(encode_hex_key(dek))

    def delete(self) -> None:
        self.records.delete()
