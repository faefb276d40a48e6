"""App lock lifecycle: configure, unlock, lock, disable, rotate, status, reset.

States::

    NotConfigured  --configure-->  ConfiguredUnlocked  <--unlock--  ConfiguredLocked
          ^                               |   ^                            ^
          +------------disable------------+   +--change_passphrase         |
                                          +-------------lock---------------+

Exactly one of {keyset-wrapped DEK, open DEK} is authoritative at a time.
While NotConfigured the vault is always usable: an open DEK is provisioned on
first access. Argon2id/AES-GCM work and database backup run on a bounded
thread pool; state flags and record I/O run inline.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional, Tuple

from applock.core.config import AppLockConfig
from applock.core.exceptions import (
    AlreadyConfiguredError,
    InvalidPassphraseError,
    NotConfiguredError,
    StorageError,
)
from applock.database.backup import backup_and_reset

from .crypto import generate_dek
from .kdf import kdf_params_to_dict
from .keyset import Keyset, build_keyset, check_passphrase_strength, open_keyset
from .keystore import SecretStore, select_secret_store
from .persistence import KeysetStore, OpenDekStore, RecordStore
from .session import RuntimeState, SessionKey, get_session_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppLockStatus:
    configured: bool
    unlocked: bool

    def to_dict(self) -> dict:
        return {"configured": self.configured, "unlocked": self.unlocked}


class AppLockController:
    """
    Single owner of the app lock runtime state for a process.

    Collaborators are injected so tests (and other front ends) can swap the
    secret store, the session key holder or the worker pool.
    """

    def __init__(
        self,
        config: AppLockConfig,
        secret_store: Optional[SecretStore] = None,
        session_key: Optional[SessionKey] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.config = config
        self.secret_store = secret_store if secret_store is not None else select_secret_store(config)
        self.session_key = session_key if session_key is not None else get_session_key()
        self.state = RuntimeState()

        self.keysets = KeysetStore(
            RecordStore(self.secret_store, config.keyset_storage_key, config.keyset_fallback_path)
        )
        self.open_deks = OpenDekStore(
            RecordStore(self.secret_store, config.open_dek_storage_key, config.open_dek_fallback_path)
        )

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=config.worker_count, thread_name_prefix="applock-kdf"
        )
        # serializes configure/disable/change_passphrase; created lazily on the running loop
        self._mutation_lock: Optional[asyncio.Lock] = None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _run_blocking(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    def _get_mutation_lock(self) -> asyncio.Lock:
        if self._mutation_lock is None:
            self._mutation_lock = asyncio.Lock()
        return self._mutation_lock

    def is_configured(self) -> bool:
        return self.state.is_configured(self.keysets.exists)

    def _ensure_session_key(self) -> None:
        if self.session_key.is_set():
            return

        dek = self.open_deks.read()
        if dek is None:
            dek = generate_dek()
            self.open_deks.write(dek)
            logger.info("provisioned open data key")
        self.session_key.set(dek)

    def _delete_open_dek(self) -> None:
        try:
            self.open_deks.delete()
        except StorageError as e:
            logger.warning("could not remove open data key after configure: %s", e)

    def _build_and_check(self, passphrase: str, existing_dek: Optional[bytes]) -> Tuple[Keyset, bytes]:
        keyset = build_keyset(
            passphrase,
            self.config.kdf_params,
            existing_dek=existing_dek,
            min_length=self.config.min_passphrase_length,
        )
        # round-trip before anything is persisted
        return keyset, open_keyset(keyset, passphrase)

    def _rewrap(self, keyset: Keyset, current: str, new: str) -> Tuple[Keyset, bytes]:
        dek = open_keyset(keyset, current)
        new_keyset = build_keyset(
            new,
            self.config.kdf_params,
            existing_dek=dek,
            min_length=self.config.min_passphrase_length,
        )
        return new_keyset, dek

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def status(self) -> AppLockStatus:
        if not self.is_configured():
            self._ensure_session_key()
            self.state.set_unlocked(True)
            return AppLockStatus(configured=False, unlocked=True)

        unlocked = self.state.is_unlocked()
        if not unlocked:
            self.session_key.clear()
        return AppLockStatus(configured=True, unlocked=unlocked)

    async def configure(self, passphrase: str) -> None:
        """Protect the data key with ``passphrase``."""
        async with self._get_mutation_lock():
            if self.keysets.read() is not None:
                raise AlreadyConfiguredError(
                    "App lock is already configured. Unlock with your existing passphrase."
                )
            # checked before anything touches the database
            check_passphrase_strength(passphrase, self.config.min_passphrase_length)

            existing_dek = self.open_deks.read()
            if existing_dek is None:
                # fresh vault: any database on disk was keyed with a lost DEK
                await self._run_blocking(backup_and_reset, self.config.db_path)

            keyset, dek = await self._run_blocking(self._build_and_check, passphrase, existing_dek)

            self.keysets.write(keyset)
            self._delete_open_dek()
            self.session_key.set(dek)
            self.state.set_configured(True)
            self.state.set_unlocked(True)

        logger.info("app lock configured (%s)", kdf_params_to_dict(keyset.params))

    async def unlock(self, passphrase: str) -> bool:
        """Return True and unlock on the right passphrase, False otherwise."""
        keyset = self.keysets.read()
        if keyset is None:
            self.session_key.clear()
            self.state.set_unlocked(False)
            raise NotConfiguredError("App lock is configured but key material is unavailable.")

        try:
            dek = await self._run_blocking(open_keyset, keyset, passphrase)
        except InvalidPassphraseError:
            logger.info("unlock rejected")
            self.session_key.clear()
            self.state.set_unlocked(False)
            return False

        self.session_key.set(dek)
        self.state.set_unlocked(True)
        logger.info("app lock unlocked")
        return True

    def lock(self) -> None:
        self.session_key.clear()
        self.state.set_unlocked(False)
        logger.info("app lock locked")

    async def disable(self, passphrase: str) -> None:
        """Remove passphrase protection; the same DEK becomes the open DEK."""
        async with self._get_mutation_lock():
            keyset = self.keysets.read()
            if keyset is None:
                return

            dek = await self._run_blocking(open_keyset, keyset, passphrase)

            self.open_deks.write(dek)
            self.keysets.delete()
            self.session_key.set(dek)
            self.state.set_configured(False)
            self.state.set_unlocked(True)

        logger.info("app lock disabled")

    async def change_passphrase(self, current_passphrase: str, new_passphrase: str) -> None:
        """Re-wrap the same DEK under ``new_passphrase``."""
        async with self._get_mutation_lock():
            keyset = self.keysets.read()
            if keyset is None:
                raise NotConfiguredError("App lock is not enabled")

            new_keyset, dek = await self._run_blocking(
                self._rewrap, keyset, current_passphrase, new_passphrase
            )

            self.keysets.write(new_keyset)
            self.session_key.set(dek)
            self.state.set_unlocked(True)

        logger.info("app lock passphrase changed")

    async def backup_and_reset_secure_db(self) -> Optional[str]:
        """Back up and reset the encrypted database; returns the backup path."""
        backup_path = await self._run_blocking(backup_and_reset, self.config.db_path)
        return str(backup_path) if backup_path is not None else None

    def shutdown(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)
