"""Shared fixtures: cheap KDF parameters and an in-memory secret store."""

from typing import Dict, Optional

import pytest

from applock.core.config import AppLockConfig
from applock.core.exceptions import StorageError
from applock.security.kdf import KdfParams
from applock.security.keystore import SecretStore


# Use very low costs for speed in unit tests
FAST_PARAMS = KdfParams(memory_kib=1024, iterations=1, parallelism=1)


class MemorySecretStore(SecretStore):
    """Dict-backed secret store; flip ``fail`` to make every call raise."""

    def __init__(self):
        self.items: Dict[str, str] = {}
        self.fail = False

    def _check(self):
        if self.fail:
            raise StorageError("secret store unavailable")

    def get(self, key: str) -> Optional[str]:
        self._check()
        return self.items.get(key)

    def set(self, key: str, value: str) -> None:
        self._check()
        self.items[key] = value

    def delete(self, key: str) -> None:
        self._check()
        self.items.pop(key, None)

    def is_available(self) -> bool:
        return not self.fail


@pytest.fixture
def fast_params():
    return FAST_PARAMS


@pytest.fixture
def memory_store():
    return MemorySecretStore()


@pytest.fixture
def config(tmp_path):
    """AppLockConfig rooted in tmp_path with cheap KDF parameters."""
    return AppLockConfig(
        data_dir=tmp_path / "data",
        db_dir=tmp_path / "db",
        app_name="testapp",
        db_file_name="testapp_secure.db",
        kdf_params=FAST_PARAMS,
    )
