"""Runtime configuration for applock.

Defaults resolve to the platform app-data locations. Environment variables
override them so developers and tests can point a process elsewhere:

- ``APPLOCK_APP_NAME``: application name used for directories and store keys
- ``APPLOCK_DATA_DIR``: directory for the fallback key files
- ``APPLOCK_DB_DIR``: directory holding the encrypted database
- ``APPLOCK_KDF_PROFILE``: ``desktop`` or ``mobile`` KDF memory policy
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from applock.security.kdf import KdfParams, platform_kdf_params

DEFAULT_APP_NAME = "applock"
PASSPHRASE_MIN_LENGTH = 8
KEYSET_FALLBACK_FILE_NAME = "app_lock_keyset.json"
OPEN_DEK_FALLBACK_FILE_NAME = "app_lock_open_dek.txt"


def is_mobile_platform() -> bool:
    """Return True on constrained (iOS/Android) interpreters."""
    return sys.platform in ("ios", "android")


def _platform_data_root(env: Mapping[str, str]) -> Path:
    if sys.platform == "win32":
        local = env.get("LOCALAPPDATA")
        if local:
            return Path(local)
        return Path.home() / "AppData" / "Local"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"
    xdg = env.get("XDG_DATA_HOME")
    return Path(xdg) if xdg else Path.home() / ".local" / "share"


def _platform_config_root(env: Mapping[str, str]) -> Path:
    if sys.platform == "win32":
        roaming = env.get("APPDATA")
        if roaming:
            return Path(roaming)
        return Path.home() / "AppData" / "Roaming"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"
    xdg = env.get("XDG_CONFIG_HOME")
    return Path(xdg) if xdg else Path.home() / ".config"


@dataclass
class AppLockConfig:
    """Paths, store keys and policy knobs for one installation."""

    data_dir: Path
    db_dir: Path
    app_name: str = DEFAULT_APP_NAME
    db_file_name: str = f"{DEFAULT_APP_NAME}_secure.db"
    kdf_params: KdfParams = field(
        default_factory=lambda: platform_kdf_params(mobile=is_mobile_platform())
    )
    worker_count: int = 2
    min_passphrase_length: int = PASSPHRASE_MIN_LENGTH

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir)
        self.db_dir = Path(self.db_dir)

    @property
    def service_name(self) -> str:
        return f"com.{self.app_name}.app"

    @property
    def keyset_storage_key(self) -> str:
        return f"{self.app_name}.app_lock.keyset"

    @property
    def open_dek_storage_key(self) -> str:
        return f"{self.app_name}.app_lock.open_dek"

    @property
    def keyset_fallback_path(self) -> Path:
        return self.data_dir / KEYSET_FALLBACK_FILE_NAME

    @property
    def open_dek_fallback_path(self) -> Path:
        return self.data_dir / OPEN_DEK_FALLBACK_FILE_NAME

    @property
    def db_path(self) -> Path:
        return self.db_dir / self.db_file_name

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "AppLockConfig":
        """Build a config from environment overrides and platform defaults."""
        env = os.environ if env is None else env

        app_name = env.get("APPLOCK_APP_NAME") or DEFAULT_APP_NAME
        data_dir = env.get("APPLOCK_DATA_DIR")
        db_dir = env.get("APPLOCK_DB_DIR")

        profile = (env.get("APPLOCK_KDF_PROFILE") or "").strip().lower()
        if profile in ("desktop", "mobile"):
            kdf_params = platform_kdf_params(mobile=profile == "mobile")
        else:
            kdf_params = platform_kdf_params(mobile=is_mobile_platform())

        return cls(
            data_dir=Path(data_dir) if data_dir else _platform_data_root(env) / app_name,
            db_dir=Path(db_dir) if db_dir else _platform_config_root(env) / app_name,
            app_name=app_name,
            db_file_name=f"{app_name}_secure.db",
            kdf_params=kdf_params,
        )
