"""In-memory session state for the app lock.

:class:`SessionKey` holds the unwrapped DEK (hex encoded) that the database
reads when it opens a connection. It is handed to the database explicitly
rather than published through the process environment. Clearing it does not
re-lock connections that are already open; close and reopen the database
around lock/unlock.

:class:`RuntimeState` caches the "configured" and "unlocked" flags. Each flag
has its own lock, held only for the read or write of that flag.
"""
from __future__ import annotations

import threading
from typing import Callable, Optional

from .crypto import encode_hex_key


class SessionKey:
    def __init__(self):
        self._lock = threading.Lock()
        self._key_hex: Optional[str] = None

    def set(self, dek: bytes) -> None:
        """Expose ``dek`` to database connections opened from now on."""
        key_hex = encode_hex_key(dek)
        with self._lock:
            self._key_hex = key_hex

    def clear(self) -> None:
        with self._lock:
            self._key_hex = None

    def get(self) -> Optional[str]:
        """Return the hex-encoded key, or None while locked."""
        with self._lock:
            return self._key_hex

    def is_set(self) -> bool:
        key_hex = self.get()
        return bool(key_hex and key_hex.strip())


class RuntimeState:
    def __init__(self):
        self._unlocked = False
        self._unlocked_lock = threading.Lock()
        self._configured: Optional[bool] = None
        self._configured_lock = threading.Lock()

    def is_unlocked(self) -> bool:
        with self._unlocked_lock:
            return self._unlocked

    def set_unlocked(self, value: bool) -> None:
        with self._unlocked_lock:
            self._unlocked = value

    def set_configured(self, value: bool) -> None:
        with self._configured_lock:
            self._configured = value

    def is_configured(self, probe: Callable[[], bool]) -> bool:
        """Return the cached flag, computing it once with ``probe`` if unknown.

        ``probe`` does I/O, so it runs outside the lock.
        """
        with self._configured_lock:
            cached = self._configured
        if cached is not None:
            return cached

        result = probe()
        with self._configured_lock:
            self._configured = result
        return result


# module-level default session key shared by the controller and the database
_default_session_key = SessionKey()


def get_session_key() -> SessionKey:
    return _default_session_key
