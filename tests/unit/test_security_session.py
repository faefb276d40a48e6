"""
Unit tests for the session key holder and runtime state.
"""

import threading
from unittest.mock import Mock

import pytest

from applock.security import session
from applock.security.crypto import generate_dek
from applock.security.session import RuntimeState, SessionKey


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture
def session_key():
    """Returns a fresh, empty SessionKey."""
    return SessionKey()


@pytest.fixture
def state():
    return RuntimeState()


# ==============================================================================
# Tests: SessionKey
# ==============================================================================

def test_session_key_starts_empty(session_key):
    assert session_key.get() is None
    assert session_key.is_set() is False


def test_set_exposes_hex(session_key):
    dek = generate_dek()
    session_key.set(dek)

    assert session_key.get() == dek.hex()
    assert session_key.is_set() is True


def test_clear(session_key):
    session_key.set(generate_dek())
    session_key.clear()
    session_key.clear()

    assert session_key.get() is None
    assert session_key.is_set() is False


def test_default_session_key_is_shared():
    assert session.get_session_key() is session.get_session_key()


# ==============================================================================
# Tests: RuntimeState
# ==============================================================================

def test_unlocked_defaults_false(state):
    assert state.is_unlocked() is False
    state.set_unlocked(True)
    assert state.is_unlocked() is True


def test_configured_probe_runs_once(state):
    probe = Mock(return_value=True)

    assert state.is_configured(probe) is True
    assert state.is_configured(probe) is True
    probe.assert_called_once()


def test_configured_explicit_set_skips_probe(state):
    probe = Mock(return_value=True)
    state.set_configured(False)

    assert state.is_configured(probe) is False
    probe.assert_not_called()


def test_probe_runs_outside_lock(state):
    """The probe may itself touch state without deadlocking."""
    def probe():
        state.set_unlocked(True)
        return state.is_unlocked()

    assert state.is_configured(probe) is True


def test_concurrent_flag_updates(state):
    def toggle():
        for _ in range(200):
            state.set_unlocked(True)
            state.set_unlocked(False)

    threads = [threading.Thread(target=toggle) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert state.is_unlocked() is False
