"""Unit tests for two-tier (secret store + fallback file) persistence."""

from unittest.mock import patch

import pytest

from applock.core.exceptions import CodecError, StorageError
from applock.security.crypto import encode_hex_key, generate_dek
from applock.security.keyset import build_keyset
from applock.security.keystore import KeyringSecretStore
from applock.security.persistence import KeysetStore, OpenDekStore, RecordStore


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture
def records(memory_store, tmp_path):
    return RecordStore(memory_store, "testapp.app_lock.keyset", tmp_path / "data" / "app_lock_keyset.json")


@pytest.fixture
def keysets(records):
    return KeysetStore(records)


@pytest.fixture
def open_deks(memory_store, tmp_path):
    return OpenDekStore(
        RecordStore(memory_store, "testapp.app_lock.open_dek", tmp_path / "data" / "app_lock_open_dek.txt")
    )


@pytest.fixture
def keyset(fast_params):
    return build_keyset("correct-horse", fast_params)


# ==============================================================================
# Tests: RecordStore write policy
# ==============================================================================

def test_write_creates_directory_and_file_then_mirrors(records, memory_store):
    records.write("payload")

    assert records.fallback_path.read_text(encoding="utf-8") == "payload"
    assert memory_store.items["testapp.app_lock.keyset"] == "payload"


def test_write_swallows_secret_store_failure(records, memory_store):
    memory_store.fail = True

    records.write("payload")
    assert records.fallback_path.read_text(encoding="utf-8") == "payload"


def test_write_swallows_raw_keyring_backend_failure(tmp_path):
    store = KeyringSecretStore("com.testapp.app")
    records = RecordStore(store, "testapp.app_lock.keyset", tmp_path / "data" / "app_lock_keyset.json")

    with patch("applock.security.keystore.keyring") as mock_lib:
        mock_lib.set_password.side_effect = RuntimeError("dbus connection closed")
        records.write("payload")

    assert records.fallback_path.read_text(encoding="utf-8") == "payload"


def test_write_file_failure_propagates(records, memory_store):
    with patch("applock.security.persistence.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(StorageError):
            records.write("payload")

    # authoritative write failed, so nothing was mirrored and no temp file left behind
    assert memory_store.items == {}
    assert list(records.fallback_path.parent.iterdir()) == []


def test_write_directory_failure_propagates(memory_store, tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    records = RecordStore(memory_store, "k", blocker / "app_lock_keyset.json")

    with pytest.raises(StorageError):
        records.write("payload")


# ==============================================================================
# Tests: RecordStore delete policy
# ==============================================================================

def test_delete_removes_both(records, memory_store):
    records.write("payload")
    records.delete()

    assert not records.fallback_path.exists()
    assert memory_store.items == {}


def test_delete_swallows_store_failure(records, memory_store):
    records.write("payload")
    memory_store.fail = True

    records.delete()
    assert not records.fallback_path.exists()


def test_delete_file_failure_propagates(records):
    records.write("payload")
    with patch("pathlib.Path.unlink", side_effect=OSError("busy")):
        with pytest.raises(StorageError):
            records.delete()


def test_delete_when_absent_is_noop(records):
    records.delete()


# ==============================================================================
# Tests: KeysetStore read policy
# ==============================================================================

def test_read_absent_returns_none(keysets):
    assert keysets.read() is None
    assert keysets.exists() is False


def test_read_prefers_secret_store_and_self_heals_file(keysets, records, memory_store, keyset):
    memory_store.items[records.storage_key] = keyset.to_json()

    assert keysets.read() == keyset
    assert records.fallback_path.read_text(encoding="utf-8") == keyset.to_json()


def test_read_falls_back_to_file_on_store_miss(keysets, records, memory_store, keyset):
    keysets.write(keyset)
    memory_store.items.clear()

    assert keysets.read() == keyset


def test_read_falls_back_to_file_on_store_error(keysets, memory_store, keyset):
    keysets.write(keyset)
    memory_store.fail = True

    assert keysets.read() == keyset


def test_read_ignores_malformed_store_copy(keysets, records, memory_store, keyset):
    keysets.write(keyset)
    memory_store.items[records.storage_key] = "garbage"

    assert keysets.read() == keyset
    # the damaged copy must not overwrite the file
    assert records.fallback_path.read_text(encoding="utf-8") == keyset.to_json()


def test_read_malformed_file_raises(keysets, records):
    records.write_file("{broken")
    with pytest.raises(CodecError):
        keysets.read()


def test_delete_keyset(keysets, keyset):
    keysets.write(keyset)
    keysets.delete()
    assert keysets.read() is None


# ==============================================================================
# Tests: OpenDekStore
# ==============================================================================

def test_open_dek_roundtrip(open_deks):
    dek = generate_dek()
    open_deks.write(dek)

    assert open_deks.records.fallback_path.read_text(encoding="utf-8") == encode_hex_key(dek)
    assert open_deks.read() == dek


def test_open_dek_absent(open_deks):
    assert open_deks.read() is None


def test_open_dek_file_fallback_and_resync(open_deks, memory_store):
    dek = generate_dek()
    open_deks.write(dek)
    open_deks.records.fallback_path.unlink()

    assert open_deks.read() == dek
    assert open_deks.records.fallback_path.exists()


def test_open_dek_malformed_file_raises(open_deks):
    """A damaged open DEK must not be mistaken for 'no DEK yet'."""
    open_deks.records.write_file("not-hex")
    with pytest.raises(CodecError):
        open_deks.read()
