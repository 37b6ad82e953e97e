"""Tests for the KeyManager facade."""

import io
import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from keymanager import (
    CipherMode,
    DecryptionError,
    EncryptedFile,
    KeyManager,
    KeyManagerConfig,
    KeyNotFoundError,
)
from keymanager.security.crypto import decrypt_file, encrypt_file
from keymanager.security.keystore import JsonFileStorage, MemoryStorage


@pytest.fixture
def manager():
    return KeyManager(storage=MemoryStorage())


def test_generate_key_is_64_hex(manager):
    key = manager.generate_key()
    assert len(key) == 64
    assert all(c in "0123456789abcdef" for c in key)


def test_ten_byte_file_roundtrip(manager):
    key = manager.generate_key()
    data = b"0123456789"

    enc = manager.encrypt_file(data, key)
    assert isinstance(enc, EncryptedFile)

    assert manager.decrypt_file(enc.ciphertext, key, enc.iv) == data


def test_decrypt_accepts_encrypted_file(manager):
    key = manager.generate_key()
    enc = manager.encrypt_file(io.BytesIO(b"from a file object"), key)
    assert manager.decrypt_file(enc, key) == b"from a file object"


def test_decrypt_without_iv_is_an_error(manager):
    key = manager.generate_key()
    enc = manager.encrypt_file(b"data", key)
    with pytest.raises(TypeError):
        manager.decrypt_file(enc.ciphertext, key)


def test_wrong_key_fails(manager):
    enc = manager.encrypt_file(b"confidential", manager.generate_key())
    with pytest.raises(DecryptionError):
        manager.decrypt_file(enc.ciphertext, manager.generate_key(), enc.iv)


def test_many_wrong_keys_all_fail(manager):
    key = manager.generate_key()
    enc = manager.encrypt_file(b"confidential", key)

    for _ in range(300):
        with pytest.raises(DecryptionError):
            manager.decrypt_file(enc, manager.generate_key())


def test_manager_always_encrypts_with_gcm(manager):
    enc = manager.encrypt_file(b"data", manager.generate_key())
    assert enc.mode is CipherMode.GCM


def test_manager_refuses_cbc_payloads(manager):
    key = manager.generate_key()
    legacy = encrypt_file(b"legacy payload", key, mode=CipherMode.CBC)

    with pytest.raises(DecryptionError, match="GCM"):
        manager.decrypt_file(legacy, key)

    # the legacy path stays available explicitly
    assert decrypt_file(legacy.ciphertext, key, legacy.iv, mode=CipherMode.CBC) == b"legacy payload"


def test_store_key_normalizes_to_lowercase(manager):
    manager.store_key("doc", "AB" * 32)
    assert manager.get_key("doc") == "ab" * 32


def test_store_retrieve_delete_scenario(manager):
    key = manager.generate_key()
    manager.store_key("doc-42", key)
    assert manager.get_key("doc-42") == key

    manager.delete_key("doc-42")

    with pytest.raises(KeyNotFoundError):
        manager.get_key("doc-42")


def test_encrypt_with_stored_key(manager, tmp_path):
    src = tmp_path / "report.pdf"
    src.write_bytes(b"%PDF-1.7 \x00\x01\x02")
    manager.store_key("report", manager.generate_key())

    enc = manager.encrypt_file(src, manager.get_key("report"))

    assert manager.decrypt_file(enc, manager.get_key("report")) == src.read_bytes()


def test_derive_key_matches_module_function(manager):
    salt = b"0123456789abcdef"
    params = {"time_cost": 1, "memory_cost": 1024, "parallelism": 1}
    assert manager.derive_key("passphrase", salt, **params) == manager.derive_key(b"passphrase", salt, **params)


def test_from_config_file_storage_persists(tmp_path):
    config = KeyManagerConfig(storage="file", storage_dir=tmp_path, namespace="origin")
    key = KeyManager.from_config(config).generate_key()
    KeyManager.from_config(config).store_key("doc-42", key)

    assert KeyManager.from_config(config).get_key("doc-42") == key
    assert (Path(tmp_path) / "origin").is_dir()


def test_default_storage_comes_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("KEYMANAGER_STORAGE", "file")
    monkeypatch.setenv("KEYMANAGER_STORAGE_DIR", str(tmp_path))
    monkeypatch.setenv("KEYMANAGER_NAMESPACE", "env")

    manager = KeyManager()

    assert isinstance(manager.store.storage, JsonFileStorage)
    assert manager.store.storage.directory == tmp_path / "env"


def test_from_config_applies_log_level():
    config = KeyManagerConfig(storage="memory", log_level=logging.DEBUG)
    with patch("keymanager.manager.configure_logging") as configure:
        KeyManager.from_config(config)
    configure.assert_called_once_with(logging.DEBUG)


def test_from_config_leaves_logging_alone_by_default():
    with patch("keymanager.manager.configure_logging") as configure:
        KeyManager.from_config(KeyManagerConfig(storage="memory"))
    configure.assert_not_called()
