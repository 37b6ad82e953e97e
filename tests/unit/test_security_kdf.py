"""Unit tests for the passphrase key derivation module."""

import pytest

from keymanager.core.exceptions import InvalidKeyError
from keymanager.security.crypto import decrypt_file, encrypt_file
from keymanager.security.kdf import derive_key, generate_salt

# Cheap Argon2 parameters so the suite stays fast.
FAST = {"time_cost": 1, "memory_cost": 1024, "parallelism": 1}


def test_generate_salt_defaults():
    """Ensure salt generation returns bytes of the default length (16)."""
    salt = generate_salt()
    assert isinstance(salt, bytes)
    assert len(salt) == 16


def test_generate_salt_custom_length():
    salt = generate_salt(length=32)
    assert len(salt) == 32


def test_derive_key_is_hex_key():
    key = derive_key("correct horse battery staple", generate_salt(), **FAST)
    assert len(key) == 64
    assert key == key.lower()
    int(key, 16)


def test_derive_key_consistency():
    """Same passphrase as string or bytes with the same salt yields the same key."""
    salt = generate_salt()
    assert derive_key("pw", salt, **FAST) == derive_key(b"pw", salt, **FAST)


def test_derive_key_depends_on_salt():
    assert derive_key("pw", generate_salt(), **FAST) != derive_key("pw", generate_salt(), **FAST)


def test_derived_key_encrypts():
    key = derive_key("hunter2", generate_salt(), **FAST)
    enc = encrypt_file(b"payload", key)
    assert decrypt_file(enc.ciphertext, key, enc.iv) == b"payload"


def test_derive_key_rejects_empty_passphrase():
    with pytest.raises(InvalidKeyError):
        derive_key("", generate_salt(), **FAST)


def test_derive_key_rejects_short_salt():
    with pytest.raises(InvalidKeyError):
        derive_key("pw", b"short", **FAST)
