"""Security helpers: key generation, AES file encryption and key persistence.

This package provides:
- 256-bit key generation from the OS secure random source
- AES-256-GCM (default) and AES-256-CBC payload encryption with per-call IVs
- Argon2id passphrase-based key derivation
- A key store over pluggable string key-value backends
"""

from .crypto import (
    CipherMode,
    EncryptedFile,
    generate_key,
    encrypt_file,
    decrypt_file,
)
from .kdf import generate_salt, derive_key
from .keystore import (
    KeyStore,
    MemoryStorage,
    JsonFileStorage,
    KeyringStorage,
    assess_keyring_backend,
)

__all__ = [
    "CipherMode",
    "EncryptedFile",
    "generate_key",
    "encrypt_file",
    "decrypt_file",
    "generate_salt",
    "derive_key",
    "KeyStore",
    "MemoryStorage",
    "JsonFileStorage",
    "KeyringStorage",
    "assess_keyring_backend",
]
