"""Local key and file-encryption helper."""

import logging

from keymanager.core.exceptions import (
    KeyManagerError,
    RandomSourceUnavailableError,
    InvalidKeyError,
    DecryptionError,
    KeyNotFoundError,
    StorageError,
    StorageWriteError,
)
from keymanager.security.crypto import CipherMode, EncryptedFile
from keymanager.config import KeyManagerConfig
from keymanager.manager import KeyManager

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "KeyManager",
    "KeyManagerConfig",
    "CipherMode",
    "EncryptedFile",
    "KeyManagerError",
    "RandomSourceUnavailableError",
    "InvalidKeyError",
    "DecryptionError",
    "KeyNotFoundError",
    "StorageError",
    "StorageWriteError",
]
