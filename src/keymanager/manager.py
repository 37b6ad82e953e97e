"""
KeyManager: the single entry point for key generation, file encryption and key persistence.

Each method is one direct call into :mod:`keymanager.security`. There is no
shared state besides the injected storage backend, whose consistency is left
to the backend itself.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from keymanager.config import KeyManagerConfig, build_storage
from keymanager.core.exceptions import DecryptionError
from keymanager.logging_config import configure_logging
from keymanager.security import crypto, kdf
from keymanager.security.crypto import CipherMode, EncryptedFile, Payload
from keymanager.security.keystore import KeyStore, StorageBackend

logger = logging.getLogger(__name__)


def _storage_from_config(config: KeyManagerConfig) -> StorageBackend:
    if config.log_level is not None:
        configure_logging(config.log_level)
    return build_storage(config)


class KeyManager:
    """
    Generate keys, encrypt/decrypt file payloads and keep keys in a persistent store.

    ``storage`` is any object with ``get_item``/``set_item``/``remove_item``
    over strings. When omitted the backend is built from
    :meth:`KeyManagerConfig.from_env`, which defaults to a JSON file in the
    user's data directory.

    Payloads are always AES-256-GCM, so a wrong key, wrong IV or tampered
    ciphertext is reported as :class:`DecryptionError`. Legacy CBC payloads
    must go through :func:`keymanager.security.crypto.decrypt_file` explicitly.
    """

    def __init__(self, storage: Optional[StorageBackend] = None):
        if storage is None:
            storage = _storage_from_config(KeyManagerConfig.from_env())
        self.store = KeyStore(storage)

    @classmethod
    def from_config(cls, config: KeyManagerConfig) -> "KeyManager":
        return cls(storage=_storage_from_config(config))

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    def generate_key(self) -> str:
        """Return a new random 256-bit key as 64 lowercase hex characters."""
        return crypto.generate_key()

    def derive_key(self, passphrase: Union[bytes, str], salt: bytes, **params) -> str:
        """Re-create a key from a passphrase and salt (Argon2id); see :func:`kdf.derive_key`."""
        return kdf.derive_key(passphrase, salt, **params)

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def encrypt_file(self, data: Payload, key: str) -> EncryptedFile:
        return crypto.encrypt_file(data, key, mode=CipherMode.GCM)

    def decrypt_file(self, ciphertext: Union[Payload, EncryptedFile], key: str, iv: Optional[str] = None) -> bytes:
        """
        Decrypt ``ciphertext`` with the key and IV used to encrypt it.

        An :class:`EncryptedFile` may be passed directly, in which case its own
        IV is used unless ``iv`` is given. CBC payloads are refused.
        """
        if isinstance(ciphertext, EncryptedFile):
            if ciphertext.mode is not CipherMode.GCM:
                raise DecryptionError(
                    "KeyManager only decrypts authenticated GCM payloads; "
                    "use keymanager.security.crypto.decrypt_file for legacy CBC"
                )
            iv = iv if iv is not None else ciphertext.iv
            ciphertext = ciphertext.ciphertext
        if iv is None:
            raise TypeError("decrypt_file() needs the IV used at encryption time")
        return crypto.decrypt_file(ciphertext, key, iv, mode=CipherMode.GCM)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def store_key(self, key_id: str, key: str) -> None:
        self.store.put(key_id, key)

    def get_key(self, key_id: str) -> str:
        return self.store.get(key_id)

    def delete_key(self, key_id: str) -> None:
        self.store.delete(key_id)
