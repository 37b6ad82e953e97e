"""
Exceptions for the keymanager package
Everything derives from KeyManagerError so callers have one general catcher
"""


class KeyManagerError(Exception):
    # general container for errors
    pass


class RandomSourceUnavailableError(KeyManagerError):
    # raised when the OS secure random source cannot be used (fatal)
    pass


class InvalidKeyError(KeyManagerError, ValueError):
    # raised on a malformed key, IV or key identifier
    pass


class DecryptionError(KeyManagerError):
    # raised on wrong key / IV or corrupted / truncated ciphertext
    pass


class KeyNotFoundError(KeyManagerError, KeyError):
    # raised when no key is stored under the requested id

    def __init__(self, key_id: str):
        super().__init__(key_id)
        self.key_id = key_id

    def __str__(self) -> str:
        return f"Key not found: {self.key_id!r}"


class StorageError(KeyManagerError):
    # raised if the backing key-value store fails in some way
    pass


class StorageWriteError(StorageError):
    # raised when a write is refused (quota exceeded, storage disabled, backend error)
    pass
