from typing import Union

from argon2.low_level import Type, hash_secret_raw

from keymanager.core.exceptions import InvalidKeyError
from .crypto import KEY_SIZE, random_bytes


def generate_salt(length: int = 16) -> bytes:
    """Return a cryptographically secure random salt."""
    return random_bytes(length)


def derive_key(
    passphrase: Union[bytes, str],
    salt: bytes,
    time_cost: int = 3,
    memory_cost: int = 65536,
    parallelism: int = 1,
) -> str:
    """
    Derive a key from a passphrase using Argon2id.
    Returns the key in the same 64-character hex form as generate_key().
    """
    if isinstance(passphrase, str):
        passphrase = passphrase.encode("utf-8")
    if not passphrase:
        raise InvalidKeyError("passphrase must not be empty")
    if len(salt) < 8:
        # argon2 refuses salts shorter than 8 bytes
        raise InvalidKeyError("salt must be at least 8 bytes")

    raw = hash_secret_raw(
        secret=passphrase,
        salt=salt,
        time_cost=time_cost,
        memory_cost=memory_cost,
        parallelism=parallelism,
        hash_len=KEY_SIZE,
        type=Type.ID,
    )
    return raw.hex()
