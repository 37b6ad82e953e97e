"""AES file encryption with a fresh random IV per call.

Keys travel as 64-character lowercase hex strings (256 bits) and IVs as
32-character hex strings (128 bits). Ciphertext is always returned as raw
bytes; use :meth:`EncryptedFile.to_base64` when a text form is needed.

Two cipher modes are supported:
- GCM (default): AES-256-GCM, the 16-byte IV is the nonce and the 16-byte
  tag is appended to the ciphertext. Wrong key, wrong IV and any tampering
  are detected.
- CBC: AES-256-CBC with PKCS7 padding, for payloads produced by older
  tooling. Only reachable through these functions; KeyManager always
  uses GCM. Unauthenticated: corruption is only detected when it breaks the
  block length or the padding.
"""
from __future__ import annotations

import base64
import binascii
import enum
import logging
import os
import re
from dataclasses import dataclass
from typing import BinaryIO, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from keymanager.core.exceptions import (
    DecryptionError,
    InvalidKeyError,
    RandomSourceUnavailableError,
)

logger = logging.getLogger(__name__)

KEY_SIZE = 32
IV_SIZE = 16
TAG_SIZE = 16

_HEX_RE = re.compile(r"^[0-9a-fA-F]*$")

Payload = Union[bytes, bytearray, memoryview, os.PathLike, BinaryIO]


class CipherMode(str, enum.Enum):
    GCM = "gcm"
    CBC = "cbc"


@dataclass(frozen=True)
class EncryptedFile:
    """Ciphertext paired with the IV (hex) and mode it was produced with."""

    ciphertext: bytes
    iv: str
    mode: CipherMode = CipherMode.GCM

    def to_base64(self) -> str:
        return base64.b64encode(self.ciphertext).decode("ascii")

    @classmethod
    def from_base64(cls, text: str, iv: str, mode: CipherMode = CipherMode.GCM) -> "EncryptedFile":
        try:
            raw = base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecryptionError("ciphertext is not valid base64") from e
        return cls(ciphertext=raw, iv=iv, mode=CipherMode(mode))


def random_bytes(length: int) -> bytes:
    """Return ``length`` bytes from the OS secure random source.

    There is no fallback: if the OS source is missing this
    raises :class:`RandomSourceUnavailableError`.
    """
    try:
        return os.urandom(length)
    except (NotImplementedError, OSError) as e:
        logger.critical("secure random source unavailable: %s", e)
        raise RandomSourceUnavailableError("OS secure random source is unavailable") from e


def generate_key() -> str:
    return random_bytes(KEY_SIZE).hex()


def _parse_hex(value: str, size: int, what: str) -> bytes:
    if not isinstance(value, str):
        raise InvalidKeyError(f"{what} must be a hex string, got {type(value).__name__}")
    if len(value) != size * 2 or not _HEX_RE.match(value):
        raise InvalidKeyError(f"{what} must be {size * 2} hex characters")
    return bytes.fromhex(value)


def validate_key(key: str) -> str:
    """Check that ``key`` is a 256-bit hex key and return it in lowercase."""
    _parse_hex(key, KEY_SIZE, "key")
    return key.lower()


def read_payload(data: Payload) -> bytes:
    """Return the raw bytes of a bytes-like object, path or binary file object."""
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    if isinstance(data, os.PathLike):
        with open(data, "rb") as f:
            return f.read()
    if hasattr(data, "read"):
        chunk = data.read()
        if not isinstance(chunk, (bytes, bytearray)):
            raise TypeError("file object must be opened in binary mode")
        return bytes(chunk)
    raise TypeError(f"expected bytes, a path or a binary file object, got {type(data).__name__}")


def encrypt_file(data: Payload, key: str, mode: CipherMode = CipherMode.GCM) -> EncryptedFile:
    """Encrypt a file payload with a 64-hex-character key.

    A new 16-byte IV is drawn from the OS random source on every call and
    returned alongside the ciphertext; it is needed again for decryption.
    """
    mode = CipherMode(mode)
    key_bytes = _parse_hex(key, KEY_SIZE, "key")
    plaintext = read_payload(data)
    iv = random_bytes(IV_SIZE)

    if mode is CipherMode.GCM:
        ct = AESGCM(key_bytes).encrypt(iv, plaintext, None)
    else:
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext) + padder.finalize()
        encryptor = Cipher(algorithms.AES(key_bytes), modes.CBC(iv)).encryptor()
        ct = encryptor.update(padded) + encryptor.finalize()

    logger.debug("encrypted %d bytes with AES-256-%s", len(plaintext), mode.name)
    return EncryptedFile(ciphertext=ct, iv=iv.hex(), mode=mode)


def decrypt_file(ciphertext: Payload, key: str, iv: str, mode: CipherMode = CipherMode.GCM) -> bytes:
    """Decrypt a payload produced by :func:`encrypt_file` and return the plaintext bytes.

    Raises :class:`DecryptionError` when the key or IV is wrong or the data
    is truncated or corrupted (CBC only catches what breaks the padding).
    """
    mode = CipherMode(mode)
    key_bytes = _parse_hex(key, KEY_SIZE, "key")
    iv_bytes = _parse_hex(iv, IV_SIZE, "iv")
    ct = read_payload(ciphertext)

    if mode is CipherMode.GCM:
        if len(ct) < TAG_SIZE:
            raise DecryptionError("ciphertext too short to contain an authentication tag")
        try:
            pt = AESGCM(key_bytes).decrypt(iv_bytes, ct, None)
        except InvalidTag as e:
            raise DecryptionError("authentication failed: wrong key, wrong IV or corrupted data") from e
    else:
        block = algorithms.AES.block_size // 8
        if not ct or len(ct) % block:
            raise DecryptionError("ciphertext length is not a multiple of the AES block size")
        decryptor = Cipher(algorithms.AES(key_bytes), modes.CBC(iv_bytes)).decryptor()
        padded = decryptor.update(ct) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        try:
            pt = unpadder.update(padded) + unpadder.finalize()
        except ValueError as e:
            raise DecryptionError("invalid padding: wrong key, wrong IV or corrupted data") from e

    logger.debug("decrypted %d bytes with AES-256-%s", len(pt), mode.name)
    return pt
