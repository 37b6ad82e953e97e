"""Persistent key store over a pluggable string key-value backend.

:class:`KeyStore` maps caller-chosen ids to hex keys. The backend is injected
at construction, so the same store can sit on:

- :class:`MemoryStorage`, a plain dict (tests, throwaway sessions)
- :class:`JsonFileStorage`, one JSON record per id under a namespace directory
- :class:`KeyringStorage`, the OS keystore via the `keyring` package

Backends only speak strings (get/set/remove). Write failures surface as
:class:`StorageWriteError` and are never retried here.
"""
from __future__ import annotations

import hashlib
import json
import logging
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Dict, Optional, Protocol

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from keymanager.core.exceptions import (
    InvalidKeyError,
    KeyNotFoundError,
    StorageError,
    StorageWriteError,
)
from .crypto import validate_key

logger = logging.getLogger(__name__)

_NAMESPACE_RE = re.compile(r"^[A-Za-z0-9._-]+$")


class StorageBackend(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """Process-local storage; contents vanish with the object."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._items[key] = value

    def remove_item(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def __len__(self) -> int:
        return len(self._items)


class JsonFileStorage:
    """
    Persistent namespace stored under ``{root}/{namespace}/``.

    Each item lives in its own ``{sha256(key)}.json`` record holding
    ``{"id": key, "value": value}``, written through a temporary file and
    ``os.replace``. Writers of different items never touch the same file, so
    they cannot clobber each other, across threads or processes; two writers
    of the same item resolve to last-write-wins.

    ``quota_bytes`` caps the total size of the namespace's records; 0
    disables the cap.
    """

    def __init__(self, root: Path | str, namespace: str = "default", quota_bytes: int = 5 * 1024 * 1024):
        if not _NAMESPACE_RE.match(namespace):
            raise ValueError(f"invalid storage namespace: {namespace!r}")
        self.root = Path(root).expanduser()
        self.namespace = namespace
        self.quota_bytes = quota_bytes
        # serializes this instance's quota check + write
        self._lock = threading.Lock()

    @property
    def directory(self) -> Path:
        return self.root / self.namespace

    def record_path(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.directory / f"{digest}.json"

    def _used_bytes(self, exclude: Path) -> int:
        total = 0
        for record in self.directory.glob("*.json"):
            if record == exclude:
                continue
            try:
                total += record.stat().st_size
            except FileNotFoundError:
                # removed by a concurrent delete
                continue
        return total

    def get_item(self, key: str) -> Optional[str]:
        path = self.record_path(key)
        try:
            with open(path, "r", encoding="utf-8") as f:
                record = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"cannot read key record {path}: {e}") from e

        if not isinstance(record, dict) or record.get("id") != key:
            raise StorageError(f"key record {path} is malformed")
        value = record.get("value")
        if not isinstance(value, str):
            raise StorageError(f"key record {path} holds a {type(value).__name__}, expected a string")
        return value

    def set_item(self, key: str, value: str) -> None:
        path = self.record_path(key)
        payload = json.dumps({"id": key, "value": value})

        with self._lock:
            tmp_path = None
            try:
                self.directory.mkdir(parents=True, exist_ok=True)
                if self.quota_bytes:
                    size = self._used_bytes(exclude=path) + len(payload.encode("utf-8"))
                    if size > self.quota_bytes:
                        raise StorageWriteError(
                            f"storage quota exceeded for namespace {self.namespace!r} "
                            f"({size} > {self.quota_bytes} bytes)"
                        )
                with tempfile.NamedTemporaryFile(
                    "w", encoding="utf-8", dir=self.directory, prefix=".", suffix=".tmp", delete=False
                ) as tmpf:
                    tmp_path = Path(tmpf.name)
                    tmpf.write(payload)
                os.replace(tmp_path, path)
            except OSError as e:
                if tmp_path is not None and tmp_path.exists():
                    tmp_path.unlink()
                raise StorageWriteError(f"cannot write key record {path}: {e}") from e

    def remove_item(self, key: str) -> None:
        path = self.record_path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageWriteError(f"cannot remove key record {path}: {e}") from e


def assess_keyring_backend(backend=None) -> tuple[bool, str]:
    """Return (is_secure, message) describing a keyring backend.

    ``backend`` defaults to the process-wide keyring. Heuristics are used
    because `keyring` exposes different backends across platforms.
    """
    if backend is None:
        try:
            backend = keyring.get_keyring()
        except KeyringError as e:
            return False, f"failed to get keyring backend: {e}"

    name = backend.__class__.__name__
    priority = getattr(backend, "priority", None)

    if any(tok in name for tok in ("Plaintext", "Uncrypted", "Simple", "File", "Null", "Fail")):
        return False, f"insecure backend detected: {name}"
    if priority is not None and priority <= 0:
        return False, f"no suitable secure keyring backend available (priority={priority}, backend={name})"
    if any(tok in name for tok in ("Win", "Keychain", "SecretService", "KWallet")):
        return True, f"backend looks acceptable: {name} (priority={priority})"
    return True, f"unknown backend '{name}', treat with caution (priority={priority})"


class KeyringStorage:
    """
    OS keystore storage: each item is a password under (service, item key).

    ``backend`` may be a ``keyring.backend.KeyringBackend`` instance; when
    omitted the process-wide keyring selected by `keyring` is used.

    Before the first write the backend is checked with
    :func:`assess_keyring_backend`. Keys are refused on an insecure backend
    unless ``allow_insecure`` is set, in which case a warning is logged.
    """

    def __init__(self, service: str = "keymanager", backend=None, allow_insecure: bool = False):
        self.service = service
        self.allow_insecure = allow_insecure
        self._backend = backend
        self._assessed = False

    @property
    def backend(self):
        if self._backend is not None:
            return self._backend
        return keyring.get_keyring()

    def _check_backend(self, backend) -> None:
        if self._assessed:
            return
        secure, msg = assess_keyring_backend(backend)
        if not secure:
            if not self.allow_insecure:
                raise StorageWriteError(f"refusing to store keys in the OS keystore: {msg}")
            logger.warning("storing keys in an insecure keyring backend: %s", msg)
        self._assessed = True

    def get_item(self, key: str) -> Optional[str]:
        try:
            return self.backend.get_password(self.service, key)
        except KeyringError as e:
            raise StorageError(f"keyring read failed: {e}") from e

    def set_item(self, key: str, value: str) -> None:
        try:
            backend = self.backend
            self._check_backend(backend)
            backend.set_password(self.service, key, value)
        except KeyringError as e:
            raise StorageWriteError(f"keyring write failed: {e}") from e

    def remove_item(self, key: str) -> None:
        try:
            self.backend.delete_password(self.service, key)
        except PasswordDeleteError:
            # nothing stored under this key
            pass
        except KeyringError as e:
            raise StorageWriteError(f"keyring delete failed: {e}") from e


class KeyStore:
    """Id -> hex key records on top of a :class:`StorageBackend`. Last write wins."""

    def __init__(self, storage: StorageBackend):
        self.storage = storage

    @staticmethod
    def _check_id(key_id: str) -> None:
        if not isinstance(key_id, str) or not key_id:
            raise InvalidKeyError("key id must be a non-empty string")

    def put(self, key_id: str, key: str) -> None:
        self._check_id(key_id)
        self.storage.set_item(key_id, validate_key(key))
        logger.info("stored key %r", key_id)

    def get(self, key_id: str) -> str:
        self._check_id(key_id)
        key = self.storage.get_item(key_id)
        if not key:
            logger.debug("key %r not found", key_id)
            raise KeyNotFoundError(key_id)
        return key

    def delete(self, key_id: str) -> None:
        self._check_id(key_id)
        self.storage.remove_item(key_id)
        logger.info("deleted key %r", key_id)

    def __contains__(self, key_id: object) -> bool:
        return isinstance(key_id, str) and bool(key_id) and bool(self.storage.get_item(key_id))
