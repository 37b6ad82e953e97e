"""Runtime configuration for KeyManager, read from ``KEYMANAGER_*`` environment variables."""

from __future__ import annotations

import logging
import os
import platform
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from keymanager.security.keystore import (
    JsonFileStorage,
    KeyringStorage,
    MemoryStorage,
    StorageBackend,
)

STORAGE_KINDS = ("memory", "file", "keyring")
_TRUE = ("1", "true", "yes", "on")


def _default_storage_dir() -> Path:
    """Return the OS-appropriate data directory for persisted keys."""
    if platform.system() == "Windows":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif platform.system() == "Darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))
    return base / "keymanager"


def _parse_level(value: str) -> int:
    level = logging.getLevelName(value.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"KEYMANAGER_LOG_LEVEL must be a logging level name, got {value!r}")
    return level


@dataclass
class KeyManagerConfig:
    storage: str = "file"
    namespace: str = "default"
    storage_dir: Path = field(default_factory=_default_storage_dir)
    quota_bytes: int = 5 * 1024 * 1024
    keyring_service: str = "keymanager"
    keyring_allow_insecure: bool = False
    # None leaves logging to the embedding application
    log_level: Optional[int] = None

    def __post_init__(self):
        if self.storage not in STORAGE_KINDS:
            raise ValueError(f"storage must be one of {', '.join(STORAGE_KINDS)}, got {self.storage!r}")
        if self.quota_bytes < 0:
            raise ValueError("quota_bytes must not be negative")
        self.storage_dir = Path(self.storage_dir).expanduser()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "KeyManagerConfig":
        """
        Build a config from the environment, falling back to defaults.

        Recognised variables: ``KEYMANAGER_STORAGE``, ``KEYMANAGER_NAMESPACE``,
        ``KEYMANAGER_STORAGE_DIR``, ``KEYMANAGER_QUOTA_BYTES``,
        ``KEYMANAGER_KEYRING_SERVICE``, ``KEYMANAGER_KEYRING_ALLOW_INSECURE``
        and ``KEYMANAGER_LOG_LEVEL``.
        """
        env = os.environ if environ is None else environ
        kwargs = {}
        if env.get("KEYMANAGER_STORAGE"):
            kwargs["storage"] = env["KEYMANAGER_STORAGE"].strip().lower()
        if env.get("KEYMANAGER_NAMESPACE"):
            kwargs["namespace"] = env["KEYMANAGER_NAMESPACE"]
        if env.get("KEYMANAGER_STORAGE_DIR"):
            kwargs["storage_dir"] = Path(env["KEYMANAGER_STORAGE_DIR"])
        if env.get("KEYMANAGER_QUOTA_BYTES"):
            try:
                kwargs["quota_bytes"] = int(env["KEYMANAGER_QUOTA_BYTES"])
            except ValueError as e:
                raise ValueError("KEYMANAGER_QUOTA_BYTES must be an integer") from e
        if env.get("KEYMANAGER_KEYRING_SERVICE"):
            kwargs["keyring_service"] = env["KEYMANAGER_KEYRING_SERVICE"]
        if env.get("KEYMANAGER_KEYRING_ALLOW_INSECURE"):
            kwargs["keyring_allow_insecure"] = env["KEYMANAGER_KEYRING_ALLOW_INSECURE"].strip().lower() in _TRUE
        if env.get("KEYMANAGER_LOG_LEVEL"):
            kwargs["log_level"] = _parse_level(env["KEYMANAGER_LOG_LEVEL"])
        return cls(**kwargs)


def build_storage(config: KeyManagerConfig) -> StorageBackend:
    """Instantiate the storage backend selected by ``config.storage``."""
    if config.storage == "memory":
        return MemoryStorage()
    if config.storage == "keyring":
        return KeyringStorage(service=config.keyring_service, allow_insecure=config.keyring_allow_insecure)
    return JsonFileStorage(config.storage_dir, namespace=config.namespace, quota_bytes=config.quota_bytes)
