"""Backend selection and storage manager construction.

The set of backends is closed: a configuration tag maps to exactly one
adapter class. The encryption key is resolved once here and handed only
to the storage manager being built.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from sealedstore.config import Settings, StorageType
from sealedstore.security.key_manager import (
    EncryptionKey,
    KeyLifecycleManager,
    resolve_key_path,
)
from sealedstore.storage.base import Storage
from sealedstore.storage.encrypted import Encryptor
from sealedstore.storage.errors import StorageConfigError
from sealedstore.storage.manager import StorageManager

logger = logging.getLogger(__name__)

__all__ = [
    "KeyResolution",
    "StorageType",
    "create_backend",
    "create_storage_manager",
    "resolve_encryption_key",
]


def create_backend(settings: Settings) -> Storage:
    """Construct the backend adapter selected by settings.

    Args:
        settings: Application settings

    Returns:
        Connected backend adapter

    Raises:
        StorageConfigError: If required parameters are missing or invalid
        StorageBackendError: If the backend cannot be initialized
    """
    errors = settings.validate_storage()
    if errors:
        raise StorageConfigError("; ".join(errors))

    storage_type = settings.storage_type
    if storage_type is StorageType.FILE:
        from sealedstore.storage.file import FileStorage

        return FileStorage(settings.data_dir)

    if storage_type is StorageType.SQL:
        from sealedstore.storage.sql import SQLTableStorage

        return SQLTableStorage(settings.sql_dsn, settings.sql_table)

    if storage_type is StorageType.MONGODB:
        from sealedstore.storage.document import MongoStorage

        return MongoStorage(settings.mongo_uri, settings.mongo_database, settings.mongo_collection)

    if storage_type is StorageType.S3:
        from sealedstore.storage.object import S3Storage

        return S3Storage(settings.s3_bucket, settings.s3_region or None)

    raise StorageConfigError(f"Unsupported storage type: {storage_type}")


@dataclass(frozen=True)
class KeyResolution:
    """Outcome of key resolution at startup."""

    key: EncryptionKey | None
    source: str  # "settings", "file" or "disabled"
    path: Path | None = None
    generated: bool = False


def resolve_encryption_key(settings: Settings) -> KeyResolution:
    """Decide which encryption key, if any, the storage manager gets.

    Disabling encryption wins over everything else; otherwise an explicit
    hex key in settings is used, then the key file (loaded or generated).

    Raises:
        KeyLifecycleError: If the configured key or key file is invalid
    """
    if not settings.encryption_enabled:
        logger.warning("Encryption disabled: blobs are stored as plaintext")
        return KeyResolution(key=None, source="disabled")

    if settings.encryption_key is not None:
        key = EncryptionKey.from_hex(settings.encryption_key.get_secret_value())
        return KeyResolution(key=key, source="settings")

    path = resolve_key_path(settings.key_path)
    lifecycle = KeyLifecycleManager(path)
    key = lifecycle.resolve()
    return KeyResolution(key=key, source="file", path=path, generated=lifecycle.generated)


def create_storage_manager(
    settings: Settings,
    key: EncryptionKey | None = None,
    *,
    backend: Storage | None = None,
) -> StorageManager:
    """Build the storage manager for settings.

    Args:
        settings: Application settings
        key: Active encryption key, or None for plaintext storage
        backend: Pre-built backend (defaults to ``create_backend(settings)``)

    Returns:
        Storage manager ready for use
    """
    backend = backend if backend is not None else create_backend(settings)
    encryptor = Encryptor(key.material) if key is not None else None
    return StorageManager(backend, encryptor)
