"""Storage layer for opaque key-value blobs.

Provides a uniform load/save/delete/exists contract with:
- Four interchangeable backends (file, SQL table, MongoDB, S3)
- Transparent AES-256-GCM encryption via StorageManager
- Centralized error handling
- JSON helpers

Example:
    ```python
    from sealedstore.storage import Encryptor, FileStorage, StorageManager

    manager = StorageManager(FileStorage(data_dir), Encryptor(key.material))
    manager.save("todos.json", b"[]")
    data = manager.load("todos.json")
    ```
"""

from __future__ import annotations

from sealedstore.storage.base import Storage, StorageDecorator
from sealedstore.storage.encrypted import Encryptor
from sealedstore.storage.errors import (
    CryptoError,
    InvalidKeyError,
    InvalidResourceKeyError,
    StorageBackendError,
    StorageConfigError,
    StorageCorruptedError,
    StorageError,
    StorageNotFoundError,
    StoragePermissionError,
)
from sealedstore.storage.file import FileStorage
from sealedstore.storage.helpers import load_json, save_json
from sealedstore.storage.manager import StorageManager
from sealedstore.storage.sql import SQLTableStorage

__all__ = [
    # Base classes
    "Storage",
    "StorageDecorator",
    # Implementations
    "FileStorage",
    "SQLTableStorage",
    "StorageManager",
    "Encryptor",
    # Helpers
    "save_json",
    "load_json",
    # Exceptions
    "StorageError",
    "StorageNotFoundError",
    "StorageBackendError",
    "StoragePermissionError",
    "StorageConfigError",
    "StorageCorruptedError",
    "InvalidResourceKeyError",
    "InvalidKeyError",
    "CryptoError",
]
