"""Helper functions for storing JSON documents as blobs."""

from __future__ import annotations

import json
from typing import Any

from sealedstore.storage.base import Storage
from sealedstore.storage.errors import StorageCorruptedError, StorageError


def save_json(storage: Storage, key: str, data: Any, *, indent: int = 2) -> None:
    """Serialize data as JSON and save it under key.

    Args:
        storage: Storage (usually a StorageManager)
        key: Resource key
        data: Data to serialize
        indent: JSON indentation (default: 2)

    Raises:
        StorageError: If data cannot be serialized
        StorageBackendError: If the save fails

    Example:
        ```python
        save_json(manager, "todos.json", {"tasks": []})
        ```
    """
    try:
        content = json.dumps(data, indent=indent, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise StorageError(f"Cannot serialize to JSON: {e}") from e

    storage.save(key, content.encode("utf-8"))


def load_json(storage: Storage, key: str) -> Any:
    """Load the blob under key and parse it as JSON.

    Args:
        storage: Storage (usually a StorageManager)
        key: Resource key

    Returns:
        Deserialized data

    Raises:
        StorageNotFoundError: If key is absent
        StorageCorruptedError: If the blob is not valid UTF-8 JSON
        CryptoError: If decryption fails
    """
    content = storage.load(key)

    try:
        return json.loads(content.decode("utf-8"))
    except json.JSONDecodeError as e:
        raise StorageCorruptedError(f"Invalid JSON in {key}: {e}") from e
    except UnicodeDecodeError as e:
        raise StorageCorruptedError(f"Invalid UTF-8 encoding in {key}: {e}") from e
