"""MongoDB document storage backend."""

from __future__ import annotations

import logging
from typing import Any

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from sealedstore.storage.base import Storage
from sealedstore.storage.errors import StorageBackendError, StorageCorruptedError, StorageNotFoundError
from sealedstore.utils.logging import redact_url

logger = logging.getLogger(__name__)


class MongoStorage(Storage):
    """Document-store backend, one ``{_id: key, data: blob}`` document per key.

    Deleting a missing key raises StorageNotFoundError, decided from the
    ``deleted_count`` reported by the server.

    Configuration:
        uri: MongoDB connection URI
        database: Database name
        collection: Collection name
    """

    backend_type = "mongodb"
    missing_delete_raises = True

    def __init__(
        self,
        uri: str,
        database: str,
        collection: str,
        *,
        client: Any | None = None,
        timeout_ms: int = 10_000,
    ) -> None:
        """Initialize MongoDB storage.

        The driver connects lazily; connection problems surface on the
        first operation as StorageBackendError.

        Args:
            uri: MongoDB connection URI
            database: Database name
            collection: Collection name
            client: Pre-built client (tests, shared pools)
            timeout_ms: Server selection timeout in milliseconds
        """
        self._owns_client = client is None
        try:
            self._client = client if client is not None else MongoClient(uri, serverSelectionTimeoutMS=timeout_ms)
        except PyMongoError as e:
            raise StorageBackendError(f"Failed to create MongoDB client for {redact_url(uri)}: {e}") from e
        self._collection = self._client[database][collection]
        self.database = database
        self.collection = collection
        logger.debug(f"MongoDB storage ready: {redact_url(uri)} {database}.{collection}")

    def load(self, key: str) -> bytes:
        """Fetch the document for key and return its data."""
        try:
            doc = self._collection.find_one({"_id": key})
        except PyMongoError as e:
            raise StorageBackendError(f"MongoDB load failed for {key}: {e}") from e
        if doc is None:
            raise StorageNotFoundError(f"Key not found in {self.collection}: {key}")
        try:
            return bytes(doc["data"])
        except (KeyError, TypeError) as e:
            raise StorageCorruptedError(f"Document for {key} in {self.collection} has no usable data field") from e

    def save(self, key: str, data: bytes) -> None:
        """Replace the document for key, inserting it if absent."""
        try:
            self._collection.replace_one({"_id": key}, {"_id": key, "data": data}, upsert=True)
        except PyMongoError as e:
            raise StorageBackendError(f"MongoDB save failed for {key}: {e}") from e
        logger.debug(f"Saved {len(data)} bytes to {self.collection}/{key}")

    def delete(self, key: str) -> None:
        """Delete the document for key.

        Raises:
            StorageNotFoundError: If no document was deleted
            StorageBackendError: If the operation fails
        """
        try:
            result = self._collection.delete_one({"_id": key})
        except PyMongoError as e:
            raise StorageBackendError(f"MongoDB delete failed for {key}: {e}") from e
        if result.deleted_count == 0:
            raise StorageNotFoundError(f"Key not found in {self.collection}: {key}")

    def exists(self, key: str) -> bool:
        """Count documents with key instead of fetching the blob."""
        try:
            return self._collection.count_documents({"_id": key}, limit=1) > 0
        except PyMongoError as e:
            raise StorageBackendError(f"MongoDB exists check failed for {key}: {e}") from e

    def close(self) -> None:
        """Close the client if this backend created it."""
        if self._owns_client:
            self._client.close()
