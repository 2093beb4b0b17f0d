"""Storage manager: one backend, optionally wrapped in encryption."""

from __future__ import annotations

import logging

from sealedstore.storage.base import Storage, StorageDecorator
from sealedstore.storage.encrypted import Encryptor

logger = logging.getLogger(__name__)


class StorageManager(StorageDecorator):
    """Presents the storage contract over a backend, encrypting transparently.

    Whether encryption applies is fixed at construction: with an encryptor
    every save encrypts and every load decrypts, without one bytes pass
    through untouched. Delete and exists always pass through.

    The manager is constructed explicitly and handed to whatever needs
    persistence; there is no process-wide instance.

    Example:
        ```python
        manager = StorageManager(FileStorage(data_dir), Encryptor(key.material))
        manager.save("todos.json", b'{"tasks": []}')
        manager.load("todos.json")
        ```
    """

    def __init__(self, backend: Storage, encryptor: Encryptor | None = None) -> None:
        """Initialize storage manager.

        Args:
            backend: Backend adapter holding the bytes
            encryptor: Encryptor applied to every blob, or None
        """
        super().__init__(backend)
        self.__encryptor = encryptor
        logger.debug(
            f"Storage manager using {backend.backend_type} backend "
            f"({'encrypted' if encryptor is not None else 'unencrypted'})"
        )

    def save(self, key: str, data: bytes) -> None:
        """Encrypt if configured, then save.

        Raises:
            CryptoError: If encryption fails (nothing is written)
            StorageBackendError: If the backend fails
        """
        payload = self.__encryptor.encrypt(data) if self.__encryptor is not None else data
        self._wrapped.save(key, payload)

    def load(self, key: str) -> bytes:
        """Load, then decrypt if configured.

        Raises:
            StorageNotFoundError: If key is absent
            CryptoError: If the stored envelope fails authentication
            StorageBackendError: If the backend fails
        """
        payload = self._wrapped.load(key)
        if self.__encryptor is None:
            return payload
        return self.__encryptor.decrypt(payload)
