"""Base storage interface for blob operations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from types import TracebackType
from typing import ClassVar


class Storage(ABC):
    """Abstract base class for blob storage backends.

    Every backend stores one opaque byte blob per resource key and offers
    the same four operations with identical semantics. Implementations are
    synchronous; each call runs to completion on the calling thread.

    Backends also declare whether deleting an absent key raises
    :class:`~sealedstore.storage.errors.StorageNotFoundError`
    (``missing_delete_raises``). The policy is fixed per backend type.
    """

    #: Short identifier used in logs and by the backend selector.
    backend_type: ClassVar[str] = "abstract"

    #: Whether ``delete`` of an absent key raises StorageNotFoundError.
    missing_delete_raises: ClassVar[bool] = True

    @abstractmethod
    def load(self, key: str) -> bytes:
        """Load the blob stored under key.

        Args:
            key: Resource key

        Returns:
            Stored bytes

        Raises:
            StorageNotFoundError: If no blob is stored under key
            StorageBackendError: If the medium fails
        """

    @abstractmethod
    def save(self, key: str, data: bytes) -> None:
        """Create or replace the blob stored under key.

        Args:
            key: Resource key
            data: Blob to store

        Raises:
            StorageBackendError: If the medium fails
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete the blob stored under key.

        Args:
            key: Resource key

        Raises:
            StorageNotFoundError: If absent and ``missing_delete_raises`` is set
            StorageBackendError: If the medium fails
        """

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Check whether a blob is stored under key.

        Absence is reported as False, never as an error.

        Args:
            key: Resource key

        Returns:
            True if a load of key would succeed

        Raises:
            StorageBackendError: If the medium fails
        """

    def close(self) -> None:
        """Release connections held by the backend."""

    def __enter__(self) -> Storage:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class StorageDecorator(Storage):
    """Base class for storage decorators (encryption, etc).

    Allows adding functionality to any Storage implementation via
    the decorator pattern.

    Example:
        ```python
        backend = FileStorage(base_dir)
        manager = StorageManager(backend, Encryptor(key.material))
        manager.save("todos.json", data)  # Automatically encrypted
        ```
    """

    def __init__(self, wrapped: Storage) -> None:
        """Initialize decorator.

        Args:
            wrapped: Storage instance to wrap
        """
        self._wrapped = wrapped

    @property
    def backend_type(self) -> str:  # type: ignore[override]
        return self._wrapped.backend_type

    @property
    def missing_delete_raises(self) -> bool:  # type: ignore[override]
        return self._wrapped.missing_delete_raises

    def load(self, key: str) -> bytes:
        """Delegate to wrapped storage."""
        return self._wrapped.load(key)

    def save(self, key: str, data: bytes) -> None:
        """Delegate to wrapped storage."""
        self._wrapped.save(key, data)

    def delete(self, key: str) -> None:
        """Delegate to wrapped storage."""
        self._wrapped.delete(key)

    def exists(self, key: str) -> bool:
        """Delegate to wrapped storage."""
        return self._wrapped.exists(key)

    def close(self) -> None:
        """Delegate to wrapped storage."""
        self._wrapped.close()
