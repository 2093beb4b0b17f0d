"""Storage layer exceptions."""

from __future__ import annotations


class StorageError(Exception):
    """Base exception for storage operations."""


class StorageNotFoundError(StorageError):
    """Raised when no blob is associated with the requested key."""


class StorageBackendError(StorageError):
    """Raised when the storage medium fails (I/O, network, driver).

    Always raised ``from`` the underlying exception so the cause is kept.
    """


class StoragePermissionError(StorageBackendError):
    """Raised when operation fails due to insufficient permissions."""


class StorageConfigError(StorageError):
    """Raised when a required backend parameter is missing or invalid."""


class StorageCorruptedError(StorageError):
    """Raised when stored data is corrupted or invalid."""


class InvalidResourceKeyError(StorageError):
    """Raised when a resource key cannot be used by the backend."""


class InvalidKeyError(StorageError):
    """Raised when an encryption key has the wrong length."""


class CryptoError(StorageError):
    """Raised when ciphertext is truncated or fails authentication."""
