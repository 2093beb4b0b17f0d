"""Encryption key lifecycle management.

The key is a 32-byte secret persisted as 64 hex characters in a key file
with owner-only permissions. On startup the key manager:

1. Resolves the key file path (operator override, else a per-user default)
2. Loads and validates an existing key file, or
3. Generates a new key and writes it when no file exists yet

An existing key file is never overwritten. Any failure is fatal: callers
must not start persisting data without a validated key.
"""

from __future__ import annotations

import hmac
import logging
import os
import re
import secrets
from enum import Enum
from pathlib import Path

import platformdirs

from sealedstore.storage.errors import InvalidKeyError, StorageError

logger = logging.getLogger(__name__)

KEY_BYTES = 32
KEY_HEX_LENGTH = KEY_BYTES * 2
KEY_FILE_MODE = 0o600

_HEX_KEY_PATTERN = re.compile(rf"[0-9a-fA-F]{{{KEY_HEX_LENGTH}}}")


class KeyLifecycleError(StorageError):
    """Raised when the encryption key cannot be loaded, validated or created."""


def default_key_path() -> Path:
    """Get the platform-appropriate default key file location.

    Uses OS-specific conventions:
    - macOS: ~/Library/Application Support/SealedStore/key
    - Windows: %APPDATA%/SealedStore/key
    - Linux: ~/.config/sealedstore/key

    Returns:
        Path to the default key file
    """
    return Path(platformdirs.user_config_dir("SealedStore", "SealedStore")) / "key"


def resolve_key_path(override: Path | str | None = None) -> Path:
    """Resolve the key file path; an operator override wins over the default."""
    if override:
        path = Path(override).expanduser()
        logger.info(f"Using custom key path: {path}")
        return path
    path = default_key_path()
    logger.info(f"Using default key path: {path}")
    return path


class EncryptionKey:
    """A 32-byte encryption key that never prints its material.

    ``repr`` and ``str`` show only :meth:`preview`, so the key can be
    passed around and logged by accident without leaking.
    """

    __slots__ = ("_material",)

    def __init__(self, material: bytes) -> None:
        """Initialize key.

        Args:
            material: Raw key bytes

        Raises:
            InvalidKeyError: If material is not exactly 32 bytes
        """
        if len(material) != KEY_BYTES:
            raise InvalidKeyError(f"Encryption key must be {KEY_BYTES} bytes, got {len(material)}")
        self._material = bytes(material)

    @classmethod
    def generate(cls) -> EncryptionKey:
        """Create a key from the OS CSPRNG."""
        return cls(secrets.token_bytes(KEY_BYTES))

    @classmethod
    def from_hex(cls, text: str) -> EncryptionKey:
        """Parse a key from its hex form, ignoring surrounding whitespace.

        Raises:
            KeyLifecycleError: If text is not exactly 64 hex characters
        """
        value = text.strip()
        if len(value) != KEY_HEX_LENGTH:
            raise KeyLifecycleError(
                f"Invalid key length: expected {KEY_HEX_LENGTH} hex characters, got {len(value)}"
            )
        if not _HEX_KEY_PATTERN.fullmatch(value):
            raise KeyLifecycleError(f"Invalid key format: must be {KEY_HEX_LENGTH} hex characters")
        return cls(bytes.fromhex(value))

    @property
    def material(self) -> bytes:
        """Raw key bytes, for the encryptor only."""
        return self._material

    def hex(self) -> str:
        return self._material.hex()

    def preview(self) -> str:
        """Redacted form: first and last 8 hex characters."""
        value = self.hex()
        return f"{value[:8]}...{value[-8:]}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EncryptionKey):
            return NotImplemented
        return hmac.compare_digest(self._material, other._material)

    def __hash__(self) -> int:
        return hash(self._material)

    def __repr__(self) -> str:
        return f"EncryptionKey({self.preview()})"

    __str__ = __repr__


class KeyState(str, Enum):
    """States of the key lifecycle."""

    UNRESOLVED = "unresolved"
    LOADING = "loading"
    GENERATING = "generating"
    VALIDATED = "validated"
    FAILED = "failed"


class KeyLifecycleManager:
    """Loads or generates the encryption key exactly once.

    ``UNRESOLVED -> LOADING | GENERATING -> VALIDATED | FAILED``

    VALIDATED is the only usable outcome; FAILED is terminal and every
    later ``resolve`` re-raises.

    Example:
        ```python
        km = KeyLifecycleManager(resolve_key_path(settings.key_path))
        key = km.resolve()
        manager = StorageManager(backend, Encryptor(key.material))
        ```
    """

    def __init__(self, path: Path | str) -> None:
        """Initialize key lifecycle manager.

        Args:
            path: Resolved key file path
        """
        self.path = Path(path)
        self._state = KeyState.UNRESOLVED
        self._key: EncryptionKey | None = None
        self._error: KeyLifecycleError | None = None
        self.generated = False

    @property
    def state(self) -> KeyState:
        return self._state

    def resolve(self) -> EncryptionKey:
        """Return the validated key, loading or generating it on first call.

        Returns:
            The active encryption key

        Raises:
            KeyLifecycleError: If the key file is unreadable or invalid, or
                a new key cannot be written
        """
        if self._state is KeyState.VALIDATED and self._key is not None:
            return self._key
        if self._state is KeyState.FAILED and self._error is not None:
            raise self._error

        logger.debug(f"Checking for encryption key at: {self.path}")
        try:
            key = self._load_or_generate()
        except KeyLifecycleError as e:
            self._state = KeyState.FAILED
            self._error = e
            logger.error(f"Encryption key unavailable: {e}")
            raise

        self._key = key
        self._state = KeyState.VALIDATED
        return key

    def _load_or_generate(self) -> EncryptionKey:
        try:
            self.path.stat()
        except FileNotFoundError:
            self._state = KeyState.GENERATING
            try:
                return self._generate()
            except FileExistsError:
                # Another process created the file between stat and create
                logger.info(f"Key file appeared at {self.path}, loading it instead")
        except OSError as e:
            raise KeyLifecycleError(f"Cannot access key file {self.path}: {e}") from e

        self._state = KeyState.LOADING
        return self._load()

    def _load(self) -> EncryptionKey:
        logger.info("Existing key file found")
        try:
            content = self.path.read_bytes().decode("ascii")
        except UnicodeDecodeError as e:
            raise KeyLifecycleError(
                f"Invalid key format in {self.path}: must be {KEY_HEX_LENGTH} hex characters"
            ) from e
        except OSError as e:
            raise KeyLifecycleError(f"Failed to read existing key {self.path}: {e}") from e

        try:
            key = EncryptionKey.from_hex(content)
        except KeyLifecycleError as e:
            raise KeyLifecycleError(f"{e} (key file: {self.path})") from e

        self.generated = False
        logger.info("Key validated successfully")
        return key

    def _generate(self) -> EncryptionKey:
        logger.info("No existing key found, generating new key...")
        key = EncryptionKey.generate()

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
        except OSError as e:
            raise KeyLifecycleError(f"Failed to create key directory {self.path.parent}: {e}") from e

        # O_EXCL: never replace a key file that already exists
        try:
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, KEY_FILE_MODE)
        except FileExistsError:
            raise
        except OSError as e:
            raise KeyLifecycleError(f"Failed to save encryption key to {self.path}: {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="ascii") as f:
                f.write(key.hex())
                f.flush()
                os.fsync(f.fileno())
            os.chmod(self.path, KEY_FILE_MODE)
        except OSError as e:
            # Don't leave a truncated key file behind for the next run to reject
            self.path.unlink(missing_ok=True)
            raise KeyLifecycleError(f"Failed to save encryption key to {self.path}: {e}") from e

        self.generated = True
        logger.info(f"New key generated and saved to {self.path}")
        return key
