"""Security module for SealedStore.

Provides encryption key lifecycle management.
"""

from sealedstore.security.key_manager import (
    KEY_BYTES,
    KEY_FILE_MODE,
    KEY_HEX_LENGTH,
    EncryptionKey,
    KeyLifecycleError,
    KeyLifecycleManager,
    KeyState,
    default_key_path,
    resolve_key_path,
)

__all__ = [
    "KEY_BYTES",
    "KEY_FILE_MODE",
    "KEY_HEX_LENGTH",
    "EncryptionKey",
    "KeyLifecycleError",
    "KeyLifecycleManager",
    "KeyState",
    "default_key_path",
    "resolve_key_path",
]
