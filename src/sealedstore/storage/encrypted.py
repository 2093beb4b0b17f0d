"""Authenticated encryption for blobs at rest (AES-256-GCM)."""

from __future__ import annotations

import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from sealedstore.storage.errors import CryptoError, InvalidKeyError

logger = logging.getLogger(__name__)

# Envelope format: NONCE (12 bytes) + AES-GCM sealed payload (ciphertext + 16-byte tag)
KEY_SIZE = 32
NONCE_SIZE = 12


class Encryptor:
    """AES-256-GCM encrypt/decrypt pair bound to a single key.

    Each ``encrypt`` call draws a fresh random nonce, so encrypting the
    same plaintext twice yields different envelopes. GCM's tag is the
    only integrity check: a tampered envelope or a wrong key fails
    ``decrypt`` with CryptoError.

    Example:
        ```python
        encryptor = Encryptor(os.urandom(32))
        envelope = encryptor.encrypt(b"secret")
        assert encryptor.decrypt(envelope) == b"secret"
        ```
    """

    def __init__(self, key: bytes) -> None:
        """Initialize encryptor.

        Args:
            key: Raw 32-byte key

        Raises:
            InvalidKeyError: If key is not exactly 32 bytes
        """
        if not isinstance(key, bytes | bytearray) or len(key) != KEY_SIZE:
            size = len(key) if isinstance(key, bytes | bytearray) else type(key).__name__
            raise InvalidKeyError(f"Encryption key must be {KEY_SIZE} bytes for AES-256, got {size}")
        self._aead = AESGCM(bytes(key))

    def encrypt(self, plaintext: bytes) -> bytes:
        """Seal plaintext and return ``nonce + sealed payload``."""
        nonce = os.urandom(NONCE_SIZE)
        try:
            sealed = self._aead.encrypt(nonce, plaintext, None)
        except (TypeError, ValueError, OverflowError) as e:
            raise CryptoError(f"Encryption failed: {e}") from e
        return nonce + sealed

    def decrypt(self, ciphertext: bytes) -> bytes:
        """Open an envelope produced by ``encrypt``.

        Raises:
            CryptoError: If the envelope is shorter than the nonce, or
                authentication fails (tampered data or wrong key)
        """
        if len(ciphertext) < NONCE_SIZE:
            raise CryptoError(
                f"Ciphertext too short: {len(ciphertext)} bytes (nonce alone is {NONCE_SIZE})"
            )
        nonce, sealed = ciphertext[:NONCE_SIZE], ciphertext[NONCE_SIZE:]
        try:
            return self._aead.decrypt(nonce, sealed, None)
        except InvalidTag as e:
            raise CryptoError(
                "Decryption failed: data is corrupted or was encrypted with a different key"
            ) from e
