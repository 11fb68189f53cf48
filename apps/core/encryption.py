"""
Encryption utilities for credentials stored at rest (SMTP passwords).

Uses AES-256-GCM with the key from settings.ENCRYPTION_KEY. Keys listed in
ENCRYPTION_OLD_KEYS are used for decryption only, so keys can be rotated.
"""
import base64
import logging
import os
from typing import List
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from django.conf import settings

logger = logging.getLogger(__name__)

KEY_HINT = "Generate with: python -c \"import os, base64; print(base64.b64encode(os.urandom(32)).decode())\""


def validate_encryption_key(key_b64: str) -> bytes:
    """
    Validate a base64 key and return the decoded 32 bytes.

    Raises:
        ValueError: if the key is missing, not base64, the wrong length,
            or obviously weak (repeating bytes, too few distinct bytes).
    """
    if not key_b64:
        raise ValueError(f"Encryption key is required. {KEY_HINT}")

    try:
        key = base64.b64decode(key_b64)
    except Exception as e:
        raise ValueError(f"Encryption key must be valid base64: {e}. {KEY_HINT}")

    if len(key) != 32:
        raise ValueError(
            f"Encryption key must be exactly 32 bytes (256 bits). "
            f"Current length: {len(key)} bytes. {KEY_HINT}"
        )

    for pattern_len in (1, 2, 4, 8):
        if key == key[:pattern_len] * (32 // pattern_len):
            raise ValueError(f"Encryption key is a repeating {pattern_len}-byte pattern. {KEY_HINT}")

    if len(set(key)) < 16:
        raise ValueError(
            f"Encryption key has insufficient entropy. "
            f"Found only {len(set(key))} unique bytes, need at least 16. {KEY_HINT}"
        )

    return key


class EncryptionService:
    """Encrypt and decrypt short strings with rotation support."""

    def __init__(self):
        self.cipher = AESGCM(validate_encryption_key(settings.ENCRYPTION_KEY))

        self.old_ciphers: List[AESGCM] = []
        for i, old_key_b64 in enumerate(getattr(settings, 'ENCRYPTION_OLD_KEYS', [])):
            try:
                self.old_ciphers.append(AESGCM(validate_encryption_key(old_key_b64)))
            except ValueError as e:
                logger.warning(f"Invalid old encryption key at index {i}: {e}")

    def encrypt(self, plaintext: str) -> str:
        """Return base64(nonce + ciphertext)."""
        if not plaintext:
            return plaintext

        nonce = os.urandom(12)
        ciphertext = self.cipher.encrypt(nonce, plaintext.encode('utf-8'), None)
        return base64.b64encode(nonce + ciphertext).decode('utf-8')

    def decrypt(self, encrypted_data: str) -> str:
        """
        Decrypt with the current key, then each old key.

        Raises:
            ValueError: if no key can decrypt the data
        """
        if not encrypted_data:
            return encrypted_data

        try:
            data = base64.b64decode(encrypted_data)
        except Exception as e:
            raise ValueError(f"Decryption failed: {e}")

        nonce, ciphertext = data[:12], data[12:]
        for cipher in [self.cipher, *self.old_ciphers]:
            try:
                return cipher.decrypt(nonce, ciphertext, None).decode('utf-8')
            except Exception:
                continue

        raise ValueError("Decryption failed with all available keys")


_encryption_service = None


def get_encryption_service() -> EncryptionService:
    """Get or create the process-wide encryption service."""
    global _encryption_service
    if _encryption_service is None:
        _encryption_service = EncryptionService()
    return _encryption_service


def reset_encryption_service():
    """Drop the cached service (after ENCRYPTION_KEY changes)."""
    global _encryption_service
    _encryption_service = None


def mask_secret(value: str, visible_chars: int = 4) -> str:
    """
    Mask all but the last ``visible_chars`` characters.

        mask_secret('app-password-1234') -> '*************1234'
    """
    if not value:
        return ''
    if len(value) <= visible_chars:
        return '*' * len(value)
    return '*' * (len(value) - visible_chars) + value[-visible_chars:]
