"""
Custom Django model fields for encrypted data.
"""
from django.db import models
from .encryption import get_encryption_service


class EncryptedCharField(models.CharField):
    """
    CharField that encrypts on save and decrypts on load.

    The encryption service is resolved on first use, so models can be
    imported before ENCRYPTION_KEY is configured. Equality lookups on the
    column never match because each encryption uses a fresh nonce.
    """

    description = "Encrypted character field"

    def get_prep_value(self, value):
        if value is None or value == '':
            return value
        return super().get_prep_value(get_encryption_service().encrypt(value))

    def from_db_value(self, value, expression, connection):
        if value is None or value == '':
            return value
        try:
            return get_encryption_service().decrypt(value)
        except ValueError:
            # Never expose ciphertext
            return None

    def to_python(self, value):
        if isinstance(value, str) or value is None:
            return value
        return str(value)
