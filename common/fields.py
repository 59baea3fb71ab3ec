"""Custom model fields used across the project."""

from __future__ import annotations

import logging

from django.db import models

from .security import EncryptionError, decrypt, encrypt

logger = logging.getLogger(__name__)


class EncryptedTextField(models.TextField):
    """A ``TextField`` that encrypts values at rest and decrypts on load.

    Stored values carry the ``enc::`` prefix so rows written before the field
    was introduced (plain text) can still be read.
    """

    prefix = "enc::"

    def _maybe_encrypt(self, value):
        if value is None or value == "":
            return value
        if isinstance(value, str) and value.startswith(self.prefix):
            return value
        return f"{self.prefix}{encrypt(value)}"

    def _maybe_decrypt(self, value):
        if value is None or value == "":
            return value
        if isinstance(value, str) and value.startswith(self.prefix):
            try:
                return decrypt(value[len(self.prefix):])
            except EncryptionError:
                logger.warning("Could not decrypt value of %s; returning it unchanged.", self.name)
                return value
        return value

    def from_db_value(self, value, expression, connection):
        return self._maybe_decrypt(value)

    def to_python(self, value):
        return self._maybe_decrypt(value)

    def get_prep_value(self, value):
        value = super().get_prep_value(value)
        return self._maybe_encrypt(value)

    def value_to_string(self, obj):
        return self._maybe_encrypt(self.value_from_object(obj))


__all__ = ["EncryptedTextField"]
