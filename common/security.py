"""Symmetric encryption used for secrets stored in the database."""

from __future__ import annotations

import base64
import hashlib
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken
from django.conf import settings


class EncryptionError(Exception):
    """Raised when encrypting or decrypting data fails."""


def _derive_key(secret: str) -> bytes:
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


@lru_cache(maxsize=4)
def _fernet_for(secret: str) -> Fernet:
    return Fernet(_derive_key(secret))


def _get_fernet() -> Fernet:
    key_source = getattr(settings, "FIELD_ENCRYPTION_KEY", "") or settings.SECRET_KEY
    return _fernet_for(key_source)


def encrypt(text: str) -> str:
    """Encrypt *text* returning a URL safe base64 string."""

    if text is None:
        raise ValueError("`text` must be a string, not None")
    return _get_fernet().encrypt(text.encode("utf-8")).decode("utf-8")


def decrypt(token: str) -> str:
    """Decrypt *token* returning the original string."""

    if token is None:
        raise ValueError("`token` must be a string, not None")
    try:
        return _get_fernet().decrypt(token.encode("utf-8")).decode("utf-8")
    except InvalidToken as exc:
        raise EncryptionError("Invalid encryption token") from exc


__all__ = ["EncryptionError", "encrypt", "decrypt"]
