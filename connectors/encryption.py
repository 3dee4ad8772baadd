"""
Token encryption — encrypt / decrypt OAuth tokens at rest.

Uses Fernet from the ``cryptography`` library with the key in
``config.token_encryption_key`` (env var: ``TOKEN_ENCRYPTION_KEY``).
Without a key, tokens are stored as plaintext and a warning is logged once.
Generate a key with ``Fernet.generate_key()``.
"""

from __future__ import annotations

import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from config.settings import config

logger = logging.getLogger(__name__)

_fernet: Optional[Fernet] = None
_initialised = False


def _cipher() -> Optional[Fernet]:
    global _fernet, _initialised
    if _initialised:
        return _fernet
    _initialised = True

    key = config.token_encryption_key
    if not key:
        logger.warning("TOKEN_ENCRYPTION_KEY not set — OAuth tokens will be stored as plaintext")
        return None
    try:
        _fernet = Fernet(key.encode())
    except (ValueError, TypeError) as exc:
        logger.error("Invalid TOKEN_ENCRYPTION_KEY, encryption disabled: %s", exc)
        _fernet = None
    return _fernet


def encrypt_token(plaintext: str) -> str:
    cipher = _cipher()
    if cipher is None or not plaintext:
        return plaintext
    return cipher.encrypt(plaintext.encode()).decode()


def decrypt_token(ciphertext: str) -> str:
    """
    Decrypt a stored token.  Values written before encryption was enabled
    are not valid Fernet tokens and come back unchanged.
    """
    cipher = _cipher()
    if cipher is None or not ciphertext:
        return ciphertext
    try:
        return cipher.decrypt(ciphertext.encode()).decode()
    except InvalidToken:
        return ciphertext
