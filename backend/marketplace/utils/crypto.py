"""Encryption helpers for provider credentials stored in the database.

Payment-gateway and ERP OAuth tokens (and ERP client secrets) are written
through :func:`encrypt` and read back through :func:`decrypt`:

- Encryption is authenticated (AES-GCM) with a random 96-bit nonce per value.
- Ciphertexts are versioned and prefixed so plain-text rows written before
  encryption was enabled are still readable.

Format::

    ENC:v1:<base64(nonce || ciphertext || tag)>

Passwords never go through this module; they are hashed in
``marketplace.services.auth``.
"""

from __future__ import annotations

import base64
import os
from typing import Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from marketplace.config import settings


_PREFIX = "ENC:v1:"
_NONCE_SIZE = 12
_KEY_SIZE = 32


def _get_key() -> bytes:
    """Derive the AES-GCM key from the application secret with HKDF-SHA256."""

    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=_KEY_SIZE,
        salt=None,
        info=b"provider-credential-encryption",
    )
    return hkdf.derive(settings.secret_key.encode("utf-8"))


def is_encrypted(value: Optional[str]) -> bool:
    return isinstance(value, str) and value.startswith(_PREFIX)


def encrypt(plaintext: Optional[str]) -> Optional[str]:
    """Encrypt a string value. ``None`` is passed through as ``None``."""

    if plaintext is None:
        return None
    if not isinstance(plaintext, str):
        plaintext = str(plaintext)

    aesgcm = AESGCM(_get_key())
    nonce = os.urandom(_NONCE_SIZE)
    ct = aesgcm.encrypt(nonce, plaintext.encode("utf-8"), associated_data=None)

    return _PREFIX + base64.b64encode(nonce + ct).decode("ascii")


def decrypt(value: Optional[str]) -> Optional[str]:
    """Decrypt a value produced by :func:`encrypt`.

    Values without the ``ENC:v1:`` prefix are returned unchanged. When the
    ciphertext cannot be decrypted (e.g. the secret was rotated) the original
    value is returned and the failure is logged.
    """

    if value is None:
        return None
    if not is_encrypted(value):
        return value

    try:
        raw = base64.b64decode(value[len(_PREFIX):].encode("ascii"))
        if len(raw) <= _NONCE_SIZE:
            return value
        nonce, ct = raw[:_NONCE_SIZE], raw[_NONCE_SIZE:]
        pt_bytes = AESGCM(_get_key()).decrypt(nonce, ct, associated_data=None)
        return pt_bytes.decode("utf-8")
    except Exception as e:
        from marketplace.utils.logger import logger
        logger.error(f"Crypto decryption failed: {type(e).__name__}: {e}")
        return value
