"""
Fernet-based encryption for user secrets at rest (OpenAI API keys).

Usage:
    from agentdesk.utils.crypto import encrypt, decrypt

    cipher = encrypt("sk-...")     # → base64 Fernet token string
    plain  = decrypt(cipher)       # → "sk-..."

The key is read from settings.encryption_key (ENCRYPTION_KEY env var).
If no key is set, a deterministic fallback is derived from the DATABASE_URL so that
dev environments work out-of-the-box — but production MUST set ENCRYPTION_KEY.
"""

import base64
import hashlib
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from agentdesk.config.settings import settings

logger = logging.getLogger(__name__)

_fernet: Optional[Fernet] = None


def _derive_key(material: str) -> bytes:
    digest = hashlib.sha256(material.encode()).digest()
    return base64.urlsafe_b64encode(digest)


def _get_fernet() -> Fernet:
    global _fernet
    if _fernet is not None:
        return _fernet

    key = settings.encryption_key
    if not key:
        logger.warning(
            "ENCRYPTION_KEY not set — using derived key from DATABASE_URL. "
            "Set ENCRYPTION_KEY in production!"
        )
        _fernet = Fernet(_derive_key(settings.database_url))
    elif len(key) != 44:
        # Not a Fernet key (32 url-safe base64 bytes); stretch the passphrase
        _fernet = Fernet(_derive_key(key))
    else:
        _fernet = Fernet(key.encode())
    return _fernet


def encrypt(plaintext: str) -> str:
    """Encrypt a plaintext string → Fernet token (base64 string)."""
    if not plaintext:
        return ""
    return _get_fernet().encrypt(plaintext.encode("utf-8")).decode("utf-8")


def decrypt(ciphertext: str) -> str:
    """Decrypt a Fernet token → plaintext string."""
    if not ciphertext:
        return ""
    try:
        return _get_fernet().decrypt(ciphertext.encode("utf-8")).decode("utf-8")
    except InvalidToken:
        raise ValueError("Failed to decrypt secret — key mismatch or corrupted data")


def mask_secret(secret: str, visible: int = 4) -> str:
    """Render a secret for display: 'sk-...abcd'."""
    if not secret:
        return ""
    if len(secret) <= visible:
        return "*" * len(secret)
    return f"{secret[:3]}...{secret[-visible:]}"
