"""
Credential encryption and log redaction.

SECURITY REQUIREMENTS:
- NEVER store Shopify access tokens in plaintext in DB or logs
- All encrypt/decrypt operations for tenant credentials MUST use this module
- Any log field whose name looks like a token/secret/key is redacted

Usage:
    from shopsync.platform.secrets import CredentialCipher, redact_secrets

    cipher = CredentialCipher(settings.encryption_key)
    stored = cipher.encrypt(access_token)
    access_token = cipher.decrypt(stored)

    safe = redact_secrets({"access_token": "shpat_...", "shop": "x"})
"""

import base64
import hashlib
import logging
import re
from typing import Any, Optional

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)

# Patterns for detecting secret-bearing field names in logs
SECRET_PATTERNS = [
    re.compile(r"(api[_-]?key)", re.IGNORECASE),
    re.compile(r"(secret)", re.IGNORECASE),
    re.compile(r"(access[_-]?token)", re.IGNORECASE),
    re.compile(r"(password)", re.IGNORECASE),
    re.compile(r"(encryption[_-]?key)", re.IGNORECASE),
    re.compile(r"(database[_-]?url)", re.IGNORECASE),
    re.compile(r"(credentials)", re.IGNORECASE),
]

# Secret value shapes that must never reach logs even under innocent keys
SECRET_VALUE_PATTERNS = [
    re.compile(r"(shpat_[a-zA-Z0-9_]{8,})"),  # Shopify Admin API access tokens
    re.compile(r"(shpss_[a-zA-Z0-9]{24,})"),  # Shopify shared secrets
]

REDACTED_VALUE = "[REDACTED]"

_KDF_SALT = b"shopsync-credential-salt"
_KDF_ITERATIONS = 100000


class EncryptionError(Exception):
    """Raised when encryption/decryption operations fail."""
    pass


class CredentialCipher:
    """
    Fernet cipher for tenant access tokens.

    The Fernet key is derived from ENCRYPTION_KEY with PBKDF2 so any
    sufficiently long passphrase can be used.
    """

    def __init__(self, encryption_key: Optional[str]):
        if not encryption_key:
            raise EncryptionError(
                "Encryption key is required. Set the ENCRYPTION_KEY environment variable."
            )

        derived_key = hashlib.pbkdf2_hmac(
            "sha256",
            encryption_key.encode(),
            _KDF_SALT,
            _KDF_ITERATIONS,
            dklen=32,
        )
        self._fernet = Fernet(base64.urlsafe_b64encode(derived_key))

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a plaintext credential.

        Raises:
            ValueError: If plaintext is empty
        """
        if not plaintext:
            raise ValueError("Cannot encrypt empty string")
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        """
        Decrypt a stored credential.

        Raises:
            EncryptionError: If the ciphertext is malformed or was produced
                with a different key
        """
        if not ciphertext:
            raise EncryptionError("Cannot decrypt empty value")
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except InvalidToken:
            logger.error("Credential decryption failed - wrong key or corrupted value")
            raise EncryptionError("Failed to decrypt credential")


def _is_secret_key(key: str) -> bool:
    return any(pattern.search(key) for pattern in SECRET_PATTERNS)


def _redact_string(value: str) -> str:
    for pattern in SECRET_VALUE_PATTERNS:
        value = pattern.sub(REDACTED_VALUE, value)
    return value


def redact_secrets(data: Any) -> Any:
    """
    Return a copy of data with secret fields and token-shaped values redacted.

    Dicts are walked recursively; lists and tuples element-wise.
    """
    if isinstance(data, dict):
        return {
            key: REDACTED_VALUE if isinstance(key, str) and _is_secret_key(key)
            else redact_secrets(value)
            for key, value in data.items()
        }
    if isinstance(data, (list, tuple)):
        return type(data)(redact_secrets(item) for item in data)
    if isinstance(data, str):
        return _redact_string(data)
    return data
