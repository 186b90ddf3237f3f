"""At-rest encryption for integration credentials."""

from __future__ import annotations

import base64

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

_SALT = b"nova-integrations-v1"
_MIN_SECRET_LENGTH = 32


class TokenCryptoError(Exception):
    """Raised when a stored token cannot be encrypted or decrypted."""


class TokenCipher:
    """Encrypts and decrypts OAuth tokens with a key derived from a configured secret."""

    def __init__(self, secret: str) -> None:
        if len(secret) < _MIN_SECRET_LENGTH:
            raise TokenCryptoError(
                f"INTEGRATION_ENCRYPTION_KEY must be at least {_MIN_SECRET_LENGTH} characters"
            )
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=_SALT,
            iterations=200000,
        )
        self._fernet = Fernet(base64.urlsafe_b64encode(kdf.derive(secret.encode())))

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except InvalidToken as exc:
            raise TokenCryptoError("Stored token could not be decrypted") from exc
