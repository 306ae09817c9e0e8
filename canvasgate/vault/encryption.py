"""Fernet cipher for credential secrets at rest.

Passphrases are stretched with SHA-256 into Fernet keys. The first key
encrypts; every configured key is tried on decrypt, so an operator can rotate
``CANVASGATE_ENCRYPTION_KEY`` by moving the old value into
``CANVASGATE_PREVIOUS_ENCRYPTION_KEYS``.
"""

import base64
import hashlib
import secrets
import warnings
from typing import Iterable, Optional

from cryptography.fernet import Fernet, InvalidToken, MultiFernet

from canvasgate.exceptions import EncryptionError

DEV_ENCRYPTION_KEY = "canvasgate-dev-encryption-key-not-for-production"


def derive_fernet_key(passphrase: str) -> bytes:
    return base64.urlsafe_b64encode(hashlib.sha256(passphrase.encode("utf-8")).digest())


class EncryptionManager:
    """Encrypts secrets with the primary key, decrypts with any known key."""

    def __init__(self, key: Optional[str] = None, previous_keys: Iterable[str] = ()) -> None:
        if not key:
            warnings.warn(
                "CANVASGATE_ENCRYPTION_KEY not set. Using default key. "
                "This is insecure and should only be used for development.",
                UserWarning,
            )
            key = DEV_ENCRYPTION_KEY

        passphrases = [key, *(k for k in previous_keys if k and k != key)]
        self._fernet = MultiFernet([Fernet(derive_fernet_key(p)) for p in passphrases])

    def encrypt(self, plaintext: str) -> str:
        """Return an ASCII token for ``plaintext``.

        Raises:
            EncryptionError: For empty or non-text input.
        """
        if not plaintext:
            raise EncryptionError("Encryption failed: empty plaintext")

        try:
            token = self._fernet.encrypt(plaintext.encode("utf-8"))
        except (AttributeError, TypeError, ValueError) as e:
            raise EncryptionError(f"Encryption failed: {type(e).__name__}") from e
        return base64.urlsafe_b64encode(token).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        """Recover the plaintext, failing closed on a wrong key or tampering.

        The error message never includes the ciphertext.
        """
        if not ciphertext:
            raise EncryptionError("Decryption failed: empty ciphertext")

        try:
            return self._fernet.decrypt(self._unwrap(ciphertext)).decode("utf-8")
        except InvalidToken:
            raise EncryptionError(
                "Decryption failed: Invalid token. "
                "This may indicate a wrong encryption key or corrupted data."
            ) from None

    def rotate(self, ciphertext: str) -> str:
        """Re-encrypt a token under the primary key."""
        try:
            token = self._fernet.rotate(self._unwrap(ciphertext))
        except InvalidToken:
            raise EncryptionError("Rotation failed: token not readable with any configured key") from None
        return base64.urlsafe_b64encode(token).decode("ascii")

    @staticmethod
    def _unwrap(ciphertext: str) -> bytes:
        try:
            return base64.urlsafe_b64decode(ciphertext.encode("ascii"))
        except (UnicodeEncodeError, ValueError) as e:
            raise EncryptionError(f"Decryption failed: {type(e).__name__}") from e

    @staticmethod
    def generate_key() -> str:
        """Random passphrase suitable for ``CANVASGATE_ENCRYPTION_KEY``."""
        return secrets.token_urlsafe(32)
