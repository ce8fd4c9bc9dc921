"""
Encryption of TOTP secrets at rest.

AES-256-GCM with a key derived from the server-held master key via
PBKDF2-HMAC-SHA256. Stored blobs are base64([12 bytes nonce][ciphertext + 16 byte tag]).
"""

import base64
import binascii
import logging
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from mfa_service.core.config import settings
from mfa_service.exceptions import CipherError, ConfigurationError

logger = logging.getLogger(__name__)

NONCE_SIZE = 12
TAG_SIZE = 16
KEY_SIZE = 32


def derive_key(master_key: str, salt: str, iterations: int) -> bytes:
    """Derive a 256-bit AES key from the master key"""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=salt.encode("utf-8"),
        iterations=iterations,
    )
    return kdf.derive(master_key.encode("utf-8"))


class SecretCipher:
    """
    Symmetric authenticated encryption for TOTP secrets.

    The key is derived once per instance; every encrypt call draws a fresh
    random nonce.
    """

    def __init__(
        self,
        master_key: Optional[str] = None,
        salt: Optional[str] = None,
        iterations: Optional[int] = None,
    ):
        """
        Initialize secret cipher.

        Args:
            master_key: Server-held master secret. If None, reads MFA_ENCRYPTION_KEY.
            salt: Fixed KDF salt. If None, reads MFA_ENCRYPTION_SALT.
            iterations: PBKDF2 iteration count. If None, reads MFA_KDF_ITERATIONS.

        Raises:
            ConfigurationError: If the master key is missing or iterations too low
        """
        if master_key is None:
            master_key = settings.MFA_ENCRYPTION_KEY
        if not master_key:
            raise ConfigurationError(
                "MFA_ENCRYPTION_KEY environment variable is required for MFA secret encryption"
            )

        iterations = iterations if iterations is not None else settings.MFA_KDF_ITERATIONS
        if iterations < 100_000:
            raise ConfigurationError("MFA key derivation requires at least 100000 iterations")

        key = derive_key(master_key, salt or settings.MFA_ENCRYPTION_SALT, iterations)
        self.cipher = AESGCM(key)
        # Never log key material
        logger.info("MFA secret cipher initialized")

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a secret.

        Args:
            plaintext: Secret to encrypt

        Returns:
            base64 text of nonce + ciphertext + tag
        """
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = self.cipher.encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + ciphertext).decode("ascii")

    def decrypt(self, encrypted_blob: str) -> str:
        """
        Decrypt a blob produced by encrypt().

        Args:
            encrypted_blob: base64 text from encrypt()

        Returns:
            Decrypted plaintext

        Raises:
            CipherError: If the blob is malformed or fails authentication
        """
        try:
            raw = base64.b64decode(encrypted_blob, validate=True)
        except (binascii.Error, ValueError, TypeError):
            raise CipherError("Encrypted secret is not valid base64")

        if len(raw) < NONCE_SIZE + TAG_SIZE:
            raise CipherError("Encrypted secret is truncated")

        nonce = raw[:NONCE_SIZE]
        ciphertext = raw[NONCE_SIZE:]

        try:
            plaintext = self.cipher.decrypt(nonce, ciphertext, None)
        except InvalidTag:
            logger.warning("MFA secret failed authentication on decrypt")
            raise CipherError()

        return plaintext.decode("utf-8")


# Global instance (initialized on first use)
_cipher_instance: Optional[SecretCipher] = None


def get_cipher() -> SecretCipher:
    """Get global cipher instance."""
    global _cipher_instance
    if _cipher_instance is None:
        _cipher_instance = SecretCipher()
    return _cipher_instance
