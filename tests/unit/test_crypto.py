"""
Unit tests for SecretCipher

Tests:
- Encrypt/decrypt of TOTP secrets
- Fresh nonce per encryption
- Fail-closed decryption (tampering, wrong key, malformed input)
- Configuration checks
"""

import base64

import pytest

from mfa_service.exceptions import CipherError, ConfigurationError
from mfa_service.utils.crypto import NONCE_SIZE, TAG_SIZE, SecretCipher, derive_key


SECRET = "JBSWY3DPEHPK3PXPJBSWY3DPEHPK3PXP"


class TestEncryption:
    """Test encryption round trip and blob layout"""

    def test_decrypt_returns_original(self, cipher):
        assert cipher.decrypt(cipher.encrypt(SECRET)) == SECRET

    def test_blob_layout(self, cipher):
        raw = base64.b64decode(cipher.encrypt(SECRET))
        assert len(raw) == NONCE_SIZE + len(SECRET) + TAG_SIZE

    def test_same_plaintext_encrypts_differently(self, cipher):
        first = cipher.encrypt(SECRET)
        second = cipher.encrypt(SECRET)

        assert first != second
        assert base64.b64decode(first)[:NONCE_SIZE] != base64.b64decode(second)[:NONCE_SIZE]

    def test_plaintext_not_visible_in_blob(self, cipher):
        assert SECRET not in cipher.encrypt(SECRET)


class TestDecryptFailsClosed:
    """Test that any corruption raises CipherError"""

    def test_tampered_ciphertext(self, cipher):
        raw = bytearray(base64.b64decode(cipher.encrypt(SECRET)))
        raw[NONCE_SIZE] ^= 0x01
        with pytest.raises(CipherError):
            cipher.decrypt(base64.b64encode(bytes(raw)).decode())

    def test_wrong_master_key(self, cipher):
        other = SecretCipher(master_key="a-different-master-key")
        with pytest.raises(CipherError):
            other.decrypt(cipher.encrypt(SECRET))

    def test_not_base64(self, cipher):
        with pytest.raises(CipherError):
            cipher.decrypt("not base64 at all!!")

    def test_too_short(self, cipher):
        with pytest.raises(CipherError):
            cipher.decrypt(base64.b64encode(b"short").decode())


class TestConfiguration:
    """Test cipher construction checks"""

    def test_missing_master_key(self):
        with pytest.raises(ConfigurationError):
            SecretCipher(master_key="")

    def test_iterations_floor(self):
        with pytest.raises(ConfigurationError):
            SecretCipher(master_key="key", iterations=1000)

    def test_key_derivation_is_deterministic(self):
        first = derive_key("master", "CardShowFinderMFA", 100_000)
        second = derive_key("master", "CardShowFinderMFA", 100_000)

        assert first == second
        assert len(first) == 32
        assert derive_key("master", "OtherSalt", 100_000) != first
