"""Quluub Payments - Field-level encryption for payout details."""

import base64
import secrets

from cryptography.hazmat.primitives.ciphers.aead import AESGCM


class AESCipher:
    """AES-256-GCM encryption for bank account numbers and IBANs.

    The encrypted output format: base64(nonce + ciphertext + tag)
    """

    NONCE_SIZE = 12

    def __init__(self, key_base64: str) -> None:
        key = base64.b64decode(key_base64)
        if len(key) != 32:
            raise ValueError("AES key must be exactly 32 bytes (256 bits)")
        self._aesgcm = AESGCM(key)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a string to base64-encoded ciphertext."""
        nonce = secrets.token_bytes(self.NONCE_SIZE)
        ciphertext = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + ciphertext).decode("ascii")

    def decrypt(self, encrypted_b64: str) -> str:
        """Decrypt a value produced by encrypt().

        Raises:
            cryptography.exceptions.InvalidTag: If tampering detected
        """
        data = base64.b64decode(encrypted_b64)
        nonce = data[: self.NONCE_SIZE]
        plaintext = self._aesgcm.decrypt(nonce, data[self.NONCE_SIZE :], None)
        return plaintext.decode("utf-8")


def generate_aes_key() -> str:
    """Generate a new random AES-256 key for AES_ENCRYPTION_KEY."""
    return base64.b64encode(secrets.token_bytes(32)).decode("ascii")


_cipher: AESCipher | None = None


def get_cipher() -> AESCipher:
    """Get the singleton AES cipher instance."""
    global _cipher
    if _cipher is None:
        from src.core.config import get_settings

        _cipher = AESCipher(get_settings().aes_encryption_key)
    return _cipher


def encrypt_sensitive_data(value: str) -> str:
    """Encrypt an account number or IBAN for storage."""
    return get_cipher().encrypt(value)


def decrypt_sensitive_data(encrypted: str) -> str:
    """Decrypt an account number or IBAN read from storage."""
    return get_cipher().decrypt(encrypted)


def mask_account_number(account_number: str) -> str:
    """Return the last four digits, e.g. '0123456789' -> '6789'."""
    return account_number[-4:]
