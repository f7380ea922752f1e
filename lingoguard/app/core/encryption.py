"""Symmetric encryption and fingerprint hashing.

Payloads are AES-256-GCM encrypted and serialised as ``"<nonceHex>:<cipherHex>"``.
The nonce is generated per call and fed back into decryption, and the GCM
tag lets :func:`decrypt` reject tampered or foreign payloads.
"""

import hashlib
import os
from functools import lru_cache

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from lingoguard.app.core.config import settings
from lingoguard.app.core.logging import get_logger
from lingoguard.app.exceptions import DecryptionError

logger = get_logger(__name__)

NONCE_LENGTH = 12
KEY_LENGTH = 32


@lru_cache(maxsize=1)
def _get_encryption_key() -> bytes:
    """Get the encryption key from settings, or derive a development key."""
    if settings.encryption_key:
        return bytes.fromhex(settings.encryption_key)

    if settings.is_production:
        logger.error("ENCRYPTION_KEY is not set in production; using development key")
    else:
        logger.warning("ENCRYPTION_KEY is not set; using development key")

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=b"lingoguard_fixed_salt_dev_only",
        iterations=100000,
    )
    return kdf.derive(b"dev_key")


def _get_cipher() -> AESGCM:
    return AESGCM(_get_encryption_key())


def encrypt(plaintext: str, cipher: AESGCM | None = None) -> str:
    """Encrypt a string under the server key.

    Args:
        plaintext: Text to encrypt
        cipher: Optional AESGCM instance (for testing)

    Returns:
        ``"<nonceHex>:<cipherHex>"``
    """
    if cipher is None:
        cipher = _get_cipher()

    nonce = os.urandom(NONCE_LENGTH)
    ciphertext = cipher.encrypt(nonce, plaintext.encode("utf-8", "surrogatepass"), None)
    return f"{nonce.hex()}:{ciphertext.hex()}"


def decrypt(payload: str, cipher: AESGCM | None = None) -> str:
    """Decrypt a payload produced by :func:`encrypt`.

    Raises:
        DecryptionError: If the payload is malformed, was tampered with or
            was encrypted under a different key
    """
    if cipher is None:
        cipher = _get_cipher()

    nonce_hex, sep, ciphertext_hex = payload.partition(":")
    if not sep:
        raise DecryptionError("Malformed encrypted payload")

    try:
        nonce = bytes.fromhex(nonce_hex)
        ciphertext = bytes.fromhex(ciphertext_hex)
    except ValueError as e:
        raise DecryptionError("Malformed encrypted payload") from e

    if len(nonce) != NONCE_LENGTH:
        raise DecryptionError("Malformed encrypted payload")

    try:
        plaintext = cipher.decrypt(nonce, ciphertext, None)
    except InvalidTag as e:
        raise DecryptionError() from e

    return plaintext.decode("utf-8", "surrogatepass")


def hash_data(data: str) -> str:
    """SHA-256 hex digest for non-secret fingerprinting. Not for passwords."""
    return hashlib.sha256(data.encode("utf-8", "surrogatepass")).hexdigest()


def generate_encryption_key() -> str:
    """Generate a new encryption key for .env file.

    Run: python -c "from lingoguard.app.core.encryption import generate_encryption_key; print(generate_encryption_key())"
    """
    return AESGCM.generate_key(bit_length=KEY_LENGTH * 8).hex()
