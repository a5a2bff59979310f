"""
Field-level encryption.

AES-256-CBC with a fresh random IV per call. Tokens are
``hex(iv) + ":" + hex(ciphertext)``, so encrypting the same plaintext
twice yields different tokens that both decrypt to the original.

Key material comes from deployment config: either 64 hex characters used
as the raw key, or a passphrase stretched with PBKDF2 using a
per-deployment salt (see ``generate_salt``).
"""

import json
import secrets
from typing import TYPE_CHECKING, Any

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from mnemo.core.errors import ConfigError, DecryptionError, EncryptionError
from mnemo.core.logging import get_logger

if TYPE_CHECKING:
    from mnemo.core.config import Settings

logger = get_logger("core.encryption")

BLOCK_SIZE = 16
KEY_SIZE = 32
MIN_SECRET_LENGTH = 32
KDF_ITERATIONS = 600_000
SEPARATOR = ":"


def generate_salt() -> str:
    """Generate a random per-deployment salt (hex) for MNEMO_ENCRYPTION_SALT."""
    return secrets.token_hex(16)


def derive_key(secret: str, salt: str | bytes | None = None) -> bytes:
    """
    Derive a 32-byte AES key from configured key material.

    Args:
        secret: 64 hex characters (raw key) or a passphrase of 32+ characters
        salt: Per-deployment salt (hex string or bytes), required for passphrases

    Returns:
        32-byte key
    """
    if not secret or len(secret) < MIN_SECRET_LENGTH:
        raise ConfigError(
            f"Invalid encryption key. Must be at least {MIN_SECRET_LENGTH} characters.",
            code="INVALID_ENCRYPTION_KEY",
        )

    if len(secret) == KEY_SIZE * 2:
        try:
            key = bytes.fromhex(secret)
            logger.debug("Using provided 32-byte hex encryption key")
            return key
        except ValueError:
            pass

    if not salt:
        raise ConfigError(
            "Passphrase encryption keys require a per-deployment salt "
            "(set MNEMO_ENCRYPTION_SALT, see generate_salt())",
            code="MISSING_ENCRYPTION_SALT",
        )
    if isinstance(salt, str):
        try:
            salt = bytes.fromhex(salt)
        except ValueError as e:
            raise ConfigError("Encryption salt must be hex encoded") from e

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=salt,
        iterations=KDF_ITERATIONS,
    )
    logger.debug("Using PBKDF2-derived encryption key")
    return kdf.derive(secret.encode("utf-8"))


def _cipher(key: bytes, iv: bytes) -> Cipher:
    if not isinstance(key, bytes) or len(key) != KEY_SIZE:
        raise EncryptionError(f"Encryption key must be exactly {KEY_SIZE} bytes")
    return Cipher(algorithms.AES(key), modes.CBC(iv))


def encrypt(plaintext: str, key: bytes) -> str:
    """
    Encrypt text.

    Args:
        plaintext: Content to encrypt
        key: 32-byte AES key

    Returns:
        Token of the form hex(iv):hex(ciphertext)
    """
    iv = secrets.token_bytes(BLOCK_SIZE)
    encryptor = _cipher(key, iv).encryptor()

    padder = padding.PKCS7(BLOCK_SIZE * 8).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
    ciphertext = encryptor.update(padded) + encryptor.finalize()

    return f"{iv.hex()}{SEPARATOR}{ciphertext.hex()}"


def decrypt(token: str, key: bytes) -> str:
    """
    Decrypt a token produced by ``encrypt``.

    Raises:
        DecryptionError: Token has the wrong shape or the key does not match
    """
    if not isinstance(token, str) or SEPARATOR not in token:
        raise DecryptionError("Invalid encrypted text format")

    iv_hex, data_hex = token.split(SEPARATOR, 1)
    try:
        iv = bytes.fromhex(iv_hex)
        data = bytes.fromhex(data_hex)
    except ValueError as e:
        raise DecryptionError("Invalid encrypted text format") from e

    if len(iv) != BLOCK_SIZE or not data or len(data) % BLOCK_SIZE:
        raise DecryptionError("Invalid encrypted text format")

    decryptor = _cipher(key, iv).decryptor()
    try:
        padded = decryptor.update(data) + decryptor.finalize()
        unpadder = padding.PKCS7(BLOCK_SIZE * 8).unpadder()
        raw = unpadder.update(padded) + unpadder.finalize()
        return raw.decode("utf-8")
    except ValueError as e:
        # Bad padding or non-UTF-8 output: wrong key or tampered token
        raise DecryptionError(f"Decryption failed: {e}") from e


class EncryptionCodec:
    """Binds a key to encrypt/decrypt for use by the stores."""

    def __init__(self, key: bytes):
        if not isinstance(key, bytes) or len(key) != KEY_SIZE:
            raise ConfigError(f"Encryption key must be exactly {KEY_SIZE} bytes")
        self._key = key

    @classmethod
    def from_secret(cls, secret: str, salt: str | bytes | None = None) -> "EncryptionCodec":
        return cls(derive_key(secret, salt))

    @classmethod
    def from_settings(cls, settings: "Settings") -> "EncryptionCodec | None":
        """Build a codec from settings, or None when no key is configured."""
        if not settings.encryption_key:
            logger.info("No encryption key configured, sensitive storage disabled")
            return None
        return cls.from_secret(settings.encryption_key, settings.encryption_salt or None)

    def encrypt(self, plaintext: str) -> str:
        return encrypt(plaintext, self._key)

    def decrypt(self, token: str) -> str:
        return decrypt(token, self._key)

    def encrypt_object(self, obj: Any) -> str:
        """Encrypt a JSON-serializable object."""
        try:
            text = json.dumps(obj)
        except (TypeError, ValueError) as e:
            raise EncryptionError(f"Object encryption failed: {e}") from e
        return self.encrypt(text)

    def decrypt_object(self, token: str) -> Any:
        """Decrypt a token produced by ``encrypt_object``."""
        text = self.decrypt(token)
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise DecryptionError(f"Object decryption failed: {e}") from e
