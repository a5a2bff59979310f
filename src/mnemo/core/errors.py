"""
Error taxonomy.

Every error carries a machine-readable ``code`` so callers (API layers,
agent runtimes) can map failures without string matching.
"""


class MnemoError(Exception):
    """Base error for the memory subsystem."""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class StoreConnectionError(MnemoError, ConnectionError):
    """Backend unreachable or schema absent. Never retried internally."""

    code = "STORE_UNAVAILABLE"


class ValidationError(MnemoError):
    """Malformed message, record or query. Raised before any side effect."""

    code = "VALIDATION_ERROR"


class EncryptionError(MnemoError):
    """Encryption failed (bad key material)."""

    code = "ENCRYPTION_FAILED"


class DecryptionError(EncryptionError):
    """Malformed token or mismatched key."""

    code = "DECRYPTION_FAILED"


class ConfigError(MnemoError):
    """Invalid or missing deployment configuration."""

    code = "INVALID_CONFIG"


class ProviderError(MnemoError):
    """Embedding collaborator failure (quota, network, bad response)."""

    code = "PROVIDER_ERROR"


class AccessDeniedError(MnemoError):
    """Caller lacks the permission level required on a memory."""

    code = "ACCESS_DENIED"


class NotFoundError(MnemoError):
    """Referenced record does not exist."""

    code = "NOT_FOUND"
