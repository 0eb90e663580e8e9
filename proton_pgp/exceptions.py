"""
proton_pgp exception hierarchy.

All exceptions inherit from ProtonPGPError for easy catching.
"""

from enum import StrEnum
from typing import Any


class Operation(StrEnum):
    """Stable prefixes identifying the engine operation that failed."""

    ENCRYPT_ASYMMETRIC = "error in encrypting asymmetrically"
    ENCRYPT_PASSWORD = "error in encrypting with password"
    ENCRYPT_SESSION_KEY = "unable to encrypt with session key"
    SIGN = "unable to sign"
    COMPRESS = "error in compression"
    SERIALIZE = "unable to serialize"
    DECRYPT = "unable to decrypt message"
    DECRYPT_SESSION_KEY = "unable to decrypt session key"
    VERIFY = "unable to verify signature"
    GENERATE_KEY = "unable to generate key"
    LOCK_KEY = "unable to lock key"
    PARSE = "unable to parse"
    ENCRYPT_ATTACHMENT = "unable to encrypt attachment"
    DECRYPT_ATTACHMENT = "unable to decrypt attachment"


class VerificationStatus(StrEnum):
    """Outcome of a signature check."""

    OK = "ok"
    NOT_SIGNED = "not_signed"
    NO_VERIFIER = "no_verifier"
    FAILED = "failed"
    BAD_CONTEXT = "bad_context"
    EXPIRED = "expired"


class ProtonPGPError(Exception):
    """Base exception for all proton_pgp errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx})"
        return self.message


class ConfigurationError(ProtonPGPError):
    """Missing or contradictory key material at handle setup."""


class LockedKeyError(ProtonPGPError):
    """A required signing or decryption key is not unlocked."""

    def __init__(self, message: str, *, key_id: str | None = None) -> None:
        super().__init__(message, key_id=key_id)
        self.key_id = key_id


class UsageError(ProtonPGPError):
    """API misuse: cleared secret, closed stream, reused handle."""


class UnsupportedAlgorithmError(ProtonPGPError):
    """The requested algorithm cannot be used by the packet engine."""


class EngineError(ProtonPGPError):
    """The packet engine rejected an operation."""

    def __init__(self, message: str, *, operation: Operation) -> None:
        super().__init__(f"{operation}: {message}")
        self.operation = operation


class SessionKeyError(EngineError):
    """Failed to recover or use a session key."""


class SignatureVerificationError(ProtonPGPError):
    """Signature did not verify; decryption itself may still have succeeded."""

    def __init__(
        self,
        message: str,
        *,
        status: VerificationStatus = VerificationStatus.FAILED,
        signer: str | None = None,
    ) -> None:
        super().__init__(message, status=status.value, signer=signer)
        self.status = status
        self.signer = signer


class ExpiredSignatureError(SignatureVerificationError):
    """Signature rejected solely because of its validity window."""

    def __init__(self, message: str, *, signer: str | None = None) -> None:
        super().__init__(message, status=VerificationStatus.EXPIRED, signer=signer)
