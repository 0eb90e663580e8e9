"""
Domain models for proton_pgp.

These are immutable (frozen) dataclasses and enums representing the core concepts.
"""

from proton_pgp.models.crypto import (
    AEADMode,
    CompressionAlgorithm,
    Curve,
    HashAlgorithm,
    KeyAlgorithm,
    PublicKeyAlgorithm,
    S2KMode,
    SecurityLevel,
    SymmetricAlgorithm,
)
from proton_pgp.models.message import (
    CONTEXT_NOTATION_NAME,
    ExplicitVerifyResult,
    LiteralMetadata,
    PlainMessage,
    SigningContext,
    SplitMessage,
    VerificationContext,
)

__all__ = [
    # Algorithms
    "AEADMode",
    "CompressionAlgorithm",
    "Curve",
    "HashAlgorithm",
    "KeyAlgorithm",
    "PublicKeyAlgorithm",
    "S2KMode",
    "SecurityLevel",
    "SymmetricAlgorithm",
    # Messages
    "CONTEXT_NOTATION_NAME",
    "ExplicitVerifyResult",
    "LiteralMetadata",
    "PlainMessage",
    "SigningContext",
    "SplitMessage",
    "VerificationContext",
]
