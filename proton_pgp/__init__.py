"""
OpenPGP composition layer.

Builders assembling encrypt, sign, decrypt and verify pipelines over PGPy, with
split key-packet / ciphertext / detached-signature output and decryption that
reports signature verification separately from decryption.

Example:
    ```python
    from proton_pgp import KeyRing, pgp

    handle = pgp()
    alice = KeyRing([handle.generate_key("alice", "alice@proton.me")])

    message = handle.encryption().recipients(alice).signing_keys(alice).new().encrypt(b"hello")

    result = (
        handle.decryption()
        .decryption_keys(alice)
        .verification_keys(alice)
        .new()
        .decrypt_split(message)
    )
    assert result.data == b"hello"
    result.raise_for_signature()
    ```
"""

from proton_pgp.config import PGPConfig
from proton_pgp.crypto import (
    DecryptionHandleBuilder,
    EncryptionHandleBuilder,
    Key,
    KeyRing,
    PGPHandle,
    SecureBytes,
    SessionKey,
    SignHandleBuilder,
    SplitWriter,
    VerifyHandleBuilder,
    pgp,
    pgp_crypto_refresh,
    pgp_with_profile,
    verify_detached,
)
from proton_pgp.exceptions import (
    ConfigurationError,
    EngineError,
    ExpiredSignatureError,
    LockedKeyError,
    Operation,
    ProtonPGPError,
    SessionKeyError,
    SignatureVerificationError,
    UnsupportedAlgorithmError,
    UsageError,
    VerificationStatus,
)
from proton_pgp.models import (
    ExplicitVerifyResult,
    LiteralMetadata,
    PlainMessage,
    SecurityLevel,
    SigningContext,
    SplitMessage,
    VerificationContext,
)
from proton_pgp.profile import Profile, builtin_profiles

__version__ = "0.1.0"

__all__ = [
    # Entry points
    "PGPConfig",
    "PGPHandle",
    "pgp",
    "pgp_crypto_refresh",
    "pgp_with_profile",
    "Profile",
    "builtin_profiles",
    # Handles
    "EncryptionHandleBuilder",
    "DecryptionHandleBuilder",
    "SignHandleBuilder",
    "VerifyHandleBuilder",
    "verify_detached",
    # Keys and buffers
    "Key",
    "KeyRing",
    "SecureBytes",
    "SessionKey",
    "SplitWriter",
    # Models
    "ExplicitVerifyResult",
    "LiteralMetadata",
    "PlainMessage",
    "SecurityLevel",
    "SigningContext",
    "SplitMessage",
    "VerificationContext",
    # Exceptions
    "ProtonPGPError",
    "ConfigurationError",
    "LockedKeyError",
    "UsageError",
    "UnsupportedAlgorithmError",
    "EngineError",
    "SessionKeyError",
    "SignatureVerificationError",
    "ExpiredSignatureError",
    "Operation",
    "VerificationStatus",
]
