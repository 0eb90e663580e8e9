"""
Message-level domain models.
"""

from dataclasses import dataclass

from proton_pgp.exceptions import SignatureVerificationError

# Notation name carrying the signing context inside signatures.
CONTEXT_NOTATION_NAME = "context@proton.ch"


@dataclass(frozen=True, kw_only=True)
class LiteralMetadata:
    """
    File hints stored in the literal data packet.

    Attributes:
        filename: Name recorded for the plaintext.
        is_utf8: Whether the plaintext is UTF-8 text.
        mod_time: Modification time as a Unix timestamp.
    """

    filename: str = ""
    is_utf8: bool = False
    mod_time: int = 0

    def __post_init__(self) -> None:
        if self.mod_time < 0:
            msg = "mod_time must be non-negative"
            raise ValueError(msg)


@dataclass(frozen=True, kw_only=True)
class PlainMessage:
    """Decrypted plaintext along with its literal data hints."""

    data: bytes
    filename: str = ""
    is_utf8: bool = False
    mod_time: int = 0

    @property
    def text(self) -> str:
        return self.data.decode("utf-8")


@dataclass(frozen=True)
class SigningContext:
    """
    Context embedded in signatures as a notation.

    A verifier configured with a matching VerificationContext rejects signatures
    made for another context.
    """

    value: str
    is_critical: bool = False

    @property
    def notation(self) -> dict[str, str]:
        return {CONTEXT_NOTATION_NAME: self.value}


@dataclass(frozen=True)
class VerificationContext:
    """
    Attributes:
        value: Expected signing context.
        is_required: Reject signatures that carry no context at all.
        required_after: When non-zero, the context is only required for signatures
            created at or after this Unix time.
    """

    value: str
    is_required: bool = False
    required_after: int = 0

    def is_required_at(self, created: int) -> bool:
        if not self.is_required:
            return False
        return self.required_after == 0 or created >= self.required_after


@dataclass(frozen=True, kw_only=True)
class SplitMessage:
    """
    Encrypted message whose parts travel in separate channels.

    Attributes:
        key_packets: Session key packets (PKESK / SKESK).
        data_packet: Symmetrically encrypted data packet.
        detached_signature: Encrypted detached signature, when one was produced.
    """

    key_packets: bytes
    data_packet: bytes
    detached_signature: bytes | None = None

    def binary(self) -> bytes:
        """Key packets followed by the data packet, i.e. a regular PGP message."""
        return self.key_packets + self.data_packet


@dataclass(frozen=True, kw_only=True)
class ExplicitVerifyResult:
    """
    Plaintext with the outcome of signature verification reported as data.

    A non-None ``signature_error`` means decryption succeeded but the signature did
    not verify; the plaintext is still valid.
    """

    message: PlainMessage
    signature_error: SignatureVerificationError | None = None
    signed_by: str | None = None

    @property
    def data(self) -> bytes:
        return self.message.data

    @property
    def is_verified(self) -> bool:
        return self.signature_error is None and self.signed_by is not None

    def raise_for_signature(self) -> None:
        """Raise the captured verification error, if any."""
        if self.signature_error is not None:
            raise self.signature_error
