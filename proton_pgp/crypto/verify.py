"""
Signature verification.

Verification failures are SignatureVerificationError instances so callers can
tell them apart from decryption failures and report them as data.
"""

import time
from typing import Self

import structlog

from proton_pgp.config import CREATION_TIME_OFFSET
from proton_pgp.crypto.key_ring import KeyRing
from proton_pgp.crypto.packets import (
    TAG_SIGNATURE,
    ParsedMessage,
    dearmor,
    iter_packets,
    read_message,
    trim_trailing_whitespace,
)
from proton_pgp.crypto.pgpy_backend import PgpyBackend
from proton_pgp.crypto.protocol import PacketEngine, SignatureInfo
from proton_pgp.exceptions import (
    ConfigurationError,
    ExpiredSignatureError,
    SignatureVerificationError,
    VerificationStatus,
)
from proton_pgp.models.message import (
    CONTEXT_NOTATION_NAME,
    ExplicitVerifyResult,
    VerificationContext,
)

logger = structlog.get_logger(__name__)


def signature_packets(data: bytes) -> list[bytes]:
    """Raw signature packets contained in ``data``."""
    return [
        data[packet.start : packet.end]
        for packet in iter_packets(data)
        if packet.tag == TAG_SIGNATURE
    ]


def check_signature(
    data: bytes,
    signature: bytes,
    keys: KeyRing,
    verify_time: int,
    *,
    context: VerificationContext | None = None,
    backend: PacketEngine,
) -> str:
    """
    Verify one signature packet.

    Args:
        data: Signed plaintext.
        signature: Binary signature packet.
        keys: Verification keys.
        verify_time: Unix time to check the signature against; 0 skips time checks.
        context: Expected signing context, if any.
        backend: Packet engine.

    Returns:
        Key id of the signer.

    Raises:
        SignatureVerificationError: If the signature does not verify.
        ExpiredSignatureError: If it only fails because of its validity window.
    """
    info = backend.signature_info(signature)
    key = keys.find_by_key_id(info.signer)
    if key is None:
        msg = "No verification key matches the signer"
        raise SignatureVerificationError(
            msg, status=VerificationStatus.NO_VERIFIER, signer=info.signer
        )

    if not backend.verify(key, data, signature):
        msg = "Invalid signature"
        raise SignatureVerificationError(msg, signer=info.signer)

    _check_time(info, verify_time)
    _check_context(info, context)
    return info.signer


def verify_signatures(
    data: bytes,
    signatures: list[bytes],
    keys: KeyRing,
    verify_time: int,
    *,
    context: VerificationContext | None = None,
    backend: PacketEngine,
) -> str:
    """
    Verify a list of signatures; the first one that verifies wins.

    When none verifies, the error of a signature made by a known key is raised in
    preference to a missing-verifier error.
    """
    if not signatures:
        msg = "Message is not signed"
        raise SignatureVerificationError(msg, status=VerificationStatus.NOT_SIGNED)

    errors: list[SignatureVerificationError] = []
    for signature in signatures:
        try:
            return check_signature(
                data, signature, keys, verify_time, context=context, backend=backend
            )
        except SignatureVerificationError as e:
            errors.append(e)

    known = [e for e in errors if e.status != VerificationStatus.NO_VERIFIER]
    raise (known or errors)[-1]


def verify_detached(
    data: bytes,
    signature: bytes | str,
    keys: KeyRing,
    verify_time: int,
    *,
    creation_time_offset: int = CREATION_TIME_OFFSET,
    context: VerificationContext | None = None,
    backend: PacketEngine | None = None,
) -> str:
    """
    Verify a detached signature, tolerating clock skew between signer and verifier.

    The first attempt checks the signature at ``verify_time + creation_time_offset``
    so signatures made slightly "in the future" pass. If that attempt reports an
    expired signature from an identified signer, the check is repeated once at
    ``verify_time`` itself. A ``verify_time`` of 0 disables time checks.

    Returns:
        Key id of the signer.

    Raises:
        SignatureVerificationError: If no signer is identified or the signature
            does not verify.
    """
    engine = backend or PgpyBackend()
    signatures = signature_packets(dearmor(signature))
    first_time = verify_time + creation_time_offset if verify_time else 0

    try:
        return verify_signatures(
            data, signatures, keys, first_time, context=context, backend=engine
        )
    except ExpiredSignatureError as e:
        if e.signer is None or verify_time == 0:
            raise
        logger.debug("Retrying expired signature without time offset", signer=e.signer)
        return verify_signatures(
            data, signatures, keys, verify_time, context=context, backend=engine
        )


def explicit_verify(
    parsed: ParsedMessage,
    keys: KeyRing | None,
    verify_time: int,
    *,
    signatures: list[bytes] | None = None,
    context: VerificationContext | None = None,
    backend: PacketEngine,
) -> ExplicitVerifyResult:
    """
    Verify a decrypted message, capturing signature failures as data.

    Args:
        parsed: Decrypted packet stream.
        keys: Verification keys. None skips verification.
        verify_time: Unix time for the check; 0 skips time checks.
        signatures: Detached signatures to use instead of the inline ones.
        context: Expected signing context, if any.
        backend: Packet engine.
    """
    candidates = parsed.signatures if signatures is None else signatures
    if keys is None or not candidates:
        return ExplicitVerifyResult(message=parsed.message)

    try:
        signer = verify_signatures(
            parsed.message.data,
            candidates,
            keys,
            verify_time,
            context=context,
            backend=backend,
        )
    except SignatureVerificationError as e:
        logger.warning("Signature verification failed", status=e.status, signer=e.signer)
        return ExplicitVerifyResult(message=parsed.message, signature_error=e)

    return ExplicitVerifyResult(message=parsed.message, signed_by=signer)


def _check_time(info: SignatureInfo, verify_time: int) -> None:
    if verify_time == 0:
        return
    if info.created > verify_time:
        msg = "Signature creation time is in the future"
        raise ExpiredSignatureError(msg, signer=info.signer)
    if info.expires is not None and verify_time >= info.expires:
        msg = "Signature has expired"
        raise ExpiredSignatureError(msg, signer=info.signer)


def _check_context(info: SignatureInfo, context: VerificationContext | None) -> None:
    if context is None:
        return

    value = info.notations.get(CONTEXT_NOTATION_NAME)
    if value is None:
        if context.is_required_at(info.created):
            msg = "Signature has no context"
            raise SignatureVerificationError(
                msg, status=VerificationStatus.BAD_CONTEXT, signer=info.signer
            )
        return

    if value != context.value:
        msg = f"Signature context {value!r} does not match {context.value!r}"
        raise SignatureVerificationError(
            msg, status=VerificationStatus.BAD_CONTEXT, signer=info.signer
        )


class VerifyHandle:
    """Verifies detached signatures and signed (unencrypted) messages."""

    def __init__(
        self,
        *,
        verification_keys: KeyRing,
        verify_time: int,
        context: VerificationContext | None = None,
        creation_time_offset: int = CREATION_TIME_OFFSET,
        backend: PacketEngine,
    ) -> None:
        self._keys = verification_keys
        self._verify_time = verify_time
        self._context = context
        self._creation_time_offset = creation_time_offset
        self._backend = backend

    def verify_detached(self, data: bytes, signature: bytes | str) -> str:
        """
        Verify a detached signature over ``data``.

        Returns:
            Key id of the signer.

        Raises:
            SignatureVerificationError: If the signature does not verify.
        """
        return verify_detached(
            data,
            signature,
            self._keys,
            self._verify_time,
            creation_time_offset=self._creation_time_offset,
            context=self._context,
            backend=self._backend,
        )

    def verify_text_detached(self, text: str, signature: bytes | str) -> str:
        """
        Verify a detached text signature. Trailing whitespace on each line of
        ``text`` is trimmed first, matching what the signer trims.
        """
        return self.verify_detached(trim_trailing_whitespace(text).encode("utf-8"), signature)

    def verify_inline(self, message: bytes | str) -> ExplicitVerifyResult:
        """Read a signed message, reporting the signature outcome as data."""
        parsed = read_message(dearmor(message))
        if not parsed.signatures:
            error = SignatureVerificationError(
                "Message is not signed", status=VerificationStatus.NOT_SIGNED
            )
            return ExplicitVerifyResult(message=parsed.message, signature_error=error)
        return explicit_verify(
            parsed,
            self._keys,
            self._verify_time,
            context=self._context,
            backend=self._backend,
        )


class VerifyHandleBuilder:
    """Configures a VerifyHandle."""

    def __init__(
        self,
        *,
        creation_time_offset: int = CREATION_TIME_OFFSET,
        backend: PacketEngine | None = None,
    ) -> None:
        self._keys: KeyRing | None = None
        self._verify_time: int | None = None
        self._context: VerificationContext | None = None
        self._creation_time_offset = creation_time_offset
        self._backend = backend or PgpyBackend()

    def verification_keys(self, keys: KeyRing) -> Self:
        self._keys = keys
        return self

    def verify_time(self, unix_time: int) -> Self:
        """Check signatures at ``unix_time``; 0 disables time checks. Defaults to now."""
        self._verify_time = unix_time
        return self

    def verification_context(self, context: VerificationContext) -> Self:
        self._context = context
        return self

    def new(self) -> VerifyHandle:
        """
        Raises:
            ConfigurationError: If no verification keys were given.
        """
        if self._keys is None:
            msg = "Verification requires verification keys"
            raise ConfigurationError(msg)

        verify_time = int(time.time()) if self._verify_time is None else self._verify_time
        return VerifyHandle(
            verification_keys=self._keys,
            verify_time=verify_time,
            context=self._context,
            creation_time_offset=self._creation_time_offset,
            backend=self._backend,
        )
