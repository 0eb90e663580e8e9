"""
Encryption pipelines.

Each pipeline kind is a writer with a fixed close order, selected once from an
immutable EncryptionContext. Plaintext is collected while the caller writes and
sealed when the pipeline closes, because the packet engine works on whole
messages.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import ClassVar

import structlog

from proton_pgp.crypto.key_ring import Key
from proton_pgp.crypto.packets import compressed_packet, literal_packet
from proton_pgp.crypto.protocol import PacketEngine
from proton_pgp.crypto.secure_bytes import SecureBytes
from proton_pgp.crypto.session_key import SessionKey
from proton_pgp.crypto.streams import MultiWriter, SplitWriter
from proton_pgp.exceptions import UsageError
from proton_pgp.models.crypto import CompressionAlgorithm
from proton_pgp.models.message import LiteralMetadata, SigningContext
from proton_pgp.profile import PacketConfig

logger = structlog.get_logger(__name__)


class PipelineKind(StrEnum):
    PLAIN_ENCRYPT = "plain_encrypt"
    ENCRYPT_AND_SIGN_INLINE = "encrypt_and_sign_inline"
    ENCRYPT_AND_SIGN_DETACHED = "encrypt_and_sign_detached"
    PASSWORD_ENCRYPT = "password_encrypt"
    SESSION_KEY_ENCRYPT = "session_key_encrypt"


@dataclass(frozen=True, kw_only=True)
class EncryptionContext:
    """
    Effective configuration of one encryption call.

    Computed from the handle for every call and never modified afterwards.

    Attributes:
        encryption_config: Cipher and S2K parameters for new session keys.
        sign_config: Hash parameters for signatures.
        recipients: Public keys the session key is encrypted to.
        hidden_recipients: Public keys whose key ids are replaced by the wildcard.
        password: Password the session key is encrypted with.
        session_key: Preset session key; one is generated per call otherwise.
        signer: Unlocked signing key.
        detached: Sign into the detached signature channel rather than inline.
        metadata: File hints for the literal data packet.
        signing_context: Context embedded in signatures.
        compression: Compression applied inside the data packet.
        compression_level: Compression level.
        signature_time: Creation time of signatures; now when unset.
    """

    encryption_config: PacketConfig
    sign_config: PacketConfig
    recipients: tuple[Key, ...] = ()
    hidden_recipients: tuple[Key, ...] = ()
    password: SecureBytes | None = None
    session_key: SessionKey | None = None
    signer: Key | None = None
    detached: bool = False
    metadata: LiteralMetadata = field(default_factory=LiteralMetadata)
    signing_context: SigningContext | None = None
    compression: CompressionAlgorithm = CompressionAlgorithm.NONE
    compression_level: int = 6
    signature_time: datetime | None = None

    @property
    def has_recipients(self) -> bool:
        return bool(self.recipients or self.hidden_recipients)

    @property
    def emits_key_packets(self) -> bool:
        return self.has_recipients or self.password is not None

    def kind(self, output: SplitWriter) -> PipelineKind:
        """
        Pipeline kind for this context writing into ``output``.

        Detached signing needs a signature sink; without one the signature is
        embedded inline.
        """
        if self.signer is not None and self.detached and output.has_signature_writer:
            return PipelineKind.ENCRYPT_AND_SIGN_DETACHED
        if not self.emits_key_packets:
            return PipelineKind.SESSION_KEY_ENCRYPT
        if not self.has_recipients:
            return PipelineKind.PASSWORD_ENCRYPT
        if self.signer is not None:
            return PipelineKind.ENCRYPT_AND_SIGN_INLINE
        return PipelineKind.PLAIN_ENCRYPT


class _Buffer:
    """Collects plaintext until close."""

    def __init__(self) -> None:
        self._data = bytearray()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, data: bytes, /) -> int:
        if self._closed:
            msg = "write to a closed pipeline"
            raise UsageError(msg)
        self._data += data
        return len(data)

    def _take(self) -> bytes:
        if self._closed:
            msg = "pipeline already closed"
            raise UsageError(msg)
        self._closed = True
        data = bytes(self._data)
        self._data[:] = bytes(len(self._data))
        self._data.clear()
        return data


class EncryptionPipeline(_Buffer):
    """
    Base of all pipeline kinds.

    Opening a pipeline settles the session key and writes the key packets. Closing
    seals the collected plaintext. A session key generated for the call is owned by
    the pipeline and cleared when it closes, or right away if opening fails.
    """

    kind: ClassVar[PipelineKind]

    def __init__(self, context: EncryptionContext, output: SplitWriter, backend: PacketEngine):
        super().__init__()
        self._context = context
        self._output = output
        self._backend = backend
        self._owned_key: SessionKey | None = None

        try:
            self._session_key = self._settle_session_key()
            self._write_key_packets(self._key_packets())
        except BaseException:
            self._release()
            raise

        logger.debug(
            "Opened encryption pipeline",
            kind=self.kind,
            recipients=len(context.recipients),
            hidden_recipients=len(context.hidden_recipients),
            password=context.password is not None,
            signed=context.signer is not None,
        )

    def close(self) -> None:
        """
        Seal the message and write the data packet.

        Raises:
            UsageError: If the pipeline was already closed.
        """
        plaintext = self._take()
        try:
            self._seal(plaintext)
        finally:
            self._release()
        logger.debug("Closed encryption pipeline", kind=self.kind, size=len(plaintext))

    def _seal(self, plaintext: bytes) -> None:
        # Close order: signature packet, compression, encryption.
        inner = literal_packet(plaintext, self._context.metadata)
        if self._signs_inline():
            inner = self._inline_signature(inner, plaintext)
        inner = self._compress(inner)
        self._output.data.write(self._session_key.encrypt_packets(inner))

    def _signs_inline(self) -> bool:
        return self._context.signer is not None

    def _settle_session_key(self) -> SessionKey:
        if self._context.session_key is not None:
            return self._context.session_key
        self._owned_key = SessionKey.generate(
            self._context.encryption_config, backend=self._backend
        )
        return self._owned_key

    def _key_packets(self) -> bytes:
        context = self._context
        if not context.emits_key_packets:
            return b""
        return self._backend.encrypt_session_key(
            bytes(self._session_key.key),
            self._session_key.algorithm,
            recipients=context.recipients,
            hidden_recipients=context.hidden_recipients,
            password=context.password,
            config=context.encryption_config,
        )

    def _write_key_packets(self, key_packets: bytes) -> None:
        if not key_packets:
            return
        target = self._output.keys if self._output.keys is not None else self._output.data
        target.write(key_packets)

    def _signature(self, plaintext: bytes) -> bytes:
        context = self._context
        notations = context.signing_context.notation if context.signing_context else None
        return self._backend.sign(
            context.signer,
            plaintext,
            context.sign_config,
            created=context.signature_time,
            notations=notations,
            text=context.metadata.is_utf8,
        )

    def _inline_signature(self, literal: bytes, plaintext: bytes) -> bytes:
        return self._backend.inline_signed(literal, [self._signature(plaintext)])

    def _compress(self, inner: bytes) -> bytes:
        return compressed_packet(inner, self._context.compression, self._context.compression_level)

    def _release(self) -> None:
        if self._owned_key is not None:
            self._owned_key.clear()


class PlainEncryptPipeline(EncryptionPipeline):
    kind = PipelineKind.PLAIN_ENCRYPT

    def _signs_inline(self) -> bool:
        return False


class InlineSignedPipeline(EncryptionPipeline):
    kind = PipelineKind.ENCRYPT_AND_SIGN_INLINE


class PasswordPipeline(EncryptionPipeline):
    kind = PipelineKind.PASSWORD_ENCRYPT


class SessionKeyPipeline(EncryptionPipeline):
    """Data packet only; the session key travels out of band."""

    kind = PipelineKind.SESSION_KEY_ENCRYPT

    def _key_packets(self) -> bytes:
        return b""


class _CiphertextStage(_Buffer):
    def __init__(self, pipeline: "DetachedSignedPipeline") -> None:
        super().__init__()
        self._pipeline = pipeline

    def close(self) -> None:
        self._pipeline._seal_ciphertext(self._take())


class _SigningStage(_Buffer):
    def __init__(self, pipeline: "DetachedSignedPipeline", downstream: _Buffer) -> None:
        super().__init__()
        self._pipeline = pipeline
        self._downstream = downstream

    def close(self) -> None:
        self._downstream.write(self._pipeline._signature(self._take()))


class _SignatureEncryptionStage(_Buffer):
    def __init__(self, pipeline: "DetachedSignedPipeline") -> None:
        super().__init__()
        self._pipeline = pipeline

    def close(self) -> None:
        self._pipeline._seal_signature(self._take())


class DetachedSignedPipeline(EncryptionPipeline):
    """
    Encrypts the plaintext and, with the same session key, an encrypted detached
    signature over it.

    Every write fans out to the ciphertext stage and the signing stage. On close
    the ciphertext stage is sealed first, then the signing stage emits the
    signature into the signature encryption stage, which is sealed last.
    """

    kind = PipelineKind.ENCRYPT_AND_SIGN_DETACHED

    def __init__(self, context: EncryptionContext, output: SplitWriter, backend: PacketEngine):
        self._ciphertext = _CiphertextStage(self)
        self._signature_encryption = _SignatureEncryptionStage(self)
        self._signing = _SigningStage(self, self._signature_encryption)
        self._fan_out = MultiWriter(self._ciphertext, self._signing)
        super().__init__(context, output, backend)

    def write(self, data: bytes, /) -> int:
        super().write(b"")
        return self._fan_out.write(data)

    def close(self) -> None:
        self._take()
        try:
            self._ciphertext.close()
            self._signing.close()
            self._signature_encryption.close()
        finally:
            self._release()
        logger.debug("Closed encryption pipeline", kind=self.kind)

    def _write_key_packets(self, key_packets: bytes) -> None:
        if not key_packets:
            return
        if self._output.keys is not None:
            self._output.keys.write(key_packets)
            return
        self._output.data.write(key_packets)
        self._output.signature.write(key_packets)

    def _seal_ciphertext(self, plaintext: bytes) -> None:
        inner = literal_packet(plaintext, self._context.metadata)
        self._output.data.write(self._session_key.encrypt_packets(self._compress(inner)))

    def _seal_signature(self, signature: bytes) -> None:
        inner = literal_packet(signature, LiteralMetadata())
        self._output.signature.write(self._session_key.encrypt_packets(self._compress(inner)))


_PIPELINES: dict[PipelineKind, type[EncryptionPipeline]] = {
    PipelineKind.PLAIN_ENCRYPT: PlainEncryptPipeline,
    PipelineKind.ENCRYPT_AND_SIGN_INLINE: InlineSignedPipeline,
    PipelineKind.ENCRYPT_AND_SIGN_DETACHED: DetachedSignedPipeline,
    PipelineKind.PASSWORD_ENCRYPT: PasswordPipeline,
    PipelineKind.SESSION_KEY_ENCRYPT: SessionKeyPipeline,
}


def open_pipeline(
    context: EncryptionContext, output: SplitWriter, backend: PacketEngine
) -> EncryptionPipeline:
    """Open the pipeline kind selected by ``context`` for ``output``."""
    return _PIPELINES[context.kind(output)](context, output, backend)
