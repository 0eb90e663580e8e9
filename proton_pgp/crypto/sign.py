"""
Signing handles.
"""

import io
import time
from datetime import datetime
from typing import Self

import structlog

from proton_pgp.crypto.key_ring import Key, KeyRing
from proton_pgp.crypto.packets import (
    armor_message,
    armor_signature,
    literal_packet,
    trim_trailing_whitespace,
)
from proton_pgp.crypto.pgpy_backend import PgpyBackend, to_datetime
from proton_pgp.crypto.protocol import PacketEngine
from proton_pgp.crypto.streams import Writer
from proton_pgp.exceptions import ConfigurationError, UsageError
from proton_pgp.models.message import LiteralMetadata, SigningContext
from proton_pgp.profile import Profile

logger = structlog.get_logger(__name__)


class DetachedSignatureWriter:
    """Collects data and writes its detached signature to the output on close."""

    def __init__(self, handle: "SignHandle", output: Writer, *, armor: bool) -> None:
        self._handle = handle
        self._output = output
        self._armor = armor
        self._buffer = io.BytesIO()
        self._closed = False

    def write(self, data: bytes, /) -> int:
        if self._closed:
            msg = "write to a closed signature writer"
            raise UsageError(msg)
        return self._buffer.write(data)

    def close(self) -> None:
        if self._closed:
            msg = "signature writer already closed"
            raise UsageError(msg)
        self._closed = True
        signature = self._handle.sign_detached(self._buffer.getvalue(), armor=self._armor)
        self._output.write(signature.encode("ascii") if isinstance(signature, str) else signature)


class SignHandle:
    """Produces detached and inline signatures with a single signing key."""

    def __init__(
        self,
        *,
        profile: Profile,
        signer: Key,
        context: SigningContext | None,
        clock: int | None,
        utf8: bool = False,
        backend: PacketEngine,
    ) -> None:
        self._profile = profile
        self._signer = signer
        self._context = context
        self._clock = clock
        self._utf8 = utf8
        self._backend = backend

    @property
    def signer(self) -> Key:
        return self._signer

    def sign_detached(self, data: bytes, *, armor: bool = False) -> bytes | str:
        """
        Detached signature over ``data``.

        Args:
            data: Data to sign.
            armor: Return an ASCII-armored signature instead of a binary one.

        Raises:
            EngineError: If the engine fails to sign.
        """
        signature = self._sign(data, text=self._utf8)
        logger.debug("Signed detached", signer=self._signer.key_id, size=len(data))
        return armor_signature(signature) if armor else signature

    def sign_detached_text(
        self, text: str, *, trim: bool = True, armor: bool = False
    ) -> bytes | str:
        """
        Detached text signature over ``text``.

        Args:
            text: Text to sign; line endings are canonicalized by the signature.
            trim: Strip trailing spaces and tabs from every line before signing.
            armor: Return an ASCII-armored signature instead of a binary one.
        """
        if trim:
            text = trim_trailing_whitespace(text)
        signature = self._sign(text.encode("utf-8"), text=True)
        logger.debug("Signed detached text", signer=self._signer.key_id, size=len(text))
        return armor_signature(signature) if armor else signature

    def sign_detached_stream(
        self, output: Writer, *, armor: bool = False
    ) -> DetachedSignatureWriter:
        """Writer whose close() writes the detached signature of everything written."""
        return DetachedSignatureWriter(self, output, armor=armor)

    def sign_inline(
        self,
        data: bytes,
        metadata: LiteralMetadata | None = None,
        *,
        armor: bool = False,
    ) -> bytes | str:
        """Signed (not encrypted) message carrying ``data`` and its signature."""
        metadata = metadata or LiteralMetadata(is_utf8=self._utf8)
        literal = literal_packet(data, metadata)
        message = self._backend.inline_signed(literal, [self._sign(data, text=metadata.is_utf8)])
        logger.debug("Signed inline", signer=self._signer.key_id, size=len(data))
        return armor_message(message) if armor else message

    def clear_private_params(self) -> None:
        self._signer.clear_private_params()

    def _sign(self, data: bytes, *, text: bool) -> bytes:
        clock = self._clock if self._clock is not None else int(time.time())
        return self._backend.sign(
            self._signer,
            data,
            self._profile.sign_config(),
            created=to_datetime(clock),
            notations=self._context.notation if self._context is not None else None,
            text=text,
        )


class SignHandleBuilder:
    """Configures a SignHandle."""

    def __init__(
        self, profile: Profile, *, utf8: bool = False, backend: PacketEngine | None = None
    ) -> None:
        self._profile = profile
        self._signer: Key | None = None
        self._context: SigningContext | None = None
        self._clock: int | None = None
        self._utf8 = utf8
        self._backend = backend or PgpyBackend()

    def signing_keys(self, keys: KeyRing) -> Self:
        """
        Raises:
            LockedKeyError: If the signing key is locked.
            ConfigurationError: If ``keys`` holds no private signing key.
        """
        self._signer = keys.signing_key()
        return self

    def signing_context(self, context: SigningContext) -> Self:
        self._context = context
        return self

    def sign_time(self, unix_time: int | datetime) -> Self:
        """Signature creation time. Defaults to the time of each call."""
        self._clock = unix_time if isinstance(unix_time, int) else int(unix_time.timestamp())
        return self

    def utf8(self) -> Self:
        """Sign data as UTF-8 text with canonical line endings."""
        self._utf8 = True
        return self

    def new(self) -> SignHandle:
        if self._signer is None:
            msg = "Signing requires signing keys"
            raise ConfigurationError(msg)
        return SignHandle(
            profile=self._profile,
            signer=self._signer,
            context=self._context,
            clock=self._clock,
            utf8=self._utf8,
            backend=self._backend,
        )
