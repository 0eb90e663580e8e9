"""
Encryption handles.

An EncryptionHandle is a configuration snapshot built once by an
EncryptionHandleBuilder. Every call computes its own EncryptionContext from the
snapshot and opens the pipeline kind that context selects; the handle itself is
never modified.
"""

import time
from datetime import datetime
from typing import Self

import structlog

from proton_pgp.crypto.key_ring import Key, KeyRing, to_secure_bytes
from proton_pgp.crypto.pgpy_backend import PgpyBackend, to_datetime
from proton_pgp.crypto.pipeline import EncryptionContext, EncryptionPipeline, open_pipeline
from proton_pgp.crypto.protocol import PacketEngine
from proton_pgp.crypto.secure_bytes import SecureBytes
from proton_pgp.crypto.session_key import SessionKey
from proton_pgp.crypto.streams import SplitMessageWriter, SplitWriter, Writer
from proton_pgp.exceptions import ConfigurationError, UnsupportedAlgorithmError
from proton_pgp.models.crypto import CompressionAlgorithm
from proton_pgp.models.message import LiteralMetadata, SigningContext, SplitMessage
from proton_pgp.profile import Profile

logger = structlog.get_logger(__name__)


class EncryptionHandle:
    """
    Encrypts messages with a fixed set of key material.

    The session key is protected by exactly one of: recipients (visible or
    hidden), a password, or a preset session key that travels out of band.
    """

    def __init__(
        self,
        *,
        profile: Profile,
        recipients: tuple[Key, ...],
        hidden_recipients: tuple[Key, ...],
        password: SecureBytes | None,
        session_key: SessionKey | None,
        signer: Key | None,
        signing_context: SigningContext | None,
        detached: bool,
        compress: bool,
        utf8: bool,
        clock: int | None,
        backend: PacketEngine,
    ) -> None:
        self._profile = profile
        self._recipients = recipients
        self._hidden_recipients = hidden_recipients
        self._password = password
        self._session_key = session_key
        self._signer = signer
        self._signing_context = signing_context
        self._detached = detached
        self._compress = compress
        self._utf8 = utf8
        self._clock = clock
        self._backend = backend

    @property
    def profile(self) -> Profile:
        return self._profile

    def encrypt_stream(
        self, output: SplitWriter | Writer, metadata: LiteralMetadata | None = None
    ) -> EncryptionPipeline:
        """
        Open a writer encrypting everything written to it into ``output``.

        Key packets are written right away; the data packet (and the encrypted
        detached signature, if configured) when the returned writer is closed.

        Args:
            output: Split sinks, or a single writer receiving a regular message.
            metadata: File hints for the literal data packet.

        Returns:
            The pipeline writer. Closing it a second time raises UsageError.
        """
        if not isinstance(output, SplitWriter):
            output = SplitWriter.from_writer(output)
        return open_pipeline(self._context(metadata), output, self._backend)

    def encrypt(self, data: bytes, metadata: LiteralMetadata | None = None) -> SplitMessage:
        """Encrypt ``data`` in memory, keeping key packets apart from the data packet."""
        output = SplitMessageWriter(with_signature=self._detached and self._signer is not None)
        pipeline = self.encrypt_stream(output, metadata)
        pipeline.write(data)
        pipeline.close()
        return output.message()

    def encrypt_session_key(self, session_key: SessionKey) -> bytes:
        """
        Key packets protecting ``session_key`` for this handle's recipients or
        password.

        Raises:
            ConfigurationError: If the handle has neither recipients nor a password.
        """
        if not (self._recipients or self._hidden_recipients or self._password is not None):
            msg = "Encrypting a session key requires recipients or a password"
            raise ConfigurationError(msg)

        return self._backend.encrypt_session_key(
            bytes(session_key.key),
            session_key.algorithm,
            recipients=self._recipients,
            hidden_recipients=self._hidden_recipients,
            password=self._password,
            config=self._profile.encryption_config(),
        )

    def clear_private_params(self) -> None:
        """Forget the password and the signer passphrase."""
        if self._password is not None:
            self._password.clear()
        if self._signer is not None:
            self._signer.clear_private_params()

    def _context(self, metadata: LiteralMetadata | None) -> EncryptionContext:
        compression = CompressionAlgorithm.NONE
        level = 6
        if self._compress:
            compression_config = self._profile.compression_config()
            compression = compression_config.default_compression
            if compression_config.compression is not None:
                level = compression_config.compression.level

        clock = self._clock if self._clock is not None else int(time.time())
        return EncryptionContext(
            encryption_config=self._profile.encryption_config(),
            sign_config=self._profile.sign_config(),
            recipients=self._recipients,
            hidden_recipients=self._hidden_recipients,
            password=self._password,
            session_key=self._session_key,
            signer=self._signer,
            detached=self._detached,
            metadata=metadata or LiteralMetadata(is_utf8=self._utf8),
            signing_context=self._signing_context,
            compression=compression,
            compression_level=level,
            signature_time=to_datetime(clock),
        )


class EncryptionHandleBuilder:
    """
    Configures an EncryptionHandle.

    Example:
        handle = (
            EncryptionHandleBuilder(profile)
            .recipients(bob_keys)
            .signing_keys(alice_keys)
            .new()
        )
        message = handle.encrypt(b"hello")
    """

    def __init__(
        self,
        profile: Profile,
        *,
        compress: bool = False,
        utf8: bool = False,
        backend: PacketEngine | None = None,
    ) -> None:
        self._profile = profile
        self._recipients: list[Key] = []
        self._hidden_recipients: list[Key] = []
        self._password: SecureBytes | None = None
        self._session_key: SessionKey | None = None
        self._signer: Key | None = None
        self._signing_context: SigningContext | None = None
        self._detached = False
        self._compress = compress
        self._utf8 = utf8
        self._clock: int | None = None
        self._backend = backend or PgpyBackend()

    def recipients(self, keys: KeyRing) -> Self:
        self._recipients.extend(keys.encryption_keys())
        return self

    def hidden_recipients(self, keys: KeyRing) -> Self:
        """Recipients whose key ids are replaced by the wildcard key id."""
        self._hidden_recipients.extend(keys.encryption_keys())
        return self

    def signing_keys(self, keys: KeyRing) -> Self:
        """
        Sign with the first signing key of ``keys``.

        Raises:
            LockedKeyError: If that key is locked.
            ConfigurationError: If ``keys`` holds no private signing key.
        """
        self._signer = keys.signing_key()
        return self

    def password(self, password: SecureBytes | bytes | str) -> Self:
        self._password = to_secure_bytes(password)
        return self

    def session_key(self, session_key: SessionKey) -> Self:
        """
        Encrypt data with ``session_key`` instead of a fresh one.

        The session key stays owned by the caller and must not be cleared while a
        pipeline using it is open.
        """
        self._session_key = session_key
        return self

    def compress(self) -> Self:
        """Compress with the profile's compression algorithm."""
        self._compress = True
        return self

    def utf8(self) -> Self:
        """
        Mark plaintext as UTF-8 text when no metadata is given. Signatures over
        UTF-8 plaintext are text signatures.
        """
        self._utf8 = True
        return self

    def signing_context(self, context: SigningContext) -> Self:
        self._signing_context = context
        return self

    def detached_signature(self) -> Self:
        """Produce an encrypted detached signature instead of an inline one."""
        self._detached = True
        return self

    def encryption_time(self, unix_time: int | datetime) -> Self:
        """Time used for signature creation. Defaults to the time of each call."""
        self._clock = unix_time if isinstance(unix_time, int) else int(unix_time.timestamp())
        return self

    def new(self) -> EncryptionHandle:
        """
        Raises:
            ConfigurationError: If no key material is configured, a password is
                combined with recipients, or a detached signature has no signer.
            UnsupportedAlgorithmError: If the profile encrypts with AEAD.
        """
        if self._profile.aead_encryption is not None:
            msg = f"Profile {self._profile.name} uses AEAD, not supported by the packet engine"
            raise UnsupportedAlgorithmError(msg)
        has_recipients = bool(self._recipients or self._hidden_recipients)
        if not (has_recipients or self._password is not None or self._session_key is not None):
            msg = "No key material: set recipients, a password or a session key"
            raise ConfigurationError(msg)
        if has_recipients and self._password is not None:
            msg = "A message is protected either by recipients or by a password"
            raise ConfigurationError(msg)
        if self._detached and self._signer is None:
            msg = "A detached signature requires signing keys"
            raise ConfigurationError(msg)

        logger.debug(
            "Built encryption handle",
            profile=self._profile.name,
            recipients=len(self._recipients),
            hidden_recipients=len(self._hidden_recipients),
            password=self._password is not None,
            session_key=self._session_key is not None,
            signer=self._signer.key_id if self._signer is not None else None,
            detached=self._detached,
        )
        return EncryptionHandle(
            profile=self._profile,
            recipients=tuple(self._recipients),
            hidden_recipients=tuple(self._hidden_recipients),
            password=self._password,
            session_key=self._session_key,
            signer=self._signer,
            signing_context=self._signing_context,
            detached=self._detached,
            compress=self._compress,
            utf8=self._utf8,
            clock=self._clock,
            backend=self._backend,
        )
