"""
Decryption handles with explicit verification.

Decryption and signature verification fail independently: a signature that does
not verify is reported in the ExplicitVerifyResult next to the plaintext, while
every decryption failure raises and yields no plaintext.
"""

import time
from typing import Self

import structlog

from proton_pgp.crypto.key_ring import Key, KeyRing, to_secure_bytes
from proton_pgp.crypto.packets import dearmor, split_packets
from proton_pgp.crypto.pgpy_backend import PgpyBackend
from proton_pgp.crypto.protocol import PacketEngine
from proton_pgp.crypto.secure_bytes import SecureBytes
from proton_pgp.crypto.session_key import SessionKey
from proton_pgp.crypto.verify import explicit_verify, signature_packets
from proton_pgp.exceptions import (
    ConfigurationError,
    LockedKeyError,
    Operation,
    SessionKeyError,
    SignatureVerificationError,
    VerificationStatus,
)
from proton_pgp.models.message import ExplicitVerifyResult, SplitMessage, VerificationContext

logger = structlog.get_logger(__name__)


class DecryptionHandle:
    """Decrypts messages and reports signature verification as data."""

    def __init__(
        self,
        *,
        decryption_keys: tuple[Key, ...],
        session_key: SessionKey | None,
        password: SecureBytes | None,
        verification_keys: KeyRing | None,
        verify_time: int,
        context: VerificationContext | None,
        backend: PacketEngine,
    ) -> None:
        self._decryption_keys = decryption_keys
        self._session_key = session_key
        self._password = password
        self._verification_keys = verification_keys
        self._verify_time = verify_time
        self._context = context
        self._backend = backend

    def decrypt(
        self,
        message: bytes | str,
        encrypted_signature: bytes | str | None = None,
    ) -> ExplicitVerifyResult:
        """
        Decrypt a message and verify its signature.

        Args:
            message: Armored or binary message; key packets may be omitted when
                the handle holds a session key.
            encrypted_signature: Encrypted detached signature produced with the
                same session key. When given, it replaces any inline signature.

        Returns:
            The plaintext with the verification outcome. Verification is skipped
            when the handle has no verification keys.

        Raises:
            SessionKeyError: If no key packet can be decrypted.
            EngineError: If the data packet is corrupt or the key is wrong.
        """
        key_packets, data_packet = split_packets(dearmor(message))
        owned = self._session_key is None
        session_key = self.decrypt_session_key(key_packets) if owned else self._session_key
        try:
            parsed = session_key.decrypt_packets(data_packet)
            if encrypted_signature is None:
                signatures = None
            else:
                _, signature_packet = split_packets(dearmor(encrypted_signature))
                signature_literal = session_key.decrypt_packets(signature_packet)
                signatures = signature_packets(signature_literal.message.data)
        finally:
            if owned:
                session_key.clear()

        logger.debug(
            "Decrypted message",
            size=len(parsed.message.data),
            compressed=parsed.compressed,
            detached=encrypted_signature is not None,
        )

        if signatures is not None and not signatures and self._verification_keys is not None:
            msg = "Encrypted signature holds no signature packet"
            error = SignatureVerificationError(msg, status=VerificationStatus.NOT_SIGNED)
            return ExplicitVerifyResult(message=parsed.message, signature_error=error)

        return explicit_verify(
            parsed,
            self._verification_keys,
            self._verify_time,
            signatures=signatures,
            context=self._context,
            backend=self._backend,
        )

    def decrypt_split(self, split: SplitMessage) -> ExplicitVerifyResult:
        """Decrypt a split message, including its encrypted detached signature."""
        return self.decrypt(split.binary(), split.detached_signature)

    def decrypt_session_key(self, key_packets: bytes | str) -> SessionKey:
        """
        Recover the session key from key packets with the handle's private keys or
        password. The caller owns the returned key.

        Raises:
            SessionKeyError: If no packet can be decrypted, or none was given.
        """
        binary = dearmor(key_packets) if key_packets else b""
        if not binary:
            msg = "no key packets"
            raise SessionKeyError(msg, operation=Operation.DECRYPT_SESSION_KEY)

        algorithm, key = self._backend.decrypt_session_key(
            binary, keys=self._decryption_keys, password=self._password
        )
        logger.debug("Decrypted session key", algorithm=algorithm.name)
        return SessionKey(key, algorithm, backend=self._backend)

    def clear_private_params(self) -> None:
        """Forget the password and the passphrases of the decryption keys."""
        if self._password is not None:
            self._password.clear()
        for key in self._decryption_keys:
            key.clear_private_params()


class DecryptionHandleBuilder:
    """
    Configures a DecryptionHandle.

    Example:
        handle = (
            DecryptionHandleBuilder()
            .decryption_keys(bob_keys)
            .verification_keys(alice_public_keys)
            .new()
        )
        result = handle.decrypt(message)
    """

    def __init__(self, *, backend: PacketEngine | None = None) -> None:
        self._keys: KeyRing | None = None
        self._session_key: SessionKey | None = None
        self._password: SecureBytes | None = None
        self._verification_keys: KeyRing | None = None
        self._verify_time: int | None = None
        self._context: VerificationContext | None = None
        self._backend = backend or PgpyBackend()

    def decryption_keys(self, keys: KeyRing) -> Self:
        self._keys = keys
        return self

    def session_key(self, session_key: SessionKey) -> Self:
        """Decrypt with ``session_key``; it stays owned by the caller."""
        self._session_key = session_key
        return self

    def password(self, password: SecureBytes | bytes | str) -> Self:
        self._password = to_secure_bytes(password)
        return self

    def verification_keys(self, keys: KeyRing) -> Self:
        self._verification_keys = keys
        return self

    def verify_time(self, unix_time: int) -> Self:
        """Check signatures at ``unix_time``; 0 disables time checks. Defaults to now."""
        self._verify_time = unix_time
        return self

    def verification_context(self, context: VerificationContext) -> Self:
        self._context = context
        return self

    def new(self) -> DecryptionHandle:
        """
        Raises:
            LockedKeyError: If the only decryption keys given are locked.
            ConfigurationError: If nothing can decrypt a message.
        """
        decryption_keys: tuple[Key, ...] = ()
        if self._keys is not None:
            decryption_keys = tuple(self._keys.decryption_keys())
            locked = [key for key in self._keys if key.is_locked]
            if not decryption_keys and locked and self._has_no_other_material():
                msg = "Decryption keys are not unlocked"
                raise LockedKeyError(msg, key_id=locked[0].key_id)

        if not decryption_keys and self._has_no_other_material():
            msg = "No decryption material: set decryption keys, a session key or a password"
            raise ConfigurationError(msg)

        verify_time = int(time.time()) if self._verify_time is None else self._verify_time
        return DecryptionHandle(
            decryption_keys=decryption_keys,
            session_key=self._session_key,
            password=self._password,
            verification_keys=self._verification_keys,
            verify_time=verify_time,
            context=self._context,
            backend=self._backend,
        )

    def _has_no_other_material(self) -> bool:
        return self._session_key is None and self._password is None
