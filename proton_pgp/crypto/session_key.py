"""
Session key lifecycle.

A SessionKey owns the symmetric key protecting a data packet. It is created by
random generation or by decrypting a key packet, used by one operation at a time,
and cleared explicitly or when it goes out of scope.
"""

import os
from typing import Self

import structlog

from proton_pgp.crypto.key_ring import KeyRing
from proton_pgp.crypto.packets import (
    ParsedMessage,
    compressed_packet,
    literal_packet,
    read_message,
)
from proton_pgp.crypto.pgpy_backend import PgpyBackend
from proton_pgp.crypto.protocol import PacketEngine
from proton_pgp.crypto.secure_bytes import SecureBytes
from proton_pgp.crypto.verify import explicit_verify
from proton_pgp.exceptions import UnsupportedAlgorithmError, UsageError
from proton_pgp.models.crypto import CompressionAlgorithm, SymmetricAlgorithm
from proton_pgp.models.message import (
    ExplicitVerifyResult,
    LiteralMetadata,
    PlainMessage,
    VerificationContext,
)
from proton_pgp.profile import PacketConfig

logger = structlog.get_logger(__name__)


class SessionKey:
    """
    Symmetric session key.

    The cipher is the key's own algorithm tag; it never comes from a profile once
    the key exists. After clear() every operation raises UsageError.

    Example:
        with SessionKey.generate(profile.encryption_config()) as session_key:
            data_packet = session_key.encrypt(b"hello")
    """

    def __init__(
        self,
        key: SecureBytes | bytes,
        algorithm: SymmetricAlgorithm,
        *,
        v6: bool = False,
        backend: PacketEngine | None = None,
    ) -> None:
        algorithm = SymmetricAlgorithm(algorithm)
        if algorithm.key_size == 0:
            msg = f"No key size known for {algorithm.name}"
            raise UnsupportedAlgorithmError(msg)

        secret = key.move() if isinstance(key, SecureBytes) else SecureBytes(key)
        if len(secret) != algorithm.key_size:
            size = len(secret)
            secret.clear()
            msg = f"{algorithm.name} needs a {algorithm.key_size}-byte key, got {size}"
            raise ValueError(msg)

        self._key = secret
        self._algorithm = algorithm
        self._v6 = v6
        self._backend = backend or PgpyBackend()

    @classmethod
    def generate(cls, config: PacketConfig, *, backend: PacketEngine | None = None) -> Self:
        """
        Generate a random key sized for the config's default cipher. Configs
        asking for AEAD yield v6 session keys.

        Raises:
            UnsupportedAlgorithmError: If the cipher has no known key size.
        """
        algorithm = config.cipher
        if algorithm.key_size == 0:
            msg = f"Cannot generate a session key for {algorithm.name}"
            raise UnsupportedAlgorithmError(msg)

        session_key = cls(
            SecureBytes(os.urandom(algorithm.key_size)),
            algorithm,
            v6=config.aead is not None,
            backend=backend,
        )
        logger.debug("Generated session key", algorithm=algorithm.name)
        return session_key

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *_: object) -> None:
        self.clear()

    @property
    def key(self) -> SecureBytes:
        """
        The key material.

        Raises:
            UsageError: If the key has been cleared.
        """
        self._check_cleared()
        return self._key

    @property
    def algorithm(self) -> SymmetricAlgorithm:
        return self._algorithm

    @property
    def v6(self) -> bool:
        return self._v6

    @property
    def is_cleared(self) -> bool:
        return self._key.is_cleared

    def clear(self) -> None:
        """Zero the key. Idempotent."""
        if not self._key.is_cleared:
            logger.debug("Cleared session key", algorithm=self._algorithm.name)
        self._key.clear()

    def copy(self) -> "SessionKey":
        self._check_cleared()
        return SessionKey(self._key.copy(), self._algorithm, v6=self._v6, backend=self._backend)

    def encrypt_packets(self, plaintext: bytes) -> bytes:
        """Encrypt an inner packet stream into a data packet."""
        self._check_cleared()
        if self._v6:
            msg = "v6 session keys need AEAD data packets, not supported by the packet engine"
            raise UnsupportedAlgorithmError(msg)
        return self._backend.encrypt_data(plaintext, bytes(self._key), self._algorithm)

    def decrypt_packets(self, data_packet: bytes) -> ParsedMessage:
        """Decrypt a data packet and read the message inside it."""
        self._check_cleared()
        inner = self._backend.decrypt_data(data_packet, bytes(self._key), self._algorithm)
        return read_message(inner)

    def encrypt(
        self,
        data: bytes,
        metadata: LiteralMetadata | None = None,
        *,
        compression: CompressionAlgorithm = CompressionAlgorithm.NONE,
    ) -> bytes:
        """
        Encrypt plaintext into a data packet, without key packets or signature.

        Args:
            data: Plaintext.
            metadata: File hints for the literal data packet.
            compression: Compression applied inside the data packet.

        Returns:
            The SEIPD data packet.
        """
        inner = literal_packet(data, metadata or LiteralMetadata())
        return self.encrypt_packets(compressed_packet(inner, compression))

    def decrypt(self, data_packet: bytes) -> PlainMessage:
        """
        Decrypt a data packet; embedded signatures are ignored.

        Raises:
            EngineError: If the key is wrong or the packet is corrupt.
        """
        return self.decrypt_packets(data_packet).message

    def decrypt_and_verify(
        self,
        data_packet: bytes,
        verification_keys: KeyRing | None,
        verify_time: int,
        *,
        context: VerificationContext | None = None,
    ) -> ExplicitVerifyResult:
        """
        Decrypt a data packet and verify its embedded signature.

        A signature that does not verify is returned in the result's
        ``signature_error``; any other failure raises.
        """
        parsed = self.decrypt_packets(data_packet)
        return explicit_verify(
            parsed, verification_keys, verify_time, context=context, backend=self._backend
        )

    def _check_cleared(self) -> None:
        if self._key.is_cleared:
            msg = "Session key has been cleared"
            raise UsageError(msg)

    def __repr__(self) -> str:
        state = "cleared" if self.is_cleared else f"{len(self._key)} bytes"
        return f"SessionKey({self._algorithm.name}, {state})"
