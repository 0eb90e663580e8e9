"""
Packet engine protocol definition.

Everything above this interface composes pipelines; everything below it deals
with OpenPGP packets and primitives. A different engine can be swapped in
without changing the handles.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol, runtime_checkable

from proton_pgp.crypto.key_ring import Key
from proton_pgp.crypto.secure_bytes import SecureBytes
from proton_pgp.models.crypto import SymmetricAlgorithm
from proton_pgp.profile import PacketConfig


@dataclass(frozen=True, kw_only=True)
class SignatureInfo:
    """
    Metadata read from a signature packet.

    Attributes:
        signer: Issuer key id (upper-case hex).
        created: Creation time as a Unix timestamp.
        expires: Expiration time as a Unix timestamp, if the signature expires.
        notations: Notation data embedded in the hashed area.
        is_text: Whether the signature is over canonical text rather than binary data.
    """

    signer: str
    created: int
    expires: int | None = None
    notations: dict[str, str] = field(default_factory=dict)
    is_text: bool = False


@runtime_checkable
class PacketEngine(Protocol):
    """
    Abstract interface for the OpenPGP packet operations the handles need.

    Failures are reported as EngineError carrying the operation that failed.
    """

    def generate_key(
        self,
        name: str,
        email: str,
        config: PacketConfig,
    ) -> Key:
        """
        Generate a new private key.

        Raises:
            UnsupportedAlgorithmError: If the engine cannot build the requested key.
        """
        ...

    def lock_key(self, key: Key, passphrase: SecureBytes, config: PacketConfig) -> Key:
        """Return a copy of an unprotected private key locked with ``passphrase``."""
        ...

    def sign(
        self,
        key: Key,
        data: bytes,
        config: PacketConfig,
        *,
        created: datetime | None = None,
        notations: Mapping[str, str] | None = None,
        text: bool = False,
    ) -> bytes:
        """
        Produce a detached signature packet over ``data``. With ``text`` the
        signature covers ``data`` as UTF-8 text with canonical line endings.
        """
        ...

    def inline_signed(self, literal: bytes, signatures: Sequence[bytes]) -> bytes:
        """
        Combine a literal data packet and its signatures into a signed message.

        Returns:
            One-pass signature packets, the literal data packet and the signatures.
        """
        ...

    def signature_info(self, signature: bytes) -> SignatureInfo:
        """Read the metadata of a binary signature packet."""
        ...

    def verify(self, key: Key, data: bytes, signature: bytes) -> bool:
        """Check ``signature`` over ``data`` with ``key``; no time checks."""
        ...

    def encrypt_session_key(
        self,
        key: bytes,
        algorithm: SymmetricAlgorithm,
        *,
        recipients: Sequence[Key] = (),
        hidden_recipients: Sequence[Key] = (),
        password: SecureBytes | None = None,
        config: PacketConfig,
    ) -> bytes:
        """Produce the PKESK/SKESK packets protecting a session key."""
        ...

    def decrypt_session_key(
        self,
        key_packets: bytes,
        *,
        keys: Sequence[Key] = (),
        password: SecureBytes | None = None,
    ) -> tuple[SymmetricAlgorithm, bytes]:
        """
        Recover a session key from PKESK/SKESK packets.

        Returns:
            Tuple of (algorithm, key bytes).
        """
        ...

    def encrypt_data(self, plaintext: bytes, key: bytes, algorithm: SymmetricAlgorithm) -> bytes:
        """Encrypt an inner packet stream into a data packet."""
        ...

    def decrypt_data(self, data_packet: bytes, key: bytes, algorithm: SymmetricAlgorithm) -> bytes:
        """Decrypt a data packet into its inner packet stream."""
        ...
