"""
One-call helpers built on the handles.

Each helper wraps every failure other than a signature verification failure in an
EngineError naming the operation, so callers can tell "undecryptable" from
"decrypted but untrusted".
"""

import time

import structlog

from proton_pgp.crypto.decryption import DecryptionHandleBuilder
from proton_pgp.crypto.encryption import EncryptionHandleBuilder
from proton_pgp.crypto.key_ring import KeyRing
from proton_pgp.crypto.packets import armor_message
from proton_pgp.crypto.session_key import SessionKey
from proton_pgp.exceptions import EngineError, Operation, ProtonPGPError
from proton_pgp.models.message import (
    ExplicitVerifyResult,
    LiteralMetadata,
    PlainMessage,
    SplitMessage,
)
from proton_pgp.profile import Profile, default

logger = structlog.get_logger(__name__)


def decrypt_explicit_verify(
    message: bytes | str,
    private_keys: KeyRing,
    public_keys: KeyRing | None,
    verify_time: int,
) -> ExplicitVerifyResult:
    """
    Decrypt ``message`` and verify its embedded signature.

    Args:
        message: Armored or binary message.
        private_keys: Unlocked decryption keys.
        public_keys: Verification keys; None skips verification.
        verify_time: Unix time for the signature check; 0 skips time checks.

    Raises:
        EngineError: With the "unable to decrypt message" prefix, if decryption fails.
    """
    try:
        builder = DecryptionHandleBuilder().decryption_keys(private_keys).verify_time(verify_time)
        if public_keys is not None:
            builder.verification_keys(public_keys)
        return builder.new().decrypt(message)
    except ProtonPGPError as e:
        raise EngineError(e.message, operation=Operation.DECRYPT) from e


def decrypt_session_key_explicit_verify(
    data_packet: bytes,
    session_key: SessionKey,
    public_keys: KeyRing | None,
    verify_time: int,
) -> ExplicitVerifyResult:
    """
    Decrypt a data packet with ``session_key`` and verify its embedded signature.

    Raises:
        EngineError: With the "unable to decrypt message" prefix, if decryption fails.
    """
    try:
        return session_key.decrypt_and_verify(data_packet, public_keys, verify_time)
    except ProtonPGPError as e:
        raise EngineError(e.message, operation=Operation.DECRYPT) from e


def encrypt_attachment(
    data: bytes,
    filename: str,
    keys: KeyRing,
    *,
    profile: Profile | None = None,
) -> SplitMessage:
    """
    Encrypt a whole file to ``keys``.

    Returns:
        The key packets and the data packet, kept apart.
    """
    metadata = LiteralMetadata(filename=filename, mod_time=int(time.time()))
    try:
        handle = EncryptionHandleBuilder(profile or default()).recipients(keys).new()
        message = handle.encrypt(data, metadata)
    except ProtonPGPError as e:
        raise EngineError(e.message, operation=Operation.ENCRYPT_ATTACHMENT) from e

    logger.debug("Encrypted attachment", size=len(data), recipients=len(keys))
    return message


def decrypt_attachment(key_packet: bytes, data_packet: bytes, keys: KeyRing) -> PlainMessage:
    """Decrypt an attachment produced by encrypt_attachment()."""
    try:
        handle = DecryptionHandleBuilder().decryption_keys(keys).new()
        result = handle.decrypt_split(
            SplitMessage(key_packets=key_packet, data_packet=data_packet)
        )
    except ProtonPGPError as e:
        raise EngineError(e.message, operation=Operation.DECRYPT_ATTACHMENT) from e
    return result.message


def encrypt_sign_armored_detached(
    public_keys: KeyRing,
    private_keys: KeyRing,
    data: bytes,
    *,
    profile: Profile | None = None,
) -> tuple[str, str]:
    """
    Encrypt ``data`` to ``public_keys`` with an encrypted detached signature.

    Returns:
        Tuple of (armored message, armored encrypted signature). Both carry the
        key packets, so each can be decrypted on its own.
    """
    handle = (
        EncryptionHandleBuilder(profile or default())
        .recipients(public_keys)
        .signing_keys(private_keys)
        .detached_signature()
        .new()
    )
    message = handle.encrypt(data)
    signature = message.key_packets + (message.detached_signature or b"")
    return armor_message(message.binary()), armor_message(signature)
