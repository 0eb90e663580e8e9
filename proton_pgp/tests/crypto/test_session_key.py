import os

import pytest

from proton_pgp.crypto.key_ring import Key, KeyRing
from proton_pgp.crypto.packets import literal_packet
from proton_pgp.crypto.pgpy_backend import PgpyBackend
from proton_pgp.crypto.secure_bytes import SecureBytes
from proton_pgp.crypto.session_key import SessionKey
from proton_pgp.exceptions import (
    EngineError,
    UnsupportedAlgorithmError,
    UsageError,
    VerificationStatus,
)
from proton_pgp.models.crypto import CompressionAlgorithm, SymmetricAlgorithm
from proton_pgp.models.message import LiteralMetadata
from proton_pgp.profile import Profile, crypto_refresh


def test_generate_uses_profile_cipher(profile: Profile, backend: PgpyBackend) -> None:
    session_key = SessionKey.generate(profile.encryption_config(), backend=backend)

    assert session_key.algorithm == SymmetricAlgorithm.AES_256
    assert len(session_key.key) == 32
    assert not session_key.v6


def test_generate_for_v6_profile_sets_flag(backend: PgpyBackend) -> None:
    session_key = SessionKey.generate(crypto_refresh().encryption_config(), backend=backend)

    assert session_key.v6
    with pytest.raises(UnsupportedAlgorithmError):
        session_key.encrypt(b"data")


def test_wrong_key_length_rejected() -> None:
    with pytest.raises(ValueError, match="32-byte key"):
        SessionKey(bytes(16), SymmetricAlgorithm.AES_256)


def test_plaintext_algorithm_rejected() -> None:
    with pytest.raises(UnsupportedAlgorithmError):
        SessionKey(b"", SymmetricAlgorithm.PLAINTEXT)


def test_construction_takes_over_secure_bytes() -> None:
    secret = SecureBytes(os.urandom(16))

    session_key = SessionKey(secret, SymmetricAlgorithm.AES_128)

    assert secret.is_cleared
    assert not session_key.is_cleared


def test_clear_is_idempotent(profile: Profile) -> None:
    session_key = SessionKey.generate(profile.encryption_config())

    session_key.clear()
    session_key.clear()

    assert session_key.is_cleared
    assert "cleared" in repr(session_key)


def test_use_after_clear_raises_usage_error(profile: Profile) -> None:
    session_key = SessionKey.generate(profile.encryption_config())
    session_key.clear()

    with pytest.raises(UsageError):
        _ = session_key.key
    with pytest.raises(UsageError):
        session_key.encrypt(b"data")
    with pytest.raises(UsageError):
        session_key.copy()


def test_context_manager_clears_key(profile: Profile) -> None:
    with SessionKey.generate(profile.encryption_config()) as session_key:
        session_key.encrypt(b"data")

    assert session_key.is_cleared


def test_copy_is_independent(profile: Profile) -> None:
    session_key = SessionKey.generate(profile.encryption_config())

    copy = session_key.copy()
    session_key.clear()

    assert not copy.is_cleared
    assert copy.algorithm == session_key.algorithm


def test_encrypt_then_decrypt(profile: Profile) -> None:
    metadata = LiteralMetadata(filename="a.txt", is_utf8=True)

    with SessionKey.generate(profile.encryption_config()) as session_key:
        data_packet = session_key.encrypt(b"hello", metadata)
        message = session_key.decrypt(data_packet)

    assert message.data == b"hello"
    assert message.filename == "a.txt"
    assert message.is_utf8


def test_encrypt_with_compression(profile: Profile) -> None:
    session_key = SessionKey.generate(profile.encryption_config())
    data = b"compress me " * 200

    data_packet = session_key.encrypt(data, compression=CompressionAlgorithm.ZLIB)
    parsed = session_key.decrypt_packets(data_packet)

    assert len(data_packet) < len(data)
    assert parsed.compressed
    assert parsed.message.data == data


def test_decrypt_with_other_key_raises_engine_error(profile: Profile) -> None:
    data_packet = SessionKey.generate(profile.encryption_config()).encrypt(b"hello")
    other = SessionKey.generate(profile.encryption_config())

    with pytest.raises(EngineError):
        other.decrypt(data_packet)


def test_decrypt_and_verify_inline_signature(
    profile: Profile, backend: PgpyBackend, alice_key: Key, alice_public_keys: KeyRing
) -> None:
    session_key = SessionKey.generate(profile.encryption_config(), backend=backend)
    signature = backend.sign(alice_key, b"signed", profile.sign_config())
    signed = backend.inline_signed(literal_packet(b"signed", LiteralMetadata()), [signature])
    data_packet = session_key.encrypt_packets(signed)

    result = session_key.decrypt_and_verify(data_packet, alice_public_keys, 0)

    assert result.data == b"signed"
    assert result.is_verified
    assert result.signed_by == alice_key.key_id


def test_decrypt_and_verify_reports_unknown_signer(
    profile: Profile, backend: PgpyBackend, alice_key: Key, bob_public_keys: KeyRing
) -> None:
    session_key = SessionKey.generate(profile.encryption_config(), backend=backend)
    signature = backend.sign(alice_key, b"signed", profile.sign_config())
    signed = backend.inline_signed(literal_packet(b"signed", LiteralMetadata()), [signature])

    data_packet = session_key.encrypt_packets(signed)

    result = session_key.decrypt_and_verify(data_packet, bob_public_keys, 0)

    assert result.data == b"signed"
    assert result.signature_error is not None
    assert result.signature_error.status == VerificationStatus.NO_VERIFIER
