import dataclasses
import os
from datetime import UTC, datetime

import pytest

from proton_pgp.crypto.key_ring import Key
from proton_pgp.crypto.packets import WILDCARD_KEY_ID, pkesk_key_ids
from proton_pgp.crypto.pgpy_backend import (
    PgpyBackend,
    check_packet_config,
    engine_operation,
    to_datetime,
    to_timestamp,
)
from proton_pgp.crypto.protocol import PacketEngine
from proton_pgp.crypto.secure_bytes import SecureBytes
from proton_pgp.exceptions import (
    EngineError,
    Operation,
    SessionKeyError,
    UnsupportedAlgorithmError,
    UsageError,
)
from proton_pgp.models.crypto import SecurityLevel, SymmetricAlgorithm
from proton_pgp.profile import Profile, crypto_refresh, default


def test_backend_satisfies_packet_engine_protocol(backend: PgpyBackend) -> None:
    assert isinstance(backend, PacketEngine)


def test_engine_operation_wraps_foreign_errors() -> None:
    with pytest.raises(EngineError) as exc_info, engine_operation(Operation.SIGN):
        raise RuntimeError("boom")

    assert exc_info.value.operation is Operation.SIGN
    assert str(exc_info.value) == "unable to sign: boom"


def test_engine_operation_keeps_own_errors() -> None:
    with pytest.raises(UsageError), engine_operation(Operation.SIGN):
        raise UsageError("misuse")


def test_time_conversions() -> None:
    moment = datetime(2024, 1, 1, tzinfo=UTC)

    assert to_datetime(None) is None
    assert to_datetime(moment) is moment
    assert to_timestamp(to_datetime(1_704_067_200)) == 1_704_067_200
    assert to_timestamp(datetime(2024, 1, 1)) == to_timestamp(moment)


def test_check_packet_config_rejects_aead_and_argon2() -> None:
    check_packet_config(default().encryption_config())

    with pytest.raises(UnsupportedAlgorithmError, match="AEAD"):
        check_packet_config(crypto_refresh().encryption_config())

    no_aead = dataclasses.replace(crypto_refresh().key_encryption_config(), aead=None)
    with pytest.raises(UnsupportedAlgorithmError, match="Argon2"):
        check_packet_config(no_aead)


def test_generate_v6_key_unsupported(backend: PgpyBackend) -> None:
    config = crypto_refresh().key_generation_config(SecurityLevel.STANDARD)

    with pytest.raises(UnsupportedAlgorithmError, match="v6"):
        backend.generate_key("carol", "carol@proton.me", config)


def test_generate_curve448_key_unsupported(backend: PgpyBackend, profile: Profile) -> None:
    config = profile.key_generation_config(SecurityLevel.HIGH)

    with pytest.raises(UnsupportedAlgorithmError, match="curve448"):
        backend.generate_key("carol", "carol@proton.me", config)


def test_lock_key_rejects_protected_and_public_keys(
    backend: PgpyBackend, profile: Profile, alice_key: Key, locked_alice_key: Key
) -> None:
    config = profile.key_encryption_config()

    with pytest.raises(UsageError):
        backend.lock_key(locked_alice_key, SecureBytes(b"other"), config)
    with pytest.raises(UsageError):
        backend.lock_key(alice_key.to_public(), SecureBytes(b"other"), config)


def test_sign_and_verify(
    backend: PgpyBackend, profile: Profile, alice_key: Key, bob_key: Key
) -> None:
    signature = backend.sign(alice_key, b"data", profile.sign_config(), notations={"a@b": "c"})

    info = backend.signature_info(signature)
    assert info.signer == alice_key.key_id
    assert info.expires is None
    assert info.notations == {"a@b": "c"}
    assert backend.verify(alice_key.to_public(), b"data", signature)
    assert not backend.verify(alice_key.to_public(), b"other data", signature)
    assert not backend.verify(bob_key.to_public(), b"data", signature)


def test_sign_uses_given_creation_time(
    backend: PgpyBackend, profile: Profile, alice_key: Key
) -> None:
    created = datetime(2024, 1, 1, tzinfo=UTC)

    signature = backend.sign(alice_key, b"data", profile.sign_config(), created=created)

    assert backend.signature_info(signature).created == to_timestamp(created)


def test_session_key_packets_round_trip(
    backend: PgpyBackend, profile: Profile, alice_key: Key
) -> None:
    key = os.urandom(32)

    packets = backend.encrypt_session_key(
        key,
        SymmetricAlgorithm.AES_256,
        recipients=[alice_key.to_public()],
        config=profile.encryption_config(),
    )

    assert backend.decrypt_session_key(packets, keys=[alice_key]) == (
        SymmetricAlgorithm.AES_256,
        key,
    )


def test_hidden_recipient_uses_wildcard_key_id(
    backend: PgpyBackend, profile: Profile, alice_key: Key
) -> None:
    key = os.urandom(32)

    packets = backend.encrypt_session_key(
        key,
        SymmetricAlgorithm.AES_256,
        hidden_recipients=[alice_key.to_public()],
        config=profile.encryption_config(),
    )

    assert pkesk_key_ids(packets) == [WILDCARD_KEY_ID.hex().upper()]
    assert backend.decrypt_session_key(packets, keys=[alice_key])[1] == key


def test_password_key_packets(backend: PgpyBackend, profile: Profile) -> None:
    key = os.urandom(16)

    packets = backend.encrypt_session_key(
        key,
        SymmetricAlgorithm.AES_128,
        password=SecureBytes(b"password"),
        config=profile.encryption_config(),
    )

    assert backend.decrypt_session_key(packets, password=SecureBytes(b"password")) == (
        SymmetricAlgorithm.AES_128,
        key,
    )


def test_wrong_password_never_yields_session_key(backend: PgpyBackend, profile: Profile) -> None:
    key = os.urandom(16)
    packets = backend.encrypt_session_key(
        key,
        SymmetricAlgorithm.AES_128,
        password=SecureBytes(b"password"),
        config=profile.encryption_config(),
    )

    # A wrong password decrypts to random bytes, which are almost always rejected.
    try:
        _, recovered = backend.decrypt_session_key(packets, password=SecureBytes(b"wrong"))
    except SessionKeyError:
        return
    assert recovered != key


def test_decrypt_session_key_with_other_key_raises(
    backend: PgpyBackend, profile: Profile, alice_key: Key, bob_key: Key
) -> None:
    packets = backend.encrypt_session_key(
        os.urandom(32),
        SymmetricAlgorithm.AES_256,
        recipients=[alice_key.to_public()],
        config=profile.encryption_config(),
    )

    with pytest.raises(SessionKeyError) as exc_info:
        backend.decrypt_session_key(packets, keys=[bob_key])

    assert exc_info.value.operation is Operation.DECRYPT_SESSION_KEY


def test_password_with_argon2_profile_unsupported(backend: PgpyBackend) -> None:
    config = dataclasses.replace(crypto_refresh().encryption_config(), aead=None)

    with pytest.raises(UnsupportedAlgorithmError):
        backend.encrypt_session_key(
            os.urandom(32),
            SymmetricAlgorithm.AES_256,
            password=SecureBytes(b"password"),
            config=config,
        )
