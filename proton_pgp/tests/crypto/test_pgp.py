import pytest

from proton_pgp.config import PGPConfig
from proton_pgp.crypto.key_ring import Key, KeyRing
from proton_pgp.crypto.pgp import PGPHandle, pgp, pgp_crypto_refresh, pgp_with_profile
from proton_pgp.exceptions import (
    ConfigurationError,
    LockedKeyError,
    UnsupportedAlgorithmError,
    UsageError,
)
from proton_pgp.models.crypto import SymmetricAlgorithm
from proton_pgp.profile import rfc4880
from proton_pgp.tests.conftest import PASSPHRASE


def test_pgp_uses_default_profile() -> None:
    handle = pgp()

    assert handle.profile.name == "default"
    assert handle.config == PGPConfig()


def test_pgp_crypto_refresh_profile() -> None:
    assert pgp_crypto_refresh().profile.name == "rfc9580"


def test_pgp_with_profile() -> None:
    handle = pgp_with_profile(rfc4880())

    assert handle.profile.name == "rfc4880"
    assert handle.config.profile == "rfc4880"


def test_from_config_unknown_profile_raises() -> None:
    with pytest.raises(ConfigurationError, match="Unknown profile"):
        PGPHandle.from_config(PGPConfig(profile="missing"))


def test_from_config_uses_custom_profiles() -> None:
    custom = {"legacy": rfc4880()}

    handle = PGPHandle.from_config(PGPConfig(profile="legacy"), profiles=custom)

    assert handle.profile is custom["legacy"]


def test_generate_session_key(pgp_handle: PGPHandle) -> None:
    with pgp_handle.generate_session_key() as session_key:
        assert session_key.algorithm == SymmetricAlgorithm.AES_256


def test_lock_key_returns_locked_copy(pgp_handle: PGPHandle, alice_key: Key) -> None:
    locked = pgp_handle.lock_key(alice_key, "another passphrase")

    assert locked.is_locked
    assert not alice_key.is_protected
    assert not locked.unlock("another passphrase").is_locked


def test_lock_key_twice_raises(pgp_handle: PGPHandle, locked_alice_key: Key) -> None:
    with pytest.raises(UsageError):
        pgp_handle.lock_key(locked_alice_key, PASSPHRASE)


def test_compress_config_reaches_encryption(
    alice_public_keys: KeyRing, alice_keys: KeyRing
) -> None:
    handle = PGPHandle.from_config(PGPConfig(compress=True))
    data = b"compressible " * 500

    message = handle.encryption().recipients(alice_public_keys).new().encrypt(data)
    result = handle.decryption().decryption_keys(alice_keys).new().decrypt_split(message)

    assert len(message.data_packet) < len(data)
    assert result.data == data


def test_builders_share_handle_backend(pgp_handle: PGPHandle, alice_keys: KeyRing) -> None:
    signature = pgp_handle.sign().signing_keys(alice_keys).new().sign_detached(b"data")

    verifier = pgp_handle.verify().verification_keys(alice_keys).verify_time(0).new()

    assert verifier.verify_detached(b"data", signature)


def test_locked_keys_cannot_decrypt(pgp_handle: PGPHandle, locked_alice_key: Key) -> None:
    with pytest.raises(LockedKeyError):
        pgp_handle.decryption().decryption_keys(KeyRing([locked_alice_key])).new()


def test_crypto_refresh_session_keys_are_v6() -> None:
    with pgp_crypto_refresh().generate_session_key() as session_key:
        assert session_key.v6
        with pytest.raises(UnsupportedAlgorithmError, match="v6 session keys"):
            session_key.encrypt(b"data")


def test_default_session_keys_are_not_v6(pgp_handle: PGPHandle) -> None:
    with pgp_handle.generate_session_key() as session_key:
        assert not session_key.v6
