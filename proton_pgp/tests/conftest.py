import pytest

from proton_pgp.crypto.key_ring import Key, KeyRing
from proton_pgp.crypto.pgp import PGPHandle
from proton_pgp.crypto.pgpy_backend import PgpyBackend
from proton_pgp.models.crypto import SecurityLevel
from proton_pgp.profile import Profile, default

PASSPHRASE = "correct horse battery staple"


@pytest.fixture(scope="session")
def backend() -> PgpyBackend:
    return PgpyBackend()


@pytest.fixture(scope="session")
def profile() -> Profile:
    return default()


@pytest.fixture(scope="session")
def pgp_handle(profile: Profile, backend: PgpyBackend) -> PGPHandle:
    return PGPHandle(profile, backend=backend)


@pytest.fixture(scope="session")
def alice_key(pgp_handle: PGPHandle) -> Key:
    return pgp_handle.generate_key("alice", "alice@proton.me", SecurityLevel.STANDARD)


@pytest.fixture(scope="session")
def bob_key(pgp_handle: PGPHandle) -> Key:
    return pgp_handle.generate_key("bob", "bob@proton.me", SecurityLevel.STANDARD)


@pytest.fixture(scope="session")
def locked_alice_key(pgp_handle: PGPHandle, alice_key: Key) -> Key:
    return pgp_handle.lock_key(alice_key, PASSPHRASE)


@pytest.fixture
def alice_keys(alice_key: Key) -> KeyRing:
    return KeyRing([alice_key])


@pytest.fixture
def alice_public_keys(alice_key: Key) -> KeyRing:
    return KeyRing([alice_key.to_public()])


@pytest.fixture
def bob_keys(bob_key: Key) -> KeyRing:
    return KeyRing([bob_key])


@pytest.fixture
def bob_public_keys(bob_key: Key) -> KeyRing:
    return KeyRing([bob_key.to_public()])
