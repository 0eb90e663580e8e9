"""
Entry point handle.

A PGPHandle binds one algorithm profile and hands out pre-configured builders.
"""

import structlog

from proton_pgp.config import PGPConfig
from proton_pgp.crypto.decryption import DecryptionHandleBuilder
from proton_pgp.crypto.encryption import EncryptionHandleBuilder
from proton_pgp.crypto.key_ring import Key, to_secure_bytes
from proton_pgp.crypto.pgpy_backend import PgpyBackend
from proton_pgp.crypto.protocol import PacketEngine
from proton_pgp.crypto.secure_bytes import SecureBytes
from proton_pgp.crypto.session_key import SessionKey
from proton_pgp.crypto.sign import SignHandleBuilder
from proton_pgp.crypto.verify import VerifyHandleBuilder
from proton_pgp.models.crypto import SecurityLevel
from proton_pgp.profile import Profile, crypto_refresh

logger = structlog.get_logger(__name__)


class PGPHandle:
    """
    Factory for encryption, decryption, signing and verification handles.

    Example:
        pgp = PGPHandle.from_config(PGPConfig())
        key = pgp.generate_key("alice", "alice@proton.me")
        keys = KeyRing([key])
        message = pgp.encryption().recipients(keys).new().encrypt(b"hello")
        result = pgp.decryption().decryption_keys(keys).new().decrypt_split(message)
    """

    def __init__(
        self,
        profile: Profile,
        *,
        config: PGPConfig | None = None,
        backend: PacketEngine | None = None,
    ) -> None:
        self._profile = profile
        self._config = config or PGPConfig(profile=profile.name)
        self._backend = backend or PgpyBackend()

    @classmethod
    def from_config(
        cls,
        config: PGPConfig,
        *,
        profiles: dict[str, Profile] | None = None,
        backend: PacketEngine | None = None,
    ) -> "PGPHandle":
        """
        Raises:
            ConfigurationError: If ``config.profile`` names no known profile.
        """
        profile = Profile.with_name(config.profile, profiles)
        return cls(profile, config=config, backend=backend)

    @property
    def profile(self) -> Profile:
        return self._profile

    @property
    def config(self) -> PGPConfig:
        return self._config

    def encryption(self) -> EncryptionHandleBuilder:
        return EncryptionHandleBuilder(
            self._profile,
            compress=self._config.compress,
            utf8=self._config.utf8,
            backend=self._backend,
        )

    def decryption(self) -> DecryptionHandleBuilder:
        return DecryptionHandleBuilder(backend=self._backend)

    def sign(self) -> SignHandleBuilder:
        return SignHandleBuilder(self._profile, utf8=self._config.utf8, backend=self._backend)

    def verify(self) -> VerifyHandleBuilder:
        return VerifyHandleBuilder(
            creation_time_offset=self._config.creation_time_offset, backend=self._backend
        )

    def generate_key(
        self, name: str, email: str, level: SecurityLevel = SecurityLevel.STANDARD
    ) -> Key:
        """
        Generate an unlocked private key using the profile's key algorithm.

        Raises:
            UnsupportedAlgorithmError: If the packet engine cannot generate that
                algorithm (v6 keys, Curve448).
        """
        return self._backend.generate_key(
            name, email, self._profile.key_generation_config(level)
        )

    def generate_session_key(self) -> SessionKey:
        """Fresh session key for the profile's message cipher. The caller owns it."""
        return SessionKey.generate(self._profile.encryption_config(), backend=self._backend)

    def lock_key(self, key: Key, passphrase: SecureBytes | bytes | str) -> Key:
        """Copy of ``key`` protected with ``passphrase`` using the profile's key encryption."""
        secret = to_secure_bytes(passphrase)
        try:
            locked = self._backend.lock_key(key, secret, self._profile.key_encryption_config())
        finally:
            secret.clear()
        logger.debug("Locked key", key_id=locked.key_id, profile=self._profile.name)
        return locked


def pgp(config: PGPConfig | None = None) -> PGPHandle:
    """Handle using the profile named by ``config`` (the default profile otherwise)."""
    return PGPHandle.from_config(config or PGPConfig())


def pgp_crypto_refresh() -> PGPHandle:
    """Handle using the RFC 9580 profile."""
    return pgp_with_profile(crypto_refresh())


def pgp_with_profile(profile: Profile) -> PGPHandle:
    return PGPHandle(profile)
