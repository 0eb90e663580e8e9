"""
Algorithm profiles.

A Profile is a named bundle of algorithm choices. Every configuration the engine
uses is a pure projection of exactly one Profile; producing one never mutates it.
"""

from collections.abc import Mapping
from dataclasses import dataclass

from proton_pgp.exceptions import ConfigurationError
from proton_pgp.models.crypto import (
    AEADMode,
    CompressionAlgorithm,
    Curve,
    HashAlgorithm,
    KeyAlgorithm,
    PublicKeyAlgorithm,
    S2KMode,
    SecurityLevel,
    SymmetricAlgorithm,
)


@dataclass(frozen=True)
class AEADConfig:
    mode: AEADMode = AEADMode.OCB
    chunk_size_byte: int = 12


@dataclass(frozen=True)
class S2KConfig:
    mode: S2KMode = S2KMode.ITERATED_SALTED
    hash: HashAlgorithm = HashAlgorithm.SHA256


@dataclass(frozen=True)
class CompressionParameters:
    level: int = 6

    def __post_init__(self) -> None:
        if not 0 <= self.level <= 9:
            msg = "compression level must be between 0 and 9"
            raise ValueError(msg)


@dataclass(frozen=True, kw_only=True)
class PacketConfig:
    """
    Parameters handed to the packet engine for a single operation.

    Fields left at their defaults mean "not set by this projection".
    """

    default_hash: HashAlgorithm | None = None
    default_cipher: SymmetricAlgorithm | None = None
    aead: AEADConfig | None = None
    s2k: S2KConfig | None = None
    default_compression: CompressionAlgorithm = CompressionAlgorithm.NONE
    compression: CompressionParameters | None = None
    algorithm: PublicKeyAlgorithm | None = None
    rsa_bits: int | None = None
    curve: Curve | None = None
    v6_keys: bool = False

    @property
    def cipher(self) -> SymmetricAlgorithm:
        return self.default_cipher or SymmetricAlgorithm.AES_128

    @property
    def hash(self) -> HashAlgorithm:
        return self.default_hash or HashAlgorithm.SHA256

    @property
    def v6(self) -> bool:
        return self.v6_keys


@dataclass(frozen=True, kw_only=True)
class Profile:
    """
    Named algorithm suite.

    Attributes:
        name: Profile name.
        key_algorithm: Family of keys generated with this profile.
        hash: Default hash for key generation and encryption.
        cipher_key_encryption: Cipher locking private key material.
        aead_key_encryption: AEAD mode locking private key material, if any.
        s2k_key_encryption: S2K parameters locking private key material.
        cipher_encryption: Cipher encrypting messages.
        aead_encryption: AEAD mode for messages, if any.
        s2k_encryption: S2K parameters for password-encrypted messages.
        compression_algorithm: Compression applied when compression is enabled.
        compression: Compression parameters.
        hash_sign: Hash used for signatures.
        v6: Whether generated keys use the v6 key format.
    """

    name: str
    key_algorithm: KeyAlgorithm
    hash: HashAlgorithm
    cipher_key_encryption: SymmetricAlgorithm = SymmetricAlgorithm.AES_256
    aead_key_encryption: AEADConfig | None = None
    s2k_key_encryption: S2KConfig | None = None
    cipher_encryption: SymmetricAlgorithm = SymmetricAlgorithm.AES_256
    aead_encryption: AEADConfig | None = None
    s2k_encryption: S2KConfig | None = None
    compression_algorithm: CompressionAlgorithm = CompressionAlgorithm.NONE
    compression: CompressionParameters | None = None
    hash_sign: HashAlgorithm = HashAlgorithm.SHA512
    v6: bool = False

    @classmethod
    def with_name(cls, name: str, profiles: Mapping[str, "Profile"] | None = None) -> "Profile":
        """
        Look up a profile by name.

        Args:
            name: Profile name.
            profiles: Mapping to search. Defaults to the built-in presets.

        Raises:
            ConfigurationError: If no profile has that name.
        """
        registry = profiles if profiles is not None else builtin_profiles()
        try:
            return registry[name]
        except KeyError:
            msg = f"Unknown profile: {name}"
            raise ConfigurationError(msg) from None

    def key_generation_config(self, level: SecurityLevel) -> PacketConfig:
        algorithm, rsa_bits, curve = self._key_algorithm_for(level)
        return PacketConfig(
            default_hash=self.hash,
            default_cipher=self.cipher_encryption,
            aead=self.aead_encryption,
            default_compression=self.compression_algorithm,
            compression=self.compression,
            algorithm=algorithm,
            rsa_bits=rsa_bits,
            curve=curve,
            v6_keys=self.v6,
        )

    def encryption_config(self) -> PacketConfig:
        return PacketConfig(
            default_hash=self.hash,
            default_cipher=self.cipher_encryption,
            aead=self.aead_encryption,
            s2k=self.s2k_encryption,
        )

    def key_encryption_config(self) -> PacketConfig:
        return PacketConfig(
            default_hash=self.hash,
            default_cipher=self.cipher_key_encryption,
            aead=self.aead_key_encryption,
            s2k=self.s2k_key_encryption,
        )

    def sign_config(self) -> PacketConfig:
        return PacketConfig(default_hash=self.hash_sign)

    def compression_config(self) -> PacketConfig:
        return PacketConfig(
            default_compression=self.compression_algorithm,
            compression=self.compression,
        )

    def _key_algorithm_for(
        self, level: SecurityLevel
    ) -> tuple[PublicKeyAlgorithm, int | None, Curve | None]:
        if self.key_algorithm == KeyAlgorithm.RSA:
            bits = 4096 if level == SecurityLevel.HIGH else 3072
            return PublicKeyAlgorithm.RSA_ENCRYPT_OR_SIGN, bits, None

        if level == SecurityLevel.HIGH:
            if self.v6:
                return PublicKeyAlgorithm.ED448, None, None
            return PublicKeyAlgorithm.EDDSA, None, Curve.CURVE448

        if self.v6:
            return PublicKeyAlgorithm.ED25519, None, None
        return PublicKeyAlgorithm.EDDSA, None, Curve.CURVE25519


def default() -> Profile:
    return Profile(
        name="default",
        key_algorithm=KeyAlgorithm.ELLIPTIC,
        hash=HashAlgorithm.SHA512,
        cipher_key_encryption=SymmetricAlgorithm.AES_256,
        s2k_key_encryption=S2KConfig(),
        cipher_encryption=SymmetricAlgorithm.AES_256,
        s2k_encryption=S2KConfig(),
        compression_algorithm=CompressionAlgorithm.ZLIB,
        compression=CompressionParameters(level=6),
        hash_sign=HashAlgorithm.SHA512,
    )


def rfc4880() -> Profile:
    return Profile(
        name="rfc4880",
        key_algorithm=KeyAlgorithm.RSA,
        hash=HashAlgorithm.SHA256,
        cipher_key_encryption=SymmetricAlgorithm.AES_256,
        s2k_key_encryption=S2KConfig(),
        cipher_encryption=SymmetricAlgorithm.AES_256,
        s2k_encryption=S2KConfig(),
        compression_algorithm=CompressionAlgorithm.ZLIB,
        compression=CompressionParameters(level=6),
        hash_sign=HashAlgorithm.SHA256,
    )


def crypto_refresh() -> Profile:
    argon2 = S2KConfig(mode=S2KMode.ARGON2, hash=HashAlgorithm.SHA256)
    return Profile(
        name="rfc9580",
        key_algorithm=KeyAlgorithm.ELLIPTIC,
        hash=HashAlgorithm.SHA512,
        cipher_key_encryption=SymmetricAlgorithm.AES_256,
        aead_key_encryption=AEADConfig(),
        s2k_key_encryption=argon2,
        cipher_encryption=SymmetricAlgorithm.AES_256,
        aead_encryption=AEADConfig(),
        s2k_encryption=argon2,
        compression_algorithm=CompressionAlgorithm.ZLIB,
        compression=CompressionParameters(level=6),
        hash_sign=HashAlgorithm.SHA512,
        v6=True,
    )


def builtin_profiles() -> dict[str, Profile]:
    """Fresh mapping of the preset profiles, keyed by name."""
    presets = (default(), rfc4880(), crypto_refresh())
    return {profile.name: profile for profile in presets}
