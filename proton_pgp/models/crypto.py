"""
Cryptographic domain models.

Algorithm identifiers use the OpenPGP registry values so they can be handed to the
packet engine unchanged.
"""

from enum import IntEnum, StrEnum


class SymmetricAlgorithm(IntEnum):
    """OpenPGP symmetric algorithm identifiers."""

    PLAINTEXT = 0
    IDEA = 1
    TRIPLE_DES = 2
    CAST5 = 3
    BLOWFISH = 4
    AES_128 = 7
    AES_192 = 8
    AES_256 = 9
    TWOFISH = 10
    CAMELLIA_128 = 11
    CAMELLIA_192 = 12
    CAMELLIA_256 = 13

    @property
    def key_size(self) -> int:
        """Get key size in bytes for this algorithm."""
        match self:
            case self.AES_128 | self.CAST5 | self.BLOWFISH | self.CAMELLIA_128 | self.IDEA:
                return 16
            case self.AES_192 | self.TRIPLE_DES | self.CAMELLIA_192:
                return 24
            case self.AES_256 | self.TWOFISH | self.CAMELLIA_256:
                return 32
            case _:
                return 0

    @property
    def block_size(self) -> int:
        """Get block size in bytes for this algorithm."""
        match self:
            case self.CAST5 | self.BLOWFISH | self.TRIPLE_DES | self.IDEA:
                return 8
            case (
                self.AES_128
                | self.AES_192
                | self.AES_256
                | self.TWOFISH
                | self.CAMELLIA_128
                | self.CAMELLIA_192
                | self.CAMELLIA_256
            ):
                return 16
            case _:
                return 0


class PublicKeyAlgorithm(IntEnum):
    """OpenPGP public key algorithm identifiers."""

    RSA_ENCRYPT_OR_SIGN = 1
    RSA_ENCRYPT_ONLY = 2
    RSA_SIGN_ONLY = 3
    ELGAMAL_ENCRYPT_ONLY = 16
    DSA = 17
    ECDH = 18
    ECDSA = 19
    ELGAMAL_ENCRYPT_OR_SIGN = 20
    EDDSA = 22
    X25519 = 25
    X448 = 26
    ED25519 = 27
    ED448 = 28


class Curve(StrEnum):
    """Named curves used by legacy (v4) elliptic keys."""

    CURVE25519 = "curve25519"
    CURVE448 = "curve448"
    P256 = "p256"
    P384 = "p384"
    P521 = "p521"


class HashAlgorithm(IntEnum):
    """OpenPGP hash algorithm identifiers."""

    MD5 = 1
    SHA1 = 2
    RIPEMD160 = 3
    SHA256 = 8
    SHA384 = 9
    SHA512 = 10
    SHA224 = 11
    SHA3_256 = 12
    SHA3_512 = 14


class CompressionAlgorithm(IntEnum):
    """OpenPGP compression algorithm identifiers."""

    NONE = 0
    ZIP = 1
    ZLIB = 2
    BZIP2 = 3


class AEADMode(IntEnum):
    """OpenPGP AEAD mode identifiers."""

    EAX = 1
    OCB = 2
    GCM = 3


class S2KMode(IntEnum):
    """OpenPGP string-to-key specifiers."""

    SIMPLE = 0
    SALTED = 1
    ITERATED_SALTED = 3
    ARGON2 = 4


class KeyAlgorithm(StrEnum):
    """Family of key algorithms a profile generates."""

    RSA = "rsa"
    ELLIPTIC = "elliptic"


class SecurityLevel(IntEnum):
    """Security level consumed by key generation."""

    STANDARD = 0
    HIGH = 1
