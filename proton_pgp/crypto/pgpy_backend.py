"""
Packet engine implementation using the pgpy library.

pgpy handles keys, signatures and session key packets. Data packets are produced
by the SEIPD codec so that the session key stays under our control.
"""

from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import UTC, datetime

import pgpy
import structlog
from pgpy.constants import (
    CompressionAlgorithm as PgpyCompression,
    EllipticCurveOID,
    HashAlgorithm as PgpyHash,
    KeyFlags,
    PubKeyAlgorithm,
    SignatureType,
    SymmetricKeyAlgorithm,
)
from pgpy.errors import PGPError
from pgpy.packet import Packet
from pgpy.packet.packets import PKESessionKey, SKESessionKey

from proton_pgp.crypto.key_ring import Key
from proton_pgp.crypto.packets import (
    TAG_PKESK,
    TAG_SKESK,
    WILDCARD_KEY_ID,
    iter_packets,
    replace_recipient_key_ids,
    split_packets,
)
from proton_pgp.crypto.protocol import SignatureInfo
from proton_pgp.crypto.secure_bytes import SecureBytes
from proton_pgp.crypto.seipd import DATA_ALGORITHMS, decrypt_data_packet, encrypt_data_packet
from proton_pgp.exceptions import (
    EngineError,
    Operation,
    ProtonPGPError,
    SessionKeyError,
    UnsupportedAlgorithmError,
    UsageError,
)
from proton_pgp.models.crypto import (
    CompressionAlgorithm,
    Curve,
    PublicKeyAlgorithm,
    S2KMode,
    SymmetricAlgorithm,
)
from proton_pgp.profile import PacketConfig

logger = structlog.get_logger(__name__)

_WILDCARD = WILDCARD_KEY_ID.hex().upper()
_ENCRYPTION_ALGORITHMS = frozenset(
    {
        PubKeyAlgorithm.RSAEncryptOrSign,
        PubKeyAlgorithm.RSAEncrypt,
        PubKeyAlgorithm.ElGamal,
        PubKeyAlgorithm.ECDH,
    }
)


@contextmanager
def engine_operation(operation: Operation) -> Iterator[None]:
    """Wrap any pgpy failure in an EngineError carrying ``operation``."""
    try:
        yield
    except ProtonPGPError:
        raise
    except Exception as e:
        msg = str(e) or type(e).__name__
        raise EngineError(msg, operation=operation) from e


def to_datetime(timestamp: int | datetime | None) -> datetime | None:
    if timestamp is None or isinstance(timestamp, datetime):
        return timestamp
    return datetime.fromtimestamp(timestamp, tz=UTC)


def to_timestamp(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return int(value.timestamp())


def check_packet_config(config: PacketConfig) -> None:
    """
    Raises:
        UnsupportedAlgorithmError: If ``config`` asks for AEAD or Argon2, which the
            packet engine does not implement.
    """
    if config.aead is not None:
        msg = f"AEAD ({config.aead.mode.name}) is not supported by the packet engine"
        raise UnsupportedAlgorithmError(msg)
    if config.s2k is not None and config.s2k.mode == S2KMode.ARGON2:
        msg = "Argon2 S2K is not supported by the packet engine"
        raise UnsupportedAlgorithmError(msg)


def _checked_session_key(
    algorithm: object, key: bytes
) -> tuple[SymmetricAlgorithm, bytes] | None:
    """
    Validate a decrypted session key. A wrong password or key yields random bytes,
    which rarely name a usable cipher of the right size.
    """
    try:
        cipher = SymmetricAlgorithm(int(algorithm))
    except ValueError:
        return None
    if cipher not in DATA_ALGORITHMS or len(key) != cipher.key_size:
        logger.debug("Key packet yielded an unusable session key", algorithm=cipher.name)
        return None
    return cipher, bytes(key)


class PgpyBackend:
    """
    Packet engine backed by pgpy.

    Example:
        backend = PgpyBackend()
        key = backend.generate_key("alice", "alice@proton.me", profile.key_generation_config(level))
        signature = backend.sign(key, b"data", profile.sign_config())
    """

    def generate_key(self, name: str, email: str, config: PacketConfig) -> Key:
        """
        Generate a private key with a certifying/signing primary key and an
        encryption subkey.

        Raises:
            UnsupportedAlgorithmError: For v6 keys and curves pgpy cannot generate.
            EngineError: If pgpy fails to build the key.
        """
        if config.v6:
            msg = "v6 keys are not supported by the packet engine"
            raise UnsupportedAlgorithmError(msg)

        primary_spec, subkey_spec = self._key_specs(config)
        with engine_operation(Operation.GENERATE_KEY):
            key = pgpy.PGPKey.new(*primary_spec)
            uid = pgpy.PGPUID.new(name, email=email)
            key.add_uid(
                uid,
                usage={KeyFlags.Sign, KeyFlags.Certify},
                hashes=[PgpyHash(config.hash), PgpyHash.SHA256],
                ciphers=[SymmetricKeyAlgorithm(config.cipher), SymmetricKeyAlgorithm.AES128],
                compression=self._compression_preferences(config),
            )
            subkey = pgpy.PGPKey.new(*subkey_spec)
            key.add_subkey(subkey, usage={KeyFlags.EncryptCommunications, KeyFlags.EncryptStorage})

        generated = Key(key)
        logger.debug("Generated key", key_id=generated.key_id, algorithm=config.algorithm)
        return generated

    def lock_key(self, key: Key, passphrase: SecureBytes, config: PacketConfig) -> Key:
        """
        Lock a copy of ``key`` with ``passphrase``.

        Raises:
            UsageError: If the key is public or already protected.
        """
        if not key.is_private or key.is_protected:
            msg = "Only unprotected private keys can be locked"
            raise UsageError(msg)
        check_packet_config(config)

        with engine_operation(Operation.LOCK_KEY):
            copy, _ = pgpy.PGPKey.from_blob(key.serialize())
            s2k_hash = config.s2k.hash if config.s2k is not None else config.hash
            copy.protect(
                passphrase.decode(),
                SymmetricKeyAlgorithm(config.cipher),
                PgpyHash(s2k_hash),
            )
        return Key(copy)

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
        prefs: dict = {"hash": PgpyHash(config.hash), "notation": dict(notations or {})}
        if created is not None:
            prefs["created"] = created

        with engine_operation(Operation.SIGN), key.unlocked() as pgp_key:
            # A cleartext message makes pgpy issue a canonical text signature.
            subject = pgpy.PGPMessage.new(data, cleartext=True) if text else data
            signature = pgp_key.sign(subject, **prefs)
            return bytes(signature)

    def inline_signed(self, literal: bytes, signatures: Sequence[bytes]) -> bytes:
        with engine_operation(Operation.SIGN):
            message = pgpy.PGPMessage.from_blob(literal)
            for raw in signatures:
                message |= pgpy.PGPSignature.from_blob(raw)
            return bytes(message)

    def signature_info(self, signature: bytes) -> SignatureInfo:
        with engine_operation(Operation.VERIFY):
            parsed = pgpy.PGPSignature.from_blob(signature)
            expires_at = parsed.expires_at
            return SignatureInfo(
                signer=str(parsed.signer).upper(),
                created=to_timestamp(parsed.created),
                expires=to_timestamp(expires_at) if expires_at is not None else None,
                notations=dict(parsed.notation),
                is_text=parsed.type == SignatureType.CanonicalDocument,
            )

    def verify(self, key: Key, data: bytes, signature: bytes) -> bool:
        with engine_operation(Operation.VERIFY):
            parsed = pgpy.PGPSignature.from_blob(signature)
        if str(parsed.signer).upper() not in key.key_ids:
            return False
        try:
            return bool(key.public_pgpy_key.verify(data, parsed))
        except PGPError as e:
            logger.debug("Signature check rejected", key_id=key.key_id, error=str(e))
            return False

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
        """
        Produce key packets for an existing session key.

        pgpy only emits session key packets while encrypting a message, so an
        empty message is encrypted and only its key packets are kept. Hidden
        recipients get the wildcard key id.
        """
        cipher = SymmetricKeyAlgorithm(algorithm)
        message = pgpy.PGPMessage.new(b"")

        if password is not None:
            check_packet_config(config)
            s2k_hash = config.s2k.hash if config.s2k is not None else config.hash
            with engine_operation(Operation.ENCRYPT_PASSWORD):
                message = message.encrypt(
                    password.decode(), sessionkey=key, cipher=cipher, hash=PgpyHash(s2k_hash)
                )

        with engine_operation(Operation.ENCRYPT_ASYMMETRIC):
            for recipient in (*recipients, *hidden_recipients):
                message = recipient.public_pgpy_key.encrypt(message, cipher=cipher, sessionkey=key)

        with engine_operation(Operation.SERIALIZE):
            key_packets, _ = split_packets(bytes(message))

        hidden_ids = frozenset().union(*(recipient.key_ids for recipient in hidden_recipients))
        if hidden_ids:
            key_packets = replace_recipient_key_ids(key_packets, hidden_ids)
        return key_packets

    def decrypt_session_key(
        self,
        key_packets: bytes,
        *,
        keys: Sequence[Key] = (),
        password: SecureBytes | None = None,
    ) -> tuple[SymmetricAlgorithm, bytes]:
        """
        Try every key packet against every key (and the password) until one
        yields the session key. Wildcard PKESKs are tried with every subkey.

        Raises:
            SessionKeyError: If no packet could be decrypted.
        """
        with engine_operation(Operation.DECRYPT_SESSION_KEY):
            parsed = [
                Packet(bytearray(key_packets[packet.start : packet.end]))
                for packet in iter_packets(key_packets)
                if packet.tag in (TAG_PKESK, TAG_SKESK)
            ]

        attempts = 0
        for packet in parsed:
            if isinstance(packet, PKESessionKey):
                for key in keys:
                    attempts += 1
                    result = self._decrypt_pkesk(packet, key)
                    if result is not None:
                        return result
            elif isinstance(packet, SKESessionKey) and password is not None:
                attempts += 1
                result = self._decrypt_skesk(packet, password)
                if result is not None:
                    return result

        msg = f"no key packet could be decrypted ({len(parsed)} packets, {attempts} attempts)"
        raise SessionKeyError(msg, operation=Operation.DECRYPT_SESSION_KEY)

    def encrypt_data(self, plaintext: bytes, key: bytes, algorithm: SymmetricAlgorithm) -> bytes:
        return encrypt_data_packet(plaintext, key, algorithm)

    def decrypt_data(self, data_packet: bytes, key: bytes, algorithm: SymmetricAlgorithm) -> bytes:
        return decrypt_data_packet(data_packet, key, algorithm)

    def _decrypt_pkesk(
        self, packet: PKESessionKey, key: Key
    ) -> tuple[SymmetricAlgorithm, bytes] | None:
        encrypter = str(packet.encrypter).upper()
        if encrypter != _WILDCARD and encrypter not in key.key_ids:
            return None

        with key.unlocked() as pgp_key:
            for candidate in self._decryption_subkeys(pgp_key):
                if encrypter not in (_WILDCARD, str(candidate.fingerprint.keyid)):
                    continue
                if packet.pkalg != candidate.key_algorithm:
                    continue
                try:
                    algorithm, session_key = packet.decrypt_sk(candidate._key)
                except Exception as e:
                    logger.debug(
                        "Key packet rejected", key_id=str(candidate.fingerprint.keyid), error=str(e)
                    )
                    continue
                result = _checked_session_key(algorithm, session_key)
                if result is not None:
                    return result
        return None

    @staticmethod
    def _decrypt_skesk(
        packet: SKESessionKey, password: SecureBytes
    ) -> tuple[SymmetricAlgorithm, bytes] | None:
        try:
            algorithm, session_key = packet.decrypt_sk(password.decode())
        except Exception as e:
            logger.debug("Password key packet rejected", error=str(e))
            return None
        return _checked_session_key(algorithm, session_key)

    @staticmethod
    def _decryption_subkeys(key: pgpy.PGPKey) -> list[pgpy.PGPKey]:
        candidates = [*key.subkeys.values(), key]
        return [
            candidate
            for candidate in candidates
            if not candidate.is_public and candidate.key_algorithm in _ENCRYPTION_ALGORITHMS
        ]

    @staticmethod
    def _key_specs(config: PacketConfig) -> tuple[tuple, tuple]:
        match config.algorithm:
            case PublicKeyAlgorithm.RSA_ENCRYPT_OR_SIGN:
                bits = config.rsa_bits or 3072
                return (
                    (PubKeyAlgorithm.RSAEncryptOrSign, bits),
                    (PubKeyAlgorithm.RSAEncryptOrSign, bits),
                )
            case PublicKeyAlgorithm.EDDSA if config.curve in (None, Curve.CURVE25519):
                return (
                    (PubKeyAlgorithm.EdDSA, EllipticCurveOID.Ed25519),
                    (PubKeyAlgorithm.ECDH, EllipticCurveOID.Curve25519),
                )
        detail = f"{config.algorithm!r}" + (f" on {config.curve}" if config.curve else "")
        msg = f"Key algorithm not supported by the packet engine: {detail}"
        raise UnsupportedAlgorithmError(msg)

    @staticmethod
    def _compression_preferences(config: PacketConfig) -> list[PgpyCompression]:
        preferences = [PgpyCompression.ZLIB, PgpyCompression.ZIP, PgpyCompression.Uncompressed]
        if config.default_compression != CompressionAlgorithm.NONE:
            preferred = PgpyCompression(config.default_compression)
            preferences = [preferred, *(p for p in preferences if p != preferred)]
        return preferences

