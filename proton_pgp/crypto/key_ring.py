"""
Keys and keyrings.

A Key wraps a pgpy key together with the passphrase that unlocks it, so the
private material is only decrypted inside the operation that needs it. KeyRings
are read-only for every engine operation and may be shared between calls.
"""

from collections.abc import Iterable, Iterator
from contextlib import contextmanager

import pgpy
import structlog
from pgpy.errors import PGPDecryptionError, PGPError

from proton_pgp.crypto.secure_bytes import SecureBytes
from proton_pgp.exceptions import ConfigurationError, EngineError, LockedKeyError, Operation
from proton_pgp.models.crypto import PublicKeyAlgorithm

logger = structlog.get_logger(__name__)

_SIGNING_ALGORITHMS = frozenset(
    {
        PublicKeyAlgorithm.RSA_ENCRYPT_OR_SIGN,
        PublicKeyAlgorithm.RSA_SIGN_ONLY,
        PublicKeyAlgorithm.DSA,
        PublicKeyAlgorithm.ECDSA,
        PublicKeyAlgorithm.EDDSA,
        PublicKeyAlgorithm.ED25519,
        PublicKeyAlgorithm.ED448,
    }
)
_ENCRYPTION_ALGORITHMS = frozenset(
    {
        PublicKeyAlgorithm.RSA_ENCRYPT_OR_SIGN,
        PublicKeyAlgorithm.RSA_ENCRYPT_ONLY,
        PublicKeyAlgorithm.ELGAMAL_ENCRYPT_ONLY,
        PublicKeyAlgorithm.ELGAMAL_ENCRYPT_OR_SIGN,
        PublicKeyAlgorithm.ECDH,
        PublicKeyAlgorithm.X25519,
        PublicKeyAlgorithm.X448,
    }
)


def _algorithm_of(key: pgpy.PGPKey) -> PublicKeyAlgorithm | None:
    try:
        return PublicKeyAlgorithm(int(key.key_algorithm))
    except ValueError:
        return None


class Key:
    """
    An OpenPGP key, public or private.

    Private keys protected by a passphrase are locked until unlock() returns a
    Key that carries the passphrase.
    """

    def __init__(self, key: pgpy.PGPKey, passphrase: SecureBytes | None = None) -> None:
        self._key = key
        self._passphrase = passphrase

    @classmethod
    def from_armored(cls, armored: str | bytes) -> "Key":
        """
        Load a key from ASCII-armored or binary form.

        Raises:
            EngineError: If the key cannot be parsed.
        """
        try:
            key, _ = pgpy.PGPKey.from_blob(armored)
        except (PGPError, ValueError, TypeError) as e:
            msg = f"failed to load key: {e}"
            raise EngineError(msg, operation=Operation.PARSE) from e
        return cls(key)

    @property
    def pgpy_key(self) -> pgpy.PGPKey:
        return self._key

    @property
    def public_pgpy_key(self) -> pgpy.PGPKey:
        return self._key if self._key.is_public else self._key.pubkey

    @property
    def key_id(self) -> str:
        return str(self._key.fingerprint.keyid)

    @property
    def fingerprint(self) -> str:
        return str(self._key.fingerprint).replace(" ", "")

    @property
    def key_ids(self) -> frozenset[str]:
        """Key ids of the primary key and all subkeys."""
        return frozenset({self.key_id, *(str(key_id) for key_id in self._key.subkeys)})

    @property
    def is_private(self) -> bool:
        return not self._key.is_public

    @property
    def is_protected(self) -> bool:
        return self.is_private and bool(self._key.is_protected)

    @property
    def is_locked(self) -> bool:
        return self.is_protected and self._passphrase is None

    @property
    def can_sign(self) -> bool:
        return _algorithm_of(self._key) in _SIGNING_ALGORITHMS

    @property
    def can_encrypt(self) -> bool:
        keys = [self._key, *self._key.subkeys.values()]
        return any(_algorithm_of(key) in _ENCRYPTION_ALGORITHMS for key in keys)

    def unlock(self, passphrase: SecureBytes | bytes | str) -> "Key":
        """
        Return a copy of this key able to use its private material.

        Args:
            passphrase: Key passphrase.

        Raises:
            LockedKeyError: If the key is public or the passphrase is wrong.
        """
        if not self.is_private:
            msg = "Cannot unlock a public key"
            raise LockedKeyError(msg, key_id=self.key_id)
        if not self.is_protected:
            return Key(self._key)

        secret = to_secure_bytes(passphrase)
        try:
            with self._key.unlock(secret.decode()):
                pass
        except (PGPDecryptionError, PGPError, ValueError) as e:
            secret.clear()
            msg = f"Failed to unlock key: {e}"
            raise LockedKeyError(msg, key_id=self.key_id) from e

        logger.debug("Unlocked key", key_id=self.key_id)
        return Key(self._key, secret)

    @contextmanager
    def unlocked(self) -> Iterator[pgpy.PGPKey]:
        """
        Yield the pgpy key with its private material decrypted.

        Raises:
            LockedKeyError: If the key is public or has not been unlocked.
        """
        if not self.is_private:
            msg = "Private key material required"
            raise LockedKeyError(msg, key_id=self.key_id)
        if not self.is_protected:
            yield self._key
            return
        if self._passphrase is None or self._passphrase.is_cleared:
            msg = "Key is locked"
            raise LockedKeyError(msg, key_id=self.key_id)
        with self._key.unlock(self._passphrase.decode()):
            yield self._key

    def to_public(self) -> "Key":
        if not self.is_private:
            return self
        return Key(self._key.pubkey)

    def armor(self) -> str:
        return str(self._key)

    def serialize(self) -> bytes:
        return bytes(self._key)

    def clear_private_params(self) -> None:
        """Forget the passphrase; the key is locked again afterwards."""
        if self._passphrase is not None:
            self._passphrase.clear()
            self._passphrase = None

    def __repr__(self) -> str:
        kind = "private" if self.is_private else "public"
        state = ", locked" if self.is_locked else ""
        return f"Key({self.key_id}, {kind}{state})"


class KeyRing:
    """Ordered collection of keys."""

    def __init__(self, keys: Iterable[Key] = ()) -> None:
        self._keys: list[Key] = list(keys)

    @classmethod
    def from_armored(cls, *armored: str | bytes) -> "KeyRing":
        return cls(Key.from_armored(blob) for blob in armored)

    def add_key(self, key: Key) -> None:
        self._keys.append(key)

    @property
    def keys(self) -> tuple[Key, ...]:
        return tuple(self._keys)

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[Key]:
        return iter(self._keys)

    def __bool__(self) -> bool:
        return bool(self._keys)

    def signing_key(self) -> Key:
        """
        First private key able to sign.

        Raises:
            LockedKeyError: If that key is still locked.
            ConfigurationError: If no private signing key is present.
        """
        for key in self._keys:
            if key.is_private and key.can_sign:
                if key.is_locked:
                    msg = "Cannot sign message, signer key is not unlocked"
                    raise LockedKeyError(msg, key_id=key.key_id)
                return key
        msg = "No private signing key in keyring"
        raise ConfigurationError(msg)

    def encryption_keys(self) -> list[Key]:
        """Public counterparts of the keys able to encrypt."""
        return [key.to_public() for key in self._keys if key.can_encrypt]

    def decryption_keys(self) -> list[Key]:
        """Private keys whose material can be used right now."""
        return [key for key in self._keys if key.is_private and not key.is_locked]

    def find_by_key_id(self, key_id: str) -> Key | None:
        wanted = key_id.upper()
        for key in self._keys:
            if wanted in key.key_ids:
                return key
        return None

    def key_ids(self) -> frozenset[str]:
        return frozenset().union(*(key.key_ids for key in self._keys))

    def clear_private_params(self) -> None:
        for key in self._keys:
            key.clear_private_params()


def to_secure_bytes(value: SecureBytes | bytes | str) -> SecureBytes:
    if isinstance(value, SecureBytes):
        return value.copy()
    if isinstance(value, str):
        return SecureBytes.from_string(value)
    return SecureBytes(value)
