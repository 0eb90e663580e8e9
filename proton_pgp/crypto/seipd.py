"""
Symmetrically Encrypted Integrity Protected Data (SEIPD v1) packets.

A data packet is the OpenPGP CFB encryption of a random prefix, the inner packet
stream and a trailing Modification Detection Code (SHA-1 over everything before
it). The cipher comes from the session key, never from a profile.
"""

import hashlib
import hmac
import os

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from proton_pgp.crypto.packets import TAG_SEIPD, encode_packet, iter_packets, packet_body
from proton_pgp.exceptions import EngineError, Operation, UnsupportedAlgorithmError
from proton_pgp.models.crypto import SymmetricAlgorithm

_SEIPD_VERSION = 1
_MDC_HEADER = b"\xd3\x14"
_MDC_PACKET_SIZE = 22  # 2-byte header + 20-byte SHA-1

_AES_ALGORITHMS = frozenset(
    {SymmetricAlgorithm.AES_128, SymmetricAlgorithm.AES_192, SymmetricAlgorithm.AES_256}
)
_CAMELLIA_ALGORITHMS = frozenset(
    {
        SymmetricAlgorithm.CAMELLIA_128,
        SymmetricAlgorithm.CAMELLIA_192,
        SymmetricAlgorithm.CAMELLIA_256,
    }
)
# Ciphers data packets can be encrypted with.
DATA_ALGORITHMS = _AES_ALGORITHMS | _CAMELLIA_ALGORITHMS


def encrypt_data_packet(plaintext: bytes, key: bytes, algorithm: SymmetricAlgorithm) -> bytes:
    """
    Encrypt an inner packet stream into a complete SEIPD packet.

    Raises:
        UnsupportedAlgorithmError: If the cipher is not available.
    """
    block_size = algorithm.block_size
    prefix = os.urandom(block_size)
    prefix += prefix[-2:]

    body = prefix + plaintext + _MDC_HEADER
    body += hashlib.sha1(body).digest()

    encryptor = _cipher(key, algorithm, Operation.ENCRYPT_SESSION_KEY).encryptor()
    ciphertext = encryptor.update(body) + encryptor.finalize()
    return encode_packet(TAG_SEIPD, bytes([_SEIPD_VERSION]) + ciphertext)


def decrypt_data_packet(data_packet: bytes, key: bytes, algorithm: SymmetricAlgorithm) -> bytes:
    """
    Decrypt a SEIPD packet and return the inner packet stream.

    Args:
        data_packet: The SEIPD packet, header included.
        key: Session key bytes.
        algorithm: Cipher of the session key.

    Raises:
        EngineError: If the packet is malformed, the key is wrong or the MDC
            does not match.
    """
    encrypted = _seipd_body(data_packet)
    if not encrypted or encrypted[0] != _SEIPD_VERSION:
        version = encrypted[0] if encrypted else None
        msg = f"unsupported SEIPD version: {version}"
        raise EngineError(msg, operation=Operation.DECRYPT)

    block_size = algorithm.block_size
    ciphertext = encrypted[1:]
    min_size = block_size + 2 + _MDC_PACKET_SIZE
    if len(ciphertext) < min_size:
        msg = f"encrypted data too short: {len(ciphertext)} < {min_size}"
        raise EngineError(msg, operation=Operation.DECRYPT)

    decryptor = _cipher(key, algorithm, Operation.DECRYPT).decryptor()
    plaintext = decryptor.update(ciphertext) + decryptor.finalize()

    # The last two bytes of the random prefix are repeated.
    if plaintext[block_size - 2 : block_size] != plaintext[block_size : block_size + 2]:
        msg = "CFB prefix verification failed, possibly wrong key"
        raise EngineError(msg, operation=Operation.DECRYPT)

    _verify_mdc(plaintext)
    return plaintext[block_size + 2 : -_MDC_PACKET_SIZE]


def _seipd_body(data_packet: bytes) -> bytes:
    packets = list(iter_packets(data_packet))
    seipd = [packet for packet in packets if packet.tag == TAG_SEIPD]
    if len(seipd) != 1:
        msg = f"expected one SEIPD packet, found {len(seipd)}"
        raise EngineError(msg, operation=Operation.DECRYPT)
    return packet_body(data_packet, seipd[0])


def _cipher(key: bytes, algorithm: SymmetricAlgorithm, operation: Operation) -> Cipher:
    if len(key) != algorithm.key_size:
        msg = f"session key is {len(key)} bytes, {algorithm.name} needs {algorithm.key_size}"
        raise EngineError(msg, operation=operation)

    if algorithm not in DATA_ALGORITHMS:
        msg = f"Unsupported symmetric algorithm: {algorithm.name}"
        raise UnsupportedAlgorithmError(msg)

    if algorithm in _AES_ALGORITHMS:
        primitive = algorithms.AES(key)
    else:
        primitive = algorithms.Camellia(key)

    return Cipher(primitive, modes.CFB(bytes(algorithm.block_size)), backend=default_backend())


def _verify_mdc(plaintext: bytes) -> None:
    mdc_packet = plaintext[-_MDC_PACKET_SIZE:]
    if mdc_packet[:2] != _MDC_HEADER:
        msg = f"invalid MDC header: {mdc_packet[:2].hex()}"
        raise EngineError(msg, operation=Operation.DECRYPT)

    computed = hashlib.sha1(plaintext[:-20]).digest()
    if not hmac.compare_digest(computed, mdc_packet[2:]):
        msg = "MDC verification failed, data may be corrupted or tampered"
        raise EngineError(msg, operation=Operation.DECRYPT)
