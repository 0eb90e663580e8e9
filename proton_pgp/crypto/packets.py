"""
Packet-level framing helpers.

These helpers walk packet headers so a message can be split into its key-packet
and data-packet channels. They also frame the literal and compressed packets that
go inside a data packet.
"""

import bz2
import re
import zlib
from collections.abc import Collection, Iterator
from dataclasses import dataclass, field

import pgpy
from pgpy.errors import PGPError
from pgpy.types import Armorable

from proton_pgp.exceptions import EngineError, Operation
from proton_pgp.models.crypto import CompressionAlgorithm
from proton_pgp.models.message import LiteralMetadata, PlainMessage

TAG_PKESK = 1
TAG_SIGNATURE = 2
TAG_SKESK = 3
TAG_ONE_PASS_SIGNATURE = 4
TAG_COMPRESSED = 8
TAG_LITERAL = 11
TAG_SEIPD = 18
KEY_PACKET_TAGS = frozenset({TAG_PKESK, TAG_SKESK})

WILDCARD_KEY_ID = bytes(8)
_PKESK_V3 = 3
_TRAILING_WHITESPACE = re.compile(r"[ \t]+(?=\r?$)", re.MULTILINE)


@dataclass(frozen=True, kw_only=True)
class RawPacket:
    """
    Location of one packet inside a binary message.

    Attributes:
        tag: Packet tag.
        start: Offset of the first header byte.
        body_start: Offset of the first body byte (first chunk for partial bodies).
        end: Offset just past the packet.
        partial: Whether the body uses partial body lengths.
    """

    tag: int
    start: int
    body_start: int
    end: int
    partial: bool = False


def iter_packets(data: bytes) -> Iterator[RawPacket]:
    """
    Walk the packets of a binary OpenPGP message.

    Raises:
        EngineError: If a header is malformed or a packet is truncated.
    """
    offset = 0
    while offset < len(data):
        packet = _read_packet(data, offset)
        yield packet
        offset = packet.end


def split_packets(data: bytes) -> tuple[bytes, bytes]:
    """
    Split a message into its key packets and the remaining data packets.

    Returns:
        Tuple of (key_packets, data_packets), each a concatenation of raw packets.
    """
    keys = bytearray()
    payload = bytearray()
    for packet in iter_packets(data):
        target = keys if packet.tag in KEY_PACKET_TAGS else payload
        target += data[packet.start : packet.end]
    return bytes(keys), bytes(payload)


def pkesk_key_ids(data: bytes) -> list[str]:
    """Recipient key ids (upper-case hex) of the v3 PKESK packets in ``data``."""
    key_ids = []
    for packet in iter_packets(data):
        if packet.tag != TAG_PKESK or packet.partial:
            continue
        body = data[packet.body_start : packet.end]
        if body and body[0] == _PKESK_V3 and len(body) >= 10:
            key_ids.append(body[1:9].hex().upper())
    return key_ids


def replace_recipient_key_ids(
    data: bytes, key_ids: Collection[str], new_key_id: bytes = WILDCARD_KEY_ID
) -> bytes:
    """
    Rewrite the recipient key id of matching v3 PKESK packets.

    Args:
        data: Binary message or key packets.
        key_ids: Upper-case hex key ids to replace.
        new_key_id: Replacement 8-byte key id. Defaults to the wildcard id.

    Returns:
        The rewritten data; packets that do not match are left untouched.
    """
    if len(new_key_id) != 8:
        msg = f"Key id must be 8 bytes, got {len(new_key_id)}"
        raise ValueError(msg)

    wanted = {key_id.upper() for key_id in key_ids}
    rewritten = bytearray(data)
    for packet in iter_packets(data):
        if packet.tag != TAG_PKESK or packet.partial:
            continue
        id_start = packet.body_start + 1
        if data[packet.body_start] != _PKESK_V3 or id_start + 8 > packet.end:
            continue
        if data[id_start : id_start + 8].hex().upper() in wanted:
            rewritten[id_start : id_start + 8] = new_key_id
    return bytes(rewritten)


def packet_body(data: bytes, packet: RawPacket) -> bytes:
    """Body of ``packet``, with partial body chunks joined."""
    if not packet.partial:
        return data[packet.body_start : packet.end]
    chunks = bytearray()
    cursor = packet.start + 1
    while cursor < packet.end:
        length, length_bytes, is_partial = _parse_new_format_length(data, cursor)
        cursor += length_bytes
        chunks += data[cursor : cursor + length]
        cursor += length
        if not is_partial:
            break
    return bytes(chunks)


def encode_packet(tag: int, body: bytes) -> bytes:
    """Frame ``body`` as a new-format packet with a definite length."""
    length = len(body)
    if length < 192:
        header = bytes([length])
    elif length < 8384:
        length -= 192
        header = bytes([(length >> 8) + 192, length & 0xFF])
    else:
        header = b"\xff" + length.to_bytes(4, "big")
    return bytes([0xC0 | tag]) + header + body


@dataclass(frozen=True, kw_only=True)
class ParsedMessage:
    """
    A decrypted packet stream.

    Attributes:
        message: Contents and file hints of the literal data packet.
        signatures: Raw signature packets found around the literal data.
        compressed: Whether the literal data was inside a compressed packet.
    """

    message: PlainMessage
    signatures: list[bytes] = field(default_factory=list)
    compressed: bool = False


def literal_packet(data: bytes, metadata: LiteralMetadata) -> bytes:
    """Wrap plaintext in a literal data packet carrying the file hints."""
    filename = metadata.filename.encode("utf-8")[:255]
    body = bytearray(b"u" if metadata.is_utf8 else b"b")
    body.append(len(filename))
    body += filename
    body += (metadata.mod_time & 0xFFFFFFFF).to_bytes(4, "big")
    body += data
    return encode_packet(TAG_LITERAL, bytes(body))


def trim_trailing_whitespace(text: str) -> str:
    """Strip spaces and tabs at the end of every line of ``text``."""
    return _TRAILING_WHITESPACE.sub("", text)


def compressed_packet(data: bytes, algorithm: CompressionAlgorithm, level: int = 6) -> bytes:
    """Wrap a packet stream in a compressed data packet."""
    match algorithm:
        case CompressionAlgorithm.NONE:
            return data
        case CompressionAlgorithm.ZIP:
            compressor = zlib.compressobj(level, zlib.DEFLATED, -15)
            compressed = compressor.compress(data) + compressor.flush()
        case CompressionAlgorithm.ZLIB:
            compressed = zlib.compress(data, level)
        case CompressionAlgorithm.BZIP2:
            compressed = bz2.compress(data, compresslevel=max(level, 1))
    return encode_packet(TAG_COMPRESSED, bytes([algorithm]) + compressed)


def read_message(data: bytes) -> ParsedMessage:
    """
    Read the literal data and signatures from a decrypted packet stream.

    Raises:
        EngineError: If the stream holds no literal data or cannot be decompressed.
    """
    literal: PlainMessage | None = None
    signatures: list[bytes] = []
    for packet in iter_packets(data):
        if packet.tag == TAG_COMPRESSED:
            inner = read_message(_decompress(packet_body(data, packet)))
            return ParsedMessage(
                message=inner.message, signatures=inner.signatures, compressed=True
            )
        if packet.tag == TAG_LITERAL:
            literal = _parse_literal(packet_body(data, packet))
        elif packet.tag == TAG_SIGNATURE:
            signatures.append(data[packet.start : packet.end])

    if literal is None:
        msg = "no literal data packet"
        raise EngineError(msg, operation=Operation.PARSE)
    return ParsedMessage(message=literal, signatures=signatures)


def armor_message(data: bytes) -> str:
    """ASCII-armor a binary message."""
    try:
        return str(pgpy.PGPMessage.from_blob(data))
    except (PGPError, ValueError) as e:
        msg = f"invalid message: {e}"
        raise EngineError(msg, operation=Operation.SERIALIZE) from e


def armor_signature(data: bytes) -> str:
    """ASCII-armor a binary signature."""
    try:
        return str(pgpy.PGPSignature.from_blob(data))
    except (PGPError, ValueError) as e:
        msg = f"invalid signature: {e}"
        raise EngineError(msg, operation=Operation.SERIALIZE) from e


def dearmor(blob: bytes | str) -> bytes:
    """Return the binary form of an armored or binary OpenPGP blob."""
    if isinstance(blob, (bytes, bytearray)) and blob and blob[0] & 0x80:
        return bytes(blob)
    try:
        text = blob.decode("ascii") if isinstance(blob, (bytes, bytearray)) else blob
        unarmored = Armorable.ascii_unarmor(text)
    except (PGPError, ValueError) as e:
        msg = f"invalid armor: {e}"
        raise EngineError(msg, operation=Operation.PARSE) from e
    return bytes(unarmored["body"])


def _read_packet(data: bytes, offset: int) -> RawPacket:
    first_byte = data[offset]

    if _is_new_format_packet(first_byte):
        tag = first_byte & 0x3F
        return _read_new_format(data, offset, tag)

    if _is_old_format_packet(first_byte):
        tag = (first_byte & 0x3C) >> 2
        length_type = first_byte & 0x03
        return _read_old_format(data, offset, tag, length_type)

    msg = f"invalid packet header 0x{first_byte:02x} at offset {offset}"
    raise EngineError(msg, operation=Operation.PARSE)


def _is_new_format_packet(first_byte: int) -> bool:
    return (first_byte & 0xC0) == 0xC0


def _is_old_format_packet(first_byte: int) -> bool:
    return (first_byte & 0xC0) == 0x80


def _read_new_format(data: bytes, offset: int, tag: int) -> RawPacket:
    cursor = offset + 1
    body_start: int | None = None
    partial = False
    while True:
        length, length_bytes, is_partial = _parse_new_format_length(data, cursor)
        cursor += length_bytes
        if body_start is None:
            body_start = cursor
        end = cursor + length
        _check_bounds(data, end, tag)
        if not is_partial:
            return RawPacket(tag=tag, start=offset, body_start=body_start, end=end, partial=partial)
        partial = True
        cursor = end


def _parse_new_format_length(data: bytes, cursor: int) -> tuple[int, int, bool]:
    if cursor >= len(data):
        msg = "missing length byte"
        raise EngineError(msg, operation=Operation.PARSE)

    first_byte = data[cursor]

    if first_byte < 192:
        return first_byte, 1, False

    if first_byte < 224:
        if cursor + 2 > len(data):
            msg = "incomplete two-byte length"
            raise EngineError(msg, operation=Operation.PARSE)
        return ((first_byte - 192) << 8) + data[cursor + 1] + 192, 2, False

    if first_byte == 255:
        if cursor + 5 > len(data):
            msg = "incomplete five-byte length"
            raise EngineError(msg, operation=Operation.PARSE)
        return int.from_bytes(data[cursor + 1 : cursor + 5], "big"), 5, False

    return 1 << (first_byte & 0x1F), 1, True


def _read_old_format(data: bytes, offset: int, tag: int, length_type: int) -> RawPacket:
    cursor = offset + 1
    if length_type == 3:
        # Indeterminate length runs to the end of the data.
        return RawPacket(tag=tag, start=offset, body_start=cursor, end=len(data))

    length_bytes = (1, 2, 4)[length_type]
    if cursor + length_bytes > len(data):
        msg = f"incomplete {length_bytes}-byte length"
        raise EngineError(msg, operation=Operation.PARSE)

    length = int.from_bytes(data[cursor : cursor + length_bytes], "big")
    body_start = cursor + length_bytes
    end = body_start + length
    _check_bounds(data, end, tag)
    return RawPacket(tag=tag, start=offset, body_start=body_start, end=end)


def _parse_literal(body: bytes) -> PlainMessage:
    if len(body) < 6:
        msg = f"literal data packet too short: {len(body)} bytes"
        raise EngineError(msg, operation=Operation.PARSE)

    data_format = body[0]
    filename_length = body[1]
    offset = 2 + filename_length
    if offset + 4 > len(body):
        msg = "literal data packet truncated"
        raise EngineError(msg, operation=Operation.PARSE)

    return PlainMessage(
        data=body[offset + 4 :],
        filename=body[2:offset].decode("utf-8", errors="replace"),
        is_utf8=data_format in (ord("u"), ord("t")),
        mod_time=int.from_bytes(body[offset : offset + 4], "big"),
    )


def _decompress(body: bytes) -> bytes:
    if not body:
        msg = "empty compressed data packet"
        raise EngineError(msg, operation=Operation.PARSE)

    algorithm, compressed = body[0], body[1:]
    try:
        match algorithm:
            case CompressionAlgorithm.NONE:
                return compressed
            case CompressionAlgorithm.ZIP:
                return zlib.decompress(compressed, -15)
            case CompressionAlgorithm.ZLIB:
                return zlib.decompress(compressed)
            case CompressionAlgorithm.BZIP2:
                return bz2.decompress(compressed)
    except (zlib.error, OSError, ValueError) as e:
        msg = f"failed to decompress: {e}"
        raise EngineError(msg, operation=Operation.PARSE) from e

    msg = f"unknown compression algorithm {algorithm}"
    raise EngineError(msg, operation=Operation.PARSE)


def _check_bounds(data: bytes, end: int, tag: int) -> None:
    if end <= len(data):
        return
    msg = f"truncated packet (tag {tag}): need {end} bytes, have {len(data)}"
    raise EngineError(msg, operation=Operation.PARSE)
