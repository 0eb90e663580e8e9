"""
Writers and split-message sinks.

A split message has three logical channels: key packets, ciphertext and an
optional encrypted detached signature. A SplitWriter carries one sink per channel;
channels without a sink of their own are folded into the ciphertext sink.
"""

import io
from typing import Protocol, runtime_checkable

from proton_pgp.models.message import SplitMessage


@runtime_checkable
class Writer(Protocol):
    """Anything bytes can be written to, e.g. a binary file or io.BytesIO."""

    def write(self, data: bytes, /) -> int: ...


@runtime_checkable
class WriteCloser(Writer, Protocol):
    def close(self) -> None: ...


class MultiWriter:
    """Writes every chunk to each writer, in order."""

    def __init__(self, *writers: Writer) -> None:
        self._writers = writers

    def write(self, data: bytes, /) -> int:
        for writer in self._writers:
            writer.write(data)
        return len(data)


class SplitWriter:
    """
    Three-channel sink.

    Attributes:
        data: Ciphertext sink.
        keys: Key packet sink. When None, key packets are written as a prefix of
            the ciphertext (and of the signature, for detached signatures).
        signature: Encrypted detached signature sink. When None, signatures are
            embedded inline.
    """

    def __init__(
        self,
        data: Writer,
        *,
        keys: Writer | None = None,
        signature: Writer | None = None,
    ) -> None:
        self.data = data
        self.keys = keys
        self.signature = signature

    @classmethod
    def from_writer(cls, writer: Writer) -> "SplitWriter":
        """Single sink receiving a regular message: key packets then ciphertext."""
        return cls(writer)

    @classmethod
    def key_and_data(cls, keys: Writer, data: Writer) -> "SplitWriter":
        return cls(data, keys=keys)

    @classmethod
    def detached_signature(cls, data: Writer, signature: Writer) -> "SplitWriter":
        """Ciphertext and encrypted signature sinks, each prefixed with key packets."""
        return cls(data, signature=signature)

    @property
    def has_key_writer(self) -> bool:
        return self.keys is not None

    @property
    def has_signature_writer(self) -> bool:
        return self.signature is not None

    def write(self, data: bytes, /) -> int:
        """Write to the ciphertext sink."""
        return self.data.write(data)


class SplitMessageWriter(SplitWriter):
    """SplitWriter collecting each channel in memory."""

    def __init__(self, *, with_signature: bool = False) -> None:
        super().__init__(
            io.BytesIO(),
            keys=io.BytesIO(),
            signature=io.BytesIO() if with_signature else None,
        )

    def message(self) -> SplitMessage:
        signature = self.signature.getvalue() if self.signature is not None else None
        return SplitMessage(
            key_packets=self.keys.getvalue(),
            data_packet=self.data.getvalue(),
            detached_signature=signature or None,
        )
