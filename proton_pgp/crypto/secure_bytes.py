"""Owned secret buffers that are zeroed when released."""

import ctypes
import ctypes.util
import hmac
import platform
import warnings
from typing import Self

from proton_pgp.exceptions import UsageError

_libc: ctypes.CDLL | None = None

if platform.system() in ("Linux", "Darwin"):
    try:
        _libc = ctypes.CDLL(ctypes.util.find_library("c"), use_errno=True)
        _libc.mlock.argtypes = [ctypes.c_void_p, ctypes.c_size_t]
        _libc.mlock.restype = ctypes.c_int
        _libc.munlock.argtypes = [ctypes.c_void_p, ctypes.c_size_t]
        _libc.munlock.restype = ctypes.c_int
    except (OSError, AttributeError):
        _libc = None


def _address_of(data: bytearray) -> int:
    return ctypes.addressof((ctypes.c_char * len(data)).from_buffer(data))


def _secure_zero(data: bytearray) -> None:
    if len(data) == 0:
        return
    try:
        ctypes.memset(_address_of(data), 0, len(data))
    except (TypeError, ValueError, BufferError) as exc:
        warnings.warn(f"ctypes.memset failed, using fallback: {exc}", RuntimeWarning)
        data[:] = bytes(len(data))


def _mlock(data: bytearray) -> bool:
    if _libc is None or len(data) == 0:
        return False
    try:
        return _libc.mlock(_address_of(data), len(data)) == 0
    except (TypeError, ValueError, BufferError):
        return False


def _munlock(data: bytearray) -> None:
    if _libc is None or len(data) == 0:
        return
    try:
        _libc.munlock(_address_of(data), len(data))
    except (TypeError, ValueError, BufferError):
        pass


class SecureBytes:
    """
    Owned secret buffer.

    The buffer is zeroed by clear(), on context exit and when the object is
    collected. Once cleared (or moved), every accessor raises UsageError so
    misuse fails loudly instead of reading zeros.
    """

    __slots__ = ("_data", "_cleared", "_locked")

    def __init__(self, data: bytes | bytearray, *, lock: bool = False) -> None:
        self._data = bytearray(data)
        self._cleared = False
        self._locked = lock and _mlock(self._data)

    def __del__(self) -> None:
        self.clear()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *_: object) -> None:
        self.clear()

    def clear(self) -> None:
        """Zero and invalidate the buffer. Idempotent."""
        if self._cleared:
            return
        _secure_zero(self._data)
        if self._locked:
            _munlock(self._data)
            self._locked = False
        self._cleared = True

    def move(self) -> "SecureBytes":
        """Transfer the secret to a new owner; this buffer becomes unusable."""
        self._check_cleared()
        moved = SecureBytes(self._data, lock=self._locked)
        self.clear()
        return moved

    def copy(self) -> "SecureBytes":
        self._check_cleared()
        return SecureBytes(self._data, lock=self._locked)

    def __bytes__(self) -> bytes:
        """Warning: creates an unmanaged copy."""
        self._check_cleared()
        return bytes(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __bool__(self) -> bool:
        return not self._cleared and len(self._data) > 0

    def __repr__(self) -> str:
        if self._cleared:
            return "SecureBytes(<cleared>)"
        lock_info = ", locked" if self._locked else ""
        return f"SecureBytes(<{len(self._data)} bytes{lock_info}>)"

    def __eq__(self, other: object) -> bool:
        """Constant-time comparison."""
        if isinstance(other, SecureBytes):
            if self._cleared or other._cleared:
                return False
            return hmac.compare_digest(self._data, other._data)
        if isinstance(other, (bytes, bytearray)):
            if self._cleared:
                return False
            return hmac.compare_digest(self._data, other)
        return NotImplemented

    def __hash__(self) -> int:
        raise TypeError("SecureBytes is not hashable")

    @property
    def is_locked(self) -> bool:
        return self._locked

    @property
    def is_cleared(self) -> bool:
        return self._cleared

    def decode(self, encoding: str = "utf-8") -> str:
        """Warning: returned string is not securely managed."""
        self._check_cleared()
        return self._data.decode(encoding)

    def _check_cleared(self) -> None:
        if self._cleared:
            msg = "SecureBytes has been cleared"
            raise UsageError(msg)

    @classmethod
    def from_string(cls, s: str, encoding: str = "utf-8", *, lock: bool = False) -> Self:
        """Create from string. Zeros the intermediate bytearray."""
        encoded = bytearray(s, encoding)
        try:
            return cls(encoded, lock=lock)
        finally:
            _secure_zero(encoded)
