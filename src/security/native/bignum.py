"""
Большие целые числа: нативное значение Bignum и владеющий BignumPointer.

Только модуль величины (знак вне области), кодирование/декодирование
big-endian и несколько предикатов. Общая арифметика НЕ реализуется.

Фиксированная ширина — критичная операция: encode_padded(size) выдаёт
РОВНО size байт (слева дополнено нулями) и отказывает, если минимальное
кодирование длиннее size. Ни усечения, ни переноса. Протоколы вроде
общего секрета Diffie-Hellman определены над строками согласованной
длины: любое отклонение ломает протокол.

Соглашение о нуле:
    byte_length() == 0, минимальное кодирование b"", to_hex() == "0".
    Декодирование b"" (или строки нулей) даёт ноль. Соглашение едино для
    encode, decode и round-trip.

Example:
    >>> secret = BignumPointer.from_bytes(b"\\x01\\x02")
    >>> secret.encode_padded(4).tobytes()
    b'\\x00\\x00\\x01\\x02'
    >>> secret.encode_padded(1)
    EncodingOverflowError: Value needs 2 bytes but fixed width is 1 bytes
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Optional, Union

from src.security.native import checks
from src.security.native.core.exceptions import (
    EncodingOverflowError,
    InvalidParameterError,
    InvalidResourceError,
)
from src.security.native.handles import HandlePointer
from src.security.native.memory import BytesLike, DataPointer
from src.security.native.utils import zero_memory

logger = logging.getLogger(__name__)

WORD_BITS = 64
WORD_MAX = (1 << WORD_BITS) - 1
WORD_OVERFLOW = WORD_MAX
"""Returned by get_word() when the value does not fit in one word."""

WritableBuffer = Union[bytearray, memoryview]


# ==============================================================================
# NATIVE VALUE
# ==============================================================================


class Bignum:
    """
    Native big-integer value.

    The magnitude is kept minimal (no leading zero bytes) in a bytearray so
    freeing the value can wipe it.

    Attributes:
        secure: allocated from the secure heap (``BN_secure_new``).
    """

    __slots__ = ("_magnitude", "secure", "_static")

    def __init__(self, value: int = 0, *, secure: bool = False) -> None:
        self._magnitude = bytearray()
        self.secure = secure
        self._static = False
        self.set_value(value)

    @classmethod
    def from_bytes(cls, data: BytesLike, *, secure: bool = False) -> "Bignum":
        """Decode a big-endian magnitude; leading zero bytes are ignored."""
        bn = cls(secure=secure)
        view = bytes(data).lstrip(b"\x00")
        bn._magnitude[:] = view
        return bn

    @classmethod
    def _constant(cls, value: int) -> "Bignum":
        bn = cls(value)
        bn._static = True
        return bn

    @property
    def is_static(self) -> bool:
        return self._static

    @property
    def value(self) -> int:
        return int.from_bytes(self._magnitude, "big")

    def set_value(self, value: int) -> None:
        if self._static:
            raise InvalidParameterError("value", "static constants are read-only")
        if value < 0:
            raise InvalidParameterError("value", "negative values are not supported")
        minimal = value.to_bytes((value.bit_length() + 7) // 8, "big")
        zero_memory(self._magnitude)
        self._magnitude[:] = minimal

    def num_bits(self) -> int:
        return self.value.bit_length()

    def num_bytes(self) -> int:
        return len(self._magnitude)

    def to_bytes(self) -> bytes:
        """Minimal big-endian encoding (``b""`` for zero)."""
        return bytes(self._magnitude)

    def write_into(self, out: WritableBuffer, offset: int = 0) -> int:
        n = len(self._magnitude)
        out[offset : offset + n] = self._magnitude
        return n

    def clear(self) -> None:
        """Wipe the magnitude and set the value to zero (``BN_clear``)."""
        if self._static:
            return
        zero_memory(self._magnitude)
        del self._magnitude[:]

    def __repr__(self) -> str:
        return f"Bignum(bits={self.num_bits()}, secure={self.secure})"


_ONE = Bignum._constant(1)


# ==============================================================================
# OWNING POINTER
# ==============================================================================


@functools.total_ordering
class BignumPointer(HandlePointer[Bignum]):
    """
    Owns one Bignum or is empty; wipes the value when freed.

    Examples:
        >>> bn = BignumPointer.new()
        >>> bn.set_word(255)
        True
        >>> bn.to_hex().tobytes()
        b'FF'
        >>> bn.byte_length()
        1
    """

    __slots__ = ()
    _accepts = (Bignum,)

    def __init__(self, bignum: Optional[Union[Bignum, BytesLike]] = None) -> None:
        super().__init__()
        if bignum is not None:
            self.reset(bignum)

    def reset(self, bignum: Optional[Union[Bignum, BytesLike]] = None) -> None:  # type: ignore[override]
        """Free the current value and take ownership of ``bignum`` (or decode bytes)."""
        if isinstance(bignum, (bytes, bytearray, memoryview)):
            bignum = Bignum.from_bytes(bignum)
        super().reset(bignum)

    def _free(self, resource: Bignum) -> None:
        resource.clear()

    # -- factories -----------------------------------------------------------

    @classmethod
    def new(cls) -> "BignumPointer":
        return cls(Bignum())

    @classmethod
    def new_secure(cls) -> "BignumPointer":
        return cls(Bignum(secure=True))

    @classmethod
    def from_bytes(cls, data: BytesLike) -> "BignumPointer":
        return cls(Bignum.from_bytes(data))

    @classmethod
    def from_int(cls, value: int) -> "BignumPointer":
        return cls(Bignum(value))

    # -- predicates and words ------------------------------------------------

    def is_zero(self) -> bool:
        return self._resource is not None and self._resource.num_bytes() == 0

    def is_one(self) -> bool:
        return self._resource is not None and self._resource.value == 1

    def set_word(self, word: int) -> bool:
        """Set the value to a single word; False if empty, not an int or out of range."""
        if self._resource is None or not isinstance(word, int):
            return False
        if not 0 <= word <= WORD_MAX:
            return False
        self._resource.set_value(word)
        return True

    def get_word(self) -> int:
        return self.get_word_of(self._resource)

    def byte_length(self) -> int:
        return self.get_byte_count(self._resource)

    def bit_length(self) -> int:
        return self.get_bit_count(self._resource)

    def to_int(self) -> Optional[int]:
        return self._resource.value if self._resource is not None else None

    # -- encoding ------------------------------------------------------------

    def to_hex(self) -> DataPointer:
        """
        Uppercase hex, two digits per byte, ``"0"`` for zero.

        Returns an empty DataPointer when nothing is owned.
        """
        if self._resource is None:
            return DataPointer()
        magnitude = self._resource.to_bytes()
        text = magnitude.hex().upper() if magnitude else "0"
        return DataPointer(bytearray(text, "ascii"))

    def encode(self) -> DataPointer:
        return self.encode_bn(self._resource)

    def encode_into(self, out: WritableBuffer) -> int:
        """Write the minimal encoding into ``out``; returns bytes written."""
        if self._resource is None:
            return 0
        return self.encode_padded_into_bn(self._resource, out, self._resource.num_bytes())

    def encode_padded(self, size: int) -> DataPointer:
        return self.encode_padded_bn(self._resource, size)

    def encode_padded_into(self, out: WritableBuffer, size: int) -> int:
        return self.encode_padded_into_bn(self._resource, out, size)

    # -- borrowed (static) variants ------------------------------------------

    @staticmethod
    def encode_bn(bn: Optional[Bignum]) -> DataPointer:
        """Minimal big-endian encoding of a borrowed value."""
        if bn is None:
            return DataPointer()
        return BignumPointer.encode_padded_bn(bn, bn.num_bytes())

    @staticmethod
    def encode_padded_bn(bn: Optional[Bignum], size: int) -> DataPointer:
        """
        Exactly ``size`` bytes, big-endian, left zero-padded.

        Raises:
            InvalidParameterError: if size is negative.
            EncodingOverflowError: if the value needs more than ``size`` bytes.
        """
        if bn is None:
            return DataPointer()
        _check_width(bn, size)
        out = DataPointer.alloc(size)
        BignumPointer.encode_padded_into_bn(bn, out.view(), size)
        return out

    @staticmethod
    def encode_padded_into_bn(bn: Optional[Bignum], out: WritableBuffer, size: int) -> int:
        """
        Write exactly ``size`` bytes into ``out`` and return ``size``.

        Nothing is written when the value does not fit.

        Raises:
            InvalidParameterError: if size is negative or ``out`` is too small.
            EncodingOverflowError: if the value needs more than ``size`` bytes.
        """
        if bn is None:
            return 0
        _check_width(bn, size)
        if len(out) < size:
            raise InvalidParameterError(
                "out", f"holds {len(out)} bytes, {size} required"
            )
        pad = size - bn.num_bytes()
        out[:pad] = bytes(pad)
        written = pad + bn.write_into(out, pad)
        checks.assert_equal(written, size, "padded encoding length mismatch")
        return written

    @staticmethod
    def get_bit_count(bn: Optional[Bignum]) -> int:
        return bn.num_bits() if bn is not None else 0

    @staticmethod
    def get_byte_count(bn: Optional[Bignum]) -> int:
        return bn.num_bytes() if bn is not None else 0

    @staticmethod
    def get_word_of(bn: Optional[Bignum]) -> int:
        if bn is None:
            return 0
        value = bn.value
        return value if value <= WORD_MAX else WORD_OVERFLOW

    @staticmethod
    def one() -> Bignum:
        """Borrowed read-only constant 1 (never owned by a pointer)."""
        return _ONE

    # -- ordering ------------------------------------------------------------

    def compare(self, other: Any) -> int:
        """
        Three-way comparison; an empty pointer sorts before any value.

        Returns:
            -1, 0 or 1.
        """
        mine = self._resource
        theirs = _as_bignum(other)
        if mine is None or theirs is None:
            return (mine is not None) - (theirs is not None)
        a, b = mine.value, theirs.value
        return (a > b) - (a < b)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, (BignumPointer, Bignum, int)) and other is not None:
            return NotImplemented
        return self.compare(other) == 0

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, (BignumPointer, Bignum, int)) and other is not None:
            return NotImplemented
        return self.compare(other) < 0

    __hash__ = None  # type: ignore[assignment]


def _as_bignum(other: Any) -> Optional[Bignum]:
    if other is None:
        return None
    if isinstance(other, BignumPointer):
        return other.get()
    if isinstance(other, Bignum):
        return other
    if isinstance(other, int):
        return Bignum(other)
    raise InvalidResourceError("BignumPointer", type(other).__name__)


def _check_width(bn: Bignum, size: int) -> None:
    if size < 0:
        raise InvalidParameterError("size", "must be >= 0")
    needed = bn.num_bytes()
    if needed > size:
        logger.debug("Fixed-width encoding rejected: %d > %d bytes", needed, size)
        raise EncodingOverflowError(needed, size)


__all__ = [
    "Bignum",
    "BignumPointer",
    "WORD_BITS",
    "WORD_MAX",
    "WORD_OVERFLOW",
]
