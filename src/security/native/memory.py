# -*- coding: utf-8 -*-
"""
RU: Буферы данных: Buffer — невладеющее представление, DataPointer —
владеющий буфер, который зануляется при освобождении.
EN: Unowned Buffer views and the owning, wipe-on-free DataPointer.

Design:
- DataPointer is the base allocation primitive for every operation that
  returns owned bytes (hex strings, encoded bignums, matched peer names).
- Memory is a bytearray so it can be wiped in place when freed.
- ``release()`` hands a Buffer to the caller, who then owns the memory and
  should wipe it with ``utils.zero_memory`` when done.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from src.security.native import checks
from src.security.native.core.exceptions import InvalidParameterError
from src.security.native.handles import HandlePointer
from src.security.native.utils import zero_memory

BytesLike = Union[bytes, bytearray, memoryview]


@dataclass(frozen=True)
class Buffer:
    """
    Unowned view: data + length. Never frees anything.

    Attributes:
        data: the viewed memory (None for an empty view).
        length: number of meaningful bytes, from the start of ``data``.
    """

    data: Optional[BytesLike] = field(default=None, repr=False)
    length: int = 0

    def __post_init__(self) -> None:
        if self.length < 0:
            raise InvalidParameterError("length", "must be >= 0")
        available = 0 if self.data is None else len(self.data)
        if self.length > available:
            raise InvalidParameterError(
                "length", f"exceeds the viewed data ({available} bytes)"
            )

    @classmethod
    def of(cls, data: BytesLike) -> "Buffer":
        return cls(data, len(data))

    def tobytes(self) -> bytes:
        if self.data is None:
            return b""
        return bytes(memoryview(self.data)[: self.length])


class DataPointer(HandlePointer[bytearray]):
    """
    Owning buffer with a known length, wiped on free.

    Examples:
        >>> with DataPointer.alloc(32) as buf:
        ...     csprng(buf.view())
        >>> bool(buf)
        False
    """

    __slots__ = ()
    _accepts = (bytearray,)

    def __init__(self, data: Optional[Union[bytearray, Buffer]] = None) -> None:
        super().__init__()
        if data is not None:
            self.reset(data)

    @classmethod
    def alloc(cls, length: int) -> "DataPointer":
        """Allocate ``length`` zeroed bytes."""
        if length < 0:
            raise InvalidParameterError("length", "must be >= 0")
        return cls(bytearray(length))

    @classmethod
    def copy_of(cls, data: BytesLike) -> "DataPointer":
        """Allocate a new owned buffer holding a copy of ``data``."""
        return cls(bytearray(data))

    def reset(self, data: Optional[Union[bytearray, Buffer]] = None) -> None:  # type: ignore[override]
        """
        Free the current memory and take ownership of ``data``.

        A Buffer is adopted when it views a whole bytearray; any other view
        is copied into fresh owned memory.
        """
        if isinstance(data, Buffer):
            data = self._adopt(data)
        super().reset(data)

    @staticmethod
    def _adopt(buffer: Buffer) -> Optional[bytearray]:
        if buffer.data is None:
            return None
        if isinstance(buffer.data, bytearray) and buffer.length == len(buffer.data):
            return buffer.data
        return bytearray(memoryview(buffer.data)[: buffer.length])

    def _free(self, resource: bytearray) -> None:
        zero_memory(resource)
        if checks.enabled():
            checks.assert_true(not any(resource), "DataPointer memory not wiped")

    def size(self) -> int:
        return len(self._resource) if self._resource is not None else 0

    def release(self) -> Buffer:  # type: ignore[override]
        """
        Release ownership of the memory.

        Returns:
            Buffer viewing the memory; the caller must wipe/free it.
        """
        data = super().release()
        if data is None:
            return Buffer()
        return Buffer(data, len(data))

    def as_buffer(self) -> Buffer:
        """Unowned view of the memory (valid while this pointer owns it)."""
        if self._resource is None:
            return Buffer()
        return Buffer(self._resource, len(self._resource))

    def view(self) -> memoryview:
        """Writable view for in-place fills (empty when nothing is owned)."""
        return memoryview(self._resource if self._resource is not None else bytearray())

    def tobytes(self) -> bytes:
        return bytes(self._resource) if self._resource is not None else b""

    def __bytes__(self) -> bytes:
        return self.tobytes()

    def __repr__(self) -> str:
        if self._resource is None:
            return "DataPointer(empty)"
        return f"DataPointer(size={len(self._resource)})"


__all__ = ["Buffer", "DataPointer", "BytesLike"]
