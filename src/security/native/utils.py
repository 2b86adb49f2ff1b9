# -*- coding: utf-8 -*-
"""
RU: Утилиты нативного слоя: best‑effort зануление буферов, сравнение в
константное время, CSPRNG с отчётом об ошибке через очередь ошибок.
"""
from __future__ import annotations

import hmac
import logging
import os
from typing import Final, Optional, Union

from src.security.native.config import get_config
from src.security.native.errors import ErrorLibrary, RandReason, push_error

_LOGGER: Final = logging.getLogger(__name__)

_MAX_RANDOM_BYTES: Final[int] = 10 * 1024 * 1024

WritableBuffer = Union[bytearray, memoryview]


def zero_memory(buf: Optional[WritableBuffer]) -> None:
    """
    Best-effort zeroization of mutable buffer.

    Args:
        buf: bytearray or writable memoryview to wipe (None is silently ignored).

    Notes:
        - Only works on mutable buffers; bytes cannot be wiped.
        - Ограничения Python: сборщик мусора и копирование объектов означают,
          что истинное криптографическое стирание на чистом Python недостижимо.
    """
    if buf is None:
        return
    try:
        buf[:] = bytes(len(buf))
    except (TypeError, AttributeError) as e:
        # Expected for immutable types
        _LOGGER.debug("zero_memory skip (immutable): %s", e.__class__.__name__)


def secure_compare(a: Union[bytes, bytearray], b: Union[bytes, bytearray]) -> bool:
    """
    Constant-time bytes comparison.

    Returns:
        True if sequences are equal, False otherwise.
    """
    return hmac.compare_digest(bytes(a), bytes(b))


def csprng(buffer: WritableBuffer) -> bool:
    """
    Fill ``buffer`` with cryptographically secure random bytes.

    Entropy acquisition may block; if the platform reports that entropy is
    unavailable the read is retried ``NativeConfig.csprng_retries`` times and
    then a RAND error is queued and False returned. The buffer is wiped on
    failure so no partial output leaks to the caller.

    Args:
        buffer: caller-owned writable storage; its full length is filled.

    Returns:
        True on success, False if no entropy could be obtained.
    """
    length = len(buffer)
    if length == 0:
        return True
    if length > _MAX_RANDOM_BYTES:
        push_error(ErrorLibrary.RAND, RandReason.ARGUMENT_OUT_OF_RANGE)
        return False

    attempts = get_config().csprng_retries + 1
    for attempt in range(1, attempts + 1):
        try:
            buffer[:] = os.urandom(length)
            return True
        except OSError as e:
            _LOGGER.warning(
                "Entropy read failed (attempt %d/%d): %s",
                attempt,
                attempts,
                e.__class__.__name__,
            )
    zero_memory(buffer)
    push_error(ErrorLibrary.RAND, RandReason.ERROR_RETRIEVING_ENTROPY)
    return False


def csprng_bytes(length: int) -> Optional[bytes]:
    """
    Return ``length`` random bytes, or None when entropy is unavailable.

    Raises:
        ValueError: if length is negative.
    """
    if not isinstance(length, int) or length < 0:
        raise ValueError("Requested random size must be >= 0")
    out = bytearray(length)
    if not csprng(out):
        return None
    return bytes(out)


__all__ = [
    "zero_memory",
    "secure_compare",
    "csprng",
    "csprng_bytes",
]
