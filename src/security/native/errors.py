"""
Очередь ошибок нативного toolkit и scope-примитивы для работы с ней.

OpenSSL ведёт одну очередь ошибок на поток: почти каждая нативная операция
при сбое добавляет туда запись, и никто не очищает её автоматически.
Устаревшая запись, оставленная успешной операцией, позже будет ошибочно
приписана другой, не связанной операции. Модуль моделирует эту очередь
(thread-local) и даёт три примитива для дисциплинированного доступа:

- CryptoErrorList.capture(): снимок очереди (старые записи первыми),
  сама очередь не меняется;
- ClearErrorOnReturn: на выходе очищает ВСЮ очередь;
- MarkPopErrorOnReturn: на выходе удаляет только записи, добавленные после
  метки, поставленной на входе.

Оба guard'а при наличии CryptoErrorList захватывают очередь на входе и
ещё раз на выходе (перед очисткой), чтобы ошибки, возникшие внутри
области, дошли до вызывающего.

Example:
    >>> errors = CryptoErrorList(CryptoErrorList.Option.NONE)
    >>> with MarkPopErrorOnReturn(errors):
    ...     push_error(ErrorLibrary.ENGINE, EngineReason.NO_SUCH_ENGINE)
    >>> errors.peek_back()
    'error:13000074:engine routines::no such engine'
    >>> error_depth()
    0

Caller obligation:
    Guards must be entered and exited in strict LIFO order on one thread.
    Interleaved (non-nested) guards produce unspecified capture/clear
    results; this is documented, not checked at runtime.
"""

from __future__ import annotations

import enum
import logging
import threading
from collections import deque
from dataclasses import dataclass
from types import TracebackType
from typing import (
    Deque,
    Iterator,
    List,
    Optional,
    Tuple,
    Type,
    Union,
)

from src.security.native.core.exceptions import ErrorScopeError, HandleCopyError

logger = logging.getLogger(__name__)

__all__ = [
    "ErrorLibrary",
    "CommonReason",
    "PemReason",
    "Asn1Reason",
    "X509Reason",
    "EvpReason",
    "EngineReason",
    "RandReason",
    "ErrorRecord",
    "pack_error",
    "error_library",
    "error_reason",
    "push_error",
    "peek_error",
    "peek_last_error",
    "get_error",
    "clear_errors",
    "error_mark",
    "pop_to_mark",
    "error_snapshot",
    "error_depth",
    "CryptoErrorList",
    "ClearErrorOnReturn",
    "MarkPopErrorOnReturn",
]


# ==============================================================================
# ERROR CODES
# ==============================================================================


class ErrorLibrary(enum.IntEnum):
    """Library identifiers (``ERR_LIB_*``)."""

    BN = 3
    RSA = 4
    DH = 5
    EVP = 6
    PEM = 9
    DSA = 10
    X509 = 11
    ASN1 = 13
    CRYPTO = 15
    EC = 16
    X509V3 = 34
    RAND = 36
    ENGINE = 38


_LIBRARY_NAMES = {
    ErrorLibrary.BN: "bignum routines",
    ErrorLibrary.RSA: "rsa routines",
    ErrorLibrary.DH: "Diffie-Hellman routines",
    ErrorLibrary.EVP: "digital envelope routines",
    ErrorLibrary.PEM: "PEM routines",
    ErrorLibrary.DSA: "dsa routines",
    ErrorLibrary.X509: "x509 certificate routines",
    ErrorLibrary.ASN1: "asn1 encoding routines",
    ErrorLibrary.CRYPTO: "common libcrypto routines",
    ErrorLibrary.EC: "elliptic curve routines",
    ErrorLibrary.X509V3: "X509 V3 routines",
    ErrorLibrary.RAND: "random number generator",
    ErrorLibrary.ENGINE: "engine routines",
}


class _Reason(enum.IntEnum):
    @property
    def text(self) -> str:
        return self.name.lower().replace("_", " ")


class CommonReason(_Reason):
    MALLOC_FAILURE = 0x100 | 1
    PASSED_NULL_PARAMETER = 0x100 | 2
    INTERNAL_ERROR = 0x100 | 4
    UNSUPPORTED = 0x100 | 8


class PemReason(_Reason):
    BAD_DECRYPT = 101
    BAD_PASSWORD_READ = 104
    NO_START_LINE = 108
    PROBLEMS_GETTING_PASSWORD = 109
    UNSUPPORTED_ENCRYPTION = 114


class Asn1Reason(_Reason):
    HEADER_TOO_LONG = 123
    NESTED_ASN1_ERROR = 58
    WRONG_TAG = 168
    UNSUPPORTED_TYPE = 196


class X509Reason(_Reason):
    CERT_ALREADY_IN_HASH_TABLE = 101
    KEY_TYPE_MISMATCH = 115
    KEY_VALUES_MISMATCH = 116
    NO_CERTIFICATE = 130
    EXTENSION_NOT_FOUND = 160
    MALFORMED_EXTENSION = 161
    MALFORMED_FIELD = 162
    UNSUPPORTED_KEY_TYPE = 163


class EvpReason(_Reason):
    DECODE_ERROR = 114
    UNSUPPORTED_PRIVATE_KEY_ALGORITHM = 118
    FIPS_MODE_NOT_SUPPORTED = 167
    UNSUPPORTED_KEY_TYPE = 212


class EngineReason(_Reason):
    DSO_FAILURE = 104
    FINISH_FAILED = 106
    INIT_FAILED = 119
    NO_SUCH_ENGINE = 116
    NOT_INITIALISED = 117
    FAILED_LOADING_PRIVATE_KEY = 128
    NOT_REGISTERED = 130


class RandReason(_Reason):
    ARGUMENT_OUT_OF_RANGE = 105
    ERROR_RETRIEVING_ENTROPY = 108


_LIB_SHIFT = 23
_REASON_MASK = 0x7FFFFF


def pack_error(library: int, reason: int) -> int:
    """Pack a library/reason pair into a single error code (OpenSSL 3 layout)."""
    return ((int(library) & 0xFF) << _LIB_SHIFT) | (int(reason) & _REASON_MASK)


def error_library(code: int) -> int:
    return (code >> _LIB_SHIFT) & 0xFF


def error_reason(code: int) -> int:
    return code & _REASON_MASK


# ==============================================================================
# ERROR RECORDS AND THE THREAD-LOCAL QUEUE
# ==============================================================================


@dataclass(frozen=True)
class ErrorRecord:
    """
    Одна запись очереди ошибок.

    Attributes:
        code: Упакованный код (библиотека + причина)
        library_name: Имя библиотеки
        reason_text: Текст причины
        detail: Дополнительные данные (без секретов!)
        serial: Порядковый номер записи в потоке (для меток)
    """

    code: int
    library_name: str
    reason_text: str
    detail: Optional[str] = None
    serial: int = 0

    def __str__(self) -> str:
        text = f"error:{self.code:08X}:{self.library_name}::{self.reason_text}"
        if self.detail:
            text += f":{self.detail}"
        return text


class _ErrorQueue(threading.local):
    def __init__(self) -> None:
        self.records: List[ErrorRecord] = []
        self.next_serial = 1


_queue = _ErrorQueue()

LibraryCode = Union[ErrorLibrary, int]
ReasonCode = Union[_Reason, int]


def push_error(
    library: LibraryCode,
    reason: ReasonCode,
    detail: Optional[str] = None,
) -> int:
    """
    Push a record onto this thread's queue.

    Args:
        library: library identifier.
        reason: reason code (enum member or raw int).
        detail: optional free-form context; must never contain secrets.

    Returns:
        The packed error code.
    """
    code = pack_error(library, reason)
    try:
        library_name = _LIBRARY_NAMES[ErrorLibrary(library)]
    except ValueError:
        library_name = f"lib({int(library)})"
    reason_text = reason.text if isinstance(reason, _Reason) else f"reason({int(reason)})"
    record = ErrorRecord(
        code=code,
        library_name=library_name,
        reason_text=reason_text,
        detail=detail,
        serial=_queue.next_serial,
    )
    _queue.next_serial += 1
    _queue.records.append(record)
    logger.debug("Queued native error %s", record)
    return code


def peek_error() -> int:
    """Code of the oldest record, 0 when the queue is empty."""
    return _queue.records[0].code if _queue.records else 0


def peek_last_error() -> int:
    """Code of the most recent record, 0 when the queue is empty."""
    return _queue.records[-1].code if _queue.records else 0


def get_error() -> int:
    """Remove and return the oldest record's code, 0 when the queue is empty."""
    if not _queue.records:
        return 0
    return _queue.records.pop(0).code


def clear_errors() -> None:
    _queue.records.clear()


def error_mark() -> int:
    """
    Current mark: the serial the next pushed record will get.

    Records with ``serial >= mark`` were pushed after the mark was taken.
    """
    return _queue.next_serial


def pop_to_mark(mark: int) -> int:
    """
    Remove every record pushed at or after ``mark``.

    Returns:
        Number of removed records.
    """
    records = _queue.records
    keep = [r for r in records if r.serial < mark]
    removed = len(records) - len(keep)
    records[:] = keep
    return removed


def error_snapshot() -> Tuple[ErrorRecord, ...]:
    """Immutable copy of the queue, oldest first."""
    return tuple(_queue.records)


def error_depth() -> int:
    return len(_queue.records)


# ==============================================================================
# CRYPTO ERROR LIST
# ==============================================================================


class CryptoErrorList:
    """
    Ordered snapshot of error messages.

    The front is the bottom of the native queue (oldest), the back is the
    top (most recent). Independent of the queue once captured.
    """

    class Option(enum.Enum):
        NONE = "none"
        CAPTURE_ON_CONSTRUCT = "capture_on_construct"

    __slots__ = ("_errors",)

    def __init__(self, option: "CryptoErrorList.Option" = Option.CAPTURE_ON_CONSTRUCT) -> None:
        self._errors: Deque[str] = deque()
        if option is CryptoErrorList.Option.CAPTURE_ON_CONSTRUCT:
            self.capture()

    def capture(self) -> None:
        """Replace the contents with the current queue, oldest first; the queue is untouched."""
        self._errors.clear()
        self._errors.extend(str(record) for record in _queue.records)

    def add(self, message: str) -> None:
        """Append a message at the back (most recent end)."""
        self._errors.append(message)

    def peek_back(self) -> str:
        """
        Most recent message.

        Raises:
            IndexError: if the list is empty.
        """
        return self._errors[-1]

    def size(self) -> int:
        return len(self._errors)

    def empty(self) -> bool:
        return not self._errors

    def pop_back(self) -> Optional[str]:
        return self._errors.pop() if self._errors else None

    def pop_front(self) -> Optional[str]:
        return self._errors.popleft() if self._errors else None

    def __len__(self) -> int:
        return len(self._errors)

    def __iter__(self) -> Iterator[str]:
        return iter(self._errors)

    def __reversed__(self) -> Iterator[str]:
        return reversed(self._errors)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CryptoErrorList):
            return NotImplemented
        return list(self._errors) == list(other._errors)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"CryptoErrorList({list(self._errors)!r})"


# ==============================================================================
# SCOPE GUARDS
# ==============================================================================


class _ErrorScope:
    """Single-use scoped interval over the error queue."""

    __slots__ = ("_errors", "_state")

    _IDLE, _ACTIVE, _DONE = range(3)

    def __init__(self, errors: Optional[CryptoErrorList] = None) -> None:
        # the list is owned by the caller and must outlive the guard
        self._errors = errors
        self._state = self._IDLE

    def __enter__(self) -> "_ErrorScope":
        if self._state != self._IDLE:
            raise ErrorScopeError(
                f"{type(self).__name__} cannot be entered twice",
                operation="__enter__",
            )
        self._state = self._ACTIVE
        self._on_enter()
        if self._errors is not None:
            self._errors.capture()
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        if self._state != self._ACTIVE:
            raise ErrorScopeError(
                f"{type(self).__name__} exited without being entered",
                operation="__exit__",
            )
        self._state = self._DONE
        if self._errors is not None:
            self._errors.capture()
        self._on_exit()

    def peek_error(self) -> int:
        """Code of the oldest record currently queued (0 if none)."""
        return peek_error()

    def _on_enter(self) -> None:
        pass

    def _on_exit(self) -> None:
        raise NotImplementedError

    def __copy__(self) -> "_ErrorScope":
        raise HandleCopyError(type(self).__name__)

    def __deepcopy__(self, memo: dict) -> "_ErrorScope":
        raise HandleCopyError(type(self).__name__)

    def __reduce_ex__(self, protocol: object) -> Tuple[object, ...]:
        raise HandleCopyError(type(self).__name__)


class ClearErrorOnReturn(_ErrorScope):
    """
    Forcibly clears the whole queue when the scope ends.

    Stops stale errors from resurfacing later where they would be
    misattributed to an unrelated operation. Blunt: errors that predate the
    scope are cleared too. Use MarkPopErrorOnReturn in library code that
    must not erase its caller's errors.

    Example:
        >>> errors = CryptoErrorList(CryptoErrorList.Option.NONE)
        >>> with ClearErrorOnReturn(errors):
        ...     risky_native_call()
        >>> error_depth()
        0
    """

    __slots__ = ()

    def _on_exit(self) -> None:
        if _queue.records:
            logger.debug("Clearing %d queued native error(s)", len(_queue.records))
        clear_errors()


class MarkPopErrorOnReturn(_ErrorScope):
    """
    Pops the records added between scope entry and exit.

    Records that existed before entry (the caller's context) survive. Each
    guard's mark is relative to the queue at its own entry, so nested guards
    never remove what an outer scope intends to keep.
    """

    __slots__ = ("_mark",)

    def __init__(self, errors: Optional[CryptoErrorList] = None) -> None:
        super().__init__(errors)
        self._mark = 0

    def _on_enter(self) -> None:
        self._mark = error_mark()

    def _on_exit(self) -> None:
        removed = pop_to_mark(self._mark)
        if removed:
            logger.debug("Popped %d native error(s) to mark", removed)
