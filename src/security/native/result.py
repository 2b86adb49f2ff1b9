# -*- coding: utf-8 -*-
"""
RU: Результат фабричной операции: либо значение, либо код ошибки, никогда
оба сразу.
EN: Tagged success/error result returned by fallible factories.
"""
from __future__ import annotations

from typing import Any, Generic, Optional, TypeVar

from src.security.native.core.exceptions import ResultError

T = TypeVar("T")
E = TypeVar("E")

_MISSING: Any = object()


class Result(Generic[T, E]):
    """
    Either a successfully constructed value or an error, never both.

    Callers must discriminate (``ok`` / ``bool(result)``) before reading
    ``value``; reading the value of a failed result raises ``ResultError``.

    Examples:
        >>> res = X509Pointer.parse(pem_bytes)
        >>> if res.ok:
        ...     cert = res.value
        ... else:
        ...     logger.warning("parse failed: %08X", res.error)
    """

    __slots__ = ("_value", "_error")

    def __init__(self, *, value: Any = _MISSING, error: Any = _MISSING) -> None:
        if (value is _MISSING) == (error is _MISSING):
            raise ResultError(
                "Result requires exactly one of value or error",
                operation="Result",
            )
        if error is not _MISSING and error is None:
            raise ResultError("Result error must not be None", operation="Result")
        self._value = value
        self._error = error

    @classmethod
    def success(cls, value: T) -> "Result[T, E]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: E) -> "Result[T, E]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self._error is _MISSING

    @property
    def value(self) -> T:
        if self._error is not _MISSING:
            raise ResultError(
                "Result holds an error, not a value",
                operation="value",
                context={"error": self._error},
            )
        return self._value

    @property
    def error(self) -> Optional[E]:
        return None if self._error is _MISSING else self._error

    def __bool__(self) -> bool:
        return self.ok

    def __repr__(self) -> str:
        if self.ok:
            return f"Result(value={self._value!r})"
        return f"Result(error={self._error!r})"


__all__ = ["Result"]
