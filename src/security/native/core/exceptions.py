"""
Централизованные исключения слоя нативных дескрипторов.

Иерархия типизированных исключений для ошибок ИСПОЛЬЗОВАНИЯ API:
копирование move-only дескриптора, передача ресурса неверного типа,
доступ к значению неуспешного Result, переполнение фиксированной
ширины при кодировании BIGNUM, повторный вход в scope-guard.

Ошибки самого нативного toolkit (парсинг сертификата, загрузка ключа,
FIPS) НЕ бросаются, а возвращаются через Result и очередь ошибок
(см. errors.py).

Example:
    >>> from src.security.native.core.exceptions import CryptoError
    >>> try:
    ...     bn.encode_padded(4)
    ... except CryptoError as e:
    ...     logger.error(f"Encoding failed: {e}")

Иерархия:
    CryptoError (базовое)
    ├── HandleError
    │   ├── HandleCopyError
    │   └── InvalidResourceError
    ├── ResultError
    ├── EncodingError
    │   └── EncodingOverflowError
    ├── ErrorScopeError
    └── ValidationError
        └── InvalidParameterError

Security Note:
    Сообщения НЕ содержат ключей, паролей и значений BIGNUM.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

__all__: list[str] = [
    "CryptoError",
    "HandleError",
    "HandleCopyError",
    "InvalidResourceError",
    "ResultError",
    "EncodingError",
    "EncodingOverflowError",
    "ErrorScopeError",
    "ValidationError",
    "InvalidParameterError",
]


# ==============================================================================
# BASE EXCEPTION
# ==============================================================================


class CryptoError(Exception):
    """
    Базовое исключение для всех ошибок слоя.

    Attributes:
        message: Человекочитаемое сообщение об ошибке
        operation: Имя операции, вызвавшей ошибку (опционально)
        context: Дополнительный контекст для отладки (без секретов!)

    Example:
        >>> raise CryptoError(
        ...     "Operation failed",
        ...     operation="encode_padded",
        ...     context={"size": 4},
        ... )
    """

    def __init__(
        self,
        message: str,
        *,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.context = context or {}

    def __str__(self) -> str:
        """
        Строковое представление исключения.

        Example:
            >>> str(error)
            'CryptoError: Operation failed [operation=encode_padded]'
        """
        parts = [self.__class__.__name__, ": ", self.message]

        if self.operation:
            parts.append(f" [operation={self.operation}]")

        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f" ({ctx_str})")

        return "".join(parts)

    def __repr__(self) -> str:
        """Представление для отладки."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"operation={self.operation!r}, "
            f"context={self.context!r})"
        )


# ==============================================================================
# HANDLE ERRORS
# ==============================================================================


class HandleError(CryptoError):
    """Ошибки владения нативными дескрипторами."""

    pass


class HandleCopyError(HandleError, TypeError):
    """
    Попытка скопировать move-only дескриптор.

    Raises когда:
    - copy.copy() / copy.deepcopy() на HandlePointer или scope-guard
    - pickle дескриптора

    Example:
        >>> copy.copy(BignumPointer.new())
        HandleCopyError: BignumPointer is move-only and cannot be copied
    """

    def __init__(self, type_name: str) -> None:
        super().__init__(
            f"{type_name} is move-only and cannot be copied",
            operation="copy",
            context={"type": type_name},
        )
        self.type_name = type_name


class InvalidResourceError(HandleError, TypeError):
    """
    Ресурс не того вида передан во владение дескриптору.

    Attributes:
        expected: Имя вида дескриптора
        actual: Имя типа переданного ресурса
    """

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(
            f"{expected} cannot own a resource of type {actual}",
            operation="reset",
            context={"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


# ==============================================================================
# RESULT ERRORS
# ==============================================================================


class ResultError(CryptoError):
    """
    Нарушение контракта Result.

    Raises когда:
    - Result создан одновременно со значением и ошибкой (или без обоих)
    - Запрошено значение у неуспешного Result
    """

    pass


# ==============================================================================
# ENCODING ERRORS
# ==============================================================================


class EncodingError(CryptoError):
    """Базовая ошибка кодирования больших чисел."""

    pass


class EncodingOverflowError(EncodingError):
    """
    Значение не помещается в запрошенную фиксированную ширину.

    Это нарушение протокольного уровня (например, общий секрет DH
    длиннее согласованной длины), повтор операции не поможет.

    Attributes:
        required: Минимальная длина кодирования значения в байтах
        requested: Запрошенная фиксированная ширина в байтах

    Example:
        >>> BignumPointer.from_bytes(b"\\x01\\x00").encode_padded(1)
        EncodingOverflowError: Value needs 2 bytes but fixed width is 1 bytes
    """

    def __init__(self, required: int, requested: int) -> None:
        super().__init__(
            f"Value needs {required} bytes but fixed width is {requested} bytes",
            operation="encode_padded",
            context={"required": required, "requested": requested},
        )
        self.required = required
        self.requested = requested


# ==============================================================================
# ERROR SCOPE ERRORS
# ==============================================================================


class ErrorScopeError(CryptoError):
    """
    Неправильное использование scope-guard очереди ошибок.

    Raises когда:
    - Guard используется повторно (вход второй раз)
    - Выход без входа
    """

    pass


# ==============================================================================
# VALIDATION ERRORS
# ==============================================================================


class ValidationError(CryptoError):
    """Ошибки валидации входных данных."""

    pass


class InvalidParameterError(ValidationError):
    """
    Некорректный параметр.

    Attributes:
        parameter_name: Имя параметра
        reason: Причина некорректности

    Example:
        >>> bn.encode_padded(-1)
        InvalidParameterError: Invalid parameter 'size': must be >= 0
    """

    def __init__(self, parameter_name: str, reason: str) -> None:
        super().__init__(
            f"Invalid parameter '{parameter_name}': {reason}",
            context={"parameter": parameter_name, "reason": reason},
        )
        self.parameter_name = parameter_name
        self.reason = reason
