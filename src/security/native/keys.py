# -*- coding: utf-8 -*-
"""
RU: Загрузка ключей PEM/DER и callback'и парольной фразы с нативной
сигнатурой ``(buf, size, rwflag, u)``.
EN: Key loading helpers and passphrase callbacks.

Callback contract:
    - returns the number of passphrase bytes written into ``buf``;
    - returns 0 or a negative value to decline (no prompt is ever shown);
    - ``rwflag`` is 0 when decrypting, 1 when encrypting.

Example:
    >>> res = load_private_key(pem, password_callback, Buffer.of(b"secret"))
    >>> if res.ok:
    ...     key = res.value
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Final, Optional

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization

from src.security.native.config import get_config
from src.security.native.core.exceptions import InvalidParameterError
from src.security.native.errors import (
    ErrorLibrary,
    EvpReason,
    MarkPopErrorOnReturn,
    PemReason,
    push_error,
)
from src.security.native.handles import EVPKeyPointer
from src.security.native.memory import Buffer, BytesLike
from src.security.native.result import Result
from src.security.native.utils import zero_memory

_LOGGER: Final = logging.getLogger(__name__)

PasswordCallback = Callable[[bytearray, int, int, Any], int]

_PEM_MARKER: Final = b"-----BEGIN"


def no_password_callback(buf: bytearray, size: int, rwflag: int, u: Any) -> int:
    """Always declines; used where interactive prompting must never happen."""
    return 0


def password_callback(buf: bytearray, size: int, rwflag: int, u: Any) -> int:
    """
    Copy a caller-supplied passphrase into ``buf``.

    ``u`` is a Buffer (or bytes-like) holding the passphrase, or a callable
    taking ``rwflag`` and returning bytes (None to decline).

    Returns:
        Passphrase length, or -1 when nothing is supplied or it does not fit.
    """
    if u is None:
        return -1
    if callable(u):
        passphrase = u(rwflag)
        if passphrase is None:
            return -1
        passphrase = bytes(passphrase)
    elif isinstance(u, Buffer):
        passphrase = u.tobytes()
    else:
        passphrase = bytes(u)
    length = len(passphrase)
    if length > size:
        return -1
    buf[:length] = passphrase
    return length


def _is_pem(data: bytes) -> bool:
    return _PEM_MARKER in data


def _decode_private(data: bytes, password: Optional[bytes]) -> Any:
    if _is_pem(data):
        return serialization.load_pem_private_key(data, password)
    return serialization.load_der_private_key(data, password)


def _as_bytes(data: BytesLike) -> bytes:
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise InvalidParameterError("data", f"expected bytes, got {type(data).__name__}")
    return bytes(data)


def load_private_key(
    data: BytesLike,
    callback: PasswordCallback = no_password_callback,
    user_data: Any = None,
) -> Result[EVPKeyPointer, int]:
    """
    Parse a PEM or DER private key.

    The callback is invoked only when the key is encrypted. Errors queued
    while parsing are popped before returning; the failure code is carried
    by the Result.

    Returns:
        Result with an EVPKeyPointer, or the error code of the failure.
    """
    raw = _as_bytes(data)
    with MarkPopErrorOnReturn():
        try:
            return Result.success(EVPKeyPointer(_decode_private(raw, None)))
        except TypeError:
            _LOGGER.debug("Private key is encrypted, requesting passphrase")
        except UnsupportedAlgorithm:
            return Result.failure(
                push_error(ErrorLibrary.EVP, EvpReason.UNSUPPORTED_PRIVATE_KEY_ALGORITHM)
            )
        except ValueError:
            return Result.failure(push_error(ErrorLibrary.EVP, EvpReason.DECODE_ERROR))

        buf = bytearray(get_config().passphrase_buffer_size)
        try:
            length = callback(buf, len(buf), 0, user_data)
            if length <= 0:
                return Result.failure(push_error(ErrorLibrary.PEM, PemReason.BAD_PASSWORD_READ))
            if length > len(buf):
                return Result.failure(
                    push_error(ErrorLibrary.PEM, PemReason.PROBLEMS_GETTING_PASSWORD)
                )
            try:
                key = _decode_private(raw, bytes(buf[:length]))
            except ValueError:
                return Result.failure(push_error(ErrorLibrary.PEM, PemReason.BAD_DECRYPT))
            except (TypeError, UnsupportedAlgorithm):
                return Result.failure(
                    push_error(ErrorLibrary.PEM, PemReason.UNSUPPORTED_ENCRYPTION)
                )
            return Result.success(EVPKeyPointer(key))
        finally:
            zero_memory(buf)


def load_public_key(data: BytesLike) -> Result[EVPKeyPointer, int]:
    """
    Parse a public key: SubjectPublicKeyInfo, PKCS#1 RSA, or a certificate.

    Returns:
        Result with an EVPKeyPointer, or the error code of the failure.
    """
    raw = _as_bytes(data)
    with MarkPopErrorOnReturn():
        if _is_pem(raw):
            loaders = (
                serialization.load_pem_public_key,
                lambda d: x509.load_pem_x509_certificate(d).public_key(),
            )
        else:
            loaders = (
                serialization.load_der_public_key,
                lambda d: x509.load_der_x509_certificate(d).public_key(),
            )
        for loader in loaders:
            try:
                return Result.success(EVPKeyPointer(loader(raw)))
            except UnsupportedAlgorithm:
                return Result.failure(
                    push_error(ErrorLibrary.EVP, EvpReason.UNSUPPORTED_KEY_TYPE)
                )
            except ValueError:
                continue
        return Result.failure(push_error(ErrorLibrary.EVP, EvpReason.DECODE_ERROR))


__all__ = [
    "PasswordCallback",
    "no_password_callback",
    "password_callback",
    "load_private_key",
    "load_public_key",
]
