"""
Move-only дескрипторы нативных ресурсов.

HandlePointer — обобщённая обёртка «ресурс + функция освобождения»:
ровно один владелец, копирование запрещено, передача владения только
перемещением, явный release() и гарантированное освобождение при
reset()/выходе из with/сборке мусора — на каждом пути выхода, включая
ошибки.

Для каждого вида ресурса определён свой класс с проверкой типа ресурса
и своей функцией освобождения:

    BIOPointer          memory BIO (io.BytesIO), освобождение через close()
    CipherCtxPointer    контекст шифра cryptography
    EVPMDCtxPointer     контекст хэша
    HMACCtxPointer      контекст HMAC
    DHPointer           параметры/ключи Diffie-Hellman
    DSAPointer          ключи/параметры DSA
    RSAPointer          ключи RSA
    ECKeyPointer        ключи EC
    ECGroupPointer      кривая EC
    EVPKeyPointer       любой асимметричный ключ
    SSLCtxPointer       ssl.SSLContext
    SSLPointer          ssl.SSLObject / ssl.SSLSocket (сокет закрывается)
    SSLSessionPointer   ssl.SSLSession
    StackOfASN1         список OID (очищается при освобождении)

Example:
    >>> with EVPMDCtxPointer(hashes.Hash(hashes.SHA256())) as ctx:
    ...     ctx.get().update(b"data")
    >>> bool(ctx)
    False

Thread Safety:
    Один дескриптор используется одним потоком за раз. Разные дескрипторы
    в разных потоках независимы.
"""

from __future__ import annotations

import io
import logging
import ssl
from typing import (
    Any,
    Callable,
    ClassVar,
    Generic,
    List,
    Optional,
    Tuple,
    TypeVar,
)

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import (
    dh,
    dsa,
    ec,
    ed448,
    ed25519,
    rsa,
    x448,
    x25519,
)

from src.security.native.core.exceptions import HandleCopyError, InvalidResourceError

logger = logging.getLogger(__name__)

R = TypeVar("R")
H = TypeVar("H", bound="HandlePointer[Any]")

FreeListener = Callable[[str, Any], None]

_free_listener: Optional[FreeListener] = None


def set_free_listener(listener: Optional[FreeListener]) -> Optional[FreeListener]:
    """
    Install a hook called as ``listener(kind, resource)`` after every free.

    Resource-counting instrumentation for leak / double-free checks.

    Returns:
        The previously installed listener.
    """
    global _free_listener
    previous = _free_listener
    _free_listener = listener
    return previous


# ==============================================================================
# GENERIC HANDLE
# ==============================================================================


class HandlePointer(Generic[R]):
    """
    Exclusive owner of one native resource, or empty.

    Invariants:
        1. At most one wrapper owns a given resource.
        2. Copy is disallowed; ``move()`` / ``assign()`` transfer ownership.
        3. ``reset()`` frees the current resource before taking a new one.
        4. Destruction frees a non-empty wrapper.
        5. ``release()`` hands the raw resource to the caller without freeing.

    Subclasses set ``_accepts`` (isinstance check) or ``_required_methods``
    (duck-typed check) and override ``_free`` for the resource kind.
    """

    __slots__ = ("_resource", "__weakref__")

    _accepts: ClassVar[Tuple[type, ...]] = ()
    _required_methods: ClassVar[Tuple[str, ...]] = ()

    def __init__(self, resource: Optional[R] = None) -> None:
        self._resource: Optional[R] = None
        if resource is not None:
            self.reset(resource)

    # -- resource kind -------------------------------------------------------

    @classmethod
    def _validate(cls, resource: Any) -> None:
        if cls._accepts and not isinstance(resource, cls._accepts):
            raise InvalidResourceError(cls.__name__, type(resource).__name__)
        missing = [m for m in cls._required_methods if not callable(getattr(resource, m, None))]
        if missing:
            raise InvalidResourceError(cls.__name__, type(resource).__name__)

    def _free(self, resource: R) -> None:
        """Kind-specific free; the default drops the last reference."""

    # -- ownership -----------------------------------------------------------

    def get(self) -> Optional[R]:
        """Borrow the raw resource (ownership stays with the wrapper)."""
        return self._resource

    def reset(self, resource: Optional[R] = None) -> None:
        """
        Free the owned resource (if any) and take ownership of ``resource``.

        Resetting to the resource already owned is a no-op.

        Raises:
            InvalidResourceError: if ``resource`` is not of this wrapper's kind.
        """
        if resource is not None:
            self._validate(resource)
        old = self._resource
        if old is resource:
            return
        self._resource = resource
        if old is not None:
            self._free(old)
            if _free_listener is not None:
                _free_listener(type(self).__name__, old)

    def release(self) -> Optional[R]:
        """
        Give up ownership without freeing.

        Returns:
            The raw resource; the caller is now responsible for it.
        """
        resource = self._resource
        self._resource = None
        if resource is not None:
            logger.debug("Released ownership of %s", type(self).__name__)
        return resource

    def _take_from(self: H, other: H) -> None:
        self._resource = other._resource
        other._resource = None

    def move(self: H) -> H:
        """
        Transfer ownership to a new wrapper of the same kind.

        The source is left empty.
        """
        moved = type(self)()
        moved._take_from(self)
        return moved

    def assign(self: H, other: H) -> None:
        """
        Move-assign: free this wrapper's resource, then take ``other``'s.

        Raises:
            InvalidResourceError: if ``other`` is a different wrapper kind.
        """
        if other is self:
            return
        if type(other) is not type(self):
            raise InvalidResourceError(type(self).__name__, type(other).__name__)
        self.reset()
        self._take_from(other)

    def __bool__(self) -> bool:
        return self._resource is not None

    # -- scoped release ------------------------------------------------------

    def __enter__(self: H) -> H:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.reset()

    def __del__(self) -> None:
        if getattr(self, "_resource", None) is not None:
            self.reset()

    # -- copy is forbidden ---------------------------------------------------

    def __copy__(self) -> "HandlePointer[R]":
        raise HandleCopyError(type(self).__name__)

    def __deepcopy__(self, memo: dict) -> "HandlePointer[R]":
        raise HandleCopyError(type(self).__name__)

    def __reduce_ex__(self, protocol: object) -> Tuple[object, ...]:
        raise HandleCopyError(type(self).__name__)

    def __repr__(self) -> str:
        state = type(self._resource).__name__ if self._resource is not None else "empty"
        return f"{type(self).__name__}({state})"


# ==============================================================================
# RESOURCE KINDS
# ==============================================================================


class BIOPointer(HandlePointer[io.BytesIO]):
    """In-memory BIO used to return rendered text and encoded bytes."""

    __slots__ = ()
    _accepts = (io.BytesIO,)

    @classmethod
    def new_mem(cls, data: bytes = b"") -> "BIOPointer":
        return cls(io.BytesIO(data))

    def _free(self, resource: io.BytesIO) -> None:
        resource.close()

    def write(self, data: bytes) -> int:
        if self._resource is None:
            return 0
        return self._resource.write(data)

    def contents(self) -> bytes:
        """All bytes written so far (empty for an empty wrapper)."""
        return self._resource.getvalue() if self._resource is not None else b""

    def text(self) -> str:
        return self.contents().decode("utf-8")


class CipherCtxPointer(HandlePointer[Any]):
    __slots__ = ()
    _required_methods = ("update", "finalize")


class EVPMDCtxPointer(HandlePointer[Any]):
    __slots__ = ()
    _required_methods = ("update", "finalize", "copy")


class HMACCtxPointer(HandlePointer[Any]):
    __slots__ = ()
    _required_methods = ("update", "finalize", "verify")


class DHPointer(HandlePointer[Any]):
    __slots__ = ()
    _accepts = (dh.DHParameters, dh.DHPrivateKey, dh.DHPublicKey)


class DSAPointer(HandlePointer[Any]):
    __slots__ = ()
    _accepts = (dsa.DSAParameters, dsa.DSAPrivateKey, dsa.DSAPublicKey)


class RSAPointer(HandlePointer[Any]):
    __slots__ = ()
    _accepts = (rsa.RSAPrivateKey, rsa.RSAPublicKey)


class ECKeyPointer(HandlePointer[Any]):
    __slots__ = ()
    _accepts = (ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey)


class ECGroupPointer(HandlePointer[ec.EllipticCurve]):
    __slots__ = ()
    _accepts = (ec.EllipticCurve,)


_PRIVATE_KEY_TYPES: Tuple[type, ...] = (
    rsa.RSAPrivateKey,
    ec.EllipticCurvePrivateKey,
    dsa.DSAPrivateKey,
    dh.DHPrivateKey,
    ed25519.Ed25519PrivateKey,
    ed448.Ed448PrivateKey,
    x25519.X25519PrivateKey,
    x448.X448PrivateKey,
)

_PUBLIC_KEY_TYPES: Tuple[type, ...] = (
    rsa.RSAPublicKey,
    ec.EllipticCurvePublicKey,
    dsa.DSAPublicKey,
    dh.DHPublicKey,
    ed25519.Ed25519PublicKey,
    ed448.Ed448PublicKey,
    x25519.X25519PublicKey,
    x448.X448PublicKey,
)


class EVPKeyPointer(HandlePointer[Any]):
    """Owner of a private or public asymmetric key."""

    __slots__ = ()
    _accepts = _PRIVATE_KEY_TYPES + _PUBLIC_KEY_TYPES

    def is_private(self) -> bool:
        return isinstance(self._resource, _PRIVATE_KEY_TYPES)

    def public_key(self) -> Optional[Any]:
        """Public half of the owned key (the key itself if already public)."""
        if self._resource is None:
            return None
        if self.is_private():
            return self._resource.public_key()
        return self._resource


class SSLCtxPointer(HandlePointer[ssl.SSLContext]):
    __slots__ = ()
    _accepts = (ssl.SSLContext,)


class SSLPointer(HandlePointer[Any]):
    """TLS connection object; sockets are closed when freed."""

    __slots__ = ()
    _accepts = (ssl.SSLObject, ssl.SSLSocket)

    def _free(self, resource: Any) -> None:
        if isinstance(resource, ssl.SSLSocket):
            resource.close()


class SSLSessionPointer(HandlePointer[ssl.SSLSession]):
    __slots__ = ()
    _accepts = (ssl.SSLSession,)


class StackOfASN1(HandlePointer[List[x509.ObjectIdentifier]]):
    """Owned list of ASN.1 object identifiers."""

    __slots__ = ()
    _accepts = (list,)

    @classmethod
    def _validate(cls, resource: Any) -> None:
        super()._validate(resource)
        if not all(isinstance(item, x509.ObjectIdentifier) for item in resource):
            raise InvalidResourceError(cls.__name__, "list of non-OID items")

    def _free(self, resource: List[x509.ObjectIdentifier]) -> None:
        resource.clear()

    def __len__(self) -> int:
        return len(self._resource) if self._resource is not None else 0

    def __bool__(self) -> bool:
        return self._resource is not None

    def dotted_strings(self) -> Tuple[str, ...]:
        if self._resource is None:
            return ()
        return tuple(oid.dotted_string for oid in self._resource)


__all__ = [
    "HandlePointer",
    "set_free_listener",
    "BIOPointer",
    "CipherCtxPointer",
    "EVPMDCtxPointer",
    "HMACCtxPointer",
    "DHPointer",
    "DSAPointer",
    "RSAPointer",
    "ECKeyPointer",
    "ECGroupPointer",
    "EVPKeyPointer",
    "SSLCtxPointer",
    "SSLPointer",
    "SSLSessionPointer",
    "StackOfASN1",
]
