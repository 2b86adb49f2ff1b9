"""
Сертификаты X.509: невладеющий X509View и владеющий X509Pointer.

X509View — обратная ссылка на сертификат, которым владеет кто-то другой
(X509Pointer или внешнее хранилище). Время жизни view ограничено
владельцем; view сам этого не проверяет.

Извлечение полей возвращает Result с различимыми кодами:
    X509Reason.EXTENSION_NOT_FOUND   расширение отсутствует (в очередь не пишется)
    X509Reason.MALFORMED_EXTENSION   расширение не декодируется
    X509Reason.MALFORMED_FIELD       поле не декодируется
    X509Reason.NO_CERTIFICATE        пустой view

Проверки идентичности (check_host/check_email/check_ip) возвращают
CheckMatch и выполняются внутри ClearErrorOnReturn: ошибки, возникшие при
сравнении, не переживают вызов.

Example:
    >>> res = X509Pointer.parse(pem_bytes)
    >>> cert = res.value.view()
    >>> cert.check_host("www.example.com")
    <CheckMatch.MATCH: 1>
    >>> cert.get_subject_alt_name().value.text()
    'DNS:*.example.com'
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, List, Optional, Type, TypeVar, Union

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed448, ed25519, rsa
from cryptography.x509.oid import NameOID

from src.security.native import identity, x509_format
from src.security.native.bignum import BignumPointer
from src.security.native.config import get_config
from src.security.native.errors import (
    Asn1Reason,
    ClearErrorOnReturn,
    ErrorLibrary,
    PemReason,
    X509Reason,
    pack_error,
    peek_last_error,
    push_error,
)
from src.security.native.handles import BIOPointer, EVPKeyPointer, HandlePointer, StackOfASN1
from src.security.native.identity import CheckMatch
from src.security.native.memory import BytesLike, DataPointer
from src.security.native.result import Result

logger = logging.getLogger(__name__)

T = TypeVar("T")

_PEM_MARKER = b"-----BEGIN"

# decoding failures raised lazily by cryptography when a field is accessed
_DECODE_ERRORS = (ValueError, x509.DuplicateExtension, x509.UnsupportedGeneralNameType)


class X509View:
    """
    Non-owning reference to a certificate (or to nothing).

    Attributes:
        cert: borrowed ``x509.Certificate``; None for an empty view.
    """

    __slots__ = ("_cert",)

    def __init__(self, cert: Optional[x509.Certificate] = None) -> None:
        self._cert = cert

    @property
    def cert(self) -> Optional[x509.Certificate]:
        return self._cert

    def __bool__(self) -> bool:
        return self._cert is not None

    def __repr__(self) -> str:
        return "X509View(empty)" if self._cert is None else "X509View(certificate)"

    def clone(self) -> "X509Pointer":
        """Independent owned copy (re-decoded from DER)."""
        if self._cert is None:
            return X509Pointer()
        der = self._cert.public_bytes(serialization.Encoding.DER)
        return X509Pointer(x509.load_der_x509_certificate(der))

    # -- field extraction ----------------------------------------------------

    def _field(self, name: str, render: Callable[[x509.Certificate], T]) -> Result[T, int]:
        if self._cert is None:
            return Result.failure(pack_error(ErrorLibrary.X509, X509Reason.NO_CERTIFICATE))
        try:
            return Result.success(render(self._cert))
        except _DECODE_ERRORS as e:
            logger.warning("Malformed certificate field %s: %s", name, e.__class__.__name__)
            return Result.failure(
                push_error(ErrorLibrary.X509, X509Reason.MALFORMED_FIELD, name)
            )

    def _extension(self, ext_type: Type[T]) -> Result[T, int]:
        if self._cert is None:
            return Result.failure(pack_error(ErrorLibrary.X509, X509Reason.NO_CERTIFICATE))
        try:
            ext = self._cert.extensions.get_extension_for_class(ext_type)
        except x509.ExtensionNotFound:
            return Result.failure(pack_error(ErrorLibrary.X509, X509Reason.EXTENSION_NOT_FOUND))
        except _DECODE_ERRORS as e:
            logger.warning(
                "Malformed certificate extension %s: %s",
                ext_type.__name__,
                e.__class__.__name__,
            )
            return Result.failure(
                push_error(ErrorLibrary.X509, X509Reason.MALFORMED_EXTENSION, ext_type.__name__)
            )
        return Result.success(ext.value)

    @staticmethod
    def _text(result: Result[str, int]) -> Result[BIOPointer, int]:
        if not result.ok:
            return Result.failure(result.error)
        return Result.success(BIOPointer.new_mem(result.value.encode("utf-8")))

    def get_subject(self) -> Result[BIOPointer, int]:
        return self._text(self._field("subject", lambda c: x509_format.render_name(c.subject)))

    def get_issuer(self) -> Result[BIOPointer, int]:
        return self._text(self._field("issuer", lambda c: x509_format.render_name(c.issuer)))

    def get_subject_alt_name(self) -> Result[BIOPointer, int]:
        san = self._extension(x509.SubjectAlternativeName)
        if not san.ok:
            return Result.failure(san.error)
        return self._text(Result.success(x509_format.render_subject_alt_name(san.value)))

    def get_info_access(self) -> Result[BIOPointer, int]:
        aia = self._extension(x509.AuthorityInformationAccess)
        if not aia.ok:
            return Result.failure(aia.error)
        return self._text(Result.success(x509_format.render_info_access(aia.value)))

    def get_valid_from(self) -> Result[BIOPointer, int]:
        return self._text(
            self._field("notBefore", lambda c: x509_format.render_time(c.not_valid_before_utc))
        )

    def get_valid_to(self) -> Result[BIOPointer, int]:
        return self._text(
            self._field("notAfter", lambda c: x509_format.render_time(c.not_valid_after_utc))
        )

    def get_valid_from_time(self) -> Optional[datetime]:
        return self._cert.not_valid_before_utc if self._cert is not None else None

    def get_valid_to_time(self) -> Optional[datetime]:
        return self._cert.not_valid_after_utc if self._cert is not None else None

    def get_serial_number(self) -> DataPointer:
        """Uppercase hex serial (``-`` prefixed if negative); empty for an empty view."""
        if self._cert is None:
            return DataPointer()
        serial = self._cert.serial_number
        with BignumPointer.from_int(abs(serial)) as bn:
            digits = bn.to_hex()
        if serial >= 0:
            return digits
        with digits:
            return DataPointer.copy_of(b"-" + digits.tobytes())

    def get_public_key(self) -> Result[EVPKeyPointer, int]:
        if self._cert is None:
            return Result.failure(pack_error(ErrorLibrary.X509, X509Reason.NO_CERTIFICATE))
        try:
            return Result.success(EVPKeyPointer(self._cert.public_key()))
        except (ValueError, UnsupportedAlgorithm):
            return Result.failure(push_error(ErrorLibrary.X509, X509Reason.UNSUPPORTED_KEY_TYPE))

    def get_key_usage(self) -> StackOfASN1:
        """
        Extended key usage OIDs.

        Returns:
            Owning list (empty when the extension is absent), or an empty
            wrapper when the extension is malformed or there is no certificate.
        """
        eku = self._extension(x509.ExtendedKeyUsage)
        if eku.ok:
            return StackOfASN1(list(eku.value))
        if eku.error == pack_error(ErrorLibrary.X509, X509Reason.EXTENSION_NOT_FOUND):
            return StackOfASN1([])
        return StackOfASN1()

    def to_pem(self) -> BIOPointer:
        if self._cert is None:
            return BIOPointer()
        return BIOPointer.new_mem(self._cert.public_bytes(serialization.Encoding.PEM))

    def to_der(self) -> BIOPointer:
        if self._cert is None:
            return BIOPointer()
        return BIOPointer.new_mem(self._cert.public_bytes(serialization.Encoding.DER))

    # -- structural checks ---------------------------------------------------

    def is_ca(self) -> bool:
        """
        CA certificate: basicConstraints cA is set and keyUsage, when
        present, allows keyCertSign.
        """
        constraints = self._extension(x509.BasicConstraints)
        if not (constraints.ok and constraints.value.ca):
            return False
        usage = self._extension(x509.KeyUsage)
        if usage.ok:
            return usage.value.key_cert_sign
        return usage.error == pack_error(ErrorLibrary.X509, X509Reason.EXTENSION_NOT_FOUND)

    def is_issued_by(self, issuer: "X509View") -> bool:
        """Issuer name of this certificate equals the subject of ``issuer`` (DER)."""
        if self._cert is None or issuer.cert is None:
            return False
        with ClearErrorOnReturn():
            try:
                return self._cert.issuer.public_bytes() == issuer.cert.subject.public_bytes()
            except ValueError:
                return False

    def check_private_key(self, pkey: EVPKeyPointer) -> bool:
        """The private key in ``pkey`` corresponds to this certificate's public key."""
        if self._cert is None or not pkey or not pkey.is_private():
            return False
        with ClearErrorOnReturn():
            try:
                return _spki(self._cert.public_key()) == _spki(pkey.public_key())
            except (ValueError, UnsupportedAlgorithm):
                push_error(ErrorLibrary.X509, X509Reason.KEY_VALUES_MISMATCH)
                return False

    def check_public_key(self, pkey: EVPKeyPointer) -> bool:
        """The certificate signature verifies under the public key in ``pkey``."""
        if self._cert is None or not pkey:
            return False
        with ClearErrorOnReturn():
            try:
                _verify_signature(self._cert, pkey.public_key())
                return True
            except InvalidSignature:
                return False
            except (TypeError, ValueError, UnsupportedAlgorithm):
                push_error(ErrorLibrary.X509, X509Reason.KEY_TYPE_MISMATCH)
                return False

    # -- identity matching ---------------------------------------------------

    def _san_values(self, name_type: Type[x509.GeneralName]) -> Optional[List[Any]]:
        assert self._cert is not None
        try:
            san = self._cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
        except x509.ExtensionNotFound:
            return None
        return san.value.get_values_for_type(name_type)

    def _subject_values(self, oid: x509.ObjectIdentifier) -> List[str]:
        assert self._cert is not None
        return [
            attr.value
            for attr in self._cert.subject.get_attributes_for_oid(oid)
            if isinstance(attr.value, str)
        ]

    def _check(self, kind: str, run: Callable[[], identity.MatchOutcome],
               peer_name: Optional[DataPointer] = None) -> CheckMatch:
        with ClearErrorOnReturn():
            if self._cert is None:
                return CheckMatch.NO_MATCH
            try:
                outcome, matched = run()
            except _DECODE_ERRORS as e:
                logger.warning("%s check failed: %s", kind, e.__class__.__name__)
                push_error(ErrorLibrary.X509, X509Reason.MALFORMED_EXTENSION, kind)
                return CheckMatch.OPERATION_FAILED
            if outcome is CheckMatch.MATCH and peer_name is not None and matched:
                peer_name.reset(bytearray(matched, "utf-8"))
            return outcome

    def check_host(
        self,
        host: str,
        flags: Optional[Union[int, identity.HostCheckOptions]] = None,
        peer_name: Optional[DataPointer] = None,
    ) -> CheckMatch:
        """
        Match a hostname against SAN dNSName entries, then subject CN.

        Args:
            host: presented hostname.
            flags: CHECK_FLAG_* bits or HostCheckOptions; defaults to
                ``NativeConfig.default_host_flags``.
            peer_name: receives the certificate name that matched.
        """
        bits = _host_flags(flags)
        return self._check(
            "host",
            lambda: identity.match_host(
                self._san_values(x509.DNSName),
                self._subject_values(NameOID.COMMON_NAME),
                host,
                bits,
            ),
            peer_name,
        )

    def check_email(self, email: str, flags: Optional[int] = None) -> CheckMatch:
        bits = _host_flags(flags)
        return self._check(
            "email",
            lambda: identity.match_email(
                self._san_values(x509.RFC822Name),
                self._subject_values(NameOID.EMAIL_ADDRESS),
                email,
                bits,
            ),
        )

    def check_ip(self, ip: str, flags: Optional[int] = None) -> CheckMatch:
        """
        Match an IPv4/IPv6 address; there is no subject fallback for addresses.

        ``flags`` is accepted for parity with the other checks; no flag
        changes address matching.
        """

        def run() -> identity.MatchOutcome:
            addresses = self._san_values(x509.IPAddress)
            packed = [a.packed for a in addresses or () if hasattr(a, "packed")]
            return identity.match_ip(packed, ip)

        return self._check("ip", run)


class X509Pointer(HandlePointer[x509.Certificate]):
    """
    Owning certificate wrapper.

    Examples:
        >>> with X509Pointer.parse(der_bytes).value as cert:
        ...     cert.view().is_ca()
        False
    """

    __slots__ = ()
    _accepts = (x509.Certificate,)

    @classmethod
    def parse(cls, data: BytesLike) -> Result["X509Pointer", int]:
        """
        Parse a PEM or DER certificate.

        PEM is tried first, then DER. Errors from the attempts are cleared
        before returning; the failure carries the last error code.
        """
        raw = bytes(data)
        with ClearErrorOnReturn():
            if _PEM_MARKER in raw:
                try:
                    return Result.success(cls(x509.load_pem_x509_certificate(raw)))
                except ValueError:
                    push_error(ErrorLibrary.ASN1, Asn1Reason.NESTED_ASN1_ERROR, "pem body")
            else:
                push_error(ErrorLibrary.PEM, PemReason.NO_START_LINE)
            try:
                return Result.success(cls(x509.load_der_x509_certificate(raw)))
            except ValueError:
                push_error(ErrorLibrary.ASN1, Asn1Reason.HEADER_TOO_LONG, "der")
            code = peek_last_error()
            logger.debug("Certificate parse failed: %08X", code)
            return Result.failure(code)

    def view(self) -> X509View:
        return X509View(self._resource)


def _host_flags(flags: Optional[Union[int, identity.HostCheckOptions]]) -> int:
    if flags is None:
        return get_config().default_host_flags
    if isinstance(flags, identity.HostCheckOptions):
        return flags.flags
    return int(flags)


def _spki(key: Any) -> bytes:
    return key.public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def _verify_signature(cert: x509.Certificate, key: Any) -> None:
    signature = cert.signature
    data = cert.tbs_certificate_bytes
    params = cert.signature_algorithm_parameters
    if isinstance(key, rsa.RSAPublicKey):
        key.verify(signature, data, params, cert.signature_hash_algorithm)
    elif isinstance(key, ec.EllipticCurvePublicKey):
        key.verify(signature, data, params)
    elif isinstance(key, dsa.DSAPublicKey):
        key.verify(signature, data, cert.signature_hash_algorithm)
    elif isinstance(key, (ed25519.Ed25519PublicKey, ed448.Ed448PublicKey)):
        key.verify(signature, data)
    else:
        raise TypeError(f"Unsupported verification key: {type(key).__name__}")


__all__ = ["X509View", "X509Pointer", "CheckMatch"]
