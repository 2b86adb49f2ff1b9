"""
Общие fixtures для тестов нативного слоя.

- изоляция глобального состояния (очередь ошибок, конфигурация, hook
  освобождения, реестр движков, runtime);
- генерация ключей и сертификатов через builders ``cryptography``.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterator, List, Optional, Sequence, Tuple

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from src.security.native import engine, runtime
from src.security.native.config import NativeConfig, set_config
from src.security.native.engine import EngineRegistry
from src.security.native.errors import clear_errors
from src.security.native.handles import set_free_listener
from src.security.native.x509 import X509Pointer

NOT_BEFORE = datetime(2024, 1, 5, 8, 3, 9, tzinfo=timezone.utc)
NOT_AFTER = NOT_BEFORE + timedelta(days=3650)

CertFactory = Callable[..., Tuple[X509Pointer, ec.EllipticCurvePrivateKey]]


@pytest.fixture(autouse=True)
def _isolate_native_state() -> Iterator[None]:
    clear_errors()
    set_config(NativeConfig())
    previous_listener = set_free_listener(None)
    EngineRegistry.reset_instance()
    engine._reset_engines_for_tests()
    runtime._reset_for_tests()
    yield
    clear_errors()
    set_config(None)
    set_free_listener(previous_listener)
    EngineRegistry.reset_instance()
    engine._reset_engines_for_tests()
    runtime._reset_for_tests()


@pytest.fixture
def free_log() -> Iterator[List[Tuple[str, Any]]]:
    """Records every ``(kind, resource)`` freed while the test runs."""
    freed: List[Tuple[str, Any]] = []
    set_free_listener(lambda kind, resource: freed.append((kind, resource)))
    yield freed
    set_free_listener(None)


@pytest.fixture(scope="session")
def ec_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def other_ec_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


def make_name(common_name: str, *extra: x509.NameAttribute) -> x509.Name:
    return x509.Name([*extra, x509.NameAttribute(NameOID.COMMON_NAME, common_name)])


@pytest.fixture
def make_cert(ec_key: ec.EllipticCurvePrivateKey) -> CertFactory:
    """
    Factory for self-signed (or CA-signed) certificates.

    Keyword args:
        subject: x509.Name (default CN=example.org)
        san: list of GeneralName, or None for no SAN extension
        extensions: sequence of (extension, critical)
        key: subject key (default: session EC key)
        issuer: (issuer Name, issuer key) to sign with
        serial: serial number
    """

    def factory(
        *,
        subject: Optional[x509.Name] = None,
        san: Optional[Sequence[x509.GeneralName]] = None,
        extensions: Sequence[Tuple[x509.ExtensionType, bool]] = (),
        key: Optional[ec.EllipticCurvePrivateKey] = None,
        issuer: Optional[Tuple[x509.Name, ec.EllipticCurvePrivateKey]] = None,
        serial: int = 0x0F1E,
    ) -> Tuple[X509Pointer, ec.EllipticCurvePrivateKey]:
        subject_key = key or ec_key
        subject_name = subject or make_name("example.org")
        issuer_name, signing_key = issuer or (subject_name, subject_key)
        builder = (
            x509.CertificateBuilder()
            .subject_name(subject_name)
            .issuer_name(issuer_name)
            .public_key(subject_key.public_key())
            .serial_number(serial)
            .not_valid_before(NOT_BEFORE)
            .not_valid_after(NOT_AFTER)
        )
        if san is not None:
            builder = builder.add_extension(x509.SubjectAlternativeName(san), critical=False)
        for extension, critical in extensions:
            builder = builder.add_extension(extension, critical=critical)
        cert = builder.sign(signing_key, hashes.SHA256())
        return X509Pointer(cert), subject_key

    return factory


@pytest.fixture
def wildcard_cert(make_cert: CertFactory) -> X509Pointer:
    cert, _ = make_cert(san=[x509.DNSName("*.example.com")])
    return cert
