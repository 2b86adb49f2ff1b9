"""
Тесты режима FIPS (fips.py).

Бэкенд OpenSSL подменяется заглушкой: реальная сборка может не
поддерживать FIPS, а переключение режима глобально для процесса.
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest

from src.security.native import fips
from src.security.native.errors import CryptoErrorList, error_depth


def _backend(enabled: bool = False, enable: Any = None) -> SimpleNamespace:
    backend = SimpleNamespace(_fips_enabled=enabled)
    if enable is not None:
        backend._enable_fips = lambda: enable(backend)
    return backend


def _turn_on(backend: SimpleNamespace) -> None:
    backend._fips_enabled = True


@pytest.fixture
def errors() -> CryptoErrorList:
    return CryptoErrorList(CryptoErrorList.Option.NONE)


class TestFipsMode:
    def test_disabled_state(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(fips, "_openssl_backend", _backend(False))
        assert not fips.is_fips_enabled()
        assert not fips.test_fips_enabled()

    def test_requesting_current_state(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(fips, "_openssl_backend", _backend(False))
        assert fips.set_fips_enabled(False)

    def test_enable(self, monkeypatch: pytest.MonkeyPatch, errors: CryptoErrorList) -> None:
        monkeypatch.setattr(fips, "_openssl_backend", _backend(False, _turn_on))
        assert fips.set_fips_enabled(True, errors)
        assert fips.is_fips_enabled()
        assert fips.test_fips_enabled()
        assert errors.empty()

    def test_unsupported_build(
        self, monkeypatch: pytest.MonkeyPatch, errors: CryptoErrorList
    ) -> None:
        monkeypatch.setattr(fips, "_openssl_backend", _backend(False))
        assert not fips.set_fips_enabled(True, errors)
        assert "fips mode not supported" in errors.peek_back()
        assert error_depth() == 0

    def test_enable_raises(self, monkeypatch: pytest.MonkeyPatch, errors: CryptoErrorList) -> None:
        def broken(backend: SimpleNamespace) -> None:
            raise ValueError("FIPS provider not available")

        monkeypatch.setattr(fips, "_openssl_backend", _backend(False, broken))
        assert not fips.set_fips_enabled(True, errors)
        assert errors.peek_back().endswith(":ValueError")
        assert not fips.is_fips_enabled()

    def test_enable_without_effect(
        self, monkeypatch: pytest.MonkeyPatch, errors: CryptoErrorList
    ) -> None:
        monkeypatch.setattr(fips, "_openssl_backend", _backend(False, lambda backend: None))
        assert not fips.set_fips_enabled(True, errors)
        assert errors.size() == 1

    def test_cannot_disable(self, monkeypatch: pytest.MonkeyPatch, errors: CryptoErrorList) -> None:
        monkeypatch.setattr(fips, "_openssl_backend", _backend(True))
        assert not fips.set_fips_enabled(False, errors)
        assert errors.peek_back().endswith("cannot disable")
        assert fips.is_fips_enabled()

    def test_self_test_failure(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(fips, "_openssl_backend", _backend(True))
        monkeypatch.setattr(fips, "_KAT_DIGEST", b"\x00" * 32)
        assert not fips.test_fips_enabled()

    def test_real_backend_reports_bool(self) -> None:
        assert isinstance(fips.is_fips_enabled(), bool)
