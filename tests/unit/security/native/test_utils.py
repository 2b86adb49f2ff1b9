"""
Unit-тесты для utils.py и checks.py.

- zero_memory / secure_compare
- csprng: успешное заполнение, повторы, отказ с записью в очередь
- проверки разработки: no-op по умолчанию, abort при включении
"""

from __future__ import annotations

import logging

import pytest

from src.security.native import checks, utils
from src.security.native.config import NativeConfig, set_config
from src.security.native.errors import (
    ErrorLibrary,
    RandReason,
    error_depth,
    pack_error,
    peek_last_error,
)


class TestZeroMemory:
    def test_bytearray_is_wiped(self) -> None:
        buf = bytearray(b"secret")
        utils.zero_memory(buf)
        assert buf == bytearray(6)

    def test_memoryview_slice_is_wiped(self) -> None:
        buf = bytearray(b"abcdef")
        utils.zero_memory(memoryview(buf)[2:4])
        assert buf == bytearray(b"ab\x00\x00ef")

    def test_none_and_immutable_are_ignored(self) -> None:
        utils.zero_memory(None)
        utils.zero_memory(b"immutable")  # type: ignore[arg-type]


class TestSecureCompare:
    def test_equal(self) -> None:
        assert utils.secure_compare(b"abc", bytearray(b"abc"))

    def test_not_equal(self) -> None:
        assert not utils.secure_compare(b"abc", b"abd")
        assert not utils.secure_compare(b"abc", b"ab")


class TestCsprng:
    def test_fills_buffer(self) -> None:
        buf = bytearray(32)
        assert utils.csprng(buf)
        assert any(buf)
        assert error_depth() == 0

    def test_empty_buffer(self) -> None:
        assert utils.csprng(bytearray())

    def test_too_large_request(self) -> None:
        buf = memoryview(bytearray(10 * 1024 * 1024 + 1))
        assert not utils.csprng(buf)
        assert peek_last_error() == pack_error(ErrorLibrary.RAND, RandReason.ARGUMENT_OUT_OF_RANGE)

    def test_retries_then_succeeds(self, monkeypatch: pytest.MonkeyPatch) -> None:
        calls = []

        def flaky(n: int) -> bytes:
            calls.append(n)
            if len(calls) < 3:
                raise OSError("entropy not ready")
            return b"\x01" * n

        monkeypatch.setattr(utils.os, "urandom", flaky)
        buf = bytearray(4)
        assert utils.csprng(buf)
        assert buf == bytearray(b"\x01" * 4)
        assert len(calls) == 3

    def test_failure_wipes_and_queues_error(
        self, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        def broken(n: int) -> bytes:
            raise OSError("no entropy")

        monkeypatch.setattr(utils.os, "urandom", broken)
        set_config(NativeConfig(csprng_retries=1))
        buf = bytearray(b"\xff" * 8)

        with caplog.at_level(logging.WARNING, logger="src.security.native.utils"):
            assert not utils.csprng(buf)

        assert buf == bytearray(8)
        assert peek_last_error() == pack_error(
            ErrorLibrary.RAND, RandReason.ERROR_RETRIEVING_ENTROPY
        )
        assert len([r for r in caplog.records if "Entropy read failed" in r.message]) == 2

    def test_csprng_bytes(self) -> None:
        data = utils.csprng_bytes(16)
        assert data is not None and len(data) == 16
        assert utils.csprng_bytes(0) == b""

    def test_csprng_bytes_negative(self) -> None:
        with pytest.raises(ValueError):
            utils.csprng_bytes(-1)

    def test_csprng_bytes_failure(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def broken(n: int) -> bytes:
            raise OSError("no entropy")

        monkeypatch.setattr(utils.os, "urandom", broken)
        set_config(NativeConfig(csprng_retries=0))
        assert utils.csprng_bytes(8) is None


class TestDevelopmentChecks:
    def test_disabled_by_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        aborted = []
        monkeypatch.setattr(checks.os, "abort", lambda: aborted.append(True))

        checks.fail("ignored")
        checks.assert_true(False, "ignored")
        checks.assert_equal(1, 2, "ignored")

        assert not checks.enabled()
        assert aborted == []

    def test_enabled_aborts(
        self, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        aborted = []
        monkeypatch.setattr(checks.os, "abort", lambda: aborted.append(True))
        set_config(NativeConfig(development_checks=True))

        with caplog.at_level(logging.CRITICAL, logger="src.security.native.checks"):
            checks.assert_equal(3, 4, "length mismatch")

        assert aborted == [True]
        messages = [r.getMessage() for r in caplog.records]
        assert "Mismatch: '3' - '4'" in messages
        assert "FAIL: length mismatch" in messages

    def test_passing_checks_do_nothing(self, monkeypatch: pytest.MonkeyPatch) -> None:
        aborted = []
        monkeypatch.setattr(checks.os, "abort", lambda: aborted.append(True))
        set_config(NativeConfig(development_checks=True))

        checks.assert_true(True, "ok")
        checks.assert_equal("a", "a", "ok")

        assert aborted == []
