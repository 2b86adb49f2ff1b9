"""Тесты однократной инициализации toolkit (runtime.py)."""

from __future__ import annotations

import logging
import threading
from typing import List

import pytest

from src.security.native import runtime
from src.security.native.config import NativeConfig, set_config
from src.security.native.engine import EngineRegistry


class TestInitialize:
    def test_returns_runtime_info(self) -> None:
        info = runtime.initialize()
        assert info.openssl_version
        assert info.ssl_version
        assert info.development_checks is False
        assert runtime.is_initialized()

    def test_idempotent(self) -> None:
        first = runtime.initialize()
        assert runtime.initialize() is first

    def test_registers_builtin_engines(self) -> None:
        assert not runtime.is_initialized()
        runtime.initialize()
        assert "file" in EngineRegistry.get_instance()

    def test_concurrent_initialization(self) -> None:
        results: List[runtime.RuntimeInfo] = []

        def worker() -> None:
            results.append(runtime.initialize())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == 8
        assert all(info is results[0] for info in results)

    def test_development_checks_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        set_config(NativeConfig(development_checks=True))
        with caplog.at_level(logging.WARNING, logger="src.security.native.runtime"):
            info = runtime.initialize()
        assert info.development_checks
        assert "Development checks enabled" in caplog.text
