# -*- coding: utf-8 -*-
"""
RU: Однократная инициализация нативного toolkit перед любыми операциями.
EN: One-time toolkit initialization; repeated calls are no-ops.
"""
from __future__ import annotations

import logging
import ssl
import threading
from dataclasses import dataclass
from typing import Final, Optional

from cryptography.hazmat.backends.openssl.backend import backend as _openssl_backend

from src.security.native.config import get_config
from src.security.native.engine import init_engines_once

_LOGGER: Final = logging.getLogger(__name__)

_lock = threading.Lock()
_state: Optional["RuntimeInfo"] = None


@dataclass(frozen=True)
class RuntimeInfo:
    """
    Сведения об инициализированном toolkit.

    Attributes:
        openssl_version: Версия OpenSSL, с которой собран ``cryptography``
        ssl_version: Версия OpenSSL модуля ``ssl``
        development_checks: Включены ли проверки разработки
    """

    openssl_version: str
    ssl_version: str
    development_checks: bool


def initialize() -> RuntimeInfo:
    """
    Initialize the toolkit once (engine tables, configuration).

    Thread-safe and idempotent: every call returns the same RuntimeInfo.
    """
    global _state
    if _state is not None:
        return _state
    with _lock:
        if _state is None:
            init_engines_once()
            config = get_config()
            _state = RuntimeInfo(
                openssl_version=_openssl_backend.openssl_version_text(),
                ssl_version=ssl.OPENSSL_VERSION,
                development_checks=config.development_checks,
            )
            _LOGGER.info("Native toolkit initialized (%s)", _state.openssl_version)
            if config.development_checks:
                _LOGGER.warning("Development checks enabled: violations abort the process")
    return _state


def is_initialized() -> bool:
    return _state is not None


def _reset_for_tests() -> None:
    global _state
    with _lock:
        _state = None


__all__ = ["RuntimeInfo", "initialize", "is_initialized"]
