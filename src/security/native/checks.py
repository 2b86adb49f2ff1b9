# -*- coding: utf-8 -*-
"""
RU: Внутренние проверки согласованности (только для разработки).
EN: Development-only consistency assertions.

When ``NativeConfig.development_checks`` is enabled a failed check logs the
violation at CRITICAL level and aborts the process. When disabled every
check is a no-op. These are debugging aids, not part of the error
taxonomy: callers never see them as return values or exceptions.
"""
from __future__ import annotations

import logging
import os
from typing import Any, Final

from src.security.native.config import get_config

_LOGGER: Final = logging.getLogger(__name__)


def enabled() -> bool:
    """Whether development checks are active for this process."""
    return get_config().development_checks


def fail(message: str) -> None:
    """Abort with ``message`` when development checks are enabled."""
    if not enabled():
        return
    _LOGGER.critical("FAIL: %s", message)
    os.abort()


def assert_true(condition: bool, message: str) -> None:
    if not condition:
        fail(message)


def assert_equal(lhs: Any, rhs: Any, message: str) -> None:
    if lhs != rhs:
        if enabled():
            _LOGGER.critical("Mismatch: '%s' - '%s'", lhs, rhs)
        fail(message)


__all__ = ["enabled", "fail", "assert_true", "assert_equal"]
