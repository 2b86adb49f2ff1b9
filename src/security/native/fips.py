# -*- coding: utf-8 -*-
"""
RU: Режим FIPS: чтение флага, включение и проверка с самотестом.
EN: Process-wide FIPS mode flag: get, set and test.

Enabling FIPS on a toolkit build without FIPS support fails cleanly: the
call returns False and the reason is reported through the caller's
CryptoErrorList. It never silently no-ops.
"""
from __future__ import annotations

import logging
from typing import Final, Optional

from cryptography.exceptions import InternalError
from cryptography.hazmat.backends.openssl.backend import backend as _openssl_backend
from cryptography.hazmat.primitives import hashes

from src.security.native.errors import (
    ClearErrorOnReturn,
    CryptoErrorList,
    ErrorLibrary,
    EvpReason,
    push_error,
)
from src.security.native.utils import secure_compare

_LOGGER: Final = logging.getLogger(__name__)

# SHA-256("abc"), FIPS 180-2 appendix B.1
_KAT_MESSAGE: Final = b"abc"
_KAT_DIGEST: Final = bytes.fromhex(
    "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
)


def is_fips_enabled() -> bool:
    return bool(getattr(_openssl_backend, "_fips_enabled", False))


def set_fips_enabled(enabled: bool, errors: Optional[CryptoErrorList] = None) -> bool:
    """
    Switch FIPS mode.

    Args:
        enabled: requested state.
        errors: receives the diagnostics of a failed switch.

    Returns:
        True when FIPS mode is in the requested state afterwards.
    """
    if is_fips_enabled() == enabled:
        return True
    with ClearErrorOnReturn(errors):
        if not enabled:
            push_error(ErrorLibrary.EVP, EvpReason.FIPS_MODE_NOT_SUPPORTED, "cannot disable")
            return False
        enable = getattr(_openssl_backend, "_enable_fips", None)
        if enable is None:
            push_error(ErrorLibrary.EVP, EvpReason.FIPS_MODE_NOT_SUPPORTED)
            return False
        try:
            enable()
        except (InternalError, ValueError, RuntimeError, AssertionError) as e:
            _LOGGER.warning("FIPS mode could not be enabled: %s", e.__class__.__name__)
            push_error(ErrorLibrary.EVP, EvpReason.FIPS_MODE_NOT_SUPPORTED, e.__class__.__name__)
            return False
        if not is_fips_enabled():
            push_error(ErrorLibrary.EVP, EvpReason.FIPS_MODE_NOT_SUPPORTED)
            return False
    _LOGGER.info("FIPS mode enabled")
    return True


def _self_test() -> bool:
    try:
        digest = hashes.Hash(hashes.SHA256())
        digest.update(_KAT_MESSAGE)
        return secure_compare(digest.finalize(), _KAT_DIGEST)
    except Exception as e:
        _LOGGER.warning("FIPS self test failed: %s", e.__class__.__name__)
        return False


def test_fips_enabled() -> bool:
    """FIPS mode is active and the SHA-256 known-answer test passes."""
    return is_fips_enabled() and _self_test()


__all__ = ["is_fips_enabled", "set_fips_enabled", "test_fips_enabled"]
