"""
RU: Слой безопасности над нативными дескрипторами криптографического toolkit.
EN: Resource-safety layer over native crypto handles: move-only wrappers,
error-queue scopes, the fixed-width bignum codec and X.509 identity checks.
"""

from .bignum import WORD_OVERFLOW, Bignum, BignumPointer
from .config import NativeConfig, get_config, load_config, set_config
from .core.exceptions import (
    CryptoError,
    EncodingError,
    EncodingOverflowError,
    ErrorScopeError,
    HandleCopyError,
    HandleError,
    InvalidParameterError,
    InvalidResourceError,
    ResultError,
    ValidationError,
)
from .engine import (
    ENGINE_METHOD_ALL,
    EnginePointer,
    EngineProtocol,
    EngineRegistry,
    init_engines_once,
)
from .errors import (
    ClearErrorOnReturn,
    CryptoErrorList,
    ErrorLibrary,
    MarkPopErrorOnReturn,
    clear_errors,
    error_mark,
    get_error,
    peek_error,
    pop_to_mark,
    push_error,
)
from .fips import is_fips_enabled, set_fips_enabled
from .handles import (
    BIOPointer,
    CipherCtxPointer,
    DHPointer,
    DSAPointer,
    ECGroupPointer,
    ECKeyPointer,
    EVPKeyPointer,
    EVPMDCtxPointer,
    HandlePointer,
    HMACCtxPointer,
    RSAPointer,
    SSLCtxPointer,
    SSLPointer,
    SSLSessionPointer,
    StackOfASN1,
    set_free_listener,
)
from .identity import (
    CHECK_FLAG_ALWAYS_CHECK_SUBJECT,
    CHECK_FLAG_MULTI_LABEL_WILDCARDS,
    CHECK_FLAG_NEVER_CHECK_SUBJECT,
    CHECK_FLAG_NO_PARTIAL_WILDCARDS,
    CHECK_FLAG_NO_WILDCARDS,
    CHECK_FLAG_SINGLE_LABEL_SUBDOMAINS,
    CheckMatch,
    HostCheckOptions,
)
from .keys import load_private_key, load_public_key, no_password_callback, password_callback
from .memory import Buffer, DataPointer
from .result import Result
from .runtime import initialize
from .utils import csprng, csprng_bytes, secure_compare, zero_memory
from .x509 import X509Pointer, X509View

__all__ = [
    # Handles
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
    # Memory
    "Buffer",
    "DataPointer",
    "Result",
    # Error queue
    "ErrorLibrary",
    "CryptoErrorList",
    "ClearErrorOnReturn",
    "MarkPopErrorOnReturn",
    "push_error",
    "peek_error",
    "get_error",
    "clear_errors",
    "error_mark",
    "pop_to_mark",
    # Bignum
    "Bignum",
    "BignumPointer",
    "WORD_OVERFLOW",
    # X.509
    "X509View",
    "X509Pointer",
    "CheckMatch",
    "HostCheckOptions",
    "CHECK_FLAG_ALWAYS_CHECK_SUBJECT",
    "CHECK_FLAG_NO_WILDCARDS",
    "CHECK_FLAG_NO_PARTIAL_WILDCARDS",
    "CHECK_FLAG_MULTI_LABEL_WILDCARDS",
    "CHECK_FLAG_SINGLE_LABEL_SUBDOMAINS",
    "CHECK_FLAG_NEVER_CHECK_SUBJECT",
    # Keys
    "load_private_key",
    "load_public_key",
    "no_password_callback",
    "password_callback",
    # Engines
    "EngineProtocol",
    "EngineRegistry",
    "EnginePointer",
    "ENGINE_METHOD_ALL",
    "init_engines_once",
    # FIPS and utilities
    "is_fips_enabled",
    "set_fips_enabled",
    "csprng",
    "csprng_bytes",
    "secure_compare",
    "zero_memory",
    "initialize",
    # Configuration
    "NativeConfig",
    "get_config",
    "set_config",
    "load_config",
    # Exceptions
    "CryptoError",
    "HandleError",
    "HandleCopyError",
    "InvalidResourceError",
    "ResultError",
    "EncodingError",
    "EncodingOverflowError",
    "ErrorScopeError",
    "ValidationError",
    "InvalidParameterError",
]
