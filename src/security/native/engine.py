"""
Движки (engines): подключаемые провайдеры ключей и алгоритмов.

EngineProtocol — структурный интерфейс движка, EngineRegistry —
thread-safe реестр движков по идентификатору, EnginePointer — владеющий
дескриптор, который при освобождении либо завершает (finish) движок,
либо просто отпускает ссылку.

Встроенный движок ``file`` загружает закрытые ключи PEM/DER из файлов.
Движки вне реестра могут быть загружены динамически по имени вида
``package.module:attribute`` (если разрешено NativeConfig).

Example:
    >>> init_engines_once()
    >>> errors = CryptoErrorList(CryptoErrorList.Option.NONE)
    >>> engine = EnginePointer.get_engine_by_name("file", errors)
    >>> engine.init(finish_on_exit=True)
    True
    >>> key = engine.load_private_key("/etc/keys/server.pem")

Thread Safety:
    Реестр защищён RLock. Отдельный EnginePointer используется одним
    потоком за раз.
"""

from __future__ import annotations

import importlib
import logging
import threading
from typing import Any, ClassVar, Dict, List, Optional, Protocol, runtime_checkable

from src.security.native.config import get_config
from src.security.native.errors import (
    ClearErrorOnReturn,
    CryptoErrorList,
    EngineReason,
    ErrorLibrary,
    MarkPopErrorOnReturn,
    push_error,
)
from src.security.native.handles import EVPKeyPointer, HandlePointer
from src.security.native.keys import load_private_key

logger = logging.getLogger(__name__)

ENGINE_METHOD_RSA = 0x0001
ENGINE_METHOD_DSA = 0x0002
ENGINE_METHOD_DH = 0x0004
ENGINE_METHOD_RAND = 0x0008
ENGINE_METHOD_CIPHERS = 0x0040
ENGINE_METHOD_DIGESTS = 0x0080
ENGINE_METHOD_PKEY_METHS = 0x0200
ENGINE_METHOD_PKEY_ASN1_METHS = 0x0400
ENGINE_METHOD_EC = 0x0800
ENGINE_METHOD_ALL = 0xFFFF
ENGINE_METHOD_NONE = 0x0000


# ==============================================================================
# PROTOCOL
# ==============================================================================


@runtime_checkable
class EngineProtocol(Protocol):
    """
    Протокол движка.

    Attributes:
        engine_id: Уникальный идентификатор движка (например, "file")

    Methods:
        init: Функциональная инициализация; True при успехе
        finish: Освобождение функциональной ссылки; True при успехе
        set_default: Сделать движок провайдером по умолчанию для flags
        load_private_key: Закрытый ключ по идентификатору или None
    """

    engine_id: str

    def init(self) -> bool: ...

    def finish(self) -> bool: ...

    def set_default(self, flags: int) -> bool: ...

    def load_private_key(self, key_id: str) -> Any: ...


# ==============================================================================
# BUILT-IN ENGINE
# ==============================================================================


class FileEngine:
    """Loads private keys from PEM/DER files; ``key_id`` is a filesystem path."""

    engine_id = "file"

    def __init__(self) -> None:
        self._references = 0
        self.default_flags = ENGINE_METHOD_NONE

    @property
    def initialized(self) -> bool:
        return self._references > 0

    def init(self) -> bool:
        self._references += 1
        return True

    def finish(self) -> bool:
        if self._references == 0:
            push_error(ErrorLibrary.ENGINE, EngineReason.FINISH_FAILED)
            return False
        self._references -= 1
        return True

    def set_default(self, flags: int) -> bool:
        if not self.initialized:
            push_error(ErrorLibrary.ENGINE, EngineReason.NOT_INITIALISED)
            return False
        self.default_flags = flags
        return True

    def load_private_key(self, key_id: str) -> Any:
        if not self.initialized:
            push_error(ErrorLibrary.ENGINE, EngineReason.NOT_INITIALISED)
            return None
        try:
            with open(key_id, "rb") as fh:
                data = fh.read()
        except OSError as e:
            logger.warning("Key file unreadable: %s", e.__class__.__name__)
            push_error(ErrorLibrary.ENGINE, EngineReason.FAILED_LOADING_PRIVATE_KEY)
            return None
        result = load_private_key(data)
        if not result.ok:
            push_error(ErrorLibrary.ENGINE, EngineReason.FAILED_LOADING_PRIVATE_KEY)
            return None
        return result.value.release()


# ==============================================================================
# REGISTRY
# ==============================================================================


class EngineRegistry:
    """
    Thread-safe реестр движков.

    Example:
        >>> registry = EngineRegistry.get_instance()
        >>> registry.register(FileEngine())
        >>> registry.get("file").engine_id
        'file'
    """

    _instance: ClassVar[Optional["EngineRegistry"]] = None
    _lock: ClassVar[threading.RLock] = threading.RLock()

    def __init__(self) -> None:
        if EngineRegistry._instance is not None:
            raise RuntimeError(
                "EngineRegistry is a singleton. Use EngineRegistry.get_instance()"
            )
        self._engines: Dict[str, EngineProtocol] = {}

    @classmethod
    def get_instance(cls) -> "EngineRegistry":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Сбросить singleton (только для тестов)."""
        with cls._lock:
            cls._instance = None
            logger.warning("EngineRegistry instance reset (testing only!)")

    def register(self, engine: EngineProtocol, *, replace: bool = False) -> None:
        """
        Зарегистрировать движок.

        Raises:
            TypeError: Если объект не реализует EngineProtocol
            ValueError: Если идентификатор пустой или уже занят (replace=False)
        """
        if not isinstance(engine, EngineProtocol):
            raise TypeError(
                f"engine должен реализовать EngineProtocol, получено {type(engine).__name__}"
            )
        engine_id = engine.engine_id
        if not engine_id or not engine_id.strip():
            raise ValueError("Идентификатор движка не может быть пустым")
        with self._lock:
            if engine_id in self._engines and not replace:
                raise ValueError(f"Движок '{engine_id}' уже зарегистрирован")
            self._engines[engine_id] = engine
        logger.info("Registered engine: %s", engine_id)

    def unregister(self, engine_id: str) -> bool:
        with self._lock:
            removed = self._engines.pop(engine_id, None) is not None
        if removed:
            logger.info("Unregistered engine: %s", engine_id)
        return removed

    def get(self, engine_id: str) -> Optional[EngineProtocol]:
        with self._lock:
            return self._engines.get(engine_id)

    def list_engines(self) -> List[str]:
        with self._lock:
            return sorted(self._engines)

    def __contains__(self, engine_id: object) -> bool:
        with self._lock:
            return engine_id in self._engines


_init_lock = threading.Lock()
_engines_initialized = False


def init_engines_once() -> None:
    """Register the built-in engines; later calls are no-ops."""
    global _engines_initialized
    if _engines_initialized:
        return
    with _init_lock:
        if _engines_initialized:
            return
        registry = EngineRegistry.get_instance()
        if "file" not in registry:
            registry.register(FileEngine())
        _engines_initialized = True
        logger.debug("Built-in engines registered")


def _reset_engines_for_tests() -> None:
    global _engines_initialized
    with _init_lock:
        _engines_initialized = False


def _load_dynamic(name: str) -> Optional[EngineProtocol]:
    module_name, sep, attribute = name.partition(":")
    if not sep or not module_name or not attribute:
        return None
    try:
        target = getattr(importlib.import_module(module_name), attribute)
    except (ImportError, AttributeError) as e:
        logger.warning("Dynamic engine %s not loadable: %s", name, e.__class__.__name__)
        push_error(ErrorLibrary.ENGINE, EngineReason.DSO_FAILURE, name)
        return None
    engine = target() if isinstance(target, type) else target
    if not isinstance(engine, EngineProtocol):
        push_error(ErrorLibrary.ENGINE, EngineReason.DSO_FAILURE, name)
        return None
    return engine


# ==============================================================================
# OWNING POINTER
# ==============================================================================


class EnginePointer(HandlePointer[Any]):
    """
    Owns one engine reference.

    With ``finish_on_exit`` the engine is finished (functional reference
    released) when the pointer is freed; otherwise only the structural
    reference is dropped.
    """

    __slots__ = ("_finish_on_exit",)
    _required_methods = ("init", "finish", "set_default", "load_private_key")

    def __init__(self, engine: Optional[EngineProtocol] = None, finish_on_exit: bool = False) -> None:
        self._finish_on_exit = False
        super().__init__()
        if engine is not None:
            self.reset(engine, finish_on_exit)

    def reset(self, engine: Optional[EngineProtocol] = None, finish_on_exit: bool = False) -> None:  # type: ignore[override]
        super().reset(engine)
        self._finish_on_exit = finish_on_exit

    def _free(self, resource: Any) -> None:
        if self._finish_on_exit:
            if not resource.finish():
                logger.warning("Engine %s finish failed", resource.engine_id)

    def _take_from(self, other: "EnginePointer") -> None:  # type: ignore[override]
        super()._take_from(other)
        self._finish_on_exit = other._finish_on_exit
        other._finish_on_exit = False

    @property
    def finish_on_exit(self) -> bool:
        return self._finish_on_exit

    def set_finish_on_exit(self) -> None:
        self._finish_on_exit = True

    def init(self, finish_on_exit: bool = False) -> bool:
        if self._resource is None:
            return False
        if finish_on_exit:
            self.set_finish_on_exit()
        return bool(self._resource.init())

    def set_as_default(
        self,
        flags: int = ENGINE_METHOD_ALL,
        errors: Optional[CryptoErrorList] = None,
    ) -> bool:
        """Make the engine the default provider for ``flags``; diagnostics go to ``errors``."""
        if self._resource is None:
            return False
        with ClearErrorOnReturn(errors):
            return bool(self._resource.set_default(flags))

    def load_private_key(self, key_name: str) -> EVPKeyPointer:
        """Key loaded by the engine; an empty EVPKeyPointer on failure."""
        if self._resource is None:
            return EVPKeyPointer()
        key = self._resource.load_private_key(key_name)
        return EVPKeyPointer(key) if key is not None else EVPKeyPointer()

    @classmethod
    def get_engine_by_name(
        cls,
        name: str,
        errors: Optional[CryptoErrorList] = None,
    ) -> "EnginePointer":
        """
        Look an engine up by id, falling back to dynamic loading.

        Errors raised during the lookup are reported through ``errors`` and
        then popped; errors queued before the call survive.

        Returns:
            EnginePointer (empty when no engine could be found).
        """
        with MarkPopErrorOnReturn(errors):
            engine = EngineRegistry.get_instance().get(name)
            if engine is None and get_config().engine_dynamic_loading:
                engine = _load_dynamic(name)
            if engine is None:
                push_error(ErrorLibrary.ENGINE, EngineReason.NO_SUCH_ENGINE, f"id={name}")
                return cls()
            return cls(engine)


__all__ = [
    "ENGINE_METHOD_RSA",
    "ENGINE_METHOD_DSA",
    "ENGINE_METHOD_DH",
    "ENGINE_METHOD_RAND",
    "ENGINE_METHOD_CIPHERS",
    "ENGINE_METHOD_DIGESTS",
    "ENGINE_METHOD_PKEY_METHS",
    "ENGINE_METHOD_PKEY_ASN1_METHS",
    "ENGINE_METHOD_EC",
    "ENGINE_METHOD_ALL",
    "ENGINE_METHOD_NONE",
    "EngineProtocol",
    "FileEngine",
    "EngineRegistry",
    "EnginePointer",
    "init_engines_once",
]
