"""
Пакет ncrypto-py
================

Слой безопасности над нативными дескрипторами криптографического toolkit
(OpenSSL через ``cryptography`` и ``ssl``).

Этот пакет предоставляет:
    - Move-only дескрипторы нативных ресурсов с гарантированным освобождением
    - Scope-примитивы очереди ошибок (capture / clear / mark-pop)
    - Кодек больших чисел фиксированной ширины
    - Извлечение полей X.509 и сопоставление идентичности (host, email, IP)
    - Движки, режим FIPS, CSPRNG и callback'и парольной фразы

Пример базового использования:
    >>> from src.security.native import X509Pointer, CheckMatch
    >>> from src import get_logger
    >>>
    >>> logger = get_logger(__name__)
    >>> res = X509Pointer.parse(pem_bytes)
    >>> if res.ok and res.value.view().check_host("www.example.com") is CheckMatch.MATCH:
    ...     logger.info("Peer identity verified")

Управление конфигурацией:
    >>> import os
    >>> os.environ['NCRYPTO_LOG_LEVEL'] = 'DEBUG'
    >>> os.environ['NCRYPTO_DEVELOPMENT_CHECKS'] = '1'
    >>>
    >>> from src import load_config
    >>> config = load_config()
    >>> config.development_checks
    True

Версия: 0.1.0
Лицензия: MIT
Python: 3.10+
"""

import importlib.util
import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Optional

if TYPE_CHECKING:
    from src.security.native.config import NativeConfig

# =============================================================================
# МЕТАДАННЫЕ ВЕРСИИ
# =============================================================================

__version__ = "0.1.0"
__author__ = "ncrypto-py Development Team"
__description__ = "Resource-safety and semantic layer over native crypto handles"
__license__ = "MIT"
__python_requires__ = ">=3.10"

VERSION_MAJOR = 0
VERSION_MINOR = 1
VERSION_PATCH = 0

# =============================================================================
# ПРОВЕРКА ВЕРСИИ PYTHON
# =============================================================================

if sys.version_info < (3, 10):
    raise RuntimeError(
        f"ncrypto-py требует Python 3.10 или выше. "
        f"Текущая версия: {sys.version_info.major}."
        f"{sys.version_info.minor}.{sys.version_info.micro}"
    )

# =============================================================================
# КОНФИГУРАЦИЯ ЛОГИРОВАНИЯ
# =============================================================================

_PACKAGE_LOGGER = __name__

_LOG_FORMAT = "[%(asctime)s] %(levelname)-8s [%(name)s.%(funcName)s:%(lineno)d] %(message)s"


def _setup_logging() -> None:
    """
    Инициализировать логирование пакета.

    - Консольный обработчик (stderr) для WARNING и выше
    - Ротирующий файловый обработчик, только если задан NCRYPTO_LOG_FILE
    - Уровень из NCRYPTO_LOG_LEVEL (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Идемпотентна: повторные вызовы не добавляют обработчиков.
    Записи распространяются к корневому логгеру приложения.
    """
    log_level_str = os.environ.get("NCRYPTO_LOG_LEVEL", "INFO").upper()
    log_level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }
    log_level = log_level_map.get(log_level_str, logging.INFO)

    package_logger = logging.getLogger(_PACKAGE_LOGGER)
    package_logger.setLevel(log_level)
    if package_logger.handlers:
        return

    formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    log_file = os.environ.get("NCRYPTO_LOG_FILE")
    if not log_file:
        return
    try:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_path,
            maxBytes=10 * 1024 * 1024,  # 10 МБ
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)
    except OSError as e:
        package_logger.warning(
            "Не удалось инициализировать файловое логирование: %s. Используется только консоль.",
            e,
        )


def get_logger(module_name: str) -> logging.Logger:
    """
    Получить логгер модуля в пространстве имён пакета.

    Аргументы:
        module_name: Обычно ``__name__``.

    Возвращает:
        logging.Logger с именем ``src.<module_name>``.

    Пример:
        >>> get_logger("security.native.x509").name
        'src.security.native.x509'
    """
    if module_name == _PACKAGE_LOGGER or module_name.startswith(_PACKAGE_LOGGER + "."):
        return logging.getLogger(module_name)
    if module_name == "__main__":
        return logging.getLogger(f"{_PACKAGE_LOGGER}.main")
    clean_name = module_name.lstrip(".")
    if not clean_name:
        return logging.getLogger(_PACKAGE_LOGGER)
    return logging.getLogger(f"{_PACKAGE_LOGGER}.{clean_name}")


# =============================================================================
# УПРАВЛЕНИЕ КОНФИГУРАЦИЕЙ
# =============================================================================


def load_config(config_path: Optional[Path] = None) -> "NativeConfig":
    """
    Загрузить конфигурацию нативного слоя (JSON поверх NCRYPTO_* окружения).

    Аргументы:
        config_path: Опциональный путь к JSON-файлу.

    Возвращает:
        NativeConfig; при ошибке чтения файла — окружение/значения по умолчанию.
    """
    from src.security.native.config import load_config as _load_native_config

    return _load_native_config(config_path)


def check_dependencies() -> Dict[str, bool]:
    """
    Проверить доступность зависимостей, не импортируя их.

    Обязательные:
        - cryptography: PEM/DER, X.509, ключи, бэкенд OpenSSL
        - ssl: стандартный модуль TLS (собран с OpenSSL)

    Опциональные:
        - pytest: тестовый набор

    Возвращает:
        Словарь {имя пакета -> доступен ли}.
    """
    return {
        "cryptography": importlib.util.find_spec("cryptography") is not None,
        "ssl": importlib.util.find_spec("ssl") is not None,
        "pytest": importlib.util.find_spec("pytest") is not None,
    }


_setup_logging()

__all__ = [
    "__version__",
    "__author__",
    "__description__",
    "__license__",
    "__python_requires__",
    "VERSION_MAJOR",
    "VERSION_MINOR",
    "VERSION_PATCH",
    "get_logger",
    "load_config",
    "check_dependencies",
]
