# -*- coding: utf-8 -*-
"""
RU: Конфигурация слоя нативных дескрипторов: проверки разработки, размер
буфера пароля, флаги проверки хоста по умолчанию, повторы CSPRNG.
EN: Native handle layer configuration loaded from defaults, the environment
or a JSON file.
"""
from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Final, Mapping, Optional

_LOGGER: Final = logging.getLogger(__name__)

ENV_PREFIX: Final[str] = "NCRYPTO_"

_TRUE_VALUES: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True)
class NativeConfig:
    """
    Native layer configuration parameters.

    Attributes:
        development_checks: Abort the process on internal consistency
            violations (debugging aid, never enable in production).
        passphrase_buffer_size: Capacity of the buffer handed to passphrase
            callbacks while loading private keys.
        default_host_flags: X509 check flags used when ``check_host`` is
            called without explicit flags.
        csprng_retries: How many times a failed entropy read is retried
            before ``csprng`` reports failure.
        engine_dynamic_loading: Allow ``get_engine_by_name`` to import
            ``module:attribute`` engine factories.

    Examples:
        >>> cfg = NativeConfig()
        >>> cfg.passphrase_buffer_size
        1024

        >>> NativeConfig(passphrase_buffer_size=0)
        Traceback (most recent call last):
        ValueError: passphrase_buffer_size must be between 1 and 65536
    """

    development_checks: bool = False
    passphrase_buffer_size: int = 1024
    default_host_flags: int = 0
    csprng_retries: int = 3
    engine_dynamic_loading: bool = True

    def __post_init__(self) -> None:
        """Validate parameters."""
        if not 1 <= self.passphrase_buffer_size <= 65536:
            raise ValueError("passphrase_buffer_size must be between 1 and 65536")
        if self.default_host_flags < 0:
            raise ValueError("default_host_flags must be >= 0")
        if self.csprng_retries < 0:
            raise ValueError("csprng_retries must be >= 0")

    @staticmethod
    def from_mapping(values: Mapping[str, Any]) -> "NativeConfig":
        """
        Build a configuration from a mapping, ignoring unknown keys.

        Args:
            values: Parameter names mapped to raw values (strings allowed).

        Returns:
            NativeConfig instance.
        """
        known = {f.name: f for f in fields(NativeConfig)}
        kwargs: Dict[str, Any] = {}
        for name, raw in values.items():
            if name not in known:
                _LOGGER.debug("Ignoring unknown config key: %s", name)
                continue
            default = known[name].default
            if isinstance(default, bool):
                kwargs[name] = (
                    raw if isinstance(raw, bool) else str(raw).lower() in _TRUE_VALUES
                )
            else:
                kwargs[name] = int(raw, 0) if isinstance(raw, str) else int(raw)
        return NativeConfig(**kwargs)

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> "NativeConfig":
        """
        Build a configuration from ``NCRYPTO_*`` environment variables.

        Examples:
            >>> NativeConfig.from_env({"NCRYPTO_DEVELOPMENT_CHECKS": "1"}).development_checks
            True
        """
        env = os.environ if environ is None else environ
        values = {
            key[len(ENV_PREFIX):].lower(): value
            for key, value in env.items()
            if key.startswith(ENV_PREFIX)
        }
        values.pop("log_level", None)
        values.pop("log_file", None)
        return NativeConfig.from_mapping(values)

    def with_overrides(self, **changes: Any) -> "NativeConfig":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)


def load_config(config_path: Optional[Path] = None) -> NativeConfig:
    """
    Load configuration from a JSON file layered over the environment.

    Missing or invalid files fall back to the environment/defaults with a
    logged warning, the same way the application config loader behaves.

    Args:
        config_path: JSON file with a top-level object. ``None`` means
            environment and defaults only.

    Returns:
        NativeConfig instance.
    """
    base = NativeConfig.from_env()
    if config_path is None:
        return base
    if not config_path.exists():
        _LOGGER.info("Config file %s not found, using environment/defaults", config_path)
        return base
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            user_config = json.load(f)
        if not isinstance(user_config, dict):
            raise ValueError(
                f"config must be a JSON object, got {type(user_config).__name__}"
            )
        merged = {f.name: getattr(base, f.name) for f in fields(NativeConfig)}
        merged.update(user_config)
        config = NativeConfig.from_mapping(merged)
    except json.JSONDecodeError as e:
        _LOGGER.warning(
            "Could not parse %s: invalid JSON at line %d, column %d; using defaults",
            config_path,
            e.lineno,
            e.colno,
        )
        return base
    except (OSError, ValueError, TypeError) as e:
        _LOGGER.warning("Invalid configuration in %s: %s; using defaults", config_path, e)
        return base
    _LOGGER.info("Configuration loaded from %s", config_path)
    return config


_config_lock = threading.Lock()
_active_config: Optional[NativeConfig] = None


def get_config() -> NativeConfig:
    """Return the process-wide configuration, loading it from the environment once."""
    global _active_config
    if _active_config is None:
        with _config_lock:
            if _active_config is None:
                _active_config = NativeConfig.from_env()
    return _active_config


def set_config(config: Optional[NativeConfig]) -> None:
    """Replace the process-wide configuration (``None`` reloads from the environment)."""
    global _active_config
    with _config_lock:
        _active_config = config


__all__ = [
    "NativeConfig",
    "load_config",
    "get_config",
    "set_config",
]
