"""Configuration loading for dashgen (.dashgen.yml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

from .errors import DashgenError

CONFIG_FILENAME = ".dashgen.yml"
INCREMENTAL_ENV = "DASHGEN_INCREMENTAL"
LOG_LEVELS = ("debug", "info", "warning", "error")


class ConfigError(DashgenError, RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class BuildConfig:
    """Generation pass defaults."""

    output_dir: Optional[Path] = None
    incremental: bool = True
    render: bool = False
    workers: int = 1

    def overridden(
        self,
        *,
        incremental: Optional[bool] = None,
        render: Optional[bool] = None,
        workers: Optional[int] = None,
        output_dir: Optional[Path] = None,
    ) -> Dict[str, Any]:
        """Generation arguments with explicit values winning over these settings.

        ``None`` keeps the configured value; an unset ``output_dir`` falls back
        to the dashboard's own directory inside ``Generator.generate``.
        """
        return {
            "incremental": self.incremental if incremental is None else incremental,
            "render": self.render if render is None else render,
            "workers": self.workers if workers is None else workers,
            "output_dir": output_dir or self.output_dir,
        }


@dataclass
class BackendConfig:
    """Document tool and template settings."""

    executable: str = "quarto"
    extra_args: List[str] = field(default_factory=list)
    templates_dir: Optional[Path] = None


@dataclass
class CacheConfig:
    """Fingerprint tuning."""

    exclude_fields: List[str] = field(default_factory=list)


@dataclass
class LoggingConfig:
    """Log level and optional log file for CLI runs."""

    level: str = "info"
    file: Optional[Path] = None


@dataclass
class DashgenConfig:
    """Represents the settings defined in .dashgen.yml."""

    root: Path
    build: BuildConfig = field(default_factory=BuildConfig)
    backend: BackendConfig = field(default_factory=BackendConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    renderers: Optional[List[str]] = None


def load_config(
    config_path: Path, *, environ: Optional[Mapping[str, str]] = None
) -> DashgenConfig:
    """Load configuration from disk, then apply environment overrides."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()
    env = os.environ if environ is None else environ

    if not config_file.exists():
        return _apply_env(DashgenConfig(root=root), env)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    build_data = _as_dict(data.get("build"))
    build = BuildConfig()
    if build_data:
        output_dir = _as_str(build_data.get("output_dir"))
        build.output_dir = root / output_dir if output_dir else None
        incremental = _as_bool(build_data.get("incremental"))
        build.incremental = True if incremental is None else incremental
        build.render = _as_bool(build_data.get("render")) or False
        workers = _as_int(build_data.get("workers"))
        build.workers = workers if workers and workers > 0 else 1

    backend_data = _as_dict(data.get("backend"))
    backend = BackendConfig()
    if backend_data:
        backend.executable = _as_str(backend_data.get("executable")) or backend.executable
        backend.extra_args = _as_str_list(backend_data.get("extra_args"))
        templates_dir = _as_str(backend_data.get("templates_dir"))
        backend.templates_dir = root / templates_dir if templates_dir else None

    cache_data = _as_dict(data.get("cache"))
    cache = CacheConfig()
    if cache_data:
        cache.exclude_fields = _as_str_list(cache_data.get("exclude_fields"))

    logging_data = _as_dict(data.get("logging"))
    logging_config = LoggingConfig()
    if logging_data:
        level = _as_str(logging_data.get("level"))
        if level is not None:
            if level.strip().lower() not in LOG_LEVELS:
                raise ConfigError(
                    f"logging.level must be one of {', '.join(LOG_LEVELS)}, got '{level}'"
                )
            logging_config.level = level.strip().lower()
        log_file = _as_str(logging_data.get("file"))
        logging_config.file = root / log_file if log_file else None

    renderers_data = _as_dict(data.get("renderers"))
    renderers = None
    if renderers_data and "enabled" in renderers_data:
        renderers = _as_str_list(renderers_data.get("enabled"))

    config = DashgenConfig(
        root=root,
        build=build,
        backend=backend,
        cache=cache,
        logging=logging_config,
        renderers=renderers,
    )
    return _apply_env(config, env)


def _apply_env(config: DashgenConfig, env: Mapping[str, str]) -> DashgenConfig:
    override = _as_bool(env.get(INCREMENTAL_ENV))
    if override is not None:
        config.build.incremental = override
    return config


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1", "on"}:
            return True
        if lowered in {"false", "no", "0", "off"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "BackendConfig",
    "BuildConfig",
    "CONFIG_FILENAME",
    "CacheConfig",
    "ConfigError",
    "DashgenConfig",
    "INCREMENTAL_ENV",
    "LOG_LEVELS",
    "LoggingConfig",
    "load_config",
]
