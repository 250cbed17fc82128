"""Configuration loading for scaffoldgen (.scaffoldgen.yml and integration files)."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

import yaml

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from .models import IntegrationConfig

CONFIG_FILENAME = ".scaffoldgen.yml"
DEFAULT_TIMEOUT_SECONDS = 300.0


class ConfigError(RuntimeError):
    """Raised when configuration is missing a required field or cannot be parsed."""


@dataclass
class LLMConfig:
    """Backend runtime settings from .scaffoldgen.yml."""

    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    request_timeout: Optional[float] = None
    system_prompt: Optional[str] = None


@dataclass
class GenerationSettings:
    """Pipeline settings shared by the CLI and the service."""

    timeout: float = DEFAULT_TIMEOUT_SECONDS
    templates_dir: Optional[Path] = None
    infer_integration: bool = True


@dataclass
class ServiceConfig:
    """Bind address for `scaffoldgen serve`."""

    host: str = "0.0.0.0"
    port: int = 3000


@dataclass
class ScaffoldConfig:
    """Represents the high-level settings defined in .scaffoldgen.yml."""

    root: Path
    llm: Optional[LLMConfig] = None
    generation: GenerationSettings = field(default_factory=GenerationSettings)
    service: ServiceConfig = field(default_factory=ServiceConfig)


# Scalar coercion per key of the `llm:` section.
_LLM_FIELDS: Dict[str, Callable[[Any], Any]] = {
    "model": lambda value: _as_str(value),
    "temperature": lambda value: _as_number(value, float),
    "max_tokens": lambda value: _as_number(value, int),
    "base_url": lambda value: _as_str(value),
    "api_key": lambda value: _as_str(value),
    "request_timeout": lambda value: _as_number(value, float),
    "system_prompt": lambda value: _as_str(value),
}


def load_config(config_path: Path) -> ScaffoldConfig:
    """Load configuration from disk, returning defaults when no file exists."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()
    if not config_file.exists():
        return ScaffoldConfig(root=root)

    data = _read_yaml(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    return ScaffoldConfig(
        root=root,
        llm=_parse_llm(_as_dict(data.get("llm"))),
        generation=_parse_generation(_as_dict(data.get("generation")), root),
        service=_parse_service(_as_dict(data.get("service"))),
    )


def _parse_llm(section: Dict[str, Any]) -> Optional[LLMConfig]:
    values = {key: coerce(section.get(key)) for key, coerce in _LLM_FIELDS.items()}
    if all(value is None for value in values.values()):
        return None
    return LLMConfig(**values)


def _parse_generation(section: Dict[str, Any], root: Path) -> GenerationSettings:
    settings = GenerationSettings()
    timeout = _as_number(section.get("timeout"), float)
    if timeout is not None:
        if timeout <= 0:
            raise ConfigError("generation.timeout must be a positive number of seconds")
        settings.timeout = timeout
    templates_dir = _as_str(section.get("templates_dir"))
    if templates_dir:
        settings.templates_dir = root / templates_dir
    infer = _as_bool(section.get("infer_integration"))
    if infer is not None:
        settings.infer_integration = infer
    return settings


def _parse_service(section: Dict[str, Any]) -> ServiceConfig:
    service = ServiceConfig()
    service.host = _as_str(section.get("host")) or service.host
    port = _as_number(section.get("port"), int)
    if port is not None:
        service.port = port
    return service


def load_integration_config(path: Path) -> "IntegrationConfig":
    """Read an integration configuration from a YAML or JSON file."""
    from .models import IntegrationConfig

    path = path.expanduser()
    if not path.is_file():
        raise ConfigError(f"Integration config not found: {path}")
    if path.suffix.lower() == ".json":
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    else:
        data = _read_yaml(path)
    if not isinstance(data, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return IntegrationConfig.from_mapping(data)


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_yaml(path: Path) -> Any:
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
    if isinstance(value, bool):
        return str(value).lower()
    return str(value) if isinstance(value, (str, int, float)) else None


def _as_number(value: Any, kind: Callable[[Any], Any]) -> Any:
    """Coerce numbers and numeric strings with ``kind``; anything else is None."""
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    if kind is int and isinstance(value, float):
        return None
    try:
        return kind(value)
    except ValueError:
        return None


_TRUTHY = frozenset({"true", "yes", "on", "1"})
_FALSY = frozenset({"false", "no", "off", "0"})


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    word = str(value).strip().lower() if isinstance(value, (str, int)) else ""
    if word in _TRUTHY:
        return True
    if word in _FALSY:
        return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "GenerationSettings",
    "LLMConfig",
    "ScaffoldConfig",
    "ServiceConfig",
    "load_config",
    "load_integration_config",
]
