"""Configuration loading for usage-rules (.usage-rules.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".usage-rules.yml"
DEFAULT_GUIDANCE_FILE = "usage-rules.md"
DEFAULT_RULES_DIR = "usage_rules"
DEFAULT_OUTPUT = "AGENTS.md"
LINK_STYLES = ("markdown", "at")


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class SyncConfig:
    """Default `sync` directives; CLI flags override these."""

    include_all: bool = False
    inline: List[str] = field(default_factory=list)
    remove: List[str] = field(default_factory=list)
    output: str = DEFAULT_OUTPUT
    link_folder: Optional[str] = None
    link_style: str = "markdown"


@dataclass
class PythonProviderConfig:
    """Settings for the Python environment provider."""

    optional_groups: List[str] = field(default_factory=list)


@dataclass
class UsageRulesConfig:
    """Represents the settings defined in .usage-rules.yml."""

    root: Path
    guidance_file: str = DEFAULT_GUIDANCE_FILE
    rules_dir: Optional[str] = DEFAULT_RULES_DIR
    provider: str = "auto"
    python: PythonProviderConfig = field(default_factory=PythonProviderConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)


def load_config(config_path: Path) -> UsageRulesConfig:
    """Load configuration from disk; a missing file yields defaults."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return UsageRulesConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    config = UsageRulesConfig(root=root)

    guidance_file = _as_str(data.get("guidance_file"))
    if guidance_file:
        config.guidance_file = guidance_file
    if "rules_dir" in data:
        config.rules_dir = _as_str(data.get("rules_dir")) or None
    provider = _as_str(data.get("provider"))
    if provider:
        config.provider = provider.lower()

    python_data = _as_dict(data.get("python"))
    if python_data:
        config.python.optional_groups = _as_str_list(python_data.get("optional_groups"))

    sync_data = _as_dict(data.get("sync"))
    if sync_data:
        sync = config.sync
        sync.include_all = bool(_as_bool(sync_data.get("all")))
        sync.inline = _as_str_list(sync_data.get("inline"))
        sync.remove = _as_str_list(sync_data.get("remove"))
        sync.output = _as_str(sync_data.get("output")) or DEFAULT_OUTPUT
        sync.link_folder = _as_str(sync_data.get("link_folder"))
        link_style = _as_str(sync_data.get("link_style"))
        if link_style:
            sync.link_style = link_style.lower()

    if config.sync.link_style not in LINK_STYLES:
        raise ConfigError(
            f"Unsupported link_style {config.sync.link_style!r}; expected one of {', '.join(LINK_STYLES)}"
        )

    return config


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Failed to read {path.name}: {exc}") from exc
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


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "DEFAULT_GUIDANCE_FILE",
    "DEFAULT_OUTPUT",
    "DEFAULT_RULES_DIR",
    "LINK_STYLES",
    "PythonProviderConfig",
    "SyncConfig",
    "UsageRulesConfig",
    "load_config",
]
