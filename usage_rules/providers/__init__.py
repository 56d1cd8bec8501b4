"""Dependency graph providers and discovery utilities."""

from __future__ import annotations

from importlib import metadata
from pathlib import Path
from typing import Callable, Dict, Iterable

from ..config import UsageRulesConfig
from .base import GraphProvider, ProviderError
from .cargo import CargoProvider
from .python import PythonEnvironmentProvider

_ENTRY_POINT_GROUP = "usage_rules.providers"


def _builtin_factories(config: UsageRulesConfig) -> Dict[str, Callable[[], GraphProvider]]:
    return {
        "python": lambda: PythonEnvironmentProvider(optional_groups=config.python.optional_groups),
        "cargo": CargoProvider,
    }


def resolve_provider(config: UsageRulesConfig, project_root: Path) -> GraphProvider:
    """Return the provider named in the configuration, detecting it when set to ``auto``."""
    factories = _builtin_factories(config)
    for entry in _iter_entry_points():
        if entry.name in factories:
            continue

        def _factory(entry: metadata.EntryPoint = entry) -> GraphProvider:
            return _load_entry_point(entry)

        factories[entry.name] = _factory

    name = config.provider
    if name != "auto":
        factory = factories.get(name)
        if factory is None:
            known = ", ".join(sorted(factories))
            raise ProviderError(f"Unknown provider {name!r}; available providers: {known}")
        return factory()

    for factory in factories.values():
        provider = factory()
        if provider.supports(project_root):
            return provider
    raise ProviderError(
        f"No dependency manifest found in {project_root} (expected pyproject.toml, "
        "requirements.txt or Cargo.toml)"
    )


def _load_entry_point(entry: metadata.EntryPoint) -> GraphProvider:
    try:
        loaded = entry.load()
    except Exception as exc:  # pragma: no cover - plugin import failure
        raise ProviderError(f"Failed to load provider entry point '{entry.name}': {exc}") from exc
    if isinstance(loaded, GraphProvider):
        return loaded
    if callable(loaded):
        instance = loaded()
        if isinstance(instance, GraphProvider):
            return instance
    raise ProviderError(
        f"Provider entry point '{entry.name}' must be a GraphProvider subclass or factory"
    )


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


__all__ = [
    "CargoProvider",
    "GraphProvider",
    "ProviderError",
    "PythonEnvironmentProvider",
    "resolve_provider",
]
