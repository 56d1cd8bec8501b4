from __future__ import annotations

import textwrap
from pathlib import Path
from typing import List, Mapping, Sequence

import pytest

from usage_rules.models import Package, PackageSource
from usage_rules.providers import GraphProvider


class PackageTreeBuilder:
    """Writes throwaway dependency package directories for tests."""

    def __init__(self, tmp_path: Path) -> None:
        self.base = tmp_path / "deps"
        self.base.mkdir()

    def package(
        self,
        name: str,
        version: str = "1.0.0",
        files: Mapping[str, str] | None = None,
        *,
        source: PackageSource = PackageSource.REGISTRY,
        source_url: str | None = None,
        directory: str | None = None,
    ) -> Package:
        """Create a package directory with `path -> contents` files and return its record."""
        root = self.base / (directory or f"{name}-{version}")
        root.mkdir(parents=True, exist_ok=True)
        for relative, content in (files or {}).items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")
        return Package(
            name=name,
            version=version,
            source=source,
            root=root.resolve(),
            source_url=source_url,
        )


class StaticProvider(GraphProvider):
    """Provider double returning a fixed package list."""

    def __init__(self, packages: Sequence[Package]) -> None:
        self.packages: List[Package] = list(packages)
        self.calls: List[Path] = []

    def supports(self, project_root: Path) -> bool:  # pragma: no cover - trivial
        return True

    def resolve(self, project_root: Path) -> List[Package]:
        self.calls.append(project_root)
        return list(self.packages)


@pytest.fixture
def tree(tmp_path: Path) -> PackageTreeBuilder:
    """Provide a package tree builder rooted at the pytest tmp_path."""
    return PackageTreeBuilder(tmp_path)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """An empty project root the output documents are written into."""
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def static_provider() -> type[StaticProvider]:
    """Factory for providers that return a fixed package list."""
    return StaticProvider
