"""Cargo workspace provider backed by `cargo metadata`."""

from __future__ import annotations

import json
import subprocess
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Tuple

from ..logging import get_logger
from ..models import Package, PackageSource, dedupe_packages
from .base import GraphProvider, ProviderError


class CargoProvider(GraphProvider):
    """Resolves Rust dependencies from `cargo metadata` output."""

    MANIFEST = "Cargo.toml"

    def __init__(self, runner: Callable[..., str] | None = None) -> None:
        self._runner = runner or self._default_runner
        self.logger = get_logger("providers.cargo")

    def supports(self, project_root: Path) -> bool:
        return (project_root / self.MANIFEST).is_file()

    def resolve(self, project_root: Path) -> List[Package]:
        args = ["cargo", "metadata", "--format-version", "1"]
        try:
            output = self._runner(args, cwd=project_root)
        except (OSError, subprocess.CalledProcessError) as exc:
            raise ProviderError(f"'cargo metadata' failed: {_describe(exc)}") from exc

        try:
            metadata = json.loads(output)
        except json.JSONDecodeError as exc:
            raise ProviderError(f"Failed to parse cargo metadata JSON: {exc}") from exc
        if not isinstance(metadata, dict) or not isinstance(metadata.get("packages"), list):
            raise ProviderError("cargo metadata output is missing the package list")

        members = set(metadata.get("workspace_members") or [])
        packages: List[Package] = []
        for entry in metadata["packages"]:
            if not isinstance(entry, dict) or entry.get("id") in members:
                continue
            package = self._to_package(entry)
            if package is not None:
                packages.append(package)
        self.logger.debug("cargo metadata reported %d dependency package(s)", len(packages))
        return dedupe_packages(packages)

    def _to_package(self, entry: dict[str, Any]) -> Optional[Package]:
        name = entry.get("name")
        version = entry.get("version")
        manifest_path = entry.get("manifest_path")
        if not isinstance(name, str) or not isinstance(version, str) or not isinstance(manifest_path, str):
            self.logger.debug("Skipping malformed cargo package entry: %r", entry.get("id"))
            return None
        source, source_url = _parse_source(entry.get("source"))
        return Package(
            name=name,
            version=version,
            source=source,
            root=Path(manifest_path).parent,
            source_url=source_url,
        )

    @staticmethod
    def _default_runner(args: Iterable[str], *, cwd: Path) -> str:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            check=True,
            text=True,
            capture_output=True,
        )
        return completed.stdout


def _parse_source(raw: object) -> Tuple[PackageSource, Optional[str]]:
    if not isinstance(raw, str) or not raw:
        return PackageSource.LOCAL, None
    kind, _, url = raw.partition("+")
    if kind == "git":
        return PackageSource.VCS, url or raw
    if kind == "path":
        return PackageSource.LOCAL, url or None
    return PackageSource.REGISTRY, url or raw


def _describe(exc: BaseException) -> str:
    if isinstance(exc, subprocess.CalledProcessError):
        stderr = exc.stderr.strip() if isinstance(exc.stderr, str) else ""
        return stderr or f"exit status {exc.returncode}"
    return str(exc)


__all__ = ["CargoProvider"]
