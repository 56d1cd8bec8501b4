"""Python project provider backed by the installed environment."""

from __future__ import annotations

import json
import re
import tomllib
from importlib import metadata
from pathlib import Path
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple
from urllib.parse import urlparse
from urllib.request import url2pathname

from ..logging import get_logger
from ..models import Package, PackageSource, dedupe_packages
from .base import GraphProvider, ProviderError

_NAME_PATTERN = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)\s*(?:\[([^\]]*)\])?")
_EXTRA_PATTERN = re.compile(r"extra\s*==\s*['\"]([^'\"]+)['\"]")
_METADATA_DIR_SUFFIXES = (".dist-info", ".egg-info", ".data")


def canonical_name(name: str) -> str:
    return re.sub(r"[-_.]+", "-", name).lower()


def parse_requirement(text: str) -> Optional[Tuple[str, FrozenSet[str], str]]:
    """Split a PEP 508 requirement into (name, extras, marker); None if unparseable."""
    spec, _, marker = text.partition(";")
    match = _NAME_PATTERN.match(spec)
    if match is None:
        return None
    extras = frozenset(
        canonical_name(extra) for extra in (match.group(2) or "").split(",") if extra.strip()
    )
    return match.group(1), extras, marker.strip()


def _marker_extras(marker: str) -> Set[str]:
    return {canonical_name(extra) for extra in _EXTRA_PATTERN.findall(marker)}


class PythonEnvironmentProvider(GraphProvider):
    """Resolves a Python project's dependencies against installed distributions.

    Direct requirements come from ``pyproject.toml`` (or ``requirements.txt``);
    the transitive closure follows each distribution's ``Requires-Dist``.
    """

    def __init__(
        self,
        optional_groups: Sequence[str] = (),
        distributions: Callable[[], Iterable[metadata.Distribution]] | None = None,
    ) -> None:
        self.optional_groups = list(optional_groups)
        self._distributions = distributions or metadata.distributions
        self.logger = get_logger("providers.python")

    def supports(self, project_root: Path) -> bool:
        return (project_root / "pyproject.toml").is_file() or (
            project_root / "requirements.txt"
        ).is_file()

    def resolve(self, project_root: Path) -> List[Package]:
        requirements = self.load_requirements(project_root)
        index = self._index_distributions()

        packages: List[Package] = []
        seen: Set[Tuple[str, str]] = set()
        # (requirement, is_direct) pairs, processed depth-first in declaration order.
        pending: List[Tuple[str, bool]] = [(req, True) for req in reversed(requirements)]
        while pending:
            requirement, direct = pending.pop()
            parsed = parse_requirement(requirement)
            if parsed is None:
                self.logger.debug("Ignoring unparseable requirement %r", requirement)
                continue
            name, extras, marker = parsed
            key = canonical_name(name)
            dist = index.get(key)
            if dist is None:
                if direct and not marker:
                    raise ProviderError(
                        f"Dependency {name!r} is not installed; install the project environment first"
                    )
                self.logger.debug("Skipping %s: not installed in this environment", name)
                continue

            follow: List[str] = []
            if (key, "") not in seen:
                seen.add((key, ""))
                package = self._to_package(dist)
                if package is not None:
                    packages.append(package)
                follow.extend(
                    req for req in dist.requires or [] if not _marker_extras(req.partition(";")[2])
                )
            for extra in sorted(extras):
                if (key, extra) in seen:
                    continue
                seen.add((key, extra))
                follow.extend(
                    req for req in dist.requires or [] if extra in _marker_extras(req.partition(";")[2])
                )
            pending.extend((req, False) for req in reversed(follow))

        self.logger.debug("Resolved %d installed distribution(s)", len(packages))
        return dedupe_packages(packages)

    def load_requirements(self, project_root: Path) -> List[str]:
        pyproject = project_root / "pyproject.toml"
        if pyproject.is_file():
            return self._pyproject_requirements(pyproject)
        requirements = project_root / "requirements.txt"
        if requirements.is_file():
            return _parse_requirements(requirements)
        raise ProviderError(f"No pyproject.toml or requirements.txt found in {project_root}")

    def _pyproject_requirements(self, path: Path) -> List[str]:
        try:
            data = tomllib.loads(path.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as exc:
            raise ProviderError(f"Failed to read {path}: {exc}") from exc

        project = data.get("project")
        if not isinstance(project, dict):
            return []
        requirements = [dep for dep in project.get("dependencies", []) or [] if isinstance(dep, str)]
        optional = project.get("optional-dependencies", {}) or {}
        for group in self.optional_groups:
            values = optional.get(group)
            if values is None:
                self.logger.warning("Optional dependency group %r not found in %s", group, path.name)
                continue
            requirements.extend(dep for dep in values if isinstance(dep, str))
        return requirements

    def _index_distributions(self) -> Dict[str, metadata.Distribution]:
        index: Dict[str, metadata.Distribution] = {}
        for dist in self._distributions():
            name = dist.metadata.get("Name")
            if not name:
                continue
            # Earlier entries shadow later ones, matching sys.path priority.
            index.setdefault(canonical_name(name), dist)
        return index

    def _to_package(self, dist: metadata.Distribution) -> Optional[Package]:
        name = dist.metadata["Name"]
        source, source_url, local_root = _provenance(dist)
        root = local_root or _import_root(dist, name)
        if root is None:
            self.logger.debug("Skipping %s: no package directory to search for guidance", name)
            return None
        return Package(
            name=name,
            version=dist.version,
            source=source,
            root=root,
            source_url=source_url,
        )


def _provenance(dist: metadata.Distribution) -> Tuple[PackageSource, Optional[str], Optional[Path]]:
    raw = dist.read_text("direct_url.json")
    if not raw:
        return PackageSource.REGISTRY, None, None
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        return PackageSource.REGISTRY, None, None
    url = payload.get("url") if isinstance(payload, dict) else None
    if not isinstance(url, str):
        return PackageSource.REGISTRY, None, None
    if "vcs_info" in payload:
        return PackageSource.VCS, url, None
    parsed = urlparse(url)
    if parsed.scheme == "file":
        local = Path(url2pathname(parsed.path))
        root = local if "dir_info" in payload and local.is_dir() else None
        return PackageSource.LOCAL, url, root
    return PackageSource.REGISTRY, url, None


def _import_root(dist: metadata.Distribution, name: str) -> Optional[Path]:
    candidates = _top_level_names(dist)
    if not candidates:
        return None
    preferred = name.replace("-", "_").lower()
    ordered = sorted(candidates, key=lambda item: (item.lower() != preferred, item.startswith("_"), item))
    for candidate in ordered:
        location = Path(str(dist.locate_file(candidate)))
        if location.is_dir():
            return location.resolve()
    return None


def _top_level_names(dist: metadata.Distribution) -> Set[str]:
    top_level = dist.read_text("top_level.txt")
    if top_level:
        return {line.strip() for line in top_level.splitlines() if line.strip()}
    names: Set[str] = set()
    for file in dist.files or []:
        parts = file.parts
        if len(parts) < 2:
            continue
        head = parts[0]
        if head in {"..", "__pycache__"} or head.endswith(_METADATA_DIR_SUFFIXES):
            continue
        names.add(head)
    return names


def _parse_requirements(path: Path) -> List[str]:
    packages: List[str] = []
    for line in path.read_text(encoding="utf-8").splitlines():
        stripped = line.split(" #", 1)[0].strip()
        if not stripped or stripped.startswith(("#", "-")):
            continue
        packages.append(stripped)
    return packages


__all__ = ["PythonEnvironmentProvider", "canonical_name", "parse_requirement"]
