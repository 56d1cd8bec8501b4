"""Core data models shared across usage-rules components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple


class PackageSource(str, Enum):
    """Where a resolved package came from."""

    REGISTRY = "registry"
    VCS = "vcs"
    LOCAL = "local"


PackageKey = Tuple[str, str, str, str]


@dataclass(frozen=True)
class Package:
    """One resolved dependency as reported by a graph provider."""

    name: str
    version: str
    source: PackageSource
    root: Path
    source_url: Optional[str] = None

    @property
    def key(self) -> PackageKey:
        """Identity of the package; two records with the same key are one package."""
        return (self.name, self.version, self.source.value, self.source_url or "")

    @property
    def source_id(self) -> str:
        if self.source_url:
            return f"{self.source.value}+{self.source_url}"
        return self.source.value

    def sort_key(self) -> Tuple[str, str, str]:
        return (self.name, self.version, self.source_id)


@dataclass(frozen=True)
class SubFileInclusion:
    """A guidance file pulled in by reference from another guidance file."""

    path: Path
    relative_path: str
    content: bytes


@dataclass(frozen=True)
class GuidanceDocument:
    """Primary guidance file of a package plus its resolved sub-files."""

    package: Package
    primary_path: Path
    primary_content: bytes
    sub_files: Tuple[SubFileInclusion, ...] = ()


@dataclass(frozen=True)
class LocatorWarning:
    """Recoverable problem found while locating a package's guidance."""

    package: str
    version: str
    source_file: Path
    reference: str
    message: str

    def describe(self) -> str:
        return f"{self.package} v{self.version}: {self.message} ({self.reference!r} in {self.source_file})"


class SelectionDecision(str, Enum):
    """How a package is treated by the renderer."""

    EXCLUDED = "excluded"
    INLINE = "inline"
    LINKED = "linked"

    @property
    def included(self) -> bool:
        return self is not SelectionDecision.EXCLUDED


@dataclass(frozen=True)
class PackageReport:
    """Discovery and selection summary for one package (``list`` output)."""

    package: Package
    has_guidance: bool
    sub_file_count: int
    decision: SelectionDecision


@dataclass(frozen=True)
class PlannedFile:
    """A file the writer will produce; ``package`` is None for the index document."""

    path: Path
    content: bytes
    package: Optional[Package] = None


@dataclass
class OutputPlan:
    """Ordered set of files produced by one render pass."""

    index: PlannedFile
    package_files: List[PlannedFile] = field(default_factory=list)

    @property
    def files(self) -> List[PlannedFile]:
        """Files in write order: per-package files first, then the index."""
        return [*self.package_files, self.index]


@dataclass
class SyncOutcome:
    """Result of a sync run."""

    output_path: Path
    written: List[Path]
    processed: int
    excluded: int
    warnings: List[LocatorWarning] = field(default_factory=list)
    dry_run: bool = False


def dedupe_packages(packages: Iterable[Package]) -> List[Package]:
    """Collapse packages sharing an identity key, keeping first-seen order."""
    unique: Dict[PackageKey, Package] = {}
    for package in packages:
        unique.setdefault(package.key, package)
    return list(unique.values())


__all__ = [
    "GuidanceDocument",
    "LocatorWarning",
    "OutputPlan",
    "Package",
    "PackageKey",
    "PackageReport",
    "PackageSource",
    "PlannedFile",
    "SelectionDecision",
    "SubFileInclusion",
    "SyncOutcome",
    "dedupe_packages",
]
