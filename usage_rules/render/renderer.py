"""Assemble located guidance into merged or linked output plans."""

from __future__ import annotations

import hashlib
import os
import re
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from ..logging import get_logger
from ..models import (
    GuidanceDocument,
    OutputPlan,
    Package,
    PackageKey,
    PlannedFile,
    SelectionDecision,
)
from .markers import MarkerManager

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9._-]+")

HEADER = (
    "IMPORTANT: Consult these usage rules early and often when working with the "
    "packages listed below. Before attempting to use any of these packages or to "
    "discover if you should use them, review their usage rules to understand the "
    "correct patterns, conventions, and best practices."
)

LINKED_HEADER_NOTE = (
    "Some packages keep their usage rules in separate files within the linked "
    "folder. Please refer to the individual files for detailed usage instructions."
)


@dataclass(frozen=True)
class RenderSettings:
    """Where and how to render output.

    ``link_folder`` switches on linked-folder mode.
    """

    output: Path
    link_folder: Optional[Path] = None
    link_style: str = "markdown"

    @property
    def linked(self) -> bool:
        return self.link_folder is not None


class Renderer:
    """Builds an OutputPlan from located guidance and selection decisions."""

    def __init__(self, markers: MarkerManager | None = None) -> None:
        self.markers = markers or MarkerManager()
        self.logger = get_logger("render")

    def render_section(self, document: GuidanceDocument) -> bytes:
        """Render one package's guidance as a delimited section."""
        package = document.package
        parts: List[bytes] = [
            self.markers.package_begin(package) + b"\n",
            f"## {package.name} usage\n".encode("utf-8"),
            _terminated(document.primary_content),
        ]
        for inclusion in document.sub_files:
            parts.append(self.markers.sub_file(inclusion.relative_path) + b"\n")
            parts.append(_terminated(inclusion.content))
        parts.append(self.markers.package_end(package) + b"\n")
        return b"".join(parts)

    def plan(
        self,
        documents: Sequence[GuidanceDocument],
        decisions: Mapping[PackageKey, SelectionDecision],
        settings: RenderSettings,
        existing: bytes | None = None,
    ) -> OutputPlan:
        """Return the files to write; ``existing`` is the current output document, if any."""
        included = [
            document
            for document in documents
            if decisions.get(document.package.key, SelectionDecision.EXCLUDED).included
        ]
        included.sort(key=lambda document: document.package.sort_key())

        if settings.link_folder is not None:
            entries, package_files = self._linked_entries(
                included, decisions, settings.link_folder, settings
            )
        else:
            entries = [self.render_section(document) for document in included]
            package_files = []

        header = HEADER
        if settings.linked:
            header = f"{HEADER}\n\n{LINKED_HEADER_NOTE}"
        body = b"\n".join([header.encode("utf-8") + b"\n", *entries])
        block = self.markers.wrap_block(body)
        index = PlannedFile(path=settings.output, content=self.markers.merge(existing, block))
        self.logger.debug(
            "Planned %d section(s) and %d linked file(s)",
            len(entries) - len(package_files),
            len(package_files),
        )
        return OutputPlan(index=index, package_files=package_files)

    def _linked_entries(
        self,
        included: Sequence[GuidanceDocument],
        decisions: Mapping[PackageKey, SelectionDecision],
        folder: Path,
        settings: RenderSettings,
    ) -> tuple[List[bytes], List[PlannedFile]]:
        linked = [
            document.package
            for document in included
            if decisions[document.package.key] is SelectionDecision.LINKED
        ]
        file_names = assign_file_names(linked)

        entries: List[bytes] = []
        package_files: List[PlannedFile] = []
        for document in included:
            package = document.package
            if decisions[package.key] is SelectionDecision.INLINE:
                entries.append(self.render_section(document))
                continue
            target = folder / file_names[package.key]
            package_files.append(
                PlannedFile(path=target, content=self.render_section(document), package=package)
            )
            link = _relative_link(target, settings.output.parent)
            entries.append(self._link_entry(package, link, settings.link_style))
        return entries, package_files

    @staticmethod
    def _link_entry(package: Package, link: str, style: str) -> bytes:
        if style == "at":
            reference = f"@{link}"
        else:
            target = link if link.startswith("../") else f"./{link}"
            reference = f"[{package.name} usage rules]({target})"
        return f"## {package.name} usage\n{reference}\n".encode("utf-8")


def assign_file_names(packages: Sequence[Package]) -> Dict[PackageKey, str]:
    """Derive a distinct ``.md`` file name for every package.

    Unique names map to ``<name>.md``; packages sharing a name (ignoring
    case) get a version suffix, then a source suffix. Any name still clashing
    with another, case-insensitively and across all packages, gets a short
    hash of the package identity.
    """
    groups: Dict[str, List[Package]] = defaultdict(list)
    for package in packages:
        groups[_safe_filename(package.name).casefold()].append(package)

    stems: Dict[PackageKey, str] = {}
    for members in groups.values():
        members = sorted(members, key=lambda package: package.sort_key())
        if len(members) == 1:
            stems[members[0].key] = _safe_filename(members[0].name)
            continue
        candidates = {
            package.key: f"{_safe_filename(package.name)}-{_safe_filename(package.version)}"
            for package in members
        }
        stems.update(
            _disambiguate(members, candidates, lambda package: _safe_filename(package.source.value))
        )

    ordered = sorted(packages, key=lambda package: package.sort_key())
    stems = _disambiguate(ordered, stems, _identity_hash)
    return {key: f"{stem}.md" for key, stem in stems.items()}


def _disambiguate(
    members: Sequence[Package],
    candidates: Dict[PackageKey, str],
    suffix: Callable[[Package], str],
) -> Dict[PackageKey, str]:
    counts: Dict[str, int] = defaultdict(int)
    for value in candidates.values():
        counts[value.casefold()] += 1
    updated = dict(candidates)
    for package in members:
        if counts[candidates[package.key].casefold()] > 1:
            updated[package.key] = f"{candidates[package.key]}-{suffix(package)}"
    return updated


def _identity_hash(package: Package) -> str:
    return hashlib.sha256("\0".join(package.key).encode("utf-8")).hexdigest()[:8]


def _safe_filename(value: str) -> str:
    cleaned = _UNSAFE_FILENAME.sub("_", value).strip(".")
    return cleaned or "package"


def _relative_link(target: Path, base: Path) -> str:
    return Path(os.path.relpath(target, base)).as_posix()


def _terminated(content: bytes) -> bytes:
    if not content or content.endswith(b"\n"):
        return content
    return content + b"\n"


__all__ = ["HEADER", "RenderSettings", "Renderer", "assign_file_names"]
