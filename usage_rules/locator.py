"""Guidance discovery: primary usage-rules files and their referenced sub-files."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterator, List, Optional, Set, Tuple

from .config import DEFAULT_GUIDANCE_FILE, DEFAULT_RULES_DIR
from .logging import get_logger
from .models import GuidanceDocument, LocatorWarning, Package, SubFileInclusion

_MARKER_PATTERN = re.compile(r"\b(?:see|refer\s+to)\b", re.IGNORECASE)
_TOKEN_SPLIT = re.compile(r"[\s()\[\]<>`\"']+")
_TRAILING_PUNCTUATION = ".,;:!?"
_REFERENCE_SUFFIXES = (".md", ".markdown")
_URL_SCHEME = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*:")


def find_reference(line: str) -> Optional[str]:
    """Return the first relative guidance path referenced on ``line``.

    A reference is a marker phrase ("see ...", "refer to ...") followed by a
    relative path ending in ``.md``/``.markdown``. When a line carries several
    path-like tokens the first plausible one wins.
    """
    match = _MARKER_PATTERN.search(line)
    if match is None:
        return None
    for raw in _TOKEN_SPLIT.split(line[match.end():]):
        token = raw.rstrip(_TRAILING_PUNCTUATION)
        token = token.split("#", 1)[0]
        if _is_relative_reference(token):
            return token
    return None


def _is_relative_reference(token: str) -> bool:
    if not token or token.startswith(("/", "\\", "~")):
        return False
    if _URL_SCHEME.match(token):
        return False
    return token.lower().endswith(_REFERENCE_SUFFIXES)


def iter_references(text: str) -> Iterator[str]:
    for line in text.splitlines():
        reference = find_reference(line)
        if reference is not None:
            yield reference


class GuidanceLocator:
    """Finds a package's guidance file and resolves its sub-file references."""

    def __init__(
        self,
        guidance_file: str = DEFAULT_GUIDANCE_FILE,
        rules_dir: Optional[str] = DEFAULT_RULES_DIR,
    ) -> None:
        self.guidance_file = guidance_file
        self.rules_dir = rules_dir
        self.logger = get_logger("locator")

    def locate(
        self, package: Package, warnings: Optional[List[LocatorWarning]] = None
    ) -> Optional[GuidanceDocument]:
        """Return the package's guidance, or None when it ships no guidance file.

        Dangling, unreadable or escaping references are dropped and recorded
        in ``warnings``; they never abort the package.
        """
        sink: List[LocatorWarning] = warnings if warnings is not None else []
        root = package.root.resolve()
        primary_path = root / self.guidance_file
        if not primary_path.is_file():
            self.logger.debug("No %s in %s v%s", self.guidance_file, package.name, package.version)
            return None

        try:
            primary_content = primary_path.read_bytes()
        except OSError as exc:
            self._warn(sink, package, primary_path, self.guidance_file, f"guidance file unreadable: {exc}")
            return None

        visited: Set[Path] = {primary_path, primary_path.resolve()}
        inclusions: List[SubFileInclusion] = []
        self._walk(package, root, primary_path, primary_content, visited, inclusions, sink)

        for extra in self._rules_dir_files(root):
            if extra in visited:
                continue
            relative = extra.relative_to(root).as_posix()
            content = self._read_sub_file(package, primary_path, relative, extra, sink)
            if content is None:
                continue
            visited.add(extra)
            inclusions.append(SubFileInclusion(extra, relative, content))
            self._walk(package, root, extra, content, visited, inclusions, sink)

        self.logger.debug(
            "Located guidance for %s v%s with %d sub-file(s)",
            package.name,
            package.version,
            len(inclusions),
        )
        return GuidanceDocument(
            package=package,
            primary_path=primary_path,
            primary_content=primary_content,
            sub_files=tuple(inclusions),
        )

    def _walk(
        self,
        package: Package,
        root: Path,
        start: Path,
        content: bytes,
        visited: Set[Path],
        inclusions: List[SubFileInclusion],
        sink: List[LocatorWarning],
    ) -> None:
        # Explicit stack of reference iterators gives depth-first pre-order
        # without recursion.
        stack: List[Tuple[Path, Iterator[str]]] = [(start, iter_references(_decode(content)))]
        while stack:
            current, references = stack[-1]
            reference = next(references, None)
            if reference is None:
                stack.pop()
                continue
            target = (current.parent / reference).resolve()
            if target in visited:
                continue
            if not target.is_relative_to(root):
                self._warn(sink, package, current, reference, "reference points outside the package root")
                continue
            relative = target.relative_to(root).as_posix()
            sub_content = self._read_sub_file(package, current, reference, target, sink)
            if sub_content is None:
                continue
            visited.add(target)
            inclusions.append(SubFileInclusion(target, relative, sub_content))
            stack.append((target, iter_references(_decode(sub_content))))

    def _read_sub_file(
        self,
        package: Package,
        source: Path,
        reference: str,
        target: Path,
        sink: List[LocatorWarning],
    ) -> Optional[bytes]:
        if not target.is_file():
            self._warn(sink, package, source, reference, "referenced file not found")
            return None
        try:
            return target.read_bytes()
        except OSError as exc:
            self._warn(sink, package, source, reference, f"referenced file unreadable: {exc}")
            return None

    def _rules_dir_files(self, root: Path) -> List[Path]:
        if not self.rules_dir:
            return []
        directory = root / self.rules_dir
        if not directory.is_dir():
            return []
        files = [
            path.resolve()
            for path in directory.rglob("*")
            if path.is_file() and path.suffix.lower() == ".md"
        ]
        # Symlinks leaving the package are ignored.
        files = [path for path in files if path.is_relative_to(root)]
        return sorted(files, key=lambda path: path.relative_to(root).as_posix())

    def _warn(
        self,
        sink: List[LocatorWarning],
        package: Package,
        source: Path,
        reference: str,
        message: str,
    ) -> None:
        warning = LocatorWarning(
            package=package.name,
            version=package.version,
            source_file=source,
            reference=reference,
            message=message,
        )
        self.logger.warning("%s", warning.describe())
        sink.append(warning)


def _decode(content: bytes) -> str:
    return content.decode("utf-8", errors="replace")


__all__ = ["GuidanceLocator", "find_reference", "iter_references"]
