"""Boundary markers for generated package sections and the managed block."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List

from ..models import Package

_ENCODING = "utf-8"


@dataclass(frozen=True)
class SectionBounds:
    """Package identity recovered from a begin marker."""

    name: str
    version: str


class MarkerManager:
    """Emits and parses usage-rules HTML comment markers.

    All methods work on bytes since guidance content is passed through
    untouched.
    """

    BLOCK_BEGIN = b"<!-- usage-rules-start -->"
    BLOCK_END = b"<!-- usage-rules-end -->"
    PACKAGE_BEGIN_FMT = "<!-- usage-rules:begin:package name={name} version={version} -->"
    PACKAGE_END_FMT = "<!-- usage-rules:end:package name={name} version={version} -->"
    FILE_FMT = "<!-- usage-rules:file path={path} -->"

    _BEGIN_PATTERN = re.compile(
        rb"<!-- usage-rules:begin:package name=(?P<name>\S+) version=(?P<version>\S+) -->"
    )

    def package_begin(self, package: Package) -> bytes:
        return self._encode(self.PACKAGE_BEGIN_FMT.format(name=package.name, version=package.version))

    def package_end(self, package: Package) -> bytes:
        return self._encode(self.PACKAGE_END_FMT.format(name=package.name, version=package.version))

    def sub_file(self, relative_path: str) -> bytes:
        return self._encode(self.FILE_FMT.format(path=relative_path))

    def wrap_block(self, body: bytes) -> bytes:
        """Wrap generated content in the managed block markers."""
        return self.BLOCK_BEGIN + b"\n\n" + body.rstrip(b"\n") + b"\n\n" + self.BLOCK_END + b"\n"

    def merge(self, existing: bytes | None, block: bytes) -> bytes:
        """Place ``block`` into an existing document.

        A previous managed block is replaced in place, keeping everything
        around it. A document without markers is kept as a preamble.

        The block spans the first start marker to the last end marker, since
        guidance copied into the block may itself mention either marker.
        """
        if not existing:
            return block
        begin = existing.find(self.BLOCK_BEGIN)
        end = existing.rfind(self.BLOCK_END)
        if begin != -1 and end > begin:
            after = existing[end + len(self.BLOCK_END):]
            if after.startswith(b"\n"):
                after = after[1:]
            return existing[:begin] + block + after
        return existing.rstrip(b"\n") + b"\n\n" + block

    def extract_sections(self, document: bytes) -> List[SectionBounds]:
        """Return the package identities of every section in ``document`` in order."""
        return [
            SectionBounds(
                name=match.group("name").decode(_ENCODING),
                version=match.group("version").decode(_ENCODING),
            )
            for match in self._BEGIN_PATTERN.finditer(document)
        ]

    @staticmethod
    def _encode(text: str) -> bytes:
        return text.encode(_ENCODING)


__all__ = ["MarkerManager", "SectionBounds"]
