"""Write rendered output plans to disk."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from ..logging import get_logger
from ..models import OutputPlan, PlannedFile


class OutputWriteError(RuntimeError):
    """Raised when an output file cannot be written.

    Files written before the failure are left in place.
    """

    def __init__(self, path: Path, package: Optional[str], reason: str) -> None:
        self.path = path
        self.package = package
        target = f"usage rules for package {package}" if package else "index document"
        super().__init__(f"Failed to write {target} to {path}: {reason}")


class OutputWriter:
    """Writes each planned file in order, stopping at the first failure."""

    def __init__(self) -> None:
        self.logger = get_logger("writer")

    def write(self, plan: OutputPlan) -> List[Path]:
        written: List[Path] = []
        for planned in plan.files:
            self._write_file(planned)
            written.append(planned.path)
        return written

    def _write_file(self, planned: PlannedFile) -> None:
        package = planned.package.name if planned.package is not None else None
        try:
            planned.path.parent.mkdir(parents=True, exist_ok=True)
            planned.path.write_bytes(planned.content)
        except OSError as exc:
            raise OutputWriteError(planned.path, package, str(exc)) from exc
        self.logger.debug("Wrote %s (%d bytes)", planned.path, len(planned.content))


def read_existing(path: Path) -> bytes | None:
    """Return the current contents of ``path`` or None if it does not exist."""
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None


__all__ = ["OutputWriteError", "OutputWriter", "read_existing"]
