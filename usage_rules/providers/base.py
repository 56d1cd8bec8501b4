"""Base classes for dependency graph providers."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List

from ..models import Package


class ProviderError(RuntimeError):
    """Raised when the dependency graph cannot be resolved."""


class GraphProvider(ABC):
    """Contract for providers that resolve a project's dependency set."""

    @abstractmethod
    def supports(self, project_root: Path) -> bool:
        """Return True when this provider understands the project's manifest."""

    @abstractmethod
    def resolve(self, project_root: Path) -> List[Package]:
        """Return the resolved packages, de-duplicated by identity."""
