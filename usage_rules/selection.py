"""Inclusion policy deciding which packages are rendered and how."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Sequence

from .models import Package, PackageKey, SelectionDecision


@dataclass(frozen=True)
class SelectionPolicy:
    """Directives applied to every resolved package.

    Rule order is authoritative: ``remove`` beats ``inline``, which beats
    ``include_all``; anything else is excluded. A name listed in both
    ``inline`` and ``remove`` is therefore excluded.
    """

    include_all: bool = False
    inline: FrozenSet[str] = field(default_factory=frozenset)
    remove: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def build(
        cls,
        *,
        include_all: bool = False,
        inline: Iterable[str] = (),
        remove: Iterable[str] = (),
    ) -> "SelectionPolicy":
        return cls(
            include_all=include_all,
            inline=frozenset(name.strip() for name in inline if name.strip()),
            remove=frozenset(name.strip() for name in remove if name.strip()),
        )

    def decide(self, package: Package) -> SelectionDecision:
        if package.name in self.remove:
            return SelectionDecision.EXCLUDED
        if package.name in self.inline:
            return SelectionDecision.INLINE
        if self.include_all:
            return SelectionDecision.LINKED
        return SelectionDecision.EXCLUDED

    def select(self, packages: Sequence[Package]) -> Dict[PackageKey, SelectionDecision]:
        """Compute the decision for every package, keyed by package identity."""
        return {package.key: self.decide(package) for package in packages}


__all__ = ["SelectionPolicy"]
