"""Pipeline orchestration for the sync and list flows."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .config import UsageRulesConfig, load_config
from .locator import GuidanceLocator
from .logging import get_logger
from .models import (
    GuidanceDocument,
    LocatorWarning,
    OutputPlan,
    Package,
    PackageKey,
    PackageReport,
    SyncOutcome,
    dedupe_packages,
)
from .providers import GraphProvider, resolve_provider
from .render import OutputWriter, RenderSettings, Renderer, read_existing
from .selection import SelectionPolicy


@dataclass
class SyncOptions:
    """Directives for one sync run, already merged with configuration defaults."""

    include_all: bool = False
    inline: Sequence[str] = field(default_factory=list)
    remove: Sequence[str] = field(default_factory=list)
    output: Optional[Path] = None
    link_folder: Optional[Path] = None
    link_style: str = "markdown"
    dry_run: bool = False

    @classmethod
    def from_config(cls, config: UsageRulesConfig) -> "SyncOptions":
        sync = config.sync
        return cls(
            include_all=sync.include_all,
            inline=list(sync.inline),
            remove=list(sync.remove),
            output=Path(sync.output),
            link_folder=Path(sync.link_folder) if sync.link_folder else None,
            link_style=sync.link_style,
        )

    def policy(self) -> SelectionPolicy:
        return SelectionPolicy.build(
            include_all=self.include_all, inline=self.inline, remove=self.remove
        )


class Orchestrator:
    """Coordinates dependency resolution, discovery, selection and rendering."""

    def __init__(
        self,
        provider: GraphProvider | None = None,
        locator: GuidanceLocator | None = None,
        renderer: Renderer | None = None,
        writer: OutputWriter | None = None,
    ) -> None:
        self._provider_override = provider
        self._locator_override = locator
        self.renderer = renderer or Renderer()
        self.writer = writer or OutputWriter()
        self.logger = get_logger("orchestrator")

    def load_config(self, path: str | Path) -> UsageRulesConfig:
        return load_config(Path(path).expanduser().resolve())

    def run_sync(
        self,
        path: str | Path,
        options: SyncOptions | None = None,
        *,
        config: UsageRulesConfig | None = None,
    ) -> SyncOutcome:
        """Aggregate dependency usage rules and write the output document(s)."""
        project_root = Path(path).expanduser().resolve()
        config = config or self.load_config(project_root)
        options = options or SyncOptions.from_config(config)
        self.logger.info("Starting sync for %s", project_root)

        packages = self._resolve_packages(project_root, config)
        warnings: List[LocatorWarning] = []
        documents = self._locate_all(packages, config, warnings)
        decisions = options.policy().select(packages)

        output = _anchor(project_root, options.output or Path(config.sync.output))
        link_folder = _anchor(project_root, options.link_folder) if options.link_folder else None
        settings = RenderSettings(output=output, link_folder=link_folder, link_style=options.link_style)

        rendered = [doc for doc in documents.values() if decisions[doc.package.key].included]
        processed = len(rendered)
        excluded = len(packages) - processed
        # With include_all the block is rewritten even when empty, so packages
        # moved to the remove list disappear from earlier output.
        if not rendered and not options.include_all:
            self.logger.info("No packages with usage rules selected; nothing written")
            self._report_warnings(warnings)
            return SyncOutcome(
                output_path=output,
                written=[],
                processed=0,
                excluded=excluded,
                warnings=warnings,
                dry_run=options.dry_run,
            )

        plan = self.renderer.plan(
            list(documents.values()), decisions, settings, existing=read_existing(output)
        )
        written = self._apply(plan, dry_run=options.dry_run)

        self._report_warnings(warnings)
        self.logger.info(
            "Processed %d package(s), excluded %d; output at %s", processed, excluded, output
        )
        return SyncOutcome(
            output_path=output,
            written=written,
            processed=processed,
            excluded=excluded,
            warnings=warnings,
            dry_run=options.dry_run,
        )

    def run_list(
        self, path: str | Path, *, config: UsageRulesConfig | None = None
    ) -> Tuple[List[PackageReport], List[LocatorWarning]]:
        """Report guidance availability and the default-policy decision per package."""
        project_root = Path(path).expanduser().resolve()
        config = config or self.load_config(project_root)
        packages = self._resolve_packages(project_root, config)
        warnings: List[LocatorWarning] = []
        documents = self._locate_all(packages, config, warnings)
        decisions = SyncOptions.from_config(config).policy().select(packages)

        reports = []
        for package in sorted(packages, key=lambda item: item.sort_key()):
            document = documents.get(package.key)
            reports.append(
                PackageReport(
                    package=package,
                    has_guidance=document is not None,
                    sub_file_count=len(document.sub_files) if document is not None else 0,
                    decision=decisions[package.key],
                )
            )
        self._report_warnings(warnings)
        return reports, warnings

    # ------------------------------------------------------------------
    # Internal helpers

    def _resolve_packages(self, project_root: Path, config: UsageRulesConfig) -> List[Package]:
        provider = self._provider_override or resolve_provider(config, project_root)
        self.logger.debug("Resolving dependencies with %s", provider.__class__.__name__)
        packages = dedupe_packages(provider.resolve(project_root))
        self.logger.info("Resolved %d dependency package(s)", len(packages))
        return packages

    def _locate_all(
        self,
        packages: Iterable[Package],
        config: UsageRulesConfig,
        warnings: List[LocatorWarning],
    ) -> Dict[PackageKey, GuidanceDocument]:
        locator = self._locator_override or GuidanceLocator(
            guidance_file=config.guidance_file, rules_dir=config.rules_dir
        )
        documents: Dict[PackageKey, GuidanceDocument] = {}
        for package in packages:
            document = locator.locate(package, warnings)
            if document is not None:
                documents[package.key] = document
        self.logger.info("Found usage rules in %d package(s)", len(documents))
        return documents

    def _apply(self, plan: OutputPlan, *, dry_run: bool) -> List[Path]:
        if dry_run:
            self.logger.info("Dry-run completed; %d file(s) not written", len(plan.files))
            return [planned.path for planned in plan.files]
        return self.writer.write(plan)

    def _report_warnings(self, warnings: Sequence[LocatorWarning]) -> None:
        if warnings:
            self.logger.warning(
                "%d usage rules reference(s) could not be included; see warnings above",
                len(warnings),
            )


def _anchor(project_root: Path, path: Path) -> Path:
    path = path.expanduser()
    return path if path.is_absolute() else project_root / path


__all__ = ["Orchestrator", "SyncOptions"]
