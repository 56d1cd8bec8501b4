"""Tests for merged and linked output planning."""

from __future__ import annotations

from pathlib import Path

from usage_rules.locator import GuidanceLocator
from usage_rules.models import Package, PackageSource, SelectionDecision
from usage_rules.render import RenderSettings, Renderer, assign_file_names
from usage_rules.render.markers import MarkerManager


def _locate(*packages: Package):
    locator = GuidanceLocator()
    return [document for document in (locator.locate(pkg) for pkg in packages) if document is not None]


def test_render_section_wraps_primary_and_sub_files(tree) -> None:
    package = tree.package(
        "gamma",
        files={"usage-rules.md": "Primary\nSee ./sub/a.md for more.", "sub/a.md": "Sub A\n"},
    )
    (document,) = _locate(package)

    section = Renderer().render_section(document)

    assert section == (
        b"<!-- usage-rules:begin:package name=gamma version=1.0.0 -->\n"
        b"## gamma usage\n"
        b"Primary\nSee ./sub/a.md for more.\n"
        b"<!-- usage-rules:file path=sub/a.md -->\n"
        b"Sub A\n"
        b"<!-- usage-rules:end:package name=gamma version=1.0.0 -->\n"
    )


def test_merged_plan_orders_sections_by_name(tree, project: Path) -> None:
    packages = [
        tree.package("zeta", files={"usage-rules.md": "Z\n"}),
        tree.package("alpha", files={"usage-rules.md": "A\n"}),
        tree.package("mid", files={"usage-rules.md": "M\n"}),
    ]
    decisions = {
        packages[0].key: SelectionDecision.LINKED,
        packages[1].key: SelectionDecision.INLINE,
        packages[2].key: SelectionDecision.LINKED,
    }

    plan = Renderer().plan(_locate(*packages), decisions, RenderSettings(output=project / "AGENTS.md"))

    assert plan.package_files == []
    assert plan.index.path == project / "AGENTS.md"
    names = [section.name for section in MarkerManager().extract_sections(plan.index.content)]
    assert names == ["alpha", "mid", "zeta"]
    assert plan.index.content.startswith(b"<!-- usage-rules-start -->\n\nIMPORTANT:")


def test_excluded_packages_are_not_rendered(tree, project: Path) -> None:
    keep = tree.package("keep", files={"usage-rules.md": "Keep\n"})
    drop = tree.package("drop", files={"usage-rules.md": "Drop\n"})
    decisions = {keep.key: SelectionDecision.LINKED, drop.key: SelectionDecision.EXCLUDED}

    plan = Renderer().plan(_locate(keep, drop), decisions, RenderSettings(output=project / "AGENTS.md"))

    assert b"Keep" in plan.index.content
    assert b"drop" not in plan.index.content


def test_linked_plan_writes_linked_packages_and_inlines_the_rest(tree, project: Path) -> None:
    linked = tree.package("linked", files={"usage-rules.md": "Linked rules\n"})
    inline = tree.package("inline", files={"usage-rules.md": "Inline rules\n"})
    decisions = {linked.key: SelectionDecision.LINKED, inline.key: SelectionDecision.INLINE}
    settings = RenderSettings(output=project / "AGENTS.md", link_folder=project / "usage_rules")

    plan = Renderer().plan(_locate(linked, inline), decisions, settings)

    assert [planned.path for planned in plan.package_files] == [project / "usage_rules" / "linked.md"]
    assert plan.package_files[0].package == linked
    assert b"Linked rules" in plan.package_files[0].content
    assert b"Linked rules" not in plan.index.content
    assert b"Inline rules" in plan.index.content
    assert b"## linked usage\n[linked usage rules](./usage_rules/linked.md)\n" in plan.index.content
    assert plan.files[-1] is plan.index


def test_at_link_style(tree, project: Path) -> None:
    package = tree.package("alpha", files={"usage-rules.md": "A\n"})
    settings = RenderSettings(
        output=project / "docs" / "AGENTS.md",
        link_folder=project / "rules",
        link_style="at",
    )

    plan = Renderer().plan(_locate(package), {package.key: SelectionDecision.LINKED}, settings)

    assert b"@../rules/alpha.md\n" in plan.index.content


def test_markdown_link_style_outside_index_directory(tree, project: Path) -> None:
    package = tree.package("alpha", files={"usage-rules.md": "A\n"})
    settings = RenderSettings(output=project / "docs" / "AGENTS.md", link_folder=project / "rules")

    plan = Renderer().plan(_locate(package), {package.key: SelectionDecision.LINKED}, settings)

    assert b"[alpha usage rules](../rules/alpha.md)" in plan.index.content


def test_plan_preserves_existing_preamble(tree, project: Path) -> None:
    package = tree.package("alpha", files={"usage-rules.md": "A\n"})

    plan = Renderer().plan(
        _locate(package),
        {package.key: SelectionDecision.LINKED},
        RenderSettings(output=project / "AGENTS.md"),
        existing=b"# Team notes\n",
    )

    assert plan.index.content.startswith(b"# Team notes\n\n<!-- usage-rules-start -->")


def test_assign_file_names_unique_name() -> None:
    package = Package("serde", "1.0.0", PackageSource.REGISTRY, Path("/deps/serde"))

    assert assign_file_names([package]) == {package.key: "serde.md"}


def test_assign_file_names_disambiguates_versions() -> None:
    old = Package("util", "1.0.0", PackageSource.REGISTRY, Path("/deps/util-1"))
    new = Package("util", "2.0.0", PackageSource.REGISTRY, Path("/deps/util-2"))

    names = assign_file_names([new, old])

    assert names == {old.key: "util-1.0.0.md", new.key: "util-2.0.0.md"}


def test_assign_file_names_disambiguates_sources() -> None:
    registry = Package("util", "1.0.0", PackageSource.REGISTRY, Path("/deps/a"))
    git = Package("util", "1.0.0", PackageSource.VCS, Path("/deps/b"), source_url="https://git.example/util")
    fork = Package("util", "1.0.0", PackageSource.VCS, Path("/deps/c"), source_url="https://git.example/fork")

    names = assign_file_names([registry, git, fork])

    assert names[registry.key] == "util-1.0.0-registry.md"
    assert names[git.key].startswith("util-1.0.0-vcs-")
    assert names[fork.key].startswith("util-1.0.0-vcs-")
    assert len(set(names.values())) == 3


def test_assign_file_names_sanitises_unsafe_characters() -> None:
    package = Package("@scope/pkg", "1.0.0", PackageSource.REGISTRY, Path("/deps/pkg"))

    assert assign_file_names([package]) == {package.key: "_scope_pkg.md"}


def test_assign_file_names_resolves_clashes_across_name_groups() -> None:
    old = Package("util", "1.0.0", PackageSource.REGISTRY, Path("/deps/util-1"))
    new = Package("util", "2.0.0", PackageSource.REGISTRY, Path("/deps/util-2"))
    lookalike = Package("util-1.0.0", "3.0", PackageSource.REGISTRY, Path("/deps/lookalike"))

    names = assign_file_names([old, new, lookalike])

    assert names[new.key] == "util-2.0.0.md"
    assert names[old.key].startswith("util-1.0.0-")
    assert names[lookalike.key].startswith("util-1.0.0-")
    assert names[old.key] != names[lookalike.key]


def test_assign_file_names_ignores_case_when_grouping() -> None:
    upper = Package("PyYAML", "6.0", PackageSource.REGISTRY, Path("/deps/a"))
    lower = Package("pyyaml", "5.4", PackageSource.REGISTRY, Path("/deps/b"))

    names = assign_file_names([upper, lower])

    assert names == {upper.key: "PyYAML-6.0.md", lower.key: "pyyaml-5.4.md"}
    assert len({name.casefold() for name in names.values()}) == 2
