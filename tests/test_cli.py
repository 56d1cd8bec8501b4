"""CLI parser and entrypoint tests."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from usage_rules import cli
from usage_rules.cli import _build_parser, _sync_options
from usage_rules.config import UsageRulesConfig
from usage_rules.orchestrator import Orchestrator


@pytest.fixture(autouse=True)
def reset_logging():
    """Detach handlers bound to captured streams once a CLI test finishes."""
    yield
    logger = logging.getLogger("usage_rules")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


def test_cli_accepts_verbose_before_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--verbose", "sync"])
    assert args.verbose is True
    assert args.command == "sync"


def test_cli_accepts_verbose_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["list", "--verbose"])
    assert args.verbose is True
    assert args.command == "list"


def test_sync_flags_are_parsed() -> None:
    parser = _build_parser()
    args = parser.parse_args(
        [
            "sync",
            "project",
            "--all",
            "-o",
            "CLAUDE.md",
            "--link-folder",
            "rules",
            "--link-style",
            "at",
            "--inline",
            "serde, tokio",
            "--inline",
            "anyhow",
            "--remove",
            "log",
            "--dry-run",
        ]
    )
    assert args.path == "project"
    assert args.all is True
    assert args.output == Path("CLAUDE.md")
    assert args.link_folder == Path("rules")
    assert args.link_style == "at"
    assert args.inline == ["serde", "tokio", "anyhow"]
    assert args.remove == ["log"]
    assert args.dry_run is True


def test_invalid_link_style_is_rejected() -> None:
    parser = _build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["sync", "--link-style", "wiki"])


def test_flags_override_config_defaults(tmp_path: Path) -> None:
    config = UsageRulesConfig(root=tmp_path)
    config.sync.inline = ["serde"]
    config.sync.remove = ["log"]
    config.sync.link_folder = "docs/rules"
    args = _build_parser().parse_args(["sync", "--inline", "tokio", "-o", "OUT.md"])

    options = _sync_options(args, config)

    assert options.include_all is False
    assert options.inline == ["serde", "tokio"]
    assert options.remove == ["log"]
    assert options.output == Path("OUT.md")
    assert options.link_folder == Path("docs/rules")
    assert options.link_style == "markdown"
    assert options.dry_run is False


def _use_provider(monkeypatch: pytest.MonkeyPatch, provider) -> None:
    monkeypatch.setattr(cli, "Orchestrator", lambda: Orchestrator(provider=provider))


def test_main_sync_writes_output(tree, project: Path, static_provider, monkeypatch, capsys) -> None:
    alpha = tree.package("alpha", files={"usage-rules.md": "Alpha\n"})
    _use_provider(monkeypatch, static_provider([alpha]))

    cli.main(["sync", str(project), "--all"])

    out = capsys.readouterr().out
    assert "AGENTS.md" in out
    assert "Processed 1 package(s) with usage rules; excluded 0." in out
    assert (project / "AGENTS.md").exists()


def test_main_sync_without_selection(tree, project: Path, static_provider, monkeypatch, capsys) -> None:
    alpha = tree.package("alpha", files={"usage-rules.md": "Alpha\n"})
    _use_provider(monkeypatch, static_provider([alpha]))

    cli.main(["sync", str(project)])

    assert "No packages selected for output" in capsys.readouterr().out
    assert not (project / "AGENTS.md").exists()


def test_main_list_prints_packages(tree, project: Path, static_provider, monkeypatch, capsys) -> None:
    alpha = tree.package("alpha", files={"usage-rules.md": "Alpha\n"})
    beta = tree.package("beta", "2.0.0")
    _use_provider(monkeypatch, static_provider([beta, alpha]))

    cli.main(["list", str(project)])

    out = capsys.readouterr().out
    assert "[✓] alpha v1.0.0 -> excluded" in out
    assert "[ ] beta v2.0.0 -> excluded" in out


def test_main_reports_config_errors(project: Path, capsys) -> None:
    (project / ".usage-rules.yml").write_text("- not a mapping\n", encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["sync", str(project)])

    assert excinfo.value.code == 1
    assert "mapping" in capsys.readouterr().err


def test_main_reports_provider_errors(project: Path, capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["sync", str(project), "--all"])

    assert excinfo.value.code == 1
    assert "No dependency manifest found" in capsys.readouterr().err


def test_quiet_and_verbose_are_mutually_exclusive() -> None:
    with pytest.raises(SystemExit):
        _build_parser().parse_args(["sync", "--quiet", "--verbose"])


def test_main_writes_debug_log_file(
    tree, project: Path, tmp_path: Path, static_provider, monkeypatch
) -> None:
    alpha = tree.package("alpha", files={"usage-rules.md": "Alpha\n"})
    _use_provider(monkeypatch, static_provider([alpha]))
    log_file = tmp_path / "logs" / "usage-rules.log"

    cli.main(["--quiet", "--log-file", str(log_file), "sync", str(project), "--all"])

    logger = logging.getLogger("usage_rules")
    for handler in logger.handlers:
        handler.flush()
    content = log_file.read_text(encoding="utf-8")
    assert "DEBUG usage_rules.locator: Located guidance for alpha v1.0.0" in content
    assert "INFO usage_rules.orchestrator: Starting sync" in content


def test_main_reports_unreadable_config(project: Path, capsys) -> None:
    (project / ".usage-rules.yml").write_bytes(b"sync:\n  output: \xff\xfe\n")

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["sync", str(project)])

    assert excinfo.value.code == 1
    assert "Failed to read .usage-rules.yml" in capsys.readouterr().err
