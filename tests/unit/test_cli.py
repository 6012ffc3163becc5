"""Tests for CLI module."""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from citeshelf.cli.main import cli


@pytest.fixture
def runner() -> CliRunner:
    """Provide Click test CLI runner."""
    return CliRunner()


def _write_config(tmp_path: Path, databases: list[dict], **policy: object) -> Path:
    path = tmp_path / "citeshelf.json"
    path.write_text(json.dumps({"databases": databases, **policy}), encoding="utf-8")
    return path


@pytest.fixture
def config_path(tmp_path: Path, csl_file: Path, bib_file: Path) -> Path:
    """Settings file for a CSL-JSON and a BibLaTeX database."""
    return _write_config(
        tmp_path,
        [
            {"name": "Main", "path": csl_file.name, "format": "csl-json"},
            {"name": "Thesis", "path": bib_file.name, "format": "biblatex"},
        ],
    )


# ---------------------------------------------------------------------------
# Top-level CLI
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_cli_version_flag(runner: CliRunner) -> None:
    """Test --version flag outputs version string."""
    result = runner.invoke(cli, ["--version"])

    assert result.exit_code == 0
    assert "citeshelf" in result.output


@pytest.mark.unit
def test_cli_help(runner: CliRunner) -> None:
    """Test --help output lists commands."""
    result = runner.invoke(cli, ["--help"])

    assert result.exit_code == 0
    for command in ("load", "search", "watch"):
        assert command in result.output


# ---------------------------------------------------------------------------
# load
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_load_reports_entries_and_collisions(runner: CliRunner, config_path: Path) -> None:
    """Test load prints the library size and re-keyed citekeys."""
    result = runner.invoke(cli, ["load", str(config_path)])

    assert result.exit_code == 0, result.output
    assert "Loaded 4 entries" in result.output
    assert "Re-keyed 1 colliding citekeys" in result.output


@pytest.mark.unit
def test_load_verbose_prints_state_changes(runner: CliRunner, config_path: Path) -> None:
    """Test -v shows every state transition."""
    result = runner.invoke(cli, ["load", str(config_path), "-v"])

    assert result.exit_code == 0, result.output
    assert "State: loading (0/2)" in result.output
    assert "State: success" in result.output


@pytest.mark.unit
def test_load_partial_failure_lists_failed_sources(
    runner: CliRunner,
    tmp_path: Path,
    csl_file: Path,
) -> None:
    """Test a missing database is reported without failing the command."""
    path = _write_config(
        tmp_path,
        [
            {"name": "Main", "path": csl_file.name, "format": "csl-json"},
            {"name": "Gone", "path": "gone.bib", "format": "biblatex"},
        ],
    )

    result = runner.invoke(cli, ["load", str(path)])

    assert result.exit_code == 0, result.output
    assert "Loaded 2 entries" in result.output
    assert "Failed sources: Gone" in result.output


@pytest.mark.unit
def test_load_all_failed_exits_1(runner: CliRunner, tmp_path: Path) -> None:
    """Test a library with no loadable database exits with status 1."""
    path = _write_config(tmp_path, [{"name": "Gone", "path": "gone.json", "format": "csl-json"}])

    result = runner.invoke(cli, ["load", str(path)])

    assert result.exit_code == 1
    assert "All sources failed to load" in result.output


@pytest.mark.unit
def test_load_invalid_config_exits_2(runner: CliRunner, tmp_path: Path) -> None:
    """Test schema violations exit with status 2."""
    path = _write_config(tmp_path, [{"name": "A", "path": "a.ris", "format": "ris"}])

    result = runner.invoke(cli, ["load", str(path)])

    assert result.exit_code == 2
    assert "Invalid configuration" in result.output


@pytest.mark.unit
def test_load_writes_audit_log(runner: CliRunner, tmp_path: Path, config_path: Path) -> None:
    """Test --log appends the cycle's events."""
    log_path = tmp_path / "logs" / "events.jsonl"

    result = runner.invoke(cli, ["load", str(config_path), "--log", str(log_path)])

    assert result.exit_code == 0, result.output
    events = [json.loads(line) for line in log_path.read_text().splitlines()]
    assert events[0]["event"] == "load_started"
    assert events[-1]["event"] == "load_finished"
    assert events[-1]["data"]["entries"] == 4


@pytest.mark.unit
def test_load_missing_config_path(runner: CliRunner, tmp_path: Path) -> None:
    """Test a nonexistent settings file is a usage error."""
    result = runner.invoke(cli, ["load", str(tmp_path / "nope.json")])

    assert result.exit_code == 2
    assert "does not exist" in result.output


# ---------------------------------------------------------------------------
# search
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_search_prints_ids_and_titles(runner: CliRunner, config_path: Path) -> None:
    """Test search prints one tab-separated hit per line."""
    result = runner.invoke(cli, ["search", str(config_path), "graph"])

    assert result.exit_code == 0, result.output
    assert result.output.splitlines() == ["smith2020@Thesis\tGraph Methods in Bibliometrics"]


@pytest.mark.unit
def test_search_limit(runner: CliRunner, config_path: Path) -> None:
    """Test --limit caps the number of hits and must be positive."""
    result = runner.invoke(cli, ["search", str(config_path), "smith", "--limit", "1"])

    assert result.exit_code == 0, result.output
    assert len(result.output.splitlines()) == 1

    result = runner.invoke(cli, ["search", str(config_path), "smith", "-n", "0"])
    assert result.exit_code == 2


@pytest.mark.unit
def test_search_no_match(runner: CliRunner, config_path: Path) -> None:
    """Test a query without hits prints nothing."""
    result = runner.invoke(cli, ["search", str(config_path), "zzzzqqqq"])

    assert result.exit_code == 0
    assert result.output == ""
