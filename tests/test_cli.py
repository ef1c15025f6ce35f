from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from snaptex.ui.cli import app


DOCUMENT = "\n".join(
    [
        "\\documentclass{article}",
        "\\title{CLI Notes}",
        "\\begin{document}",
        "\\maketitle",
        "",
        "First paragraph.",
        "",
        "Second paragraph.",
        "\\end{document}",
        "",
    ]
)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def document(tmp_path: Path) -> Path:
    path = tmp_path / "notes.tex"
    path.write_text(DOCUMENT, encoding="utf-8")
    return path


def test_render_fragment_to_stdout(runner: CliRunner, document: Path) -> None:
    result = runner.invoke(app, ["render", str(document), "--fragment"])

    assert result.exit_code == 0, result.output
    assert '<div class="latex-block" data-index="0">' in result.stdout
    assert "<p>Second paragraph.</p>" in result.stdout
    assert "<!DOCTYPE html>" not in result.stdout


def test_render_page_to_file(runner: CliRunner, document: Path, tmp_path: Path) -> None:
    output = tmp_path / "out" / "notes.html"
    result = runner.invoke(app, ["render", str(document), "--output", str(output)])

    assert result.exit_code == 0, result.output
    page = output.read_text(encoding="utf-8")
    assert page.startswith("<!DOCTYPE html>")
    assert "<title>CLI Notes</title>" in page
    assert '<h1 class="latex-title">CLI Notes</h1>' in page


def test_render_uses_referenced_bibliography(runner: CliRunner, tmp_path: Path) -> None:
    (tmp_path / "refs.bib").write_text(
        "@book{knuth84, author = {Knuth, Donald}, year = {1984}}\n", encoding="utf-8"
    )
    source = tmp_path / "cite.tex"
    source.write_text("See \\citet{knuth84}.\n\n\\bibliography{refs}\n", encoding="utf-8")

    result = runner.invoke(app, ["render", str(source), "--fragment"])

    assert result.exit_code == 0, result.output
    assert "Knuth (1984)" in result.stdout


def test_render_rejects_invalid_config(runner: CliRunner, document: Path, tmp_path: Path) -> None:
    config = tmp_path / "bad.yml"
    config.write_text("unknown_key: 1\n", encoding="utf-8")

    result = runner.invoke(app, ["render", str(document), "--config", str(config)])

    assert result.exit_code == 1


def test_render_rejects_unknown_rule_module(runner: CliRunner, document: Path) -> None:
    result = runner.invoke(app, ["render", str(document), "--rule", "snaptex_missing_rules"])

    assert result.exit_code == 1


def test_blocks_lists_split_result(runner: CliRunner, document: Path) -> None:
    result = runner.invoke(app, ["blocks", str(document)])

    assert result.exit_code == 0, result.output
    lines = [line for line in result.stdout.splitlines() if line.strip()]
    assert len(lines) == 3
    assert "line     4" in lines[0]
    assert lines[2].rstrip().endswith("Second paragraph.")


def test_blocks_reports_recoveries(runner: CliRunner, tmp_path: Path) -> None:
    source = tmp_path / "broken.tex"
    source.write_text("\\textbf{open\n\nnext\n", encoding="utf-8")

    result = runner.invoke(app, ["blocks", str(source)])

    assert result.exit_code == 0, result.output
    assert "recovered from unbalanced brace near line 1" in result.stdout


def test_patch_prints_json_payload(runner: CliRunner, document: Path, tmp_path: Path) -> None:
    revision = tmp_path / "notes-v2.tex"
    revision.write_text(
        DOCUMENT.replace("First paragraph.", "First paragraph, edited."), encoding="utf-8"
    )

    result = runner.invoke(app, ["patch", str(document), str(revision)])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["type"] == "patch"
    assert payload["start"] == 1
    assert payload["deleteCount"] == 1
    assert payload["shift"] == 0
    assert "First paragraph, edited." in payload["htmls"][0]


def test_rules_lists_builtin_rules(runner: CliRunner) -> None:
    result = runner.invoke(app, ["rules"])

    assert result.exit_code == 0, result.output
    assert "Registered Rules:" in result.stdout
    assert "PRE: escaped_chars (priority=10" in result.stdout
    assert "POST: abstract_markers" in result.stdout


def test_rules_accepts_extra_modules(runner: CliRunner) -> None:
    result = runner.invoke(app, ["rules", "--rule", "snaptex.handlers.floats"])

    assert result.exit_code == 0, result.output
    assert result.stdout.count(": floats (") == 1


def test_no_arguments_shows_help(runner: CliRunner) -> None:
    result = runner.invoke(app, [])

    assert "render" in result.output
    assert "patch" in result.output


def test_render_warns_about_recoveries(runner: CliRunner, tmp_path: Path) -> None:
    source = tmp_path / "broken.tex"
    source.write_text("\\textbf{open\n\nnext\n", encoding="utf-8")

    result = runner.invoke(app, ["render", str(source), "--fragment"])

    assert result.exit_code == 0, result.output
    assert "Recovered from 1 unbalanced structure(s): brace near line 1" in result.output
