"""Utility helpers shared by CLI commands."""

from __future__ import annotations

from collections.abc import Iterable
import html
from pathlib import Path

import typer

from snaptex.adapters.markdown import (
    DEFAULT_MARKDOWN_EXTENSIONS,
    deduplicate_markdown_extensions,
    normalize_markdown_extensions,
)
from snaptex.core.bibliography import BibEntry, find_bibliography_resource, load_bibliography
from snaptex.core.config import PreviewConfig, load_config
from snaptex.core.exceptions import BibliographyError, ConfigurationError

from .state import emit_error, emit_warning


_PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{title}</title>
</head>
<body>
<main class="latex-preview">
{body}
</main>
</body>
</html>
"""


def build_config(
    config_path: Path | None,
    extensions: Iterable[str] | None = None,
    rules: Iterable[str] | None = None,
) -> PreviewConfig:
    """Load the configuration file and apply command line overrides."""
    try:
        config = load_config(config_path) if config_path is not None else PreviewConfig()
    except ConfigurationError as exc:
        emit_error(str(exc), exception=exc)
        raise typer.Exit(code=1) from exc

    updates: dict[str, list[str]] = {}
    requested = normalize_markdown_extensions(extensions)
    if requested:
        base = config.markdown_extensions or DEFAULT_MARKDOWN_EXTENSIONS
        updates["markdown_extensions"] = deduplicate_markdown_extensions([*base, *requested])
    extra_rules = normalize_markdown_extensions(rules)
    if extra_rules:
        updates["extra_rules"] = [*config.extra_rules, *extra_rules]
    return config.model_copy(update=updates) if updates else config


def read_document(path: Path) -> str:
    """Read a LaTeX source file, exiting with an error when unreadable."""
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        emit_error(f"Unable to read '{path}': {exc}", exception=exc)
        raise typer.Exit(code=1) from exc


def resolve_bibliography(
    source: str,
    input_path: Path,
    explicit: Path | None = None,
) -> dict[str, BibEntry]:
    """Load the bibliography given explicitly or referenced by the document."""
    candidate = explicit
    if candidate is None:
        resource = find_bibliography_resource(source)
        if resource is None:
            return {}
        candidate = input_path.parent / resource
        if not candidate.exists():
            emit_warning(f"Bibliography '{resource}' referenced by the document was not found.")
            return {}
    try:
        return load_bibliography(candidate)
    except BibliographyError as exc:
        emit_warning(str(exc), exception=exc)
        return {}


def wrap_html_page(fragment: str, title: str | None = None) -> str:
    """Embed rendered blocks into a minimal standalone HTML page."""
    return _PAGE_TEMPLATE.format(title=html.escape(title or "Preview"), body=fragment)


def write_output(content: str, output: Path | None) -> None:
    """Write ``content`` to ``output`` or stdout."""
    if output is None:
        typer.echo(content)
        return
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(content, encoding="utf-8")
    except OSError as exc:
        emit_error(f"Unable to write '{output}': {exc}", exception=exc)
        raise typer.Exit(code=1) from exc


__all__ = [
    "build_config",
    "read_document",
    "resolve_bibliography",
    "wrap_html_page",
    "write_output",
]
