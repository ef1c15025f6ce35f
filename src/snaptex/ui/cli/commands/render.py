"""Implementation of the ``snaptex render`` command."""

from __future__ import annotations

from collections.abc import Mapping

import typer

from snaptex.core.bibliography import BibEntry
from snaptex.core.config import PreviewConfig
from snaptex.core.exceptions import RuleRegistrationError
from snaptex.core.renderer import IncrementalRenderer

from .._options import (
    BibliographyOption,
    ConfigOption,
    FragmentOption,
    InputArgument,
    MarkdownExtensionsOption,
    OutputPathOption,
    RuleOption,
)
from ..diagnostics import CliEmitter, report_render_summary
from ..state import emit_error, get_cli_state
from ..utils import (
    build_config,
    read_document,
    resolve_bibliography,
    wrap_html_page,
    write_output,
)


def build_renderer(
    config: PreviewConfig, bibliography: Mapping[str, BibEntry] | None = None
) -> IncrementalRenderer:
    """Create a renderer wired to the CLI emitter, exiting on rule errors."""
    try:
        return IncrementalRenderer(
            config, emitter=CliEmitter(get_cli_state()), bibliography=bibliography
        )
    except RuleRegistrationError as exc:
        emit_error(str(exc), exception=exc)
        raise typer.Exit(code=1) from exc


def render(
    input_path: InputArgument,
    config_path: ConfigOption = None,
    bibliography: BibliographyOption = None,
    extensions: MarkdownExtensionsOption = None,
    rules: RuleOption = None,
    output: OutputPathOption = None,
    fragment: FragmentOption = False,
) -> None:
    """Render a LaTeX document into an HTML preview."""
    config = build_config(config_path, extensions, rules)
    source = read_document(input_path)
    entries = resolve_bibliography(source, input_path, bibliography)

    renderer = build_renderer(config, entries)
    renderer.render(source)
    report_render_summary()

    content = renderer.cached_html
    if not fragment:
        content = wrap_html_page(content, renderer.metadata.title or input_path.stem)
    write_output(content, output)


__all__ = ["build_renderer", "render"]
