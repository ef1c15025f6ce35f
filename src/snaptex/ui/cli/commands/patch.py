"""Implementation of the ``snaptex patch`` command."""

from __future__ import annotations

import json

from .._options import (
    BibliographyOption,
    ConfigOption,
    InputArgument,
    MarkdownExtensionsOption,
    OutputPathOption,
    RevisionArgument,
    RuleOption,
)
from ..diagnostics import report_render_summary
from ..state import get_cli_state
from ..utils import build_config, read_document, resolve_bibliography, write_output
from .render import build_renderer


def patch(
    input_path: InputArgument,
    revision_path: RevisionArgument,
    config_path: ConfigOption = None,
    bibliography: BibliographyOption = None,
    extensions: MarkdownExtensionsOption = None,
    rules: RuleOption = None,
    output: OutputPathOption = None,
) -> None:
    """Print the JSON payload that turns the INPUT preview into REVISION."""
    config = build_config(config_path, extensions, rules)
    original = read_document(input_path)
    revision = read_document(revision_path)
    entries = resolve_bibliography(original, input_path, bibliography)

    renderer = build_renderer(config, entries)
    renderer.render(original)
    # Only recoveries in the revision are reported.
    get_cli_state().summarize_render()
    payload = renderer.render(revision)
    report_render_summary()
    write_output(json.dumps(payload.to_dict(), indent=2, ensure_ascii=False), output)


__all__ = ["patch"]
