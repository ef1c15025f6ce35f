"""Implementation of the ``snaptex blocks`` command."""

from __future__ import annotations

from snaptex.core.blocks import BlockSplitter
from snaptex.core.metadata import extract_body, extract_metadata, normalize_newlines
from snaptex.core.protection import strip_sentinels

from .._options import ConfigOption, InputArgument
from ..presenter import present_blocks
from ..state import get_cli_state
from ..utils import build_config, read_document


def blocks(
    input_path: InputArgument,
    config_path: ConfigOption = None,
) -> None:
    """List the blocks the splitter produces for a document."""
    config = build_config(config_path)
    source = strip_sentinels(normalize_newlines(read_document(input_path)))
    body, offset = extract_body(extract_metadata(source).cleaned_text)

    splitter = BlockSplitter(config.splitter)
    result = splitter.split(body, line_offset=offset)
    present_blocks(get_cli_state(), result, splitter.recoveries)


__all__ = ["blocks"]
