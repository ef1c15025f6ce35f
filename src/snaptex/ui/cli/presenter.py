"""Console presentation helpers for CLI commands."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from rich import box
from rich.table import Table
import typer

from snaptex.core.blocks import Block, SplitterRecovery

from .state import CLIState


if TYPE_CHECKING:
    from rich.console import Console


_PREVIEW_WIDTH = 60


def _get_console(state: CLIState) -> Console | None:
    """Return the stdout console when it is attached to a terminal."""
    console = state.console
    if getattr(console, "is_terminal", False):
        return console
    return None


def _build_table(*, title: str | None, columns: Sequence[str]) -> Table:
    """Create a Rich table with the house style."""
    table = Table(title=title or None, box=box.SQUARE, show_edge=True, header_style="bold cyan")
    for column in columns:
        table.add_column(column)
    return table


def _preview(text: str) -> str:
    flat = " ".join(text.split())
    if len(flat) <= _PREVIEW_WIDTH:
        return flat
    return flat[: _PREVIEW_WIDTH - 3] + "..."


def present_blocks(
    state: CLIState,
    blocks: Sequence[Block],
    recoveries: Sequence[SplitterRecovery] = (),
) -> None:
    """Render the block list produced by the splitter."""
    console = _get_console(state)
    if console is not None:
        table = _build_table(title="Blocks", columns=["#", "Line", "Lines", "Text"])
        for index, block in enumerate(blocks):
            table.add_row(
                str(index), str(block.start_line + 1), str(block.line_count), _preview(block.text)
            )
        console.print(table)
    else:
        for index, block in enumerate(blocks):
            typer.echo(
                f"{index:>4}  line {block.start_line + 1:>5}  "
                f"+{block.line_count:<4} {_preview(block.text)}"
            )

    for recovery in recoveries:
        typer.echo(f"recovered from unbalanced {recovery.kind} near line {recovery.line + 1}")


def present_rule_descriptions(state: CLIState, rules: Sequence[Mapping[str, Any]]) -> None:
    """Render a diagnostic view of registered substitution rules."""
    if not rules:
        return

    console = _get_console(state)
    if console is not None:
        table = _build_table(
            title="Registered Rules",
            columns=["Phase", "Name", "Priority", "Before", "After"],
        )
        for entry in rules:
            table.add_row(
                str(entry.get("phase", "")),
                str(entry.get("name", "")),
                str(entry.get("priority", "")),
                ", ".join(entry.get("before", []) or []),
                ", ".join(entry.get("after", []) or []),
            )
        console.print(table)
        return

    typer.echo("Registered Rules:")
    for entry in rules:
        before = ", ".join(entry.get("before", []) or [])
        after = ", ".join(entry.get("after", []) or [])
        typer.echo(
            f"  - {entry.get('phase', '')}: {entry.get('name', '')} "
            f"(priority={entry.get('priority', '')}, before=[{before}], after=[{after}])"
        )


__all__ = ["present_blocks", "present_rule_descriptions"]
