"""Session state shared by the CLI commands.

A :class:`CLIState` lives on the root Click context. It carries the
verbosity flags of the root callback and collects the events the renderer
emits through :class:`~snaptex.ui.cli.diagnostics.CliEmitter`, so a command
can summarise splitter recoveries and payloads once rendering is over.
"""

from __future__ import annotations

from collections.abc import Mapping
from contextvars import ContextVar
from dataclasses import dataclass, field
import sys
from typing import TYPE_CHECKING, Any

import click
import typer


if TYPE_CHECKING:
    from rich.console import Console

__all__ = [
    "CLIState",
    "RenderSummary",
    "debug_enabled",
    "emit_error",
    "emit_warning",
    "get_cli_state",
    "render_message",
    "set_cli_state",
]


@dataclass(frozen=True, slots=True)
class RenderSummary:
    """Renderer activity collected while a command ran."""

    recoveries: tuple[tuple[str, int], ...] = ()
    payloads: tuple[str, ...] = ()
    invalidations: tuple[str, ...] = ()

    @property
    def recovery_lines(self) -> list[str]:
        """Human readable ``kind near line N`` entries, 1-based."""
        return [f"{kind} near line {line + 1}" for kind, line in self.recoveries]


@dataclass(slots=True)
class CLIState:
    """Verbosity flags and renderer events of one CLI invocation."""

    verbosity: int = 0
    show_tracebacks: bool = False
    events: dict[str, list[dict[str, Any]]] = field(default_factory=dict, init=False)
    _consoles: dict[str, Console] = field(default_factory=dict, init=False, repr=False)

    def _console_for(self, name: str, **options: Any) -> Console:
        from rich.console import Console

        stream = getattr(sys, name)
        console = self._consoles.get(name)
        # CliRunner swaps the standard streams between invocations.
        if console is None or console.file is not stream:
            console = Console(file=stream, **options)
            self._consoles[name] = console
        return console

    @property
    def console(self) -> Console:
        """Console bound to the current stdout."""
        return self._console_for("stdout")

    @property
    def err_console(self) -> Console:
        """Console bound to the current stderr."""
        return self._console_for("stderr", highlight=False)

    def record_event(self, name: str, payload: Mapping[str, Any] | None = None) -> None:
        self.events.setdefault(name, []).append(dict(payload or {}))

    def consume_events(self, name: str) -> list[dict[str, Any]]:
        """Return and forget the events recorded under ``name``."""
        return self.events.pop(name, [])

    def summarize_render(self) -> RenderSummary:
        """Drain the renderer events into a :class:`RenderSummary`."""
        recoveries = tuple(
            (str(entry.get("kind", "structure")), int(entry.get("line", 0)))
            for entry in self.consume_events("splitter_recovery")
        )
        payloads = tuple(
            str(entry.get("type", "")) for entry in self.consume_events("render_patch")
        )
        invalidations = tuple(
            str(entry.get("reason", "")) for entry in self.consume_events("cache_invalidated")
        )
        return RenderSummary(recoveries=recoveries, payloads=payloads, invalidations=invalidations)


_CURRENT: ContextVar[CLIState | None] = ContextVar("snaptex_cli_state", default=None)


def get_cli_state(
    ctx: typer.Context | click.Context | None = None,
    *,
    create: bool = True,
) -> CLIState:
    """Return the state of the running command, creating it when allowed.

    Outside a Click context the last state seen is reused, which lets the
    emitter helpers work from library code and tests.
    """
    if ctx is None:
        ctx = click.get_current_context(silent=True)

    if ctx is not None:
        state = ctx.find_object(CLIState)
        if state is None and create:
            state = ctx.ensure_object(CLIState)
        if state is not None:
            _CURRENT.set(state)
            return state

    state = _CURRENT.get()
    if state is None:
        if not create:
            raise RuntimeError("CLI state is not initialised for this context.")
        state = CLIState()
        _CURRENT.set(state)
    return state


def set_cli_state(
    *,
    ctx: typer.Context | click.Context | None = None,
    verbosity: int | None = None,
    debug: bool | None = None,
) -> CLIState:
    """Apply the root options to the current state and return it."""
    state = get_cli_state(ctx)
    if verbosity is not None:
        state.verbosity = max(0, verbosity)
    if debug is not None:
        state.show_tracebacks = debug
    return state


def _exception_details(exception: BaseException, message: str, verbosity: int) -> list[str]:
    if verbosity < 1:
        return []
    lines: list[str] = []
    detail = str(exception).strip()
    if detail and detail not in message:
        lines.append(detail)
    lines.append(f"type: {type(exception).__name__}")
    if verbosity >= 2:
        seen = {id(exception)}
        cause = exception.__cause__ or exception.__context__
        causes: list[str] = []
        while cause is not None and id(cause) not in seen:
            seen.add(id(cause))
            causes.append(f"  {type(cause).__name__}: {cause}")
            cause = cause.__cause__ or cause.__context__
        if causes:
            lines.append("caused by:")
            lines.extend(causes)
    return lines


def render_message(
    level: str,
    message: str,
    *,
    exception: BaseException | None = None,
) -> None:
    """Print ``message`` on stderr; ``info`` messages need ``-v``."""
    state = get_cli_state()

    if level == "info":
        if state.verbosity >= 1:
            state.err_console.log(message)
        return

    from rich.text import Text

    style = "red" if level == "error" else "yellow"
    text = Text.assemble((f"{level}: ", f"bold {style}"), (message, style))
    if exception is not None:
        details = _exception_details(exception, message, state.verbosity)
        if details:
            text.append("\n" + "\n".join(details), style=style)
    state.err_console.print(text)


def emit_warning(message: str, *, exception: BaseException | None = None) -> None:
    render_message("warning", message, exception=exception)


def emit_error(message: str, *, exception: BaseException | None = None) -> None:
    render_message("error", message, exception=exception)


def debug_enabled() -> bool:
    """Return whether full tracebacks should be displayed."""
    try:
        return get_cli_state(create=False).show_tracebacks
    except RuntimeError:
        return False
