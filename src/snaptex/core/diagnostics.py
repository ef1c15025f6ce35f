"""Diagnostic abstractions shared across the preview pipeline."""

from __future__ import annotations

from collections.abc import Mapping
import logging
from typing import Any, Protocol, runtime_checkable


logger = logging.getLogger(__name__)


@runtime_checkable
class DiagnosticEmitter(Protocol):
    """Interface used to surface warnings, errors, and structured events."""

    debug_enabled: bool

    def warning(self, message: str, exc: BaseException | None = None) -> None: ...

    def error(self, message: str, exc: BaseException | None = None) -> None: ...

    def event(self, name: str, payload: Mapping[str, Any]) -> None: ...


class NullEmitter:
    """Emitter that ignores every diagnostic."""

    debug_enabled: bool = False

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        return

    def error(self, message: str, exc: BaseException | None = None) -> None:
        return

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        return


class LoggingEmitter:
    """Emitter that forwards diagnostics to the standard logging module."""

    def __init__(
        self, *, logger_obj: logging.Logger | None = None, debug_enabled: bool = False
    ) -> None:
        self._logger = logger_obj or logger
        self.debug_enabled = debug_enabled

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        if exc is not None:
            self._logger.warning(message, exc_info=exc)
        else:
            self._logger.warning(message)

    def error(self, message: str, exc: BaseException | None = None) -> None:
        if exc is not None:
            self._logger.error(message, exc_info=exc)
        else:
            self._logger.error(message)

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        message = format_event_message(name, payload)
        if message:
            self._logger.info(message)
            return
        self._logger.debug("diagnostic event %s: %s", name, dict(payload))


def format_event_message(name: str, payload: Mapping[str, Any]) -> str | None:
    """Return a human-friendly summary for selected diagnostic events."""
    data = dict(payload)

    if name == "cache_invalidated":
        reason = data.get("reason") or "reset"
        dropped = data.get("dropped", 0)
        return f"Block cache invalidated ({reason}), dropped {dropped} block(s)"

    if name == "splitter_recovery":
        kind = data.get("kind") or "<unknown>"
        line = data.get("line")
        where = f" near line {line + 1}" if isinstance(line, int) else ""
        return f"Recovered from unbalanced {kind}{where}"

    if name == "render_patch":
        if data.get("type") == "full":
            return f"Full render of {data.get('blocks', 0)} block(s)"
        start = data.get("start", 0)
        deleted = data.get("delete_count", 0)
        inserted = data.get("inserted", 0)
        if not deleted and not inserted:
            return None
        return f"Patched blocks at {start}: -{deleted} +{inserted}"

    if name == "protection_depth_exceeded":
        unresolved = data.get("unresolved") or ()
        return f"Protected content still nested after resolution ({len(unresolved)} token(s))"

    return None


__all__ = [
    "DiagnosticEmitter",
    "LoggingEmitter",
    "NullEmitter",
    "format_event_message",
]
