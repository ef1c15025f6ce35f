"""Public CLI exports for SnapTeX."""

from __future__ import annotations

from .app import app, main
from .commands import blocks, patch, render, rules
from .state import debug_enabled, emit_error, emit_warning, get_cli_state


__all__ = [
    "app",
    "blocks",
    "debug_enabled",
    "emit_error",
    "emit_warning",
    "get_cli_state",
    "main",
    "patch",
    "render",
    "rules",
]
