"""CLI command implementations exposed via ``snaptex.ui.cli``."""

from __future__ import annotations

from .blocks import blocks
from .patch import patch
from .render import render
from .rules import rules


__all__ = ["blocks", "patch", "render", "rules"]
