"""Built-in substitution rules turning LaTeX blocks into Markdown-friendly text.

Each module groups related rules declared with
:func:`snaptex.core.rules.substitutes`; the renderer collects them all.
"""

from __future__ import annotations

from . import basic, equations, floats, links, structure


BUILTIN_HANDLER_MODULES = (basic, equations, structure, floats, links)

__all__ = ["BUILTIN_HANDLER_MODULES", "basic", "equations", "floats", "links", "structure"]
