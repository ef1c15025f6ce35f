"""Context primitives shared by substitution rules while rendering a block."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
import html
import re
from typing import Any

from .bibliography import BibEntry
from .diagnostics import DiagnosticEmitter, NullEmitter
from .metadata import DocumentMetadata
from .protection import ProtectionRegistry


MathRenderer = Callable[[str, bool, Mapping[str, str]], str]

_LABEL_PATTERN = re.compile(r"\\label\s*\{([^}]+)\}")


def label_anchor(name: str, *, hidden: bool = True) -> str:
    """Return the invisible anchor emitted for a ``\\label``."""
    safe = html.escape(name.strip(), quote=True)
    style = "display:none" if hidden else "position:relative; top:-50px; visibility:hidden;"
    return f'<span id="{safe}" class="latex-label-anchor" data-label="{safe}" style="{style}"></span>'


@dataclass
class RuleContext:
    """State handed to every substitution rule for the block being rendered."""

    protection: ProtectionRegistry
    math_renderer: MathRenderer
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)
    bibliography: Mapping[str, BibEntry] = field(default_factory=dict)
    emitter: DiagnosticEmitter = field(default_factory=NullEmitter)
    block_index: int = 0
    runtime: dict[str, Any] = field(default_factory=dict)

    def protect(self, content: str, namespace: str = "raw") -> str:
        """Hide inline content from the Markdown pass."""
        return self.protection.protect(content, namespace)

    def protect_display(self, content: str, namespace: str = "display") -> str:
        """Hide block-level content from the Markdown pass."""
        return self.protection.protect_display(content, namespace)

    def render_math(self, tex: str, *, display: bool = False) -> str:
        """Render TeX math with the document macros."""
        return self.math_renderer(tex, display, self.metadata.macros)

    def extract_labels(self, content: str) -> tuple[str, str]:
        """Strip ``\\label`` commands, returning the text and hidden anchors."""
        anchors: list[str] = []

        def _collect(match: re.Match[str]) -> str:
            anchors.append(label_anchor(match.group(1)))
            return ""

        cleaned = _LABEL_PATTERN.sub(_collect, content)
        return cleaned, "".join(anchors)


__all__ = ["MathRenderer", "RuleContext", "label_anchor"]
