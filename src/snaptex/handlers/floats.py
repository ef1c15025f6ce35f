"""Float environments rendered as escaped source placeholders."""

from __future__ import annotations

import html
import re

from ..core.config import FLOAT_ENVIRONMENTS
from ..core.context import RuleContext
from ..core.protection import strip_tokens
from ..core.rules import RulePhase, substitutes
from .basic import restore_source


_FLOAT_PATTERN = re.compile(
    r"\\begin\{(" + "|".join(FLOAT_ENVIRONMENTS) + r")(\*?)\}(.*?)\\end\{\1\2\}",
    re.DOTALL | re.IGNORECASE,
)
_CAPTION_PATTERN = re.compile(r"\\caption\s*(?:\[[^\]]*\])?\{((?:[^{}]|\{[^{}]*\})*)\}")


@substitutes(phase=RulePhase.PRE, priority=80, name="floats")
def floats(text: str, context: RuleContext) -> str:
    """Replace figures, tables and algorithms with a labelled source preview."""

    def _replace(match: re.Match[str]) -> str:
        name, star, body = match.groups()
        source, anchors = context.extract_labels(restore_source(body, context))
        source = strip_tokens(source).strip()
        caption = _CAPTION_PATTERN.search(source)
        parts = [
            f'<div class="latex-float-placeholder" data-env="{html.escape(name.lower())}">',
            f'<strong class="float-name">[{html.escape(name.upper())}{star}]</strong>',
        ]
        if caption is not None:
            parts.append(
                f'<span class="float-caption">{html.escape(" ".join(caption.group(1).split()))}</span>'
            )
        parts.append(f'<pre class="float-content">{html.escape(source)}</pre>')
        parts.append(anchors)
        parts.append("</div>")
        return context.protect_display("".join(parts), "float")

    return _FLOAT_PATTERN.sub(_replace, text)


__all__ = ["floats"]
