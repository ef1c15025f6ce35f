"""Labels, cross-references and citations."""

from __future__ import annotations

import html
import re

from ..core.context import RuleContext, label_anchor
from ..core.rules import RulePhase, substitutes


CITATION_COMMANDS = ("cite", "citep", "citet", "citeyear", "citealp", "parencite", "textcite")
REFERENCE_COMMANDS = ("ref", "eqref", "autoref", "cref", "Cref", "pageref")

_LABEL_PATTERN = re.compile(r"\\label\s*\{([^}]+)\}")
_LINK_PATTERN = re.compile(
    r"\\(" + "|".join((*CITATION_COMMANDS, *REFERENCE_COMMANDS)) + r")\*?"
    r"(?:\s*\[[^\]]*\]){0,2}\s*\{([^}]+)\}"
)

_CITATION_STYLES = {"textcite": "citet", "parencite": "citep", "citealp": "citep"}


def _reference_text(label: str) -> str:
    return label.rsplit(":", 1)[-1] if ":" in label else label


def _link(command: str, key: str, context: RuleContext) -> str:
    safe = html.escape(key, quote=True)
    if command in CITATION_COMMANDS:
        style = _CITATION_STYLES.get(command, command)
        entry = context.bibliography.get(key)
        text = entry.label(style) if entry is not None else key
        target = f"#cite-{safe}"
    else:
        text = _reference_text(key)
        target = f"#{safe}"
    return f'<a href="{target}" class="latex-link latex-{command}">{html.escape(text)}</a>'


@substitutes(phase=RulePhase.PRE, priority=100, name="refs_and_labels")
def refs_and_labels(text: str, context: RuleContext) -> str:
    """Anchor labels and turn references and citations into links."""
    text = _LABEL_PATTERN.sub(
        lambda match: context.protect(label_anchor(match.group(1), hidden=False), "label"),
        text,
    )

    def _replace(match: re.Match[str]) -> str:
        command = match.group(1)
        keys = [key.strip() for key in match.group(2).split(",") if key.strip()]
        links = ", ".join(_link(command, key, context) for key in keys)
        if command in {"citep", "parencite"}:
            links = f'<span class="latex-citep-container">({links})</span>'
        elif command == "eqref":
            links = f'<span class="latex-eqref-container">({links})</span>'
        return context.protect(links, "link")

    return _LINK_PATTERN.sub(_replace, text)


__all__ = ["CITATION_COMMANDS", "REFERENCE_COMMANDS", "refs_and_labels"]
