"""Display and inline math rules."""

from __future__ import annotations

import re

from ..core.config import MATH_ENVIRONMENTS
from ..core.context import RuleContext
from ..core.rules import RulePhase, substitutes
from .basic import NO_INDENT_MARKER, record_source, restore_source


_ENVIRONMENTS = "|".join(MATH_ENVIRONMENTS)
_DISPLAY_PATTERN = re.compile(
    r"\$\$(?P<dollars>.*?)\$\$"
    r"|\\\[(?P<brackets>.*?)\\\]"
    rf"|\\begin\{{(?P<env>{_ENVIRONMENTS})(?P<star>\*?)\}}(?P<body>.*?)\\end\{{(?P=env)(?P=star)\}}",
    re.DOTALL | re.IGNORECASE,
)
_INLINE_PATTERN = re.compile(r"\$((?:\\.|[^\\$])+)\$|\\\((.+?)\\\)", re.DOTALL)
_ALIGNAT_COLUMNS = re.compile(r"^\s*\{\d+\}")
_FOLLOWED_BY_TEXT = re.compile(r"(?![ \t]*\n[ \t]*\n)\s*\S")

_ALIGNED_ENVIRONMENTS = {"align", "flalign", "alignat", "multline"}


def _wrap_environment(name: str, content: str) -> str:
    name = name.lower()
    if name == "alignat":
        content = _ALIGNAT_COLUMNS.sub("", content, count=1)
    if name in _ALIGNED_ENVIRONMENTS:
        return f"\\begin{{aligned}}\n{content}\n\\end{{aligned}}"
    if name == "gather":
        return f"\\begin{{gathered}}\n{content}\n\\end{{gathered}}"
    return content


@substitutes(phase=RulePhase.PRE, priority=30, name="display_math")
def display_math(text: str, context: RuleContext) -> str:
    """Render display equations and hide their labels as anchors."""

    def _replace(match: re.Match[str]) -> str:
        env = match.group("env")
        content = next(
            group
            for group in (match.group("dollars"), match.group("brackets"), match.group("body"))
            if group is not None
        )
        content, anchors = context.extract_labels(restore_source(content, context))
        content = content.strip()
        if env:
            content = _wrap_environment(env, content)
        rendered = record_source(
            context,
            context.protect_display(context.render_math(content, display=True) + anchors),
            match.group(0),
        )
        if _FOLLOWED_BY_TEXT.match(match.string, match.end()):
            return rendered + context.protect(NO_INDENT_MARKER)
        return rendered

    return _DISPLAY_PATTERN.sub(_replace, text)


@substitutes(phase=RulePhase.PRE, priority=40, name="inline_math")
def inline_math(text: str, context: RuleContext) -> str:
    """Render ``$...$`` and ``\\(...\\)`` spans."""

    def _replace(match: re.Match[str]) -> str:
        content = match.group(1) if match.group(1) is not None else match.group(2)
        rendered = context.render_math(restore_source(content, context), display=False)
        return record_source(context, context.protect(rendered, "math"), match.group(0))

    return _INLINE_PATTERN.sub(_replace, text)


__all__ = ["display_math", "inline_math"]
