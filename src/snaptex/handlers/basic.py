"""Character-level and text style rules."""

from __future__ import annotations

import re

from ..core.context import RuleContext
from ..core.rules import RulePhase, substitutes


ESCAPE_ENTITIES = {
    "$": "&#36;",
    "%": "&#37;",
    "#": "&#35;",
    "&": "&amp;",
    "_": "_",
    "{": "{",
    "}": "}",
}

NO_INDENT_MARKER = '<span class="no-indent-marker"></span>'

_ESCAPE_PATTERN = re.compile(r"\\\\|\\([$%#&_{}])")
_ROMAN_PATTERN = re.compile(r"\\(Rmnum|rmnum|romannumeral)\s*\{?\s*(\d+)\s*\}?")
_NOINDENT_PATTERN = re.compile(r"\\noindent\b\s*")
_BALANCED = r"((?:[^{}]|\{[^{}]*\})*)"
_STYLE_COMMAND = re.compile(
    r"\\(textbf|textit|emph|texttt|textsf|textrm|underline)\s*\{" + _BALANCED + r"\}"
)
_STYLE_SWITCH = re.compile(r"\{\\(bf|it|em|sf|rm|tt)\s+" + _BALANCED + r"\}")
_COLOR_SWITCH = re.compile(r"\{\\color\{([a-zA-Z0-9]+)\}\s*" + _BALANCED + r"\}")
_COLOR_COMMAND = re.compile(r"\\(?:textcolor|color)\{([a-zA-Z0-9]+)\}\{" + _BALANCED + r"\}")
_LINE_BREAK = re.compile(r"\\\\(?:\[[^\]]*\])?")
_LIST_LINE = re.compile(r"^(\s*)([-*+]|\d+\.)\s+(.*)$")

_STYLE_TAGS = {
    "textbf": ("<strong>", "</strong>"),
    "bf": ("<strong>", "</strong>"),
    "textit": ("<em>", "</em>"),
    "it": ("<em>", "</em>"),
    "emph": ("<em>", "</em>"),
    "em": ("<em>", "</em>"),
    "texttt": ("<code>", "</code>"),
    "tt": ("<code>", "</code>"),
    "textsf": ('<span style="font-family: sans-serif;">', "</span>"),
    "sf": ('<span style="font-family: sans-serif;">', "</span>"),
    "textrm": ('<span style="font-family: serif;">', "</span>"),
    "rm": ('<span style="font-family: serif;">', "</span>"),
    "underline": ("<u>", "</u>"),
}

_MAX_STYLE_PASSES = 8

_ROMAN_NUMERALS = (
    ("M", 1000),
    ("CM", 900),
    ("D", 500),
    ("CD", 400),
    ("C", 100),
    ("XC", 90),
    ("L", 50),
    ("XL", 40),
    ("X", 10),
    ("IX", 9),
    ("V", 5),
    ("IV", 4),
    ("I", 1),
)


def to_roman(number: int, *, uppercase: bool = False) -> str:
    """Return ``number`` written in Roman numerals."""
    digits: list[str] = []
    remaining = number
    for letter, value in _ROMAN_NUMERALS:
        while remaining >= value:
            digits.append(letter)
            remaining -= value
    roman = "".join(digits)
    return roman if uppercase else roman.lower()


def record_source(context: RuleContext, token: str, source: str) -> str:
    """Remember the TeX source a token stands for and return the token."""
    context.runtime.setdefault("sources", {})[token.strip()] = source
    return token


def restore_source(text: str, context: RuleContext) -> str:
    """Put back the TeX spelling of escapes and math replaced by tokens."""
    for token, source in context.runtime.get("sources", {}).items():
        if token in text:
            text = text.replace(token, source)
    return text


def apply_style(start: str, end: str, content: str) -> str:
    """Wrap ``content`` in a style, styling each item separately inside lists."""
    lines = content.split("\n")
    if not any(_LIST_LINE.match(line) for line in lines):
        return f"{start}{content}{end}"
    styled: list[str] = []
    for line in lines:
        match = _LIST_LINE.match(line)
        if match is not None:
            indent, bullet, inner = match.groups()
            styled.append(f"{indent}{bullet} {start}{inner}{end}")
        elif line.strip():
            styled.append(f"{start}{line}{end}")
        else:
            styled.append(line)
    return "\n".join(styled)


@substitutes(phase=RulePhase.PRE, priority=10, name="escaped_chars")
def escaped_chars(text: str, context: RuleContext) -> str:
    """Protect escaped special characters before any delimiter matching."""

    def _replace(match: re.Match[str]) -> str:
        char = match.group(1)
        if char is None:
            return match.group(0)
        return record_source(
            context, context.protect(ESCAPE_ENTITIES[char], "escape"), match.group(0)
        )

    return _ESCAPE_PATTERN.sub(_replace, text)


@substitutes(phase=RulePhase.PRE, priority=20, name="romannumeral")
def roman_numerals(text: str, context: RuleContext) -> str:
    """Expand Roman numeral commands and mark ``\\noindent`` paragraphs."""
    text = _ROMAN_PATTERN.sub(
        lambda match: to_roman(int(match.group(2)), uppercase=match.group(1) == "Rmnum"),
        text,
    )
    return _NOINDENT_PATTERN.sub(lambda _: context.protect(NO_INDENT_MARKER), text)


@substitutes(phase=RulePhase.PRE, priority=110, name="text_styles")
def text_styles(text: str, context: RuleContext) -> str:
    """Translate font commands, colours and forced line breaks."""

    def _tags(start: str, end: str, content: str) -> str:
        return apply_style(context.protect(start, "style"), context.protect(end, "style"), content)

    def _command(match: re.Match[str]) -> str:
        start, end = _STYLE_TAGS[match.group(1)]
        return _tags(start, end, match.group(2))

    def _color(match: re.Match[str]) -> str:
        return _tags(f'<span style="color: {match.group(1)}">', "</span>", match.group(2))

    for _ in range(_MAX_STYLE_PASSES):
        updated = _STYLE_COMMAND.sub(_command, text)
        updated = _STYLE_SWITCH.sub(_command, updated)
        updated = _COLOR_SWITCH.sub(_color, updated)
        updated = _COLOR_COMMAND.sub(_color, updated)
        if updated == text:
            break
        text = updated

    return _LINE_BREAK.sub(lambda _: context.protect("<br/>", "style"), text)


__all__ = [
    "ESCAPE_ENTITIES",
    "NO_INDENT_MARKER",
    "apply_style",
    "escaped_chars",
    "record_source",
    "restore_source",
    "roman_numerals",
    "text_styles",
    "to_roman",
]
