"""TeX math rendering backed by latex2mathml."""

from __future__ import annotations

from collections.abc import Mapping
import html
import logging
import re

import latex2mathml.converter

from snaptex.core.exceptions import MacroExpansionError


__all__ = [
    "MAX_EXPANSION_LENGTH",
    "MAX_EXPANSION_PASSES",
    "expand_macros",
    "macro_arity",
    "render_math",
]

logger = logging.getLogger(__name__)

MAX_EXPANSION_PASSES = 10
MAX_EXPANSION_LENGTH = 10_000

_PARAMETER = re.compile(r"#(\d)")


def macro_arity(definition: str) -> int:
    """Return the highest ``#n`` parameter referenced by ``definition``."""
    return max((int(number) for number in _PARAMETER.findall(definition)), default=0)


def _read_argument(text: str, index: int) -> tuple[str, int] | None:
    while index < len(text) and text[index].isspace():
        index += 1
    if index >= len(text):
        return None
    if text[index] != "{":
        if text[index] == "\\":
            match = re.match(r"\\(?:[a-zA-Z]+|.)", text[index:])
            if match is not None:
                return match.group(0), index + match.end()
        return text[index], index + 1
    depth = 0
    cursor = index
    while cursor < len(text):
        char = text[cursor]
        if char == "\\":
            cursor += 2
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[index + 1 : cursor], cursor + 1
        cursor += 1
    return None


def _expand_once(tex: str, macros: Mapping[str, str], max_length: int) -> tuple[str, bool]:
    pattern = re.compile(
        "(" + "|".join(re.escape(name) for name in sorted(macros, key=len, reverse=True)) + ")"
        r"(?![a-zA-Z])"
    )
    pieces: list[str] = []
    size = 0
    position = 0
    changed = False
    for match in pattern.finditer(tex):
        if match.start() < position:
            continue
        definition = macros[match.group(1)]
        cursor = match.end()
        arguments: list[str] = []
        for _ in range(macro_arity(definition)):
            argument = _read_argument(tex, cursor)
            if argument is None:
                break
            value, cursor = argument
            arguments.append(value)
        expansion = _PARAMETER.sub(
            lambda ref: arguments[int(ref.group(1)) - 1]
            if 0 < int(ref.group(1)) <= len(arguments)
            else "",
            definition,
        )
        pieces.append(tex[position : match.start()])
        pieces.append(expansion)
        size += match.start() - position + len(expansion)
        position = cursor
        changed = True
        if size + len(tex) - position > max_length:
            raise MacroExpansionError(
                f"Macro expansion exceeds {max_length} characters near '{match.group(1)}'."
            )
    pieces.append(tex[position:])
    return "".join(pieces), changed


def expand_macros(
    tex: str, macros: Mapping[str, str], *, max_length: int = MAX_EXPANSION_LENGTH
) -> str:
    """Expand user macros, bounded to guard against recursive definitions.

    Expansion stops after :data:`MAX_EXPANSION_PASSES` passes. A result
    growing past ``max_length`` characters raises :class:`MacroExpansionError`.
    """
    if not macros:
        return tex
    for _ in range(MAX_EXPANSION_PASSES):
        tex, changed = _expand_once(tex, macros, max_length)
        if not changed:
            break
    return tex


def _math_error(tex: str, display: bool) -> str:
    escaped = html.escape(tex.strip())
    if display:
        return f'<div class="math-display math-error">{escaped}</div>'
    return f'<span class="math-inline math-error">{escaped}</span>'


def render_math(
    tex: str,
    display: bool = False,
    macros: Mapping[str, str] | None = None,
    *,
    max_length: int = MAX_EXPANSION_LENGTH,
) -> str:
    """Render TeX math into MathML wrapped in a styled element.

    Conversion errors never propagate: the escaped source is returned inside
    a ``math-error`` element instead. Runaway macro expansion is reported the
    same way.
    """
    try:
        source = expand_macros(tex.strip(), macros or {}, max_length=max_length)
    except MacroExpansionError as exc:
        logger.debug("%s", exc)
        return _math_error(tex, display)
    try:
        mathml = latex2mathml.converter.convert(source, display="block" if display else "inline")
    except Exception as exc:
        logger.debug("latex2mathml failed on %r: %s", source, exc)
        return _math_error(tex, display)
    if display:
        return f'<div class="math-display">{mathml}</div>'
    return f'<span class="math-inline">{mathml}</span>'
