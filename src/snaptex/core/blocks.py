"""Structural splitter turning LaTeX source into independently renderable blocks.

The splitter runs in two layers:

`Lexer`
: :func:`tokenize` walks the source once and yields :class:`Token` objects for
  the fixed vocabulary the splitter cares about (escapes, comments,
  environment markers, braces, paragraph breaks and display-math delimiters).
  Everything else is reported as plain text. Escapes are matched before any
  delimiter, so ``\\$$`` or ``\\\\[2pt]`` never open display math.

`Automaton`
: :class:`BlockSplitter` consumes the tokens while tracking an environment
  stack and a brace depth. Paragraph breaks only split at top level; major
  environments and display math also start a block when they open a line,
  and floats end one when nothing follows them on their line. When the
  source is malformed the automaton consults the bounded lookahead helpers
  (:func:`find_closing_brace`, :func:`find_math_closer`,
  :func:`find_environment_end`) and, when the structure cannot be closed
  nearby, resets itself instead of swallowing the rest of the document.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
import logging
import re

from .config import SplitterConfig


logger = logging.getLogger(__name__)

_TOKEN_PATTERN = re.compile(
    r"""
    (?P<escape>\\[\\$%{}\#&_])
    | (?P<comment>%[^\n]*)
    | (?P<begin>\\begin[ \t]*\{(?P<begin_name>[^{}\n]+)\})
    | (?P<end>\\end[ \t]*\{(?P<end_name>[^{}\n]+)\})
    | (?P<math>\$\$|\\\[|\\\])
    | (?P<open>\{)
    | (?P<close>\})
    | (?P<parbreak>\n\s*\n)
    """,
    re.VERBOSE,
)
_PARBREAK = re.compile(r"\n\s*\n")

_DISPLAY_DOLLARS = "$$"
_DISPLAY_BRACKET = "\\["
_DISPLAY_BRACKET_CLOSE = "\\]"
_SYNTHETIC_ENTRIES = frozenset({_DISPLAY_DOLLARS, _DISPLAY_BRACKET})


@dataclass(frozen=True, slots=True)
class Token:
    """Lexical unit produced by :func:`tokenize`."""

    kind: str
    value: str
    start: int
    end: int
    name: str | None = None

    @property
    def newlines(self) -> int:
        """Number of line breaks carried by the token."""
        return self.value.count("\n")


@dataclass(frozen=True, slots=True)
class Block:
    """Contiguous run of source text rendered as one HTML unit."""

    text: str
    start_line: int
    line_count: int = 1

    @property
    def end_line(self) -> int:
        """Return the first line that no longer belongs to the block."""
        return self.start_line + self.line_count


@dataclass(frozen=True, slots=True)
class SplitterRecovery:
    """Record of a fault-tolerance intervention performed while splitting."""

    kind: str
    line: int


def tokenize(text: str) -> Iterator[Token]:
    """Yield the tokens of ``text`` in order, text runs included."""
    position = 0
    for match in _TOKEN_PATTERN.finditer(text):
        if match.start() > position:
            yield Token("text", text[position : match.start()], position, match.start())
        kind = match.lastgroup or "text"
        name = None
        if kind == "begin":
            name = match.group("begin_name").strip()
        elif kind == "end":
            name = match.group("end_name").strip()
        yield Token(kind, match.group(0), match.start(), match.end(), name)
        position = match.end()
    if position < len(text):
        yield Token("text", text[position:], position, len(text))


def find_closing_brace(text: str, start: int, depth: int = 1, limit: int = 2000) -> int:
    """Return the index of the brace closing a group opened ``depth`` levels up.

    The scan starts at ``start``, honours escaped characters and comments, and
    gives up after ``limit`` characters. ``-1`` means no closer was found.
    """
    if depth <= 0:
        raise ValueError("depth must be positive")
    stop = min(len(text), start + limit)
    index = start
    while index < stop:
        char = text[index]
        if char == "\\":
            index += 2
            continue
        if char == "%":
            newline = text.find("\n", index)
            index = stop if newline == -1 else newline
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
        index += 1
    return -1


def find_math_closer(text: str, start: int, closer: str, limit: int = 2000) -> int:
    """Return the index of ``closer`` if it appears before the next paragraph break."""
    stop = min(len(text), start + limit)
    index = start
    while index < stop:
        if text.startswith(closer, index):
            return index
        char = text[index]
        if char == "\\":
            index += 2
            continue
        if char == "%":
            newline = text.find("\n", index)
            index = stop if newline == -1 else newline
            continue
        if char == "\n" and _PARBREAK.match(text, index):
            return -1
        index += 1
    return -1


def find_environment_end(text: str, start: int, name: str, limit: int = 4000) -> int:
    """Return the index of the ``\\end{name}`` marker within ``limit`` characters."""
    pattern = re.compile(r"\\end[ \t]*\{" + re.escape(name) + r"\}")
    match = pattern.search(text, start, min(len(text), start + limit))
    return match.start() if match else -1


def _rest_of_line_blank(text: str, index: int) -> bool:
    newline = text.find("\n", index)
    rest = text[index:] if newline == -1 else text[index:newline]
    return not rest.strip()


@dataclass
class _ScanState:
    line: int
    start_line: int
    parts: list[str] = field(default_factory=list)
    env_stack: list[str] = field(default_factory=list)
    depth: int = 0
    buffered_lines: int = 0

    @property
    def trapped(self) -> bool:
        return bool(self.env_stack) or self.depth > 0

    @property
    def at_line_start(self) -> bool:
        tail = "".join(self.parts).rstrip(" \t")
        return not tail.strip() or tail.endswith("\n")

    def append(self, token: Token) -> None:
        self.parts.append(token.value)
        self.line += token.newlines
        self.buffered_lines += token.newlines

    def flush(self, output: list[tuple[str, int]]) -> None:
        buffer = "".join(self.parts)
        stripped = buffer.strip()
        if stripped:
            leading = buffer[: len(buffer) - len(buffer.lstrip())]
            output.append((stripped, self.start_line + leading.count("\n")))
        self.parts = []
        self.buffered_lines = 0
        self.start_line = self.line

    def skip(self, token: Token) -> None:
        self.line += token.newlines
        self.start_line = self.line

    def reset(self) -> None:
        self.env_stack.clear()
        self.depth = 0


class BlockSplitter:
    """Split LaTeX source into blocks while tolerating malformed structure.

    Block boundaries are only placed where a new line begins. A major
    environment or display math opened after other text on the same line
    (``See \\begin{figure}``) stays in the current block, and a float closed
    with text still following on its line does not end it. An unclosed
    ``$$`` or ``\\[`` that ends its line gets a block of its own. This keeps
    ``start_line`` strictly increasing from one block to the next.
    """

    def __init__(self, config: SplitterConfig | None = None) -> None:
        self.config = config or SplitterConfig()
        self.recoveries: list[SplitterRecovery] = []

    def split(self, text: str, *, line_offset: int = 0) -> list[Block]:
        """Return the blocks of ``text`` with line numbers shifted by ``line_offset``."""
        self.recoveries = []
        state = _ScanState(line=line_offset, start_line=line_offset)
        pending: list[tuple[str, int]] = []

        for token in tokenize(text):
            self._consume(token, text, state, pending)
        state.flush(pending)

        last_line = line_offset + text.count("\n") + 1
        blocks: list[Block] = []
        for index, (chunk, start_line) in enumerate(pending):
            next_start = pending[index + 1][1] if index + 1 < len(pending) else last_line
            blocks.append(Block(chunk, start_line, max(1, next_start - start_line)))
        return blocks

    def _consume(
        self, token: Token, text: str, state: _ScanState, pending: list[tuple[str, int]]
    ) -> None:
        kind = token.kind
        if kind == "begin" and token.name:
            self._begin(token, state, pending)
        elif kind == "end" and token.name:
            self._end(token, text, state, pending)
        elif kind == "open":
            state.depth += 1
            state.append(token)
        elif kind == "close":
            # Stray closers never drive the depth negative.
            if state.depth > 0:
                state.depth -= 1
            state.append(token)
        elif kind == "math":
            self._math(token, text, state, pending)
        elif kind == "parbreak":
            self._paragraph_break(token, text, state, pending)
        else:
            state.append(token)

    def _begin(self, token: Token, state: _ScanState, pending: list[tuple[str, int]]) -> None:
        name = token.name or ""
        if not self.config.is_ignored(name):
            if self.config.is_major(name) and not state.trapped and state.at_line_start:
                state.flush(pending)
            state.env_stack.append(name)
        state.append(token)

    def _end(
        self, token: Token, text: str, state: _ScanState, pending: list[tuple[str, int]]
    ) -> None:
        name = token.name or ""
        if not self.config.is_ignored(name):
            for position in range(len(state.env_stack) - 1, -1, -1):
                if state.env_stack[position] == name:
                    del state.env_stack[position:]
                    break
        state.append(token)
        if (
            self.config.is_float(name)
            and not state.trapped
            and _rest_of_line_blank(text, token.end)
        ):
            state.flush(pending)

    def _math(
        self, token: Token, text: str, state: _ScanState, pending: list[tuple[str, int]]
    ) -> None:
        value = token.value
        top = state.env_stack[-1] if state.env_stack else None

        if value == _DISPLAY_DOLLARS and top == _DISPLAY_DOLLARS:
            state.env_stack.pop()
            state.append(token)
            return
        if value == _DISPLAY_BRACKET_CLOSE:
            if top == _DISPLAY_BRACKET:
                state.env_stack.pop()
            state.append(token)
            return
        if state.trapped:
            state.append(token)
            return

        closer = _DISPLAY_DOLLARS if value == _DISPLAY_DOLLARS else _DISPLAY_BRACKET_CLOSE
        unclosed = find_math_closer(text, token.end, closer, self.config.math_lookahead) < 0
        if state.at_line_start:
            state.flush(pending)
        if not unclosed:
            state.env_stack.append(value)
            state.append(token)
            return
        # Unclosed delimiter: kept as literal text, isolated when it ends its line.
        self._record("math", state.line)
        state.append(token)
        if _rest_of_line_blank(text, token.end):
            state.flush(pending)

    def _paragraph_break(
        self, token: Token, text: str, state: _ScanState, pending: list[tuple[str, int]]
    ) -> None:
        if state.trapped:
            reason = self._trap_reason(token, text, state)
            if reason is None:
                state.append(token)
                return
            self._record(reason, state.line)
            state.reset()
        state.flush(pending)
        state.skip(token)

    def _trap_reason(self, token: Token, text: str, state: _ScanState) -> str | None:
        config = self.config
        if state.depth > 0 and (
            find_closing_brace(text, token.end, state.depth, config.brace_lookahead) < 0
        ):
            return "brace"
        if state.env_stack:
            top = state.env_stack[-1]
            if top in _SYNTHETIC_ENTRIES:
                return "math"
            if find_environment_end(text, token.end, top, config.environment_lookahead) < 0:
                return "environment"
        if state.buffered_lines > config.trap_line_threshold:
            return "size"
        return None

    def _record(self, kind: str, line: int) -> None:
        logger.debug("splitter recovery (%s) at line %d", kind, line)
        self.recoveries.append(SplitterRecovery(kind=kind, line=line))


def split(
    text: str, *, line_offset: int = 0, config: SplitterConfig | None = None
) -> list[Block]:
    """Split ``text`` into blocks using a throwaway :class:`BlockSplitter`."""
    return BlockSplitter(config).split(text, line_offset=line_offset)


__all__ = [
    "Block",
    "BlockSplitter",
    "SplitterRecovery",
    "Token",
    "find_closing_brace",
    "find_environment_end",
    "find_math_closer",
    "split",
    "tokenize",
]
