"""Document-level metadata extraction that preserves source line numbering.

Every removal performed here replaces the removed span with the same number
of newlines, so line numbers computed on the cleaned text still match the
original source.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import hashlib
import json
import re


__all__ = [
    "DocumentMetadata",
    "MetadataResult",
    "extract_body",
    "extract_metadata",
    "find_group_end",
    "metadata_fingerprint",
    "normalize_newlines",
    "strip_comments",
]


_FIELD_COMMANDS = ("title", "author", "date")
_FIELD_PATTERN = re.compile(r"\\(title|author|date)\s*(?:\[[^\]]*\])?\s*\{")
_MACRO_PATTERN = re.compile(
    r"\\(newcommand|renewcommand|providecommand|DeclareMathOperator|def|gdef)(\*?)\s*"
    r"(?:\{\s*(\\[a-zA-Z@]+)\s*\}|(\\[a-zA-Z@]+))"
    r"\s*(?:\[\d\])?(?:\s*\[[^\]]*\])?"
    r"(?:#\d)*\s*"
)
_BEGIN_DOCUMENT = re.compile(r"\\begin\s*\{document\}", re.IGNORECASE)
_END_DOCUMENT = re.compile(r"\\end\s*\{document\}", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class DocumentMetadata:
    """Title, author, date and macro definitions found in a document."""

    title: str | None = None
    author: str | None = None
    date: str | None = None
    macros: dict[str, str] = field(default_factory=dict)

    def macro_signature(self) -> str:
        """Return a stable serialisation used to detect macro changes."""
        return json.dumps(self.macros, sort_keys=True)


@dataclass(frozen=True, slots=True)
class MetadataResult:
    data: DocumentMetadata
    cleaned_text: str


def normalize_newlines(text: str) -> str:
    """Convert CRLF and lone CR line endings to LF."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def strip_comments(text: str) -> str:
    """Remove ``%`` comments while keeping every line break in place."""
    lines = text.split("\n")
    for number, line in enumerate(lines):
        if "%" not in line:
            continue
        index = 0
        while index < len(line):
            char = line[index]
            if char == "\\":
                index += 2
                continue
            if char == "%":
                lines[number] = line[:index]
                break
            index += 1
    return "\n".join(lines)


def find_group_end(text: str, open_index: int) -> int:
    """Return the index of the brace closing the group opened at ``open_index``."""
    depth = 0
    index = open_index
    while index < len(text):
        char = text[index]
        if char == "\\":
            index += 2
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
        index += 1
    return -1


def _blank(span: str) -> str:
    return "\n" * span.count("\n")


def _clean_field(value: str) -> str:
    value = re.sub(r"\\\\(?:\[[^\]]*\])?", "<br/>", value)
    value = re.sub(r"\\(?:and|And)\b", "<br/>", value)
    value = re.sub(r"\\thanks\s*\{[^{}]*\}", "", value)
    return re.sub(r"[ \t]*\n[ \t]*", " ", value).strip()


def _extract_fields(text: str) -> tuple[dict[str, str], str]:
    fields: dict[str, str] = {}
    pieces: list[str] = []
    position = 0
    for match in _FIELD_PATTERN.finditer(text):
        if match.start() < position:
            continue
        open_index = match.end() - 1
        close_index = find_group_end(text, open_index)
        if close_index < 0:
            continue
        fields[match.group(1)] = _clean_field(text[open_index + 1 : close_index])
        pieces.append(text[position : match.start()])
        pieces.append(_blank(text[match.start() : close_index + 1]))
        position = close_index + 1
    pieces.append(text[position:])
    return fields, "".join(pieces)


def _extract_macros(text: str) -> tuple[dict[str, str], str]:
    macros: dict[str, str] = {}
    pieces: list[str] = []
    position = 0
    for match in _MACRO_PATTERN.finditer(text):
        if match.start() < position:
            continue
        open_index = match.end()
        if open_index >= len(text) or text[open_index] != "{":
            continue
        close_index = find_group_end(text, open_index)
        if close_index < 0:
            continue
        command, star, braced_name, bare_name = match.groups()
        name = braced_name or bare_name
        definition = text[open_index + 1 : close_index].strip()
        if command == "DeclareMathOperator":
            operator = "\\operatorname*" if star else "\\operatorname"
            definition = f"{operator}{{{definition}}}"
        elif command == "providecommand" and name in macros:
            definition = macros[name]
        macros[name] = definition
        pieces.append(text[position : match.start()])
        pieces.append(_blank(text[match.start() : close_index + 1]))
        position = close_index + 1
    pieces.append(text[position:])
    return macros, "".join(pieces)


def extract_metadata(text: str) -> MetadataResult:
    """Collect title/author/date and macros, blanking them out of the text."""
    cleaned = strip_comments(text)
    fields, cleaned = _extract_fields(cleaned)
    macros, cleaned = _extract_macros(cleaned)
    data = DocumentMetadata(
        title=fields.get("title"),
        author=fields.get("author"),
        date=fields.get("date"),
        macros=macros,
    )
    return MetadataResult(data=data, cleaned_text=cleaned)


def extract_body(text: str) -> tuple[str, int]:
    """Return the document body and the line on which it starts.

    Without a ``\\begin{document}`` marker the whole text is the body.
    Anything after ``\\end{document}`` is dropped.
    """
    begin = _BEGIN_DOCUMENT.search(text)
    if begin is None:
        body, offset = text, 0
    else:
        body = text[begin.end() :]
        offset = text.count("\n", 0, begin.end())
    end = _END_DOCUMENT.search(body)
    if end is not None:
        body = body[: end.start()]
    return body, offset


def metadata_fingerprint(data: DocumentMetadata) -> str:
    """Return an invisible marker that changes with title, author or date."""
    payload = "\x1f".join(
        getattr(data, name) or "" for name in _FIELD_COMMANDS
    )
    # Lone surrogates from a broken decode must still hash.
    digest = hashlib.sha1(payload.encode("utf-8", "surrogatepass")).hexdigest()[:12]
    return f"<!-- snaptex-meta:{digest} -->"
