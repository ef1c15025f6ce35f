"""Generic markup pass backed by Python-Markdown."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
import re
from threading import Lock
from typing import Any

import markdown

from ..core.config import DEFAULT_MARKDOWN_EXTENSIONS


__all__ = [
    "DEFAULT_MARKDOWN_EXTENSIONS",
    "MarkdownConversionError",
    "deduplicate_markdown_extensions",
    "normalize_markdown_extensions",
    "render_markup",
]


class MarkdownConversionError(Exception):
    """Raised when Markdown cannot be converted into HTML."""


class _MarkdownCacheEntry:
    __slots__ = ("lock", "processor")

    def __init__(self, processor: Any) -> None:
        self.processor = processor
        self.lock = Lock()


_MARKDOWN_CACHE: dict[tuple[str, ...], _MarkdownCacheEntry] = {}
_MARKDOWN_CACHE_GUARD = Lock()


def deduplicate_markdown_extensions(values: Iterable[str]) -> list[str]:
    """Remove duplicate extensions while preserving order and case."""
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        if not isinstance(value, str):
            continue
        key = value.lower()
        if key in seen:
            continue
        seen.add(key)
        result.append(value)
    return result


def normalize_markdown_extensions(
    values: Iterable[str] | str | None,
) -> list[str]:
    """Normalise extension names from CLI-friendly strings into a flat list."""
    if values is None:
        return []

    if isinstance(values, str):
        candidates: Iterable[str] = [values]
    else:
        candidates = values

    normalized: list[str] = []
    for value in candidates:
        if not isinstance(value, str):
            continue
        chunks = re.split(r"[,\s\x00]+", value)
        normalized.extend(chunk for chunk in chunks if chunk)
    return normalized


def render_markup(text: str, extensions: Sequence[str] | None = None) -> str:
    """Convert a Markdown fragment into HTML.

    Processors are cached per extension set and reset before every
    conversion, so state such as footnotes never leaks between blocks.
    """
    active = (
        DEFAULT_MARKDOWN_EXTENSIONS
        if extensions is None
        else normalize_markdown_extensions(extensions)
    )
    entry = _resolve_markdown_entry(tuple(deduplicate_markdown_extensions(active)))
    try:
        with entry.lock:
            processor = entry.processor
            processor.reset()
            return processor.convert(text)
    except Exception as exc:  # pragma: no cover - library-controlled
        raise MarkdownConversionError(f"Failed to convert Markdown source: {exc}") from exc


def _resolve_markdown_entry(extensions_key: tuple[str, ...]) -> _MarkdownCacheEntry:
    entry = _MARKDOWN_CACHE.get(extensions_key)
    if entry is not None:
        return entry
    with _MARKDOWN_CACHE_GUARD:
        entry = _MARKDOWN_CACHE.get(extensions_key)
        if entry is None:
            entry = _MarkdownCacheEntry(_build_markdown_processor(extensions_key))
            _MARKDOWN_CACHE[extensions_key] = entry
    return entry


def _build_markdown_processor(extensions_key: tuple[str, ...]) -> Any:
    try:
        return markdown.Markdown(extensions=list(extensions_key))
    except Exception as exc:
        raise MarkdownConversionError(f"Failed to initialize Markdown processor: {exc}") from exc
