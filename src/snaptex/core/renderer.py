"""Incremental block renderer turning LaTeX source into HTML patches.

Every call to :meth:`IncrementalRenderer.render` re-splits the document,
diffs the block texts against the cache and only renders the blocks that
changed. The returned :class:`PatchPayload` is either a ``full`` document or
a ``patch`` describing which cached blocks the host must replace.

Pipeline

`Normalise`
: unify line endings, drop token sentinels and neutralise comments.

`Metadata`
: pull title/author/date and macro definitions out of the text; a macro
  change invalidates the whole cache.

`Split and diff`
: split the document body into blocks and compare their texts with the
  cached ones.

`Render`
: run every inserted block through PRE rules, the Markdown pass, token
  resolution and POST rules, inside a ``data-index`` wrapper.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from functools import partial
import html
import logging
import re
from typing import Any

from .bibliography import BibEntry
from .blocks import Block, BlockSplitter
from .config import PreviewConfig
from .context import MathRenderer, RuleContext
from .diagnostics import DiagnosticEmitter, NullEmitter
from .diff import DiffResult, compute_diff
from .exceptions import BlockRenderError
from .metadata import (
    DocumentMetadata,
    extract_body,
    extract_metadata,
    metadata_fingerprint,
    normalize_newlines,
)
from .protection import ProtectionRegistry, strip_sentinels, unwrap_display_tokens
from .rules import RuleEngine, RulePhase
from .sourcemap import BlockPosition, SourceMap


logger = logging.getLogger(__name__)

MarkupRenderer = Callable[[str], str]

_INDEX_ATTRIBUTE = re.compile(r'data-index="\d+"')


@dataclass(frozen=True, slots=True)
class CachedBlock:
    """Rendered block kept between calls, keyed by its diff text."""

    text: str
    html: str
    index: int

    def reindexed(self, index: int) -> CachedBlock:
        """Return a copy whose wrapper carries ``index`` as ``data-index``."""
        if index == self.index:
            return self
        updated = _INDEX_ATTRIBUTE.sub(f'data-index="{index}"', self.html, count=1)
        return replace(self, html=updated, index=index)


@dataclass(frozen=True, slots=True)
class PatchPayload:
    """Instruction sent to the host view after a render."""

    type: str
    html: str = ""
    start: int = 0
    delete_count: int = 0
    htmls: tuple[str, ...] = field(default_factory=tuple)
    shift: int = 0

    @property
    def is_full(self) -> bool:
        return self.type == "full"

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready wire representation."""
        if self.is_full:
            return {"type": "full", "html": self.html}
        return {
            "type": "patch",
            "start": self.start,
            "deleteCount": self.delete_count,
            "htmls": list(self.htmls),
            "shift": self.shift,
        }


class IncrementalRenderer:
    """Render a continuously edited document, re-rendering changed blocks only.

    One renderer serves one document. Calls are expected to be serialised by
    the caller.
    """

    def __init__(
        self,
        config: PreviewConfig | None = None,
        *,
        emitter: DiagnosticEmitter | None = None,
        markup_renderer: MarkupRenderer | None = None,
        math_renderer: MathRenderer | None = None,
        bibliography: Mapping[str, BibEntry] | None = None,
        load_entry_points: bool = True,
    ) -> None:
        self.config = config or PreviewConfig()
        self.emitter = emitter or NullEmitter()
        self._markup_renderer = markup_renderer or self._default_markup_renderer
        if math_renderer is None:
            from ..adapters.math import render_math

            math_renderer = partial(render_math, max_length=self.config.max_macro_expansion)
        self._math_renderer = math_renderer
        self._bibliography: dict[str, BibEntry] = dict(bibliography or {})

        self.engine = RuleEngine()
        self._register_builtin_rules()
        if load_entry_points:
            self.engine.load_entry_points()
        for target in self.config.extra_rules:
            self.engine.load(target)

        self._cache: list[CachedBlock] = []
        self._blocks: tuple[Block, ...] = ()
        self._source_map = SourceMap()
        self._metadata = DocumentMetadata()
        self._macro_signature: str | None = None
        self._last_diff: DiffResult | None = None
        self._force_full = True

    def _register_builtin_rules(self) -> None:
        from ..handlers import BUILTIN_HANDLER_MODULES

        for module in BUILTIN_HANDLER_MODULES:
            self.engine.collect_from(module)

    def _default_markup_renderer(self, text: str) -> str:
        from ..adapters.markdown import render_markup

        return render_markup(text, self.config.markdown_extensions)

    @property
    def blocks(self) -> tuple[Block, ...]:
        """Blocks produced by the latest split."""
        return self._blocks

    @property
    def cached_blocks(self) -> tuple[CachedBlock, ...]:
        return tuple(self._cache)

    @property
    def cached_html(self) -> str:
        """Concatenated HTML of every cached block."""
        return "".join(block.html for block in self._cache)

    @property
    def metadata(self) -> DocumentMetadata:
        return self._metadata

    @property
    def bibliography(self) -> Mapping[str, BibEntry]:
        return self._bibliography

    @property
    def last_diff(self) -> DiffResult | None:
        return self._last_diff

    @property
    def source_map(self) -> SourceMap:
        return self._source_map

    def block_index_for_line(self, line: int) -> BlockPosition | None:
        """Return the block and relative position of a source line."""
        return self._source_map.block_index_for_line(line)

    def line_for_block_index(self, index: int, ratio: float = 0.0) -> int:
        """Return the source line shown at ``ratio`` through block ``index``."""
        return self._source_map.line_for_block_index(index, ratio)

    def reset(self) -> None:
        """Forget every cached block so the next render is a full one."""
        self._invalidate("reset")
        self._blocks = ()
        self._source_map = SourceMap()
        self._metadata = DocumentMetadata()
        self._macro_signature = None
        self._last_diff = None

    def set_bibliography(self, entries: Mapping[str, BibEntry]) -> None:
        """Replace the bibliography used by citations and re-render everything."""
        self._bibliography = dict(entries)
        self._invalidate("bibliography")

    def register_rule(self, rule: Any) -> None:
        """Register a substitution rule (or a module of rules) on the engine."""
        self.engine.register(rule)
        self._invalidate("rules")

    def _invalidate(self, reason: str) -> None:
        dropped = len(self._cache)
        self._cache = []
        self._force_full = True
        if dropped:
            self.emitter.event("cache_invalidated", {"reason": reason, "dropped": dropped})

    def render(self, text: str) -> PatchPayload:
        """Render ``text`` and return the payload needed to update the view."""
        source = strip_sentinels(normalize_newlines(text))
        extracted = extract_metadata(source)
        data = extracted.data

        signature = data.macro_signature()
        if signature != self._macro_signature:
            if self._macro_signature is not None:
                self._invalidate("macros")
            self._macro_signature = signature
        self._metadata = data

        body, offset = extract_body(extracted.cleaned_text)
        splitter = BlockSplitter(self.config.splitter)
        blocks = splitter.split(body, line_offset=offset)
        for recovery in splitter.recoveries:
            self.emitter.event(
                "splitter_recovery", {"kind": recovery.kind, "line": recovery.line}
            )

        fingerprint = metadata_fingerprint(data)
        marker = self.config.title_marker
        texts = [
            block.text + fingerprint if marker and marker in block.text else block.text
            for block in blocks
        ]

        previous = self._cache
        diff = compute_diff([cached.text for cached in previous], texts)

        inserted: list[CachedBlock] = []
        for position in range(diff.insert_count):
            index = diff.start + position
            html_text = self.render_block(blocks[index], index)
            inserted.append(CachedBlock(text=texts[index], html=html_text, index=index))

        suffix = previous[len(previous) - diff.end :] if diff.end else []
        if diff.shift and suffix:
            first = diff.start + diff.insert_count
            suffix = [cached.reindexed(first + position) for position, cached in enumerate(suffix)]

        self._cache = [*previous[: diff.start], *inserted, *suffix]
        self._blocks = tuple(blocks)
        self._source_map = SourceMap(blocks)
        self._last_diff = diff

        threshold = self.config.full_render_threshold
        full = (
            self._force_full
            or not previous
            or diff.insert_count > threshold
            or diff.delete_count > threshold
        )
        self._force_full = False

        if full:
            payload = PatchPayload(type="full", html=self.cached_html)
            self.emitter.event("render_patch", {"type": "full", "blocks": len(self._cache)})
        else:
            payload = PatchPayload(
                type="patch",
                start=diff.start,
                delete_count=diff.delete_count,
                htmls=tuple(cached.html for cached in inserted),
                shift=diff.shift,
            )
            self.emitter.event(
                "render_patch",
                {
                    "type": "patch",
                    "start": diff.start,
                    "delete_count": diff.delete_count,
                    "inserted": diff.insert_count,
                },
            )
        logger.debug(
            "Rendered %d block(s), reused %d, payload %s",
            diff.insert_count,
            len(self._cache) - diff.insert_count,
            payload.type,
        )
        return payload

    def render_block(self, block: Block, index: int) -> str:
        """Render a single block into its wrapped HTML.

        Failures never propagate: the block is replaced by an inline error
        marker and the emitter receives the error.
        """
        registry = ProtectionRegistry(max_depth=self.config.resolve_max_depth)
        context = RuleContext(
            protection=registry,
            math_renderer=self._math_renderer,
            metadata=self._metadata,
            bibliography=self._bibliography,
            emitter=self.emitter,
            block_index=index,
            runtime={"title_marker": self.config.title_marker},
        )
        try:
            prepared = self.engine.run(RulePhase.PRE, block.text, context)
            rendered = unwrap_display_tokens(self._markup_renderer(prepared))
            rendered = registry.resolve(rendered)
            report = registry.last_resolution
            if report.depth_exceeded:
                self.emitter.event(
                    "protection_depth_exceeded",
                    {"index": index, "unresolved": list(report.unresolved)},
                )
            rendered = self.engine.run(RulePhase.POST, rendered, context)
        except Exception as exc:
            error = BlockRenderError(
                f"Failed to render block {index} (line {block.start_line + 1}): {exc}",
                index=index,
            )
            self.emitter.error(str(error), exc)
            rendered = _error_html(block, exc)
        return self._wrap(rendered, index)

    def _wrap(self, content: str, index: int) -> str:
        css = html.escape(self.config.block_class, quote=True)
        return f'<div class="{css}" data-index="{index}">{content}</div>'


def _error_html(block: Block, exc: BaseException) -> str:
    return (
        '<div class="latex-error">'
        f"<strong>Render error:</strong> <code>{html.escape(str(exc))}</code>"
        f"<pre>{html.escape(block.text)}</pre>"
        "</div>"
    )


def render_document(text: str, config: PreviewConfig | None = None, **options: Any) -> str:
    """Render a whole document once and return its HTML."""
    renderer = IncrementalRenderer(config, **options)
    renderer.render(text)
    return renderer.cached_html


def iter_payloads(
    revisions: Iterable[str], config: PreviewConfig | None = None, **options: Any
) -> list[PatchPayload]:
    """Render successive revisions of a document with one renderer."""
    renderer = IncrementalRenderer(config, **options)
    return [renderer.render(revision) for revision in revisions]


__all__ = [
    "CachedBlock",
    "IncrementalRenderer",
    "MarkupRenderer",
    "PatchPayload",
    "iter_payloads",
    "render_document",
]
