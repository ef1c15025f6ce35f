"""Line/block lookups used to keep the editor and the preview in sync."""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Sequence
from dataclasses import dataclass

from .blocks import Block


@dataclass(frozen=True, slots=True)
class BlockPosition:
    """Block index plus the fractional position of a line inside the block."""

    index: int
    ratio: float


class SourceMap:
    """Map source lines to block indices and back."""

    def __init__(self, blocks: Sequence[Block] = ()) -> None:
        self._blocks = tuple(blocks)
        self._starts = [block.start_line for block in self._blocks]

    def __len__(self) -> int:
        return len(self._blocks)

    @property
    def blocks(self) -> tuple[Block, ...]:
        return self._blocks

    def block_index_for_line(self, line: int) -> BlockPosition | None:
        """Return the block containing ``line`` or ``None`` for an empty map."""
        if not self._blocks:
            return None
        index = bisect_right(self._starts, line) - 1
        if index < 0:
            return BlockPosition(index=0, ratio=0.0)
        block = self._blocks[index]
        ratio = (line - block.start_line) / block.line_count
        return BlockPosition(index=index, ratio=min(1.0, max(0.0, ratio)))

    def line_for_block_index(self, index: int, ratio: float = 0.0) -> int:
        """Return the source line at ``ratio`` through block ``index``."""
        if not self._blocks:
            return 0
        block = self._blocks[min(max(index, 0), len(self._blocks) - 1)]
        ratio = min(1.0, max(0.0, ratio))
        offset = min(int(ratio * block.line_count), block.line_count - 1)
        return block.start_line + offset


__all__ = ["BlockPosition", "SourceMap"]
