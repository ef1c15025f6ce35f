from __future__ import annotations

import pytest

from snaptex.core.blocks import Block
from snaptex.core.sourcemap import BlockPosition, SourceMap


@pytest.fixture
def source_map() -> SourceMap:
    return SourceMap([Block("a", 0, 2), Block("b", 2, 3), Block("c", 5, 1)])


def test_line_to_block(source_map: SourceMap) -> None:
    assert source_map.block_index_for_line(0) == BlockPosition(index=0, ratio=0.0)
    assert source_map.block_index_for_line(1) == BlockPosition(index=0, ratio=0.5)
    position = source_map.block_index_for_line(3)
    assert position is not None
    assert position.index == 1
    assert position.ratio == pytest.approx(1 / 3)


def test_line_outside_blocks_is_clamped(source_map: SourceMap) -> None:
    assert source_map.block_index_for_line(10) == BlockPosition(index=2, ratio=1.0)
    assert source_map.block_index_for_line(-3) == BlockPosition(index=0, ratio=0.0)


def test_block_to_line(source_map: SourceMap) -> None:
    assert source_map.line_for_block_index(1) == 2
    assert source_map.line_for_block_index(1, 0.5) == 3
    assert source_map.line_for_block_index(1, 1.0) == 4
    assert source_map.line_for_block_index(99) == 5
    assert source_map.line_for_block_index(-1) == 0


def test_empty_map() -> None:
    empty = SourceMap()

    assert len(empty) == 0
    assert empty.block_index_for_line(4) is None
    assert empty.line_for_block_index(2, 0.3) == 0
