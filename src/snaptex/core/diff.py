"""Prefix/suffix diffing between two ordered block-text sequences."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class DiffResult:
    """Minimal changed region between an old and a new block sequence.

    ``start`` is the length of the common prefix, ``end`` the length of the
    common suffix once the prefix is excluded, and ``delete_count`` the number
    of old blocks replaced by ``inserted_texts``.
    """

    start: int
    delete_count: int
    end: int
    inserted_texts: tuple[str, ...] = field(default_factory=tuple)
    deleted_texts: tuple[str, ...] = field(default_factory=tuple)

    @property
    def insert_count(self) -> int:
        return len(self.inserted_texts)

    @property
    def shift(self) -> int:
        """Net change in block count introduced by the edit."""
        return self.insert_count - self.delete_count

    @property
    def is_noop(self) -> bool:
        return not self.delete_count and not self.inserted_texts


def compute_diff(old_texts: Sequence[str], new_texts: Sequence[str]) -> DiffResult:
    """Return the changed region between ``old_texts`` and ``new_texts``.

    Blocks are compared by exact text equality: a whitespace-only edit inside
    a block still counts as a change of that block.
    """
    old_length = len(old_texts)
    new_length = len(new_texts)
    shortest = min(old_length, new_length)

    start = 0
    while start < shortest and old_texts[start] == new_texts[start]:
        start += 1

    end = 0
    max_end = shortest - start
    while end < max_end and old_texts[old_length - 1 - end] == new_texts[new_length - 1 - end]:
        end += 1

    return DiffResult(
        start=start,
        delete_count=old_length - start - end,
        end=end,
        inserted_texts=tuple(new_texts[start : new_length - end]),
        deleted_texts=tuple(old_texts[start : old_length - end]),
    )


__all__ = ["DiffResult", "compute_diff"]
