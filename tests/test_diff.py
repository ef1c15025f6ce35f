from __future__ import annotations

import itertools

import pytest

from snaptex.core.diff import compute_diff


def _sequences(alphabet: str = "ab", max_length: int = 3) -> list[list[str]]:
    return [
        list(items)
        for length in range(max_length + 1)
        for items in itertools.product(alphabet, repeat=length)
    ]


def test_single_changed_block() -> None:
    diff = compute_diff(["A", "B", "C"], ["A", "B2", "C"])

    assert (diff.start, diff.delete_count, diff.end) == (1, 1, 1)
    assert diff.inserted_texts == ("B2",)
    assert diff.deleted_texts == ("B",)
    assert diff.shift == 0


def test_identical_sequences_are_a_noop() -> None:
    diff = compute_diff(["A", "B"], ["A", "B"])

    assert diff.is_noop
    assert diff.start == 2
    assert diff.end == 0


def test_insertion_in_the_middle() -> None:
    diff = compute_diff(["A", "C"], ["A", "B", "C"])

    assert (diff.start, diff.delete_count, diff.end) == (1, 0, 1)
    assert diff.inserted_texts == ("B",)
    assert diff.shift == 1


def test_deletion_at_the_end() -> None:
    diff = compute_diff(["A", "B", "C"], ["A", "B"])

    assert (diff.start, diff.delete_count, diff.end) == (2, 1, 0)
    assert diff.inserted_texts == ()
    assert diff.shift == -1


def test_everything_replaced() -> None:
    diff = compute_diff(["A", "B"], ["X", "Y", "Z"])

    assert (diff.start, diff.delete_count, diff.end) == (0, 2, 0)
    assert diff.insert_count == 3


def test_empty_sequences() -> None:
    assert compute_diff([], []).is_noop
    assert compute_diff([], ["A"]).inserted_texts == ("A",)
    assert compute_diff(["A"], []).delete_count == 1


def test_prefix_and_suffix_never_overlap() -> None:
    old = ["A", "A"]
    new = ["A", "A", "A"]
    diff = compute_diff(old, new)

    assert diff.start + diff.end <= min(len(old), len(new))
    assert (diff.start, diff.delete_count, diff.end) == (2, 0, 0)
    assert diff.inserted_texts == ("A",)


def test_whitespace_edits_count_as_changes() -> None:
    diff = compute_diff(["A b"], ["A  b"])

    assert diff.delete_count == 1


@pytest.mark.parametrize("old", _sequences(), ids=lambda seq: "".join(seq) or "empty")
def test_changed_region_is_bounded_for_small_sequences(old: list[str]) -> None:
    for new in _sequences():
        diff = compute_diff(old, new)

        assert diff.start + diff.end <= min(len(old), len(new))
        assert old[: diff.start] == new[: diff.start]
        assert old[len(old) - diff.end :] == new[len(new) - diff.end :]
        assert diff.delete_count == len(old) - diff.start - diff.end
        rebuilt = [*old[: diff.start], *diff.inserted_texts, *old[len(old) - diff.end :]]
        assert rebuilt == new
