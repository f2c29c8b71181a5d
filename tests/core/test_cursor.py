# ==============================
# Cursor Enumerator Tests
# ==============================
from __future__ import annotations

from typing import List, Optional, Tuple

import pytest

from broker.errors import ArgumentError
from broker.resources.cursor import CursorEnumerator, is_start, normalize_cursor


class _Pages:
    """Serves fixed pages keyed by cursor and counts fetches."""

    def __init__(self, pages: List[Tuple[str, str, List[str]]]) -> None:
        self.pages = {cursor: (nxt, keys) for cursor, nxt, keys in pages}
        self.fetched: List[str] = []
        self.matches: List[Optional[str]] = []

    def __call__(self, cursor: str, match: Optional[str], count: int):  # type: ignore[no-untyped-def]
        self.fetched.append(cursor)
        self.matches.append(match)
        return self.pages[cursor]


def _three_pages() -> _Pages:
    return _Pages(
        [
            ("0", "17", ["a", "b", "c"]),
            ("17", "42", []),
            ("42", "0", ["d", "e"]),
        ]
    )


def test_walks_all_pages_until_start_cursor() -> None:
    pages = _three_pages()
    keys = CursorEnumerator(pages, page_size=3).collect(match="*")
    assert keys == ["a", "b", "c", "d", "e"]
    assert pages.fetched == ["0", "17", "42"]
    assert pages.matches == ["*", "*", "*"]


def test_completed_traversal_restarts_from_start() -> None:
    pages = _three_pages()
    walker = CursorEnumerator(pages, page_size=3)

    first = walker.collect(match="*")
    second = walker.collect(match="*", cursor="start")

    assert first == second == ["a", "b", "c", "d", "e"]
    assert pages.fetched == ["0", "17", "42", "0", "17", "42"]


def test_limit_stops_fetching() -> None:
    pages = _three_pages()
    keys = CursorEnumerator(pages).collect(limit=2)
    assert keys == ["a", "b"]
    assert pages.fetched == ["0"]


def test_limit_zero_fetches_nothing() -> None:
    pages = _three_pages()
    assert CursorEnumerator(pages).collect(limit=0) == []
    assert pages.fetched == []


def test_negative_limit_is_an_argument_error() -> None:
    with pytest.raises(ArgumentError):
        CursorEnumerator(_three_pages()).collect(limit=-1)


def test_page_returns_next_cursor() -> None:
    page = CursorEnumerator(_three_pages()).page("start")
    assert page.cursor == "0"
    assert page.next_cursor == "17"
    assert not page.done


def test_chunks_skip_empty_pages() -> None:
    assert list(CursorEnumerator(_three_pages()).chunks()) == [["a", "b", "c"], ["d", "e"]]
    assert list(CursorEnumerator(_three_pages()).chunks(limit=4)) == [["a", "b", "c"], ["d"]]


@pytest.mark.parametrize("raw", [None, "", "0", "start", " START ", 0])
def test_start_aliases(raw) -> None:  # type: ignore[no-untyped-def]
    assert normalize_cursor(raw) == "0"
    assert is_start(raw)


def test_page_size_must_be_positive() -> None:
    with pytest.raises(ValueError):
        CursorEnumerator(_three_pages(), page_size=0)
