# ==============================
# Cursor Enumerator
# ==============================
"""
Bounded, lazy walk over a remote key-space exposed through cursor pages.

Rules:
- One page is fetched at a time, and only when more keys are needed.
- Enumeration stops when the backend hands back the start cursor, or once
  `limit` keys have been yielded, whichever comes first.
- At most one page is held in memory.
- Pattern semantics belong to the backend; `match` is passed through untouched.

Cursors are opaque strings. "0" is the start value; "start", "" and None are
accepted as aliases on input.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, List, Optional, Tuple

from broker.errors import ArgumentError


START_CURSOR = "0"
DEFAULT_PAGE_SIZE = 100

_START_ALIASES = {"", "0", "start"}

# fetch_page(cursor, match, count) -> (next_cursor, keys)
PageFetcher = Callable[[str, Optional[str], int], Tuple[Any, List[str]]]


def normalize_cursor(cursor: Any) -> str:
    if cursor is None:
        return START_CURSOR
    text = str(cursor).strip()
    if text.lower() in _START_ALIASES:
        return START_CURSOR
    return text


def is_start(cursor: Any) -> bool:
    return normalize_cursor(cursor) == START_CURSOR


@dataclass(frozen=True)
class CursorPage:
    cursor: str
    next_cursor: str
    keys: List[str] = field(default_factory=list)

    @property
    def done(self) -> bool:
        return is_start(self.next_cursor)


class CursorEnumerator:
    def __init__(self, fetch_page: PageFetcher, *, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self._fetch_page = fetch_page
        self.page_size = page_size

    def page(self, cursor: Any = START_CURSOR, match: Optional[str] = None, count: Optional[int] = None) -> CursorPage:
        """Fetch exactly one page."""
        current = normalize_cursor(cursor)
        next_cursor, keys = self._fetch_page(current, match, count or self.page_size)
        return CursorPage(cursor=current, next_cursor=normalize_cursor(next_cursor), keys=list(keys))

    def pages(self, match: Optional[str] = None, cursor: Any = START_CURSOR) -> Iterator[CursorPage]:
        """Yield pages until the backend returns the start cursor."""
        current = normalize_cursor(cursor)
        while True:
            page = self.page(current, match)
            yield page
            if page.done:
                return
            current = page.next_cursor

    def enumerate(
        self,
        match: Optional[str] = None,
        limit: Optional[int] = None,
        cursor: Any = START_CURSOR,
    ) -> Iterator[str]:
        if limit is not None and limit < 0:
            raise ArgumentError("limit must be zero or greater", field="limit")
        if limit == 0:
            return

        yielded = 0
        for page in self.pages(match=match, cursor=cursor):
            for key in page.keys:
                yield key
                yielded += 1
                if limit is not None and yielded >= limit:
                    return

    def collect(self, match: Optional[str] = None, limit: Optional[int] = None, cursor: Any = START_CURSOR) -> List[str]:
        return list(self.enumerate(match=match, limit=limit, cursor=cursor))

    def chunks(self, match: Optional[str] = None, limit: Optional[int] = None) -> Iterator[List[str]]:
        """
        Keys grouped per fetched page (empty pages skipped).

        Used by bulk deletes so one command never carries more than a page of keys.
        """
        if limit is not None and limit <= 0:
            return
        remaining = limit
        for page in self.pages(match=match):
            keys = page.keys
            if remaining is not None:
                keys = keys[:remaining]
                remaining -= len(keys)
            if keys:
                yield keys
            if remaining is not None and remaining <= 0:
                return
