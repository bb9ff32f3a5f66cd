"""Ordering and pagination of keyword matches."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from notesearch.constants import SortBy, SortOrder
from notesearch.search.schemas import Pagination, RawMatch, SearchSort

_SORT_KEYS: dict[SortBy, Callable[[RawMatch], Any]] = {
    SortBy.RELEVANCE: lambda m: m.rank,
    SortBy.CREATED_AT: lambda m: m.created_at,
    SortBy.UPDATED_AT: lambda m: m.updated_at,
    SortBy.WORD_COUNT: lambda m: m.metadata.word_count,
}


def rank_results(matches: Iterable[RawMatch], sort: SearchSort | None = None) -> list[RawMatch]:
    """Order matches by the requested key, newest ``created_at`` first on ties.

    The default is descending relevance (``rank``). The tie-break stays
    newest-first whatever the primary direction.
    """
    sort = sort or SearchSort()
    # Two stable passes: tie-break first, then the primary key
    ordered = sorted(matches, key=lambda m: m.created_at, reverse=True)
    ordered.sort(key=_SORT_KEYS[sort.sort_by], reverse=sort.sort_order == SortOrder.DESC)
    return ordered


def build_pagination(returned_count: int, limit: int, offset: int, total: int | None = None) -> Pagination:
    """Pagination metadata for one returned page.

    ``has_next`` is a heuristic (a full page suggests more rows), not an
    exact count. ``total`` falls back to ``offset + returned_count`` when the
    index could not supply one.
    """
    if total is None:
        total = offset + returned_count
    return Pagination(
        limit=limit,
        offset=offset,
        total=total,
        has_next=returned_count >= limit,
        has_prev=offset > 0,
    )
