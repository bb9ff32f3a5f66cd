"""Pydantic v2 schemas for the keyword search pipeline.

Python attributes are snake_case; JSON uses camelCase aliases
(``executionTimeMs``, ``hasNext``, ``highlightedContent``) and accepts both
spellings on input.

Defines:
- SearchFilters / DateRangeFilter / SearchSort: the request vocabulary
- SearchRequest: one immutable search call
- RawMatch / IndexPage: what the keyword index hands back
- SearchResult / Pagination / SearchResponse: what callers receive
- CacheEntry, SearchHistoryItem, SearchSuggestion: stored views
- SearchAnalyticsSummary / SearchStats: history aggregates
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, field_validator
from pydantic.alias_generators import to_camel

from notesearch.constants import (
    DEFAULT_SEARCH_LIMIT,
    MAX_QUERY_LENGTH,
    MAX_SEARCH_LIMIT,
    Importance,
    SearchQueryType,
    Sentiment,
    SortBy,
    SortOrder,
    SuggestionType,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FrozenCamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Request vocabulary
# ---------------------------------------------------------------------------


class DateRangeFilter(FrozenCamelModel):
    """Inclusive created-at window.

    Ordering of ``from``/``to`` is *not* enforced here; an inverted range is
    reported by the filter validator as an issue instead of a parse error.
    """

    from_: datetime = Field(alias="from")
    to: datetime

    @field_validator("from_", "to")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class SearchFilters(FrozenCamelModel):
    """Optional search predicates.

    Tags and categories are accepted in any size here; the filter validator
    trims, drops and truncates them to the canonical form.
    """

    tags: list[str] | None = None
    cluster_id: UUID | None = None
    date_range: DateRangeFilter | None = None
    has_embedding: bool | None = None
    importance: Importance | None = None
    sentiment: Sentiment | None = None
    categories: list[str] | None = None
    word_count_min: NonNegativeInt | None = None
    word_count_max: NonNegativeInt | None = None

    def canonical(self) -> dict[str, Any]:
        """JSON-safe dict with unset fields removed (cache keys, persistence)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SearchSort(FrozenCamelModel):
    sort_by: SortBy = SortBy.RELEVANCE
    sort_order: SortOrder = SortOrder.DESC


class SearchRequest(FrozenCamelModel):
    """A single search call. Immutable once constructed.

    Attributes:
        query: Raw user query (1-500 characters before sanitisation).
        type: keyword, semantic or hybrid; only keyword is executed.
        limit: Page size (1-50).
        offset: Rows to skip.
        filters: Optional predicates, validated by ``validate_filters``.
        sort: Primary sort key and direction.
        include_snippets: Compute a best-window excerpt per result.
        include_highlighting: Compute marked-up content per result.
    """

    query: str = Field(min_length=1, max_length=MAX_QUERY_LENGTH)
    type: SearchQueryType = SearchQueryType.KEYWORD
    limit: int = Field(DEFAULT_SEARCH_LIMIT, ge=1, le=MAX_SEARCH_LIMIT)
    offset: int = Field(0, ge=0)
    filters: SearchFilters | None = None
    sort: SearchSort = Field(default_factory=SearchSort)
    include_snippets: bool = True
    include_highlighting: bool = True


# ---------------------------------------------------------------------------
# Index output
# ---------------------------------------------------------------------------


class NoteMetadata(CamelModel):
    word_count: NonNegativeInt = 0
    character_count: NonNegativeInt = 0
    tags: list[str] = Field(default_factory=list)
    importance: Importance | None = None
    sentiment: Sentiment | None = None
    categories: list[str] | None = None


class RawMatch(CamelModel):
    """One matching note as returned by the keyword index."""

    id: str
    content: str
    user_id: str | None = None
    cluster_id: str | None = None
    created_at: datetime
    updated_at: datetime
    metadata: NoteMetadata = Field(default_factory=NoteMetadata)
    rank: float = Field(0.0, ge=0)


class IndexPage(CamelModel):
    """A window of index matches plus the true total when the index knows it."""

    results: list[RawMatch]
    total: int
    execution_time_ms: int = 0


# ---------------------------------------------------------------------------
# Caller-facing results
# ---------------------------------------------------------------------------


class SearchResult(CamelModel):
    """A ranked view over one note; never persisted on its own."""

    id: str
    content: str
    highlighted_content: str | None = None
    snippet: str | None = None
    user_id: str
    cluster_id: str | None = None
    created_at: datetime
    updated_at: datetime
    metadata: NoteMetadata
    rank: float = Field(0.0, ge=0)
    score: float | None = Field(None, ge=0, le=1)


class Pagination(CamelModel):
    limit: int
    offset: int
    total: int
    has_next: bool
    has_prev: bool


class SearchResponse(CamelModel):
    """Envelope returned by ``SearchOrchestrator.search``."""

    results: list[SearchResult]
    pagination: Pagination
    query: str
    type: SearchQueryType
    execution_time_ms: int
    total_results: int
    filters: SearchFilters | None = None
    cached: bool = False


# ---------------------------------------------------------------------------
# Stored views
# ---------------------------------------------------------------------------


class CacheEntry(CamelModel):
    cache_key: str
    user_id: str
    query: str
    results: list[SearchResult]
    results_count: int
    total: int
    expires_at: datetime
    hit_count: int = 0


class SearchHistoryItem(CamelModel):
    id: str
    query: str
    type: SearchQueryType
    filters: SearchFilters | None = None
    result_count: int
    use_count: int
    last_used_at: datetime
    created_at: datetime


class SearchSuggestion(CamelModel):
    query: str
    type: SuggestionType = SuggestionType.HISTORY
    use_count: int | None = None
    last_used_at: datetime | None = None


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


class PopularQuery(CamelModel):
    query: str
    count: int
    average_results: float


class QueryTypeDistribution(CamelModel):
    keyword: int = 0
    semantic: int = 0
    hybrid: int = 0


class PerformanceMetrics(CamelModel):
    fast_queries: int = 0  # < 200 ms
    slow_queries: int = 0  # > 1000 ms
    average_result_count: float = 0.0


class TimeSeriesPoint(CamelModel):
    date: datetime
    query_count: int
    average_execution_time: float


class SearchAnalyticsSummary(CamelModel):
    total_queries: int
    average_execution_time: float
    most_popular_queries: list[PopularQuery]
    query_type_distribution: QueryTypeDistribution
    performance_metrics: PerformanceMetrics
    time_series_data: list[TimeSeriesPoint]


class SearchStats(CamelModel):
    total_searches: int
    unique_queries: int
    average_results_per_search: float
    most_used_query: str | None = None
    searches_today: int
    average_execution_time: float
