"""Search API endpoints.

Provides:
- ``POST /search`` / ``GET /search`` -- Keyword search over the caller's notes.
- ``GET /search/suggestions`` -- Previously used queries matching a prefix.
- ``GET /search/history`` / ``DELETE /search/history[/{id}]`` -- Search history.
- ``GET /search/analytics`` / ``GET /search/stats`` -- Usage aggregates.

All endpoints require JWT Bearer authentication; every read and write is
scoped to the token's user.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from notesearch.constants import (
    DEFAULT_SEARCH_LIMIT,
    MAX_SEARCH_LIMIT,
    AnalyticsPeriod,
    SearchQueryType,
    SortBy,
    SortOrder,
)
from notesearch.search.orchestrator import SearchContext, SearchOrchestrator
from notesearch.search.schemas import (
    CamelModel,
    DateRangeFilter,
    SearchAnalyticsSummary,
    SearchFilters,
    SearchHistoryItem,
    SearchRequest,
    SearchResponse,
    SearchSort,
    SearchStats,
    SearchSuggestion,
)
from notesearch.services.auth_service import get_current_user
from notesearch.utils.datetime_utils import ensure_utc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/search", tags=["search"])

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class SuggestionsResponse(CamelModel):
    suggestions: list[SearchSuggestion]
    query: str


class HistoryResponse(CamelModel):
    items: list[SearchHistoryItem]
    total: int
    limit: int
    offset: int


class DeletedResponse(CamelModel):
    deleted: int


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_search_context(request: Request) -> SearchContext:
    """The process-wide SearchContext built in the application lifespan."""
    return request.app.state.search_context


def get_orchestrator(context: SearchContext = Depends(get_search_context)) -> SearchOrchestrator:  # noqa: B008
    return SearchOrchestrator(context)


def _filters_from_query(
    tags: str | None,
    date_from: datetime | None,
    date_to: datetime | None,
    cluster_id: UUID | None,
) -> SearchFilters | None:
    """Build filters from flat GET parameters; ``tags`` is comma-separated."""
    values: dict = {}
    if tags:
        values["tags"] = [tag for tag in tags.split(",") if tag.strip()]
    if date_from is not None or date_to is not None:
        values["date_range"] = DateRangeFilter(
            from_=ensure_utc(date_from) or _EPOCH,
            to=ensure_utc(date_to) or datetime.now(UTC),
        )
    if cluster_id is not None:
        values["cluster_id"] = cluster_id
    return SearchFilters(**values) if values else None


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


@router.post("", response_model=SearchResponse)
async def search_post(
    body: SearchRequest,
    current_user: dict = Depends(get_current_user),  # noqa: B008
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),  # noqa: B008
) -> SearchResponse:
    """Run a keyword search described by a JSON body."""
    return await orchestrator.search(current_user["user_id"], body)


@router.get("", response_model=SearchResponse)
async def search_get(
    q: str = Query(..., min_length=1, max_length=500, description="Search query"),  # noqa: B008
    type: SearchQueryType = Query(SearchQueryType.KEYWORD, description="Search type"),  # noqa: A002, B008
    limit: int = Query(DEFAULT_SEARCH_LIMIT, ge=1, le=MAX_SEARCH_LIMIT),  # noqa: B008
    offset: int = Query(0, ge=0),  # noqa: B008
    tags: str | None = Query(None, description="Comma-separated tags"),  # noqa: B008
    date_from: datetime | None = Query(None),  # noqa: B008
    date_to: datetime | None = Query(None),  # noqa: B008
    cluster_id: UUID | None = Query(None),  # noqa: B008
    sort: SortBy = Query(SortBy.RELEVANCE),  # noqa: B008
    order: SortOrder = Query(SortOrder.DESC),  # noqa: B008
    current_user: dict = Depends(get_current_user),  # noqa: B008
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),  # noqa: B008
) -> SearchResponse:
    """Run a keyword search described by query parameters."""
    request = SearchRequest(
        query=q,
        type=type,
        limit=limit,
        offset=offset,
        filters=_filters_from_query(tags, date_from, date_to, cluster_id),
        sort=SearchSort(sort_by=sort, sort_order=order),
    )
    return await orchestrator.search(current_user["user_id"], request)


# ---------------------------------------------------------------------------
# Suggestions & history
# ---------------------------------------------------------------------------


@router.get("/suggestions", response_model=SuggestionsResponse)
async def search_suggestions(
    query: str = Query(..., min_length=1, max_length=100, description="Search prefix"),  # noqa: B008
    limit: int = Query(5, ge=1, le=20),  # noqa: B008
    current_user: dict = Depends(get_current_user),  # noqa: B008
    context: SearchContext = Depends(get_search_context),  # noqa: B008
) -> SuggestionsResponse:
    suggestions = await context.history.get_suggestions(current_user["user_id"], query, limit)
    return SuggestionsResponse(suggestions=suggestions, query=query)


@router.get("/history", response_model=HistoryResponse)
async def search_history(
    limit: int = Query(20, ge=1, le=100),  # noqa: B008
    offset: int = Query(0, ge=0),  # noqa: B008
    type: SearchQueryType | None = Query(None),  # noqa: A002, B008
    date_from: datetime | None = Query(None),  # noqa: B008
    date_to: datetime | None = Query(None),  # noqa: B008
    current_user: dict = Depends(get_current_user),  # noqa: B008
    context: SearchContext = Depends(get_search_context),  # noqa: B008
) -> HistoryResponse:
    items, total = await context.history.list_history(
        current_user["user_id"],
        limit=limit,
        offset=offset,
        query_type=type,
        date_from=ensure_utc(date_from),
        date_to=ensure_utc(date_to),
    )
    return HistoryResponse(items=items, total=total, limit=limit, offset=offset)


@router.delete("/history", response_model=DeletedResponse)
async def clear_search_history(
    older_than: datetime | None = Query(None, description="Only delete entries last used before this time"),  # noqa: B008
    current_user: dict = Depends(get_current_user),  # noqa: B008
    context: SearchContext = Depends(get_search_context),  # noqa: B008
) -> DeletedResponse:
    deleted = await context.history.clear_history(current_user["user_id"], ensure_utc(older_than))
    logger.info("Cleared %d search history entries for user %s", deleted, current_user["user_id"])
    return DeletedResponse(deleted=deleted)


@router.delete("/history/{history_id}", response_model=DeletedResponse)
async def delete_search_history_item(
    history_id: UUID,
    current_user: dict = Depends(get_current_user),  # noqa: B008
    context: SearchContext = Depends(get_search_context),  # noqa: B008
) -> DeletedResponse:
    removed = await context.history.delete_history_item(current_user["user_id"], str(history_id))
    if not removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Search history entry not found")
    return DeletedResponse(deleted=1)


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


@router.get("/analytics", response_model=SearchAnalyticsSummary)
async def search_analytics(
    period: AnalyticsPeriod = Query(AnalyticsPeriod.WEEK),  # noqa: B008
    date_from: datetime | None = Query(None),  # noqa: B008
    date_to: datetime | None = Query(None),  # noqa: B008
    query_type: SearchQueryType | None = Query(None),  # noqa: B008
    current_user: dict = Depends(get_current_user),  # noqa: B008
    context: SearchContext = Depends(get_search_context),  # noqa: B008
) -> SearchAnalyticsSummary:
    return await context.history.get_analytics(
        current_user["user_id"],
        period=period,
        date_from=ensure_utc(date_from),
        date_to=ensure_utc(date_to),
        query_type=query_type,
    )


@router.get("/stats", response_model=SearchStats)
async def search_stats(
    current_user: dict = Depends(get_current_user),  # noqa: B008
    context: SearchContext = Depends(get_search_context),  # noqa: B008
) -> SearchStats:
    return await context.history.get_stats(current_user["user_id"])
