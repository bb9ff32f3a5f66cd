"""Keyword search pipeline.

validate -> cache lookup -> index -> rank/enrich -> respond, with the cache
write and history recording handed to the background task runner. Only the
response is on the caller's critical path.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass

from notesearch.config import Settings
from notesearch.constants import IMPLEMENTED_QUERY_TYPES
from notesearch.search.background import TaskRunner
from notesearch.search.cache import SearchCacheStore
from notesearch.search.cache_key import make_cache_key, page_scope
from notesearch.search.engine import KeywordSearchEngine
from notesearch.search.errors import (
    EmptyQueryError,
    IndexExecutionError,
    InvalidFiltersError,
    SearchError,
    UnsupportedQueryTypeError,
)
from notesearch.search.filters import validate_filters
from notesearch.search.highlight import generate_snippet, highlight_terms
from notesearch.search.history import SearchHistoryStore
from notesearch.search.ranking import build_pagination, rank_results
from notesearch.search.sanitizer import sanitize_query
from notesearch.search.schemas import RawMatch, SearchRequest, SearchResponse, SearchResult

logger = logging.getLogger(__name__)


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


@dataclass
class SearchContext:
    """Collaborators shared by every search in the process."""

    index: KeywordSearchEngine
    cache: SearchCacheStore
    history: SearchHistoryStore
    tasks: TaskRunner
    settings: Settings


def build_result(match: RawMatch, user_id: str, query: str, request: SearchRequest, snippet_length: int) -> SearchResult:
    """Turn one index match into a caller-facing result."""
    return SearchResult(
        id=match.id,
        content=match.content,
        highlighted_content=highlight_terms(match.content, query) if request.include_highlighting else None,
        snippet=generate_snippet(match.content, query, snippet_length) if request.include_snippets else None,
        user_id=match.user_id or user_id,
        cluster_id=match.cluster_id,
        created_at=match.created_at,
        updated_at=match.updated_at,
        metadata=match.metadata,
        rank=match.rank,
        score=min(match.rank, 1.0),
    )


class SearchOrchestrator:
    """Runs keyword searches for authenticated users.

    Usage::

        orchestrator = SearchOrchestrator(context)
        response = await orchestrator.search(user_id, SearchRequest(query="meeting notes"))
    """

    def __init__(self, context: SearchContext) -> None:
        self._ctx = context

    async def search(self, user_id: str, request: SearchRequest) -> SearchResponse:
        """Execute one search request.

        Raises:
            UnsupportedQueryTypeError: semantic or hybrid was requested.
            EmptyQueryError: Nothing is left of the query after sanitisation.
            InvalidFiltersError: A filter range is inverted.
            IndexExecutionError: The index call failed or timed out.
        """
        start = time.perf_counter()
        settings = self._ctx.settings

        if request.type not in IMPLEMENTED_QUERY_TYPES:
            raise UnsupportedQueryTypeError(request.type.value)

        query = sanitize_query(request.query)
        if not query:
            raise EmptyQueryError()

        validation = validate_filters(request.filters)
        if not validation.valid:
            raise InvalidFiltersError(validation.issues)
        filters = validation.sanitized_filters if request.filters is not None else None

        logger.info(
            "Search user=%s query=%r type=%s limit=%d offset=%d",
            user_id,
            query,
            request.type,
            request.limit,
            request.offset,
        )

        cache_key = make_cache_key(user_id, query, filters, request.type, page=page_scope(request))
        entry = await self._ctx.cache.get_cached(cache_key, user_id)
        if entry is not None:
            logger.debug("Search cache hit key=%s hits=%d", cache_key, entry.hit_count)
            return SearchResponse(
                results=entry.results,
                pagination=build_pagination(len(entry.results), request.limit, request.offset, entry.total),
                query=query,
                type=request.type,
                execution_time_ms=_elapsed_ms(start),
                total_results=entry.total,
                filters=filters,
                cached=True,
            )
        logger.debug("Search cache miss key=%s", cache_key)

        try:
            page = await asyncio.wait_for(
                self._ctx.index.execute_keyword_search(
                    user_id,
                    query,
                    limit=request.limit,
                    offset=request.offset,
                    filters=filters,
                    sort=request.sort,
                ),
                timeout=settings.SEARCH_INDEX_TIMEOUT_SECONDS,
            )
        except SearchError:
            raise
        except TimeoutError as exc:
            logger.error("Keyword index timed out after %.1fs", settings.SEARCH_INDEX_TIMEOUT_SECONDS)
            raise IndexExecutionError("Search timed out", execution_time_ms=_elapsed_ms(start)) from exc
        except Exception as exc:
            logger.exception("Keyword index failed for user %s", user_id)
            raise IndexExecutionError(execution_time_ms=_elapsed_ms(start)) from exc

        results = [
            build_result(match, user_id, query, request, settings.SEARCH_SNIPPET_LENGTH)
            for match in rank_results(page.results, request.sort)
        ]
        execution_time_ms = _elapsed_ms(start)

        if results:
            self._ctx.tasks.submit(
                "search-cache-write",
                self._ctx.cache.set_cached(
                    cache_key,
                    user_id,
                    query,
                    results,
                    filters,
                    ttl_minutes=settings.SEARCH_CACHE_TTL_MINUTES,
                    total=page.total,
                ),
            )
        self._ctx.tasks.submit(
            "search-history-record",
            self._ctx.history.record_history(
                user_id,
                query,
                request.type,
                filters,
                len(results),
                execution_time_ms,
            ),
        )

        return SearchResponse(
            results=results,
            pagination=build_pagination(len(results), request.limit, request.offset, page.total),
            query=query,
            type=request.type,
            execution_time_ms=execution_time_ms,
            total_results=page.total,
            filters=filters,
            cached=False,
        )
