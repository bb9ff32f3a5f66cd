"""Search history, suggestions, analytics and retention.

``record_history`` runs in the background after every successful search:
it appends one ``search_analytics`` row and upserts the user's
``search_history`` row for (query, type). Everything else here is read or
maintenance access used by the HTTP routes and the startup cleanup.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from datetime import UTC, date, datetime, timedelta
from typing import Any

from sqlalchemy import and_, delete, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notesearch.config import Settings
from notesearch.constants import (
    FAST_QUERY_MS,
    SLOW_QUERY_MS,
    AnalyticsPeriod,
    SearchQueryType,
    SuggestionType,
)
from notesearch.models import SearchAnalytics, SearchCache, SearchHistory
from notesearch.search.errors import HistoryWriteError
from notesearch.search.schemas import (
    PerformanceMetrics,
    PopularQuery,
    QueryTypeDistribution,
    SearchAnalyticsSummary,
    SearchFilters,
    SearchHistoryItem,
    SearchStats,
    SearchSuggestion,
    TimeSeriesPoint,
)

logger = logging.getLogger(__name__)

POPULAR_QUERY_LIMIT = 10

_PERIOD_DAYS = {
    AnalyticsPeriod.DAY: 1,
    AnalyticsPeriod.WEEK: 7,
    AnalyticsPeriod.MONTH: 30,
    AnalyticsPeriod.YEAR: 365,
}


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user input only ever matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _utc_date(value: datetime) -> date:
    # Naive timestamps are stored as UTC
    if value.tzinfo is None:
        return value.date()
    return value.astimezone(UTC).date()


def summarize_analytics(rows: Iterable[Any]) -> SearchAnalyticsSummary:
    """Aggregate analytics rows into a dashboard summary.

    Each row needs ``query``, ``query_type``, ``results_count``,
    ``execution_time_ms`` and ``created_at``. Popular queries are grouped
    case-insensitively and keep the spelling of their first occurrence.
    """
    rows = list(rows)
    exec_times = [row.execution_time_ms for row in rows]
    result_counts = [row.results_count for row in rows]

    type_counts = Counter(str(row.query_type) for row in rows)

    groups: dict[str, dict[str, Any]] = {}
    for row in rows:
        group = groups.setdefault(row.query.lower(), {"query": row.query, "count": 0, "results": 0})
        group["count"] += 1
        group["results"] += row.results_count
    # sorted() is stable: equal counts keep first-seen order
    popular = sorted(groups.values(), key=lambda g: g["count"], reverse=True)[:POPULAR_QUERY_LIMIT]

    days: dict[str, list[int]] = {}
    for row in rows:
        days.setdefault(_utc_date(row.created_at).isoformat(), []).append(row.execution_time_ms)

    return SearchAnalyticsSummary(
        total_queries=len(rows),
        average_execution_time=_mean(exec_times),
        most_popular_queries=[
            PopularQuery(query=g["query"], count=g["count"], average_results=g["results"] / g["count"])
            for g in popular
        ],
        query_type_distribution=QueryTypeDistribution(
            keyword=type_counts[SearchQueryType.KEYWORD],
            semantic=type_counts[SearchQueryType.SEMANTIC],
            hybrid=type_counts[SearchQueryType.HYBRID],
        ),
        performance_metrics=PerformanceMetrics(
            fast_queries=sum(1 for ms in exec_times if ms < FAST_QUERY_MS),
            slow_queries=sum(1 for ms in exec_times if ms > SLOW_QUERY_MS),
            average_result_count=_mean(result_counts),
        ),
        time_series_data=[
            TimeSeriesPoint(
                date=datetime.fromisoformat(day).replace(tzinfo=UTC),
                query_count=len(times),
                average_execution_time=_mean(times),
            )
            for day, times in sorted(days.items())
        ],
    )


def summarize_stats(rows: Iterable[Any], most_used_query: str | None, today: datetime | None = None) -> SearchStats:
    """Per-user totals over the analytics log."""
    rows = list(rows)
    today_date = _utc_date(today or datetime.now(UTC))
    return SearchStats(
        total_searches=len(rows),
        unique_queries=len({row.query for row in rows}),
        average_results_per_search=_mean([row.results_count for row in rows]),
        most_used_query=most_used_query,
        searches_today=sum(1 for row in rows if _utc_date(row.created_at) == today_date),
        average_execution_time=_mean([row.execution_time_ms for row in rows]),
    )


def _to_history_item(row: SearchHistory) -> SearchHistoryItem:
    return SearchHistoryItem(
        id=str(row.id),
        query=row.query,
        type=row.query_type,
        filters=SearchFilters.model_validate(row.filters) if row.filters else None,
        result_count=row.result_count,
        use_count=row.use_count,
        last_used_at=row.last_used_at,
        created_at=row.created_at,
    )


class SearchHistoryStore:
    """Access to ``search_history`` and ``search_analytics``.

    Args:
        session_factory: Opens a fresh session per operation.
        settings: Supplies the suggestion window and retention periods.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], settings: Settings) -> None:
        self._session_factory = session_factory
        self._settings = settings

    async def record_history(
        self,
        user_id: str,
        query: str,
        query_type: SearchQueryType,
        filters: SearchFilters | None,
        result_count: int,
        execution_time_ms: int,
    ) -> None:
        """Log one completed search and bump the matching history row.

        Raises:
            HistoryWriteError: Either write failed; neither is kept.
        """
        now = datetime.now(UTC)
        filters_json = filters.canonical() if filters is not None else {}

        upsert = insert(SearchHistory).values(
            user_id=user_id,
            query=query,
            query_type=query_type.value,
            filters=filters_json,
            result_count=result_count,
            use_count=1,
            last_used_at=now,
            created_at=now,
        )
        upsert = upsert.on_conflict_do_update(
            constraint="uq_search_history_user_query",
            set_={
                "use_count": SearchHistory.use_count + 1,
                "last_used_at": now,
                "result_count": result_count,
                "filters": filters_json,
            },
        )

        try:
            async with self._session_factory() as session:
                session.add(
                    SearchAnalytics(
                        user_id=user_id,
                        query=query,
                        query_type=query_type.value,
                        results_count=result_count,
                        execution_time_ms=execution_time_ms,
                        filters_applied=filters_json,
                        created_at=now,
                    )
                )
                await session.execute(upsert)
                await session.commit()
        except SQLAlchemyError as exc:
            raise HistoryWriteError("Failed to record search history") from exc

    async def list_history(
        self,
        user_id: str,
        limit: int = 20,
        offset: int = 0,
        query_type: SearchQueryType | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> tuple[list[SearchHistoryItem], int]:
        """Most-recently-used history entries plus the total matching count."""
        conditions = [SearchHistory.user_id == user_id]
        if query_type is not None:
            conditions.append(SearchHistory.query_type == query_type.value)
        if date_from is not None:
            conditions.append(SearchHistory.last_used_at >= date_from)
        if date_to is not None:
            conditions.append(SearchHistory.last_used_at <= date_to)

        async with self._session_factory() as session:
            total = (
                await session.execute(select(func.count()).select_from(SearchHistory).where(*conditions))
            ).scalar_one()
            rows = (
                (
                    await session.execute(
                        select(SearchHistory)
                        .where(*conditions)
                        .order_by(SearchHistory.last_used_at.desc())
                        .limit(limit)
                        .offset(offset)
                    )
                )
                .scalars()
                .all()
            )
        return [_to_history_item(row) for row in rows], int(total)

    async def clear_history(self, user_id: str, older_than: datetime | None = None) -> int:
        """Delete the user's history (optionally only entries last used before *older_than*)."""
        stmt = delete(SearchHistory).where(SearchHistory.user_id == user_id)
        if older_than is not None:
            stmt = stmt.where(SearchHistory.last_used_at < older_than)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
        return result.rowcount or 0

    async def delete_history_item(self, user_id: str, history_id: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(SearchHistory).where(SearchHistory.id == history_id, SearchHistory.user_id == user_id)
            )
            await session.commit()
        return bool(result.rowcount)

    async def get_suggestions(self, user_id: str, prefix: str, limit: int = 5) -> list[SearchSuggestion]:
        """Previously used queries starting with *prefix*, most used first."""
        prefix = prefix.strip()
        if not prefix:
            return []
        since = datetime.now(UTC) - timedelta(days=self._settings.SEARCH_SUGGESTION_WINDOW_DAYS)

        async with self._session_factory() as session:
            rows = (
                await session.execute(
                    select(SearchHistory.query, SearchHistory.use_count, SearchHistory.last_used_at)
                    .where(
                        SearchHistory.user_id == user_id,
                        SearchHistory.query.ilike(f"{escape_like(prefix)}%", escape="\\"),
                        SearchHistory.last_used_at >= since,
                    )
                    .order_by(SearchHistory.use_count.desc(), SearchHistory.last_used_at.desc())
                    .limit(limit)
                )
            ).all()

        return [
            SearchSuggestion(
                query=row.query,
                type=SuggestionType.HISTORY,
                use_count=row.use_count,
                last_used_at=row.last_used_at,
            )
            for row in rows
        ]

    async def get_analytics(
        self,
        user_id: str,
        period: AnalyticsPeriod = AnalyticsPeriod.WEEK,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        query_type: SearchQueryType | None = None,
    ) -> SearchAnalyticsSummary:
        """Summarise the user's searches over a window.

        Without explicit bounds the window ends now and spans *period*.
        """
        end = date_to or datetime.now(UTC)
        start = date_from or end - timedelta(days=_PERIOD_DAYS[period])

        conditions = [
            SearchAnalytics.user_id == user_id,
            SearchAnalytics.created_at >= start,
            SearchAnalytics.created_at <= end,
        ]
        if query_type is not None:
            conditions.append(SearchAnalytics.query_type == query_type.value)

        async with self._session_factory() as session:
            rows = (
                (await session.execute(select(SearchAnalytics).where(*conditions).order_by(SearchAnalytics.created_at)))
                .scalars()
                .all()
            )
        return summarize_analytics(rows)

    async def get_stats(self, user_id: str) -> SearchStats:
        async with self._session_factory() as session:
            rows = (
                (await session.execute(select(SearchAnalytics).where(SearchAnalytics.user_id == user_id)))
                .scalars()
                .all()
            )
            most_used = (
                await session.execute(
                    select(SearchHistory.query)
                    .where(SearchHistory.user_id == user_id)
                    .order_by(SearchHistory.use_count.desc(), SearchHistory.last_used_at.desc())
                    .limit(1)
                )
            ).scalar_one_or_none()
        return summarize_stats(rows, most_used)

    async def cleanup_search_data(self) -> dict[str, int]:
        """Apply retention to analytics, rarely used history and expired cache rows."""
        now = datetime.now(UTC)
        settings = self._settings
        async with self._session_factory() as session:
            analytics = await session.execute(
                delete(SearchAnalytics).where(
                    SearchAnalytics.created_at < now - timedelta(days=settings.SEARCH_ANALYTICS_RETENTION_DAYS)
                )
            )
            history = await session.execute(
                delete(SearchHistory).where(
                    and_(
                        SearchHistory.last_used_at < now - timedelta(days=settings.SEARCH_HISTORY_RETENTION_DAYS),
                        SearchHistory.use_count < settings.SEARCH_HISTORY_KEEP_MIN_USES,
                    )
                )
            )
            cache = await session.execute(delete(SearchCache).where(SearchCache.expires_at <= now))
            await session.commit()

        removed = {
            "analytics": analytics.rowcount or 0,
            "history": history.rowcount or 0,
            "cache": cache.rowcount or 0,
        }
        logger.info("Search data cleanup removed %s", removed)
        return removed
