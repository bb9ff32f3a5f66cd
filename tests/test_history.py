"""Tests for search history, suggestions, analytics and cleanup."""

from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError

from notesearch.config import Settings
from notesearch.constants import AnalyticsPeriod, SearchQueryType
from notesearch.search.errors import HistoryWriteError
from notesearch.search.history import (
    SearchHistoryStore,
    escape_like,
    summarize_analytics,
    summarize_stats,
)
from notesearch.search.schemas import SearchFilters

from tests.conftest import BASE_TIME, USER_ID, make_session_factory

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _analytics_row(query: str, ms: int, results: int = 1, qtype: str = "keyword", days_ago: int = 0):
    return SimpleNamespace(
        query=query,
        query_type=qtype,
        results_count=results,
        execution_time_ms=ms,
        created_at=BASE_TIME - timedelta(days=days_ago),
    )


def _scalars_result(items):
    result = MagicMock()
    result.scalars.return_value.all.return_value = items
    return result


def _compile(stmt) -> str:
    return str(stmt.compile(dialect=postgresql.dialect()))


def _store(*results):
    factory, session = make_session_factory(*results)
    return SearchHistoryStore(factory, Settings()), session


# ---------------------------------------------------------------------------
# 1. Pure aggregation
# ---------------------------------------------------------------------------


class TestSummarizeAnalytics:
    def test_empty(self):
        summary = summarize_analytics([])
        assert summary.total_queries == 0
        assert summary.average_execution_time == 0.0
        assert summary.most_popular_queries == []
        assert summary.time_series_data == []

    def test_aggregates(self):
        rows = [
            _analytics_row("Python", 100, results=4),
            _analytics_row("python", 300, results=2),
            _analytics_row("rust", 1500, results=0, qtype="semantic", days_ago=1),
        ]
        summary = summarize_analytics(rows)

        assert summary.total_queries == 3
        assert summary.average_execution_time == pytest.approx(633.333, rel=1e-3)
        assert summary.performance_metrics.fast_queries == 1
        assert summary.performance_metrics.slow_queries == 1
        assert summary.performance_metrics.average_result_count == 2.0
        assert summary.query_type_distribution.keyword == 2
        assert summary.query_type_distribution.semantic == 1

        top = summary.most_popular_queries[0]
        assert (top.query, top.count, top.average_results) == ("Python", 2, 3.0)

        assert [p.query_count for p in summary.time_series_data] == [1, 2]
        assert summary.time_series_data[0].date < summary.time_series_data[1].date

    def test_popular_queries_capped_at_ten(self):
        rows = [_analytics_row(f"q{i}", 10) for i in range(15)]
        assert len(summarize_analytics(rows).most_popular_queries) == 10


class TestSummarizeStats:
    def test_stats(self):
        rows = [
            _analytics_row("a", 100, results=2),
            _analytics_row("a", 300, results=4),
            _analytics_row("b", 200, results=0, days_ago=3),
        ]
        stats = summarize_stats(rows, "a", today=BASE_TIME)
        assert stats.total_searches == 3
        assert stats.unique_queries == 2
        assert stats.average_results_per_search == 2.0
        assert stats.searches_today == 2
        assert stats.most_used_query == "a"
        assert stats.average_execution_time == 200.0


def test_escape_like():
    assert escape_like("50%_off\\") == "50\\%\\_off\\\\"


# ---------------------------------------------------------------------------
# 2. record_history
# ---------------------------------------------------------------------------


class TestRecordHistory:
    @pytest.mark.asyncio
    async def test_adds_analytics_and_upserts_history(self):
        store, session = _store(MagicMock())

        await store.record_history(USER_ID, "machine learning", SearchQueryType.KEYWORD, SearchFilters(tags=["ml"]), 3, 42)

        analytics = session.add.call_args.args[0]
        assert analytics.query == "machine learning"
        assert analytics.results_count == 3
        assert analytics.execution_time_ms == 42
        assert analytics.filters_applied == {"tags": ["ml"]}

        sql = _compile(session.execute.call_args.args[0])
        assert "ON CONFLICT ON CONSTRAINT uq_search_history_user_query DO UPDATE" in sql
        assert "use_count +" in sql
        session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failure_raises_history_write_error(self):
        store, _ = _store(OperationalError("INSERT", {}, Exception("down")))

        with pytest.raises(HistoryWriteError):
            await store.record_history(USER_ID, "q", SearchQueryType.KEYWORD, None, 0, 1)


# ---------------------------------------------------------------------------
# 3. Reads and deletes
# ---------------------------------------------------------------------------


class TestHistoryReads:
    @pytest.mark.asyncio
    async def test_list_history(self):
        row = SimpleNamespace(
            id="44444444-4444-4444-4444-444444444444",
            query="rust",
            query_type="keyword",
            filters={},
            result_count=2,
            use_count=5,
            last_used_at=BASE_TIME,
            created_at=BASE_TIME,
        )
        count = MagicMock()
        count.scalar_one.return_value = 1
        store, session = _store(count, _scalars_result([row]))

        items, total = await store.list_history(USER_ID, limit=10, query_type=SearchQueryType.KEYWORD)

        assert total == 1
        assert items[0].query == "rust"
        assert items[0].filters is None
        sql = _compile(session.execute.call_args.args[0])
        assert "ORDER BY search_history.last_used_at DESC" in sql

    @pytest.mark.asyncio
    async def test_suggestions_match_prefix_literally(self):
        rows = MagicMock()
        rows.all.return_value = [SimpleNamespace(query="machine learning", use_count=4, last_used_at=BASE_TIME)]
        store, session = _store(rows)

        suggestions = await store.get_suggestions(USER_ID, "mach%", limit=5)

        assert suggestions[0].query == "machine learning"
        assert suggestions[0].type == "history"
        compiled = session.execute.call_args.args[0].compile(dialect=postgresql.dialect())
        assert "ILIKE" in str(compiled).upper()
        assert "mach\\%%" in compiled.params.values()

    @pytest.mark.asyncio
    async def test_blank_prefix_returns_nothing(self):
        store, session = _store()
        assert await store.get_suggestions(USER_ID, "   ") == []
        session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_history_item(self):
        deleted = MagicMock()
        deleted.rowcount = 0
        store, _ = _store(deleted)
        assert await store.delete_history_item(USER_ID, "44444444-4444-4444-4444-444444444444") is False

    @pytest.mark.asyncio
    async def test_clear_history_older_than(self):
        deleted = MagicMock()
        deleted.rowcount = 7
        store, session = _store(deleted)

        assert await store.clear_history(USER_ID, older_than=datetime(2024, 1, 1, tzinfo=UTC)) == 7
        sql = _compile(session.execute.call_args.args[0])
        assert "search_history.last_used_at <" in sql

    @pytest.mark.asyncio
    async def test_get_analytics_uses_period_window(self):
        store, session = _store(_scalars_result([_analytics_row("a", 10)]))

        summary = await store.get_analytics(USER_ID, period=AnalyticsPeriod.DAY, date_to=BASE_TIME)

        assert summary.total_queries == 1
        params = session.execute.call_args.args[0].compile(dialect=postgresql.dialect()).params
        assert BASE_TIME - timedelta(days=1) in params.values()

    @pytest.mark.asyncio
    async def test_get_stats(self):
        most_used = MagicMock()
        most_used.scalar_one_or_none.return_value = "a"
        store, _ = _store(_scalars_result([_analytics_row("a", 10)]), most_used)

        stats = await store.get_stats(USER_ID)
        assert stats.total_searches == 1
        assert stats.most_used_query == "a"


# ---------------------------------------------------------------------------
# 4. Retention
# ---------------------------------------------------------------------------


class TestCleanup:
    @pytest.mark.asyncio
    async def test_cleanup_deletes_all_three(self):
        results = []
        for count in (3, 2, 1):
            r = MagicMock()
            r.rowcount = count
            results.append(r)
        store, session = _store(*results)

        removed = await store.cleanup_search_data()

        assert removed == {"analytics": 3, "history": 2, "cache": 1}
        history_sql = _compile(session.execute.call_args_list[1].args[0])
        assert "search_history.use_count <" in history_sql
        session.commit.assert_awaited_once()
