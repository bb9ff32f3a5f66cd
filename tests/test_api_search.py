"""Tests for the Search API endpoints (/api/search).

Covers:
- POST and GET search through the orchestrator
- SearchError -> JSON envelope (400 / 501 / 500)
- Schema validation (422) and authentication (401)
- Suggestions, history, analytics and stats routes
All storage collaborators are mocked; no database is required.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from notesearch.config import Settings
from notesearch.search.background import TaskRunner
from notesearch.search.errors import IndexExecutionError
from notesearch.search.history import summarize_analytics, summarize_stats
from notesearch.search.orchestrator import SearchContext
from notesearch.search.schemas import IndexPage, SearchSuggestion

from tests.conftest import USER_ID, make_auth_headers, make_match

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_context(page: IndexPage | None = None) -> SearchContext:
    index = MagicMock()
    index.execute_keyword_search = AsyncMock(
        return_value=page
        or IndexPage(
            results=[
                make_match("n1", "Machine learning basics", rank=0.4),
                make_match("n2", "Deep machine learning", rank=0.9),
            ],
            total=2,
        )
    )
    cache = MagicMock()
    cache.get_cached = AsyncMock(return_value=None)
    cache.set_cached = AsyncMock()
    history = MagicMock()
    history.record_history = AsyncMock()
    return SearchContext(index=index, cache=cache, history=history, tasks=TaskRunner(), settings=Settings())


def _get_app(context: SearchContext):
    """Import the app and point the search dependency at *context*."""
    from notesearch.api.search import get_search_context
    from notesearch.main import app

    app.dependency_overrides[get_search_context] = lambda: context
    return app


@pytest.fixture
def context():
    return _make_context()


@pytest_asyncio.fixture
async def client(context):
    app = _get_app(context)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
    await context.tasks.drain()


# ---------------------------------------------------------------------------
# 1. Search
# ---------------------------------------------------------------------------


class TestSearchEndpoint:
    @pytest.mark.asyncio
    async def test_post_search(self, client, context):
        resp = await client.post(
            "/api/search",
            json={"query": "  Machine   Learning!! ", "limit": 10},
            headers=make_auth_headers(),
        )

        assert resp.status_code == 200
        data = resp.json()
        assert data["query"] == "Machine Learning!!"
        assert data["cached"] is False
        assert [r["id"] for r in data["results"]] == ["n2", "n1"]
        assert data["results"][0]["highlightedContent"] == "Deep <mark>machine</mark> <mark>learning</mark>"
        assert data["pagination"] == {"limit": 10, "offset": 0, "total": 2, "hasNext": False, "hasPrev": False}
        assert "executionTimeMs" in data
        assert data["totalResults"] == 2
        assert context.index.execute_keyword_search.call_args.args[0] == USER_ID

    @pytest.mark.asyncio
    async def test_get_search_builds_filters(self, client, context):
        resp = await client.get(
            "/api/search",
            params={"q": "machine", "tags": "ml, ai ,", "sort": "created_at", "order": "asc"},
            headers=make_auth_headers(),
        )

        assert resp.status_code == 200
        kwargs = context.index.execute_keyword_search.call_args.kwargs
        assert kwargs["filters"].tags == ["ml", "ai"]
        assert kwargs["sort"].sort_by == "created_at"
        assert kwargs["sort"].sort_order == "asc"

    @pytest.mark.asyncio
    async def test_empty_after_sanitising_returns_400(self, client):
        resp = await client.post("/api/search", json={"query": "<><>"}, headers=make_auth_headers())

        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert body["error"] == "EmptyQuery"
        assert "timestamp" in body

    @pytest.mark.asyncio
    async def test_inverted_filters_return_issues(self, client):
        resp = await client.post(
            "/api/search",
            json={"query": "notes", "filters": {"wordCountMin": 50, "wordCountMax": 10}},
            headers=make_auth_headers(),
        )

        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "InvalidFilters"
        assert body["issues"]

    @pytest.mark.asyncio
    async def test_semantic_is_not_implemented(self, client, context):
        resp = await client.post("/api/search", json={"query": "notes", "type": "semantic"}, headers=make_auth_headers())

        assert resp.status_code == 501
        assert resp.json()["error"] == "UnsupportedQueryType"
        context.index.execute_keyword_search.assert_not_called()

    @pytest.mark.asyncio
    async def test_index_failure_returns_500(self, client, context):
        context.index.execute_keyword_search.side_effect = IndexExecutionError(execution_time_ms=7)

        resp = await client.post("/api/search", json={"query": "notes"}, headers=make_auth_headers())

        assert resp.status_code == 500
        body = resp.json()
        assert body["error"] == "IndexExecutionFailure"
        assert body["executionTimeMs"] == 7

    @pytest.mark.asyncio
    async def test_limit_out_of_range_is_422(self, client):
        resp = await client.post("/api/search", json={"query": "notes", "limit": 51}, headers=make_auth_headers())
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client):
        resp = await client.post("/api/search", json={"query": "notes"})
        assert resp.status_code == 401


# ---------------------------------------------------------------------------
# 2. Suggestions & history
# ---------------------------------------------------------------------------


class TestHistoryEndpoints:
    @pytest.mark.asyncio
    async def test_suggestions(self, client, context):
        context.history.get_suggestions = AsyncMock(return_value=[SearchSuggestion(query="machine learning", use_count=3)])

        resp = await client.get("/api/search/suggestions", params={"query": "mach"}, headers=make_auth_headers())

        assert resp.status_code == 200
        data = resp.json()
        assert data["suggestions"][0] == {
            "query": "machine learning",
            "type": "history",
            "useCount": 3,
            "lastUsedAt": None,
        }
        context.history.get_suggestions.assert_awaited_once_with(USER_ID, "mach", 5)

    @pytest.mark.asyncio
    async def test_history_list(self, client, context):
        context.history.list_history = AsyncMock(return_value=([], 0))

        resp = await client.get("/api/search/history", params={"limit": 5}, headers=make_auth_headers())

        assert resp.status_code == 200
        assert resp.json() == {"items": [], "total": 0, "limit": 5, "offset": 0}

    @pytest.mark.asyncio
    async def test_clear_history(self, client, context):
        context.history.clear_history = AsyncMock(return_value=4)

        resp = await client.delete("/api/search/history", headers=make_auth_headers())

        assert resp.status_code == 200
        assert resp.json() == {"deleted": 4}

    @pytest.mark.asyncio
    async def test_delete_missing_item_is_404(self, client, context):
        context.history.delete_history_item = AsyncMock(return_value=False)

        resp = await client.delete(
            "/api/search/history/44444444-4444-4444-4444-444444444444", headers=make_auth_headers()
        )

        assert resp.status_code == 404


# ---------------------------------------------------------------------------
# 3. Analytics
# ---------------------------------------------------------------------------


class TestAnalyticsEndpoints:
    @pytest.mark.asyncio
    async def test_analytics(self, client, context):
        context.history.get_analytics = AsyncMock(return_value=summarize_analytics([]))

        resp = await client.get("/api/search/analytics", params={"period": "month"}, headers=make_auth_headers())

        assert resp.status_code == 200
        data = resp.json()
        assert data["totalQueries"] == 0
        assert data["performanceMetrics"] == {"fastQueries": 0, "slowQueries": 0, "averageResultCount": 0.0}
        assert context.history.get_analytics.call_args.kwargs["period"] == "month"

    @pytest.mark.asyncio
    async def test_stats(self, client, context):
        context.history.get_stats = AsyncMock(return_value=summarize_stats([], None))

        resp = await client.get("/api/search/stats", headers=make_auth_headers())

        assert resp.status_code == 200
        assert resp.json()["totalSearches"] == 0

    @pytest.mark.asyncio
    async def test_health(self, client):
        resp = await client.get("/api/health")
        assert resp.json() == {"status": "ok"}


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_non_uuid_subject_is_401(self, client, context):
        resp = await client.post("/api/search", json={"query": "notes"}, headers=make_auth_headers(sub="user-1"))

        assert resp.status_code == 401
        context.index.execute_keyword_search.assert_not_called()
