"""Per-user store of recent keyword search pages.

Entries are keyed by (cache_key, user_id) and expire after a TTL. Reads
are best-effort: any database failure is logged and treated as a miss, so
a broken cache only costs latency.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from pydantic import ValidationError
from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notesearch.models import SearchCache
from notesearch.search.errors import CacheWriteError
from notesearch.search.schemas import CacheEntry, SearchFilters, SearchResult

logger = logging.getLogger(__name__)


class SearchCacheStore:
    """Read/write access to ``search_cache``.

    Args:
        session_factory: Opens a fresh session per operation; writes run
            in background tasks outside any request session.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_cached(self, cache_key: str, user_id: str) -> CacheEntry | None:
        """Return the unexpired entry for this key and user, bumping its hit count.

        An entry stored under another user is never returned, even for an
        identical key.
        """
        now = datetime.now(UTC)
        try:
            async with self._session_factory() as session:
                row = (
                    await session.execute(
                        select(SearchCache).where(
                            SearchCache.cache_key == cache_key,
                            SearchCache.user_id == user_id,
                            SearchCache.expires_at > now,
                        )
                    )
                ).scalar_one_or_none()
                if row is None:
                    return None

                await session.execute(
                    update(SearchCache)
                    .where(SearchCache.id == row.id)
                    .values(hit_count=SearchCache.hit_count + 1, last_hit_at=now)
                )
                await session.commit()

                return CacheEntry(
                    cache_key=row.cache_key,
                    user_id=str(row.user_id),
                    query=row.query,
                    results=[SearchResult.model_validate(item) for item in row.results or []],
                    results_count=row.results_count,
                    total=row.total_count,
                    expires_at=row.expires_at,
                    hit_count=row.hit_count + 1,
                )
        except (SQLAlchemyError, ValidationError):
            logger.exception("Search cache read failed for key %s", cache_key)
            return None

    async def set_cached(
        self,
        cache_key: str,
        user_id: str,
        query: str,
        results: list[SearchResult],
        filters: SearchFilters | None = None,
        ttl_minutes: int = 60,
        total: int | None = None,
    ) -> None:
        """Insert or refresh the entry for (cache_key, user_id).

        A refresh replaces the results and expiry and resets the hit count.

        Raises:
            CacheWriteError: The write failed.
        """
        now = datetime.now(UTC)
        payload = [result.model_dump(mode="json", by_alias=True) for result in results]
        values = {
            "cache_key": cache_key,
            "user_id": user_id,
            "query": query,
            "filters": filters.canonical() if filters is not None else {},
            "results": payload,
            "results_count": len(payload),
            "total_count": total if total is not None else len(payload),
            "created_at": now,
            "expires_at": now + timedelta(minutes=ttl_minutes),
            "hit_count": 0,
        }
        stmt = insert(SearchCache).values(**values)
        stmt = stmt.on_conflict_do_update(
            constraint="uq_search_cache_key_user",
            set_={
                "query": stmt.excluded.query,
                "filters": stmt.excluded.filters,
                "results": stmt.excluded.results,
                "results_count": stmt.excluded.results_count,
                "total_count": stmt.excluded.total_count,
                "created_at": stmt.excluded.created_at,
                "expires_at": stmt.excluded.expires_at,
                "hit_count": 0,
            },
        )
        try:
            async with self._session_factory() as session:
                await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as exc:
            raise CacheWriteError("Failed to cache search results") from exc

    async def purge_expired(self) -> int:
        """Delete expired entries. Returns the number removed."""
        async with self._session_factory() as session:
            result = await session.execute(delete(SearchCache).where(SearchCache.expires_at <= datetime.now(UTC)))
            await session.commit()
        removed = result.rowcount or 0
        if removed:
            logger.info("Purged %d expired search cache entries", removed)
        return removed
