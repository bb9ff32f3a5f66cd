"""PostgreSQL keyword index over ``notes.search_content``.

Matches with ``to_tsquery`` against the weighted tsvector column and ranks
with ``ts_rank_cd`` (cover density). Only the caller's non-deleted notes are
ever visible.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from pydantic import ValidationError
from sqlalchemy import cast, func, literal, select
from sqlalchemy.dialects.postgresql import REGCONFIG, array
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notesearch.constants import SortBy, SortOrder
from notesearch.models import Note
from notesearch.search.errors import IndexExecutionError
from notesearch.search.sanitizer import build_tsquery_expr
from notesearch.search.schemas import IndexPage, NoteMetadata, RawMatch, SearchFilters, SearchSort

logger = logging.getLogger(__name__)


def _filter_clauses(filters: SearchFilters | None) -> list[Any]:
    """Translate canonical filters into WHERE clauses on ``notes``."""
    if filters is None:
        return []

    clauses: list[Any] = []
    if filters.tags:
        clauses.append(Note.note_metadata["tags"].has_any(array(filters.tags)))
    if filters.categories:
        clauses.append(Note.note_metadata["categories"].has_any(array(filters.categories)))
    if filters.cluster_id is not None:
        clauses.append(Note.cluster_id == str(filters.cluster_id))
    if filters.date_range is not None:
        clauses.append(Note.created_at >= filters.date_range.from_)
        clauses.append(Note.created_at <= filters.date_range.to)
    if filters.importance is not None:
        clauses.append(Note.note_metadata["importance"].astext == filters.importance.value)
    if filters.sentiment is not None:
        clauses.append(Note.note_metadata["sentiment"].astext == filters.sentiment.value)
    if filters.word_count_min is not None:
        clauses.append(Note.note_metadata["wordCount"].as_integer() >= filters.word_count_min)
    if filters.word_count_max is not None:
        clauses.append(Note.note_metadata["wordCount"].as_integer() <= filters.word_count_max)
    if filters.has_embedding is True:
        clauses.append(Note.embedding.is_not(None))
    elif filters.has_embedding is False:
        clauses.append(Note.embedding.is_(None))
    return clauses


def _row_to_match(row: Any) -> RawMatch:
    return RawMatch(
        id=str(row.id),
        content=row.content or "",
        user_id=str(row.user_id) if row.user_id is not None else None,
        cluster_id=str(row.cluster_id) if row.cluster_id is not None else None,
        created_at=row.created_at,
        updated_at=row.updated_at,
        metadata=NoteMetadata.model_validate(row.note_metadata or {}),
        rank=max(float(row.rank or 0.0), 0.0),
    )


def _rows_to_matches(rows: list[Any]) -> list[RawMatch]:
    """Map index rows, skipping notes whose metadata is off-schema."""
    matches: list[RawMatch] = []
    for row in rows:
        try:
            matches.append(_row_to_match(row))
        except ValidationError:
            logger.warning("Skipping note %s with malformed metadata", row.id, exc_info=True)
    return matches


class KeywordSearchEngine:
    """Keyword search over the caller's notes.

    Args:
        session_factory: Opens a short-lived session per search.
        text_config: PostgreSQL text search configuration name.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], text_config: str = "english") -> None:
        self._session_factory = session_factory
        self._text_config = text_config

    async def execute_keyword_search(
        self,
        user_id: str,
        query: str,
        *,
        limit: int = 20,
        offset: int = 0,
        filters: SearchFilters | None = None,
        sort: SearchSort | None = None,
    ) -> IndexPage:
        """Run one keyword search page.

        Returns an empty page without touching the database when the query
        has no indexable words.

        Raises:
            IndexExecutionError: The database call failed.
        """
        start = time.perf_counter()
        expr = build_tsquery_expr(query)
        if not expr:
            return IndexPage(results=[], total=0, execution_time_ms=0)

        sort = sort or SearchSort()
        tsquery = func.to_tsquery(cast(literal(self._text_config), REGCONFIG), expr)
        rank = func.ts_rank_cd(Note.search_content, tsquery).label("rank")
        # COUNT(*) OVER() gives total matching rows without a separate query
        total_count = func.count().over().label("total_count")

        where = [
            Note.user_id == user_id,
            Note.deleted_at.is_(None),
            Note.search_content.op("@@")(tsquery),
            *_filter_clauses(filters),
        ]

        order_key = {
            SortBy.RELEVANCE: rank,
            SortBy.CREATED_AT: Note.created_at,
            SortBy.UPDATED_AT: Note.updated_at,
            SortBy.WORD_COUNT: Note.note_metadata["wordCount"].as_integer(),
        }[sort.sort_by]
        primary = order_key.asc() if sort.sort_order == SortOrder.ASC else order_key.desc()

        stmt = (
            select(
                Note.id,
                Note.content,
                Note.user_id,
                Note.cluster_id,
                Note.created_at,
                Note.updated_at,
                Note.note_metadata,
                rank,
                total_count,
            )
            .where(*where)
            .order_by(primary, Note.created_at.desc())
            .limit(limit)
            .offset(offset)
        )

        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).fetchall()
                if rows:
                    total = int(rows[0].total_count)
                elif offset > 0:
                    # Past the last page: the window function saw no rows
                    count_stmt = select(func.count()).select_from(Note).where(*where)
                    total = int((await session.execute(count_stmt)).scalar_one())
                else:
                    total = 0
        except SQLAlchemyError as exc:
            elapsed = int((time.perf_counter() - start) * 1000)
            logger.exception("Keyword search failed for user %s", user_id)
            raise IndexExecutionError(execution_time_ms=elapsed) from exc

        elapsed = int((time.perf_counter() - start) * 1000)
        logger.debug("Keyword index returned %d/%d rows in %dms", len(rows), total, elapsed)
        return IndexPage(results=_rows_to_matches(rows), total=total, execution_time_ms=elapsed)
