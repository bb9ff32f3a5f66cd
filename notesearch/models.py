"""PostgreSQL schema for notes and the keyword search tables."""

import uuid
from datetime import datetime

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    Computed,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, TSVECTOR, UUID
from sqlalchemy.orm import Mapped, mapped_column

from notesearch.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


# Weighted title (A), content (B) and tags (C). Generation expressions must be
# immutable, so tags go through jsonb_to_tsvector rather than a subquery.
SEARCH_CONTENT_EXPR = (
    "setweight(to_tsvector('english'::regconfig, coalesce(metadata->>'title', '')), 'A') || "
    "setweight(to_tsvector('english'::regconfig, coalesce(content, '')), 'B') || "
    "setweight(jsonb_to_tsvector('english'::regconfig, coalesce(metadata->'tags', '[]'::jsonb), '[\"string\"]'), 'C')"
)


class Note(Base):
    """A user's freeform note. Owned and written by the notes service; searched here."""

    __tablename__ = "notes"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(UUID(as_uuid=False), index=True)
    content: Mapped[str] = mapped_column(Text, default="")
    # wordCount, characterCount, tags, importance, sentiment, categories, title
    note_metadata: Mapped[dict] = mapped_column("metadata", JSONB, default=dict)
    cluster_id: Mapped[str | None] = mapped_column(UUID(as_uuid=False), nullable=True)
    embedding: Mapped[list | None] = mapped_column(Vector(1536), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    search_content: Mapped[str | None] = mapped_column(
        TSVECTOR, Computed(SEARCH_CONTENT_EXPR, persisted=True), nullable=True
    )

    __table_args__ = (
        Index("idx_notes_search_content", "search_content", postgresql_using="gin"),
        Index("idx_notes_user_created", "user_id", "created_at"),
    )


class SearchCache(Base):
    """Cached keyword search pages, scoped per user."""

    __tablename__ = "search_cache"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=_new_id)
    cache_key: Mapped[str] = mapped_column(String(64))
    user_id: Mapped[str] = mapped_column(UUID(as_uuid=False))
    query: Mapped[str] = mapped_column(Text)
    filters: Mapped[dict] = mapped_column(JSONB, default=dict)
    results: Mapped[list] = mapped_column(JSONB, default=list)
    results_count: Mapped[int] = mapped_column(Integer, default=0)
    total_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    hit_count: Mapped[int] = mapped_column(Integer, default=0)
    last_hit_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("cache_key", "user_id", name="uq_search_cache_key_user"),
        Index("idx_search_cache_user_expires", "user_id", "expires_at"),
    )


class SearchHistory(Base):
    """One row per distinct (user, query, type); reused to drive suggestions."""

    __tablename__ = "search_history"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(UUID(as_uuid=False))
    query: Mapped[str] = mapped_column(Text)
    query_type: Mapped[str] = mapped_column(String(20), default="keyword")
    filters: Mapped[dict] = mapped_column(JSONB, default=dict)
    result_count: Mapped[int] = mapped_column(Integer, default=0)
    use_count: Mapped[int] = mapped_column(Integer, default=1)
    last_used_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "query", "query_type", name="uq_search_history_user_query"),
        Index("idx_search_history_user_recent", "user_id", "last_used_at"),
    )


class SearchAnalytics(Base):
    """Append-only log of completed searches."""

    __tablename__ = "search_analytics"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(UUID(as_uuid=False))
    query: Mapped[str] = mapped_column(Text)
    query_type: Mapped[str] = mapped_column(String(20), default="keyword")
    results_count: Mapped[int] = mapped_column(Integer, default=0)
    execution_time_ms: Mapped[int] = mapped_column(Integer, default=0)
    filters_applied: Mapped[dict] = mapped_column(JSONB, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_search_analytics_user_created", "user_id", "created_at"),)
