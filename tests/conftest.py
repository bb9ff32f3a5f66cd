import os
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

# Set test environment variables before importing app modules
os.environ.setdefault("DATABASE_URL", "postgresql+asyncpg://notesearch:notesearch@db:5432/notesearch_test")
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-testing-only")
os.environ.setdefault("SEARCH_CLEANUP_ON_STARTUP", "false")

USER_ID = "11111111-1111-1111-1111-111111111111"
OTHER_USER_ID = "22222222-2222-2222-2222-222222222222"
BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


def make_match(
    note_id: str,
    content: str,
    rank: float = 0.5,
    minutes_ago: int = 0,
    word_count: int = 10,
    user_id: str = USER_ID,
):
    """Build a RawMatch as the keyword index would return it."""
    from notesearch.search.schemas import NoteMetadata, RawMatch

    created = BASE_TIME - timedelta(minutes=minutes_ago)
    return RawMatch(
        id=note_id,
        content=content,
        user_id=user_id,
        created_at=created,
        updated_at=created,
        metadata=NoteMetadata(word_count=word_count, character_count=len(content)),
        rank=rank,
    )


def make_session_factory(*results):
    """Build a mock async_sessionmaker whose session.execute() returns *results* in order.

    Returns (factory, session) so tests can inspect the executed statements.
    """
    session = MagicMock()
    session.execute = AsyncMock(side_effect=list(results))
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.add = MagicMock()

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=session)
    context.__aexit__ = AsyncMock(return_value=False)

    factory = MagicMock(return_value=context)
    return factory, session


def make_auth_headers(sub: str = USER_ID) -> dict[str, str]:
    """Create Authorization headers with a valid access token."""
    from notesearch.services.auth_service import create_access_token

    token = create_access_token(data={"sub": sub})
    return {"Authorization": f"Bearer {token}"}
