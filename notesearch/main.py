"""FastAPI application entrypoint for the notes keyword search service."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from notesearch.api.errors import register_error_handlers
from notesearch.config import get_settings
from notesearch.database import async_session_factory, engine
from notesearch.search.background import TaskRunner
from notesearch.search.cache import SearchCacheStore
from notesearch.search.engine import KeywordSearchEngine
from notesearch.search.history import SearchHistoryStore
from notesearch.search.orchestrator import SearchContext

settings = get_settings()

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


def build_search_context() -> SearchContext:
    """Wire the search collaborators around the process-wide session factory."""
    return SearchContext(
        index=KeywordSearchEngine(async_session_factory, text_config=settings.SEARCH_TEXT_CONFIG),
        cache=SearchCacheStore(async_session_factory),
        history=SearchHistoryStore(async_session_factory, settings),
        tasks=TaskRunner(),
        settings=settings,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifespan: startup and shutdown events."""
    # Startup: create all database tables if they don't exist
    from notesearch import models  # noqa: F401 - Import models to register them with Base
    from notesearch.database import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    context = build_search_context()
    app.state.search_context = context
    if settings.SEARCH_CLEANUP_ON_STARTUP:
        context.tasks.submit("search-data-cleanup", context.history.cleanup_search_data())

    yield
    # Shutdown: let pending cache/history writes finish, then dispose the pool
    await context.tasks.drain(timeout=5.0)
    await engine.dispose()


app = FastAPI(
    title="Notes Search",
    description="Keyword search over user notes",
    version="0.1.0",
    lifespan=lifespan,
)

# --- CORS Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# --- Router includes ---
from notesearch.api.search import router as search_router  # noqa: E402

app.include_router(search_router, prefix="/api")


@app.get("/api/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint.

    Returns a simple status response to verify the API is running.
    """
    return {"status": "ok"}
