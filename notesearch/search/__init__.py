"""Keyword search pipeline: sanitise, validate, cache, execute, rank, record."""

from notesearch.search.errors import (
    CacheWriteError,
    EmptyQueryError,
    HistoryWriteError,
    IndexExecutionError,
    InvalidFiltersError,
    SearchError,
    UnsupportedQueryTypeError,
)
from notesearch.search.orchestrator import SearchContext, SearchOrchestrator

__all__ = [
    "CacheWriteError",
    "EmptyQueryError",
    "HistoryWriteError",
    "IndexExecutionError",
    "InvalidFiltersError",
    "SearchContext",
    "SearchError",
    "SearchOrchestrator",
    "UnsupportedQueryTypeError",
]
