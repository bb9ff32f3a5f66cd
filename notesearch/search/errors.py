"""Search error kinds.

Every error carries a stable ``kind`` identifier and a user-facing
``message``; neither ever contains stack traces or internal identifiers.
Validation errors are raised before any I/O. Cache/history write errors are
raised by the stores but only ever logged by the background task runner.
"""

from __future__ import annotations


class SearchError(Exception):
    """Base class for search pipeline failures.

    Attributes:
        kind: Stable identifier exposed to callers.
        status_code: HTTP status used by the API layer.
        message: Human-readable description.
    """

    kind: str = "SearchError"
    status_code: int = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class EmptyQueryError(SearchError):
    """The query is empty after sanitisation."""

    kind = "EmptyQuery"
    status_code = 400

    def __init__(self, message: str = "Search query cannot be empty") -> None:
        super().__init__(message)


class InvalidFiltersError(SearchError):
    """A filter range is inverted."""

    kind = "InvalidFilters"
    status_code = 400

    def __init__(self, issues: list[str], message: str = "Invalid search filters") -> None:
        self.issues = list(issues)
        super().__init__(message)

    def to_dict(self) -> dict:
        return {**super().to_dict(), "issues": self.issues}


class UnsupportedQueryTypeError(SearchError):
    """semantic / hybrid search was requested."""

    kind = "UnsupportedQueryType"
    status_code = 501

    def __init__(self, query_type: str) -> None:
        self.query_type = query_type
        super().__init__(f"{query_type.capitalize()} search is not yet available")


class IndexExecutionError(SearchError):
    """The keyword index call failed or timed out."""

    kind = "IndexExecutionFailure"
    status_code = 500

    def __init__(self, message: str = "Search failed", execution_time_ms: int | None = None) -> None:
        self.execution_time_ms = execution_time_ms
        super().__init__(message)

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.execution_time_ms is not None:
            data["executionTimeMs"] = self.execution_time_ms
        return data


class CacheWriteError(SearchError):
    kind = "CacheWriteFailure"


class HistoryWriteError(SearchError):
    kind = "HistoryWriteFailure"
