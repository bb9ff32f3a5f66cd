"""Tests for search error kinds and their JSON envelope."""

from notesearch.api.errors import error_payload
from notesearch.search.errors import (
    CacheWriteError,
    EmptyQueryError,
    HistoryWriteError,
    IndexExecutionError,
    InvalidFiltersError,
    SearchError,
    UnsupportedQueryTypeError,
)


class TestErrorKinds:
    def test_kinds_and_status_codes(self):
        assert (EmptyQueryError().kind, EmptyQueryError().status_code) == ("EmptyQuery", 400)
        assert InvalidFiltersError(["x"]).status_code == 400
        assert UnsupportedQueryTypeError("hybrid").status_code == 501
        assert IndexExecutionError().status_code == 500
        assert CacheWriteError("x").kind == "CacheWriteFailure"
        assert HistoryWriteError("x").kind == "HistoryWriteFailure"

    def test_all_are_search_errors(self):
        for exc in (EmptyQueryError(), InvalidFiltersError([]), IndexExecutionError(), CacheWriteError("x")):
            assert isinstance(exc, SearchError)

    def test_unsupported_message_names_type(self):
        assert UnsupportedQueryTypeError("semantic").message == "Semantic search is not yet available"


class TestErrorPayload:
    def test_invalid_filters_payload(self):
        payload = error_payload(InvalidFiltersError(["Start date must be before or equal to end date"]))
        assert payload["success"] is False
        assert payload["error"] == "InvalidFilters"
        assert payload["issues"] == ["Start date must be before or equal to end date"]
        assert "timestamp" in payload

    def test_execution_time_only_when_known(self):
        assert "executionTimeMs" not in error_payload(IndexExecutionError())
        assert error_payload(IndexExecutionError(execution_time_ms=15))["executionTimeMs"] == 15
