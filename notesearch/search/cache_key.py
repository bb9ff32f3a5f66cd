"""Deterministic cache identities for keyword searches."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from typing import Any

from notesearch.constants import SearchQueryType
from notesearch.search.sanitizer import sanitize_query
from notesearch.search.schemas import SearchFilters, SearchRequest


def _canonical_filters(filters: SearchFilters | Mapping[str, Any] | None) -> dict[str, Any]:
    if filters is None:
        return {}
    if isinstance(filters, SearchFilters):
        return filters.canonical()
    return dict(filters)


def page_scope(request: SearchRequest) -> dict[str, Any]:
    """Everything besides query/filters/type that changes the cached page."""
    return {
        "limit": request.limit,
        "offset": request.offset,
        "sortBy": request.sort.sort_by.value,
        "sortOrder": request.sort.sort_order.value,
        "includeSnippets": request.include_snippets,
        "includeHighlighting": request.include_highlighting,
    }


def make_cache_key(
    user_id: str,
    query: str,
    filters: SearchFilters | Mapping[str, Any] | None = None,
    query_type: SearchQueryType | str = SearchQueryType.KEYWORD,
    *,
    page: Mapping[str, Any] | None = None,
) -> str:
    """Derive the cache key for a (user, query, filters, type) tuple.

    The key is the SHA-256 of the canonical JSON encoding (object keys sorted
    at every depth), so field order in the inputs never matters and the same
    tuple maps to the same key across processes. ``user_id`` is always part
    of the encoded object; keys are never shared between users.

    Args:
        user_id: Owner of the search.
        query: Query text; sanitised again here.
        filters: Canonical filters (model or plain mapping).
        query_type: Search type.
        page: Optional page scope (see ``page_scope``) for per-page entries.

    Returns:
        64-character lowercase hex digest.
    """
    payload: dict[str, Any] = {
        "userId": user_id,
        "query": sanitize_query(query),
        "filters": _canonical_filters(filters),
        "type": str(query_type),
    }
    if page is not None:
        payload["page"] = dict(page)

    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()
