"""Structural and semantic validation of search filters.

Malformed individual values (empty or oversized tags/categories, too many
entries) are repaired silently and noted in ``issues``; inverted ranges are
rejected, because an inverted range has no single correct repair.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from notesearch.constants import MAX_FILTER_ITEMS, MAX_TAG_LENGTH
from notesearch.search.schemas import SearchFilters

logger = logging.getLogger(__name__)

DATE_RANGE_ISSUE = "Start date must be before or equal to end date"
WORD_COUNT_ISSUE = "Minimum word count must be less than or equal to maximum"
TAGS_ISSUE = "Some tags are invalid (empty or too long)"
CATEGORIES_ISSUE = "Some categories are invalid (empty or too long)"


@dataclass(frozen=True)
class FilterValidation:
    """Outcome of ``validate_filters``.

    Attributes:
        valid: False only for a structural contradiction (inverted range).
        issues: Human-readable notes, including repaired values.
        sanitized_filters: Canonical filter set to hand to the index.
    """

    valid: bool
    issues: list[str] = field(default_factory=list)
    sanitized_filters: SearchFilters = field(default_factory=SearchFilters)


def _clean_labels(values: list[str]) -> tuple[list[str], bool]:
    """Trim, drop empty/oversized and duplicate labels, keep the first 10 survivors.

    Returns the cleaned list and whether any value had to be dropped as invalid.
    """
    cleaned: list[str] = []
    dropped = False
    for value in values:
        trimmed = value.strip()
        if not trimmed or len(trimmed) > MAX_TAG_LENGTH:
            dropped = True
            continue
        if trimmed not in cleaned:
            cleaned.append(trimmed)
    return cleaned[:MAX_FILTER_ITEMS], dropped


def validate_filters(filters: SearchFilters | None) -> FilterValidation:
    """Validate a filter set and produce its canonical, trimmed form."""
    if filters is None:
        return FilterValidation(valid=True)

    issues: list[str] = []
    rejected = False
    updates: dict = {}

    if filters.date_range is not None and filters.date_range.from_ > filters.date_range.to:
        issues.append(DATE_RANGE_ISSUE)
        rejected = True

    if (
        filters.word_count_min is not None
        and filters.word_count_max is not None
        and filters.word_count_min > filters.word_count_max
    ):
        issues.append(WORD_COUNT_ISSUE)
        rejected = True

    if filters.tags is not None:
        tags, dropped = _clean_labels(filters.tags)
        if dropped:
            issues.append(TAGS_ISSUE)
        updates["tags"] = tags

    if filters.categories is not None:
        categories, dropped = _clean_labels(filters.categories)
        if dropped:
            issues.append(CATEGORIES_ISSUE)
        updates["categories"] = categories

    if issues:
        logger.debug("Filter validation issues: %s", issues)

    return FilterValidation(
        valid=not rejected,
        issues=issues,
        sanitized_filters=filters.model_copy(update=updates) if updates else filters,
    )
