"""Snippet selection and term highlighting for keyword results.

Both functions work on the raw note content and the (re-sanitised) query,
so they can run on index output, cached output, or anything in between.
"""

from __future__ import annotations

import re

from notesearch.search.sanitizer import extract_query_terms

ELLIPSIS = "..."
WINDOW_STEP = 50
# A word-boundary cut is only taken inside the last 20% of the window
WORD_BREAK_RATIO = 0.8


def generate_snippet(content: str, query: str, max_length: int = 150) -> str:
    """Pick the ``max_length`` window of *content* densest in query terms.

    Windows start every 50 characters; the first window containing the most
    distinct terms (case-insensitive substring match) wins. A window that ends
    mid-content is cut back to its last space when that space falls in the
    final 20% of the window, and gets an ellipsis either way.

    The result is never longer than ``max_length + 3``.

    Raises:
        ValueError: If *max_length* is not positive.
    """
    if max_length < 1:
        raise ValueError("max_length must be positive")

    terms = extract_query_terms(query)
    if not terms:
        return content[:max_length] + (ELLIPSIS if len(content) > max_length else "")

    lowered = content.lower()
    best_index = 0
    best_matches = 0
    for start in range(0, len(content) - max_length + 1, WINDOW_STEP):
        window = lowered[start : start + max_length]
        matches = sum(1 for term in terms if term in window)
        if matches > best_matches:
            best_matches = matches
            best_index = start

    snippet = content[best_index : best_index + max_length]
    if len(snippet) == max_length and best_index + max_length < len(content):
        last_space = snippet.rfind(" ")
        if last_space > max_length * WORD_BREAK_RATIO:
            snippet = snippet[:last_space]
        snippet += ELLIPSIS
    return snippet


def _terms_pattern(terms: list[str]) -> re.Pattern[str]:
    # Longest first so a term never loses to one of its own prefixes
    alternatives = "|".join(re.escape(term) for term in sorted(terms, key=len, reverse=True))
    return re.compile(rf"\b(?:{alternatives})\b", re.IGNORECASE)


def highlight_terms(
    content: str,
    query: str,
    start_tag: str = "<mark>",
    end_tag: str = "</mark>",
) -> str:
    """Wrap every whole-word, case-insensitive query term occurrence in tags.

    All terms are matched in a single pass over the original content, so tags
    inserted for one term are never re-scanned by another (no nesting, no
    matches inside the tags themselves). Terms of two characters or fewer
    are ignored; with no qualifying term the content is returned unchanged.
    """
    terms = extract_query_terms(query)
    if not terms:
        return content
    return _terms_pattern(terms).sub(lambda m: f"{start_tag}{m.group(0)}{end_tag}", content)
