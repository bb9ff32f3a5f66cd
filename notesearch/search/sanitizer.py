"""Free-text query sanitisation and tsquery construction.

``sanitize_query`` is the single gate between user input and everything
downstream (cache keys, the index, snippet/highlight). It never raises;
an empty result means "no query" and is rejected by the orchestrator.
"""

from __future__ import annotations

import re
import string

from notesearch.constants import MAX_QUERY_LENGTH

_ANGLE_BRACKETS_RE = re.compile(r"[<>]")
_QUOTES_RE = re.compile(r"['\"]")
_WHITESPACE_RE = re.compile(r"\s+")
_NON_WORD_RE = re.compile(r"[^\w]")
_OR_OPERATOR_RE = re.compile(r"\sOR\s", re.IGNORECASE)

# Query words this short are noise for window selection and highlighting
MIN_TERM_LENGTH = 3


def sanitize_query(raw: str | None) -> str:
    """Strip markup and quote characters, normalise whitespace, cap length.

    Idempotent: ``sanitize_query(sanitize_query(x)) == sanitize_query(x)``.
    """
    if not raw:
        return ""
    text = _ANGLE_BRACKETS_RE.sub("", raw)
    text = _QUOTES_RE.sub("", text)
    text = _WHITESPACE_RE.sub(" ", text).strip()
    # A cut can land right after a space
    return text[:MAX_QUERY_LENGTH].rstrip()


def extract_query_terms(query: str) -> list[str]:
    """Return distinct lowercase query words longer than two characters.

    Leading/trailing punctuation is stripped from each word first, so
    ``"Learning!!"`` yields ``"learning"``. Order of first occurrence is kept.
    """
    seen: set[str] = set()
    terms: list[str] = []
    for word in sanitize_query(query).lower().split(" "):
        term = word.strip(string.punctuation)
        if len(term) >= MIN_TERM_LENGTH and term not in seen:
            seen.add(term)
            terms.append(term)
    return terms


def build_tsquery_expr(query: str) -> str:
    """Build a ``to_tsquery`` expression from a raw query.

    Words are AND-ed (``a & b``); a standalone ``OR`` anywhere in the query
    switches the whole expression to OR (``a | b``). Non-word characters are
    removed from every word so the expression cannot carry tsquery operators.

    Returns:
        The expression, or ``""`` when no word survives.
    """
    sanitized = sanitize_query(query)
    use_or = bool(_OR_OPERATOR_RE.search(sanitized))

    words: list[str] = []
    for word in sanitized.split(" "):
        cleaned = _NON_WORD_RE.sub("", word)
        if not cleaned:
            continue
        if use_or and cleaned.upper() == "OR":
            continue
        words.append(cleaned)

    if not words:
        return ""
    return (" | " if use_or else " & ").join(words)
