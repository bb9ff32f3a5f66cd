from enum import StrEnum


class SearchQueryType(StrEnum):
    KEYWORD = "keyword"
    SEMANTIC = "semantic"
    HYBRID = "hybrid"


class SortBy(StrEnum):
    RELEVANCE = "relevance"
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    WORD_COUNT = "word_count"


class SortOrder(StrEnum):
    ASC = "asc"
    DESC = "desc"


class Importance(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Sentiment(StrEnum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class SuggestionType(StrEnum):
    HISTORY = "history"


class AnalyticsPeriod(StrEnum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


# Only keyword search is executed; the other types are accepted by the schema
# and answered with UnsupportedQueryType.
IMPLEMENTED_QUERY_TYPES: frozenset[SearchQueryType] = frozenset({SearchQueryType.KEYWORD})

MAX_QUERY_LENGTH = 500
MAX_FILTER_ITEMS = 10
MAX_TAG_LENGTH = 50
DEFAULT_SEARCH_LIMIT = 20
MAX_SEARCH_LIMIT = 50

# Execution-time buckets used by search analytics
FAST_QUERY_MS = 200
SLOW_QUERY_MS = 1000
