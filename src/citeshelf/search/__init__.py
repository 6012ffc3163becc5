"""Full-text search over library entries (Whoosh, in memory)."""

from citeshelf.search.index import DEFAULT_LIMIT, FIELD_BOOSTS, SearchService

__all__ = ["DEFAULT_LIMIT", "FIELD_BOOSTS", "SearchService"]
