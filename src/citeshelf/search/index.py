"""In-memory full-text index over library entries.

Each entry becomes one Whoosh document with its ``title``, ``author_string``,
stringified ``year`` and ``id``. Every query token is matched three ways in
every field: exactly, as a prefix, and within a bounded edit distance. Title
hits weigh more than author hits, which weigh more than year hits; citekey
hits weigh least.
"""

from collections.abc import Iterable

from whoosh.analysis import CharsetFilter, LowercaseFilter, RegexTokenizer
from whoosh.fields import TEXT, Schema
from whoosh.filedb.filestore import RamStorage
from whoosh.index import Index
from whoosh.query import FuzzyTerm, Or, Prefix, Query, Term
from whoosh.support.charset import accent_map

from citeshelf.audit import AuditLogger
from citeshelf.models import Entry

__all__ = ["SearchService", "FIELD_BOOSTS", "DEFAULT_LIMIT"]

FIELD_BOOSTS: dict[str, float] = {
    "title": 2.0,
    "author_string": 1.5,
    "year": 1.0,
    "id": 0.5,
}
PREFIX_WEIGHT = 0.5
FUZZY_WEIGHT = 0.4
FUZZY_RATIO = 0.2
MAX_EDIT_DISTANCE = 2
DEFAULT_LIMIT = 50

ANALYZER = RegexTokenizer() | LowercaseFilter() | CharsetFilter(accent_map)


def _build_schema() -> Schema:
    return Schema(
        id=TEXT(analyzer=ANALYZER, stored=True),
        title=TEXT(analyzer=ANALYZER),
        author_string=TEXT(analyzer=ANALYZER),
        year=TEXT(analyzer=ANALYZER),
    )


def edit_distance_for(token: str) -> int:
    """Maximum edit distance tolerated for ``token``."""
    return min(MAX_EDIT_DISTANCE, round(len(token) * FUZZY_RATIO))


def tokenize(text: str) -> list[str]:
    """Split ``text`` into normalized index terms."""
    return [t.text for t in ANALYZER(text)]


def build_query(tokens: Iterable[str]) -> Query | None:
    """Build the query matching any of ``tokens`` in any indexed field."""
    token_queries: list[Query] = []
    for token in tokens:
        distance = edit_distance_for(token)
        clauses: list[Query] = []
        for field, boost in FIELD_BOOSTS.items():
            clauses.append(Term(field, token, boost=boost))
            clauses.append(Prefix(field, token, boost=boost * PREFIX_WEIGHT))
            if distance > 0:
                clauses.append(
                    FuzzyTerm(
                        field,
                        token,
                        boost=boost * FUZZY_WEIGHT,
                        maxdist=distance,
                        prefixlength=0,
                    )
                )
        token_queries.append(Or(clauses))
    return Or(token_queries) if token_queries else None


class SearchService:
    """Full-text search over the current library.

    The index is rebuilt wholesale by :meth:`build_index` and swapped in by a
    single assignment; searches see either the old or the new index.
    """

    def __init__(self, logger: AuditLogger | None = None) -> None:
        self.logger = logger
        self._index: Index | None = None
        self._size = 0

    @property
    def size(self) -> int:
        """Number of indexed entries."""
        return self._size

    def build_index(self, entries: Iterable[Entry]) -> None:
        """Replace the index with one built from ``entries``.

        Parameters
        ----------
        entries : Iterable[Entry]
            Entries to index; ``Entry.id`` is the stored key.
        """
        index = RamStorage().create_index(_build_schema())
        count = 0
        with index.writer() as writer:
            for entry in entries:
                doc = {"id": entry.id}
                if entry.title:
                    doc["title"] = entry.title
                if entry.author_string:
                    doc["author_string"] = entry.author_string
                if entry.year is not None:
                    doc["year"] = str(entry.year)
                writer.add_document(**doc)
                count += 1

        self._index = index
        self._size = count
        if self.logger is not None:
            self.logger.event("index_built", data={"documents": count})

    def search(self, query: str, limit: int | None = DEFAULT_LIMIT) -> list[str]:
        """Return entry ids matching ``query``, best match first.

        Parameters
        ----------
        query : str
            Free-text query.
        limit : int | None, optional
            Maximum number of ids; None returns every match.

        Returns
        -------
        list[str]
            Matching ids. Empty for a blank query or an empty index.
        """
        index = self._index
        if index is None or self._size == 0 or not query.strip():
            return []

        whoosh_query = build_query(tokenize(query))
        if whoosh_query is None:
            return []

        with index.searcher() as searcher:
            results = searcher.search(whoosh_query, limit=limit)
            return [hit["id"] for hit in results]

    def clear(self) -> None:
        """Drop the index."""
        self._index = None
        self._size = 0
