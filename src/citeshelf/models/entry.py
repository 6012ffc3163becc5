"""Entry contract shared by every bibliographic record.

Concrete variants live in :mod:`citeshelf.adapters`; each one wraps the raw
record of a single database format and derives the public fields from it.
"""

from dataclasses import dataclass
from datetime import date
from enum import StrEnum
from typing import Any, Protocol, Self, runtime_checkable

__all__ = ["Author", "DatabaseFormat", "Entry"]


class DatabaseFormat(StrEnum):
    """Supported raw database formats.

    Attributes
    ----------
    CSL_JSON : str
        Array of CSL-JSON reference objects.
    BIBLATEX : str
        BibLaTeX ``.bib`` text.
    """

    CSL_JSON = "csl-json"
    BIBLATEX = "biblatex"


@dataclass(frozen=True)
class Author:
    """A single structured person or organization name.

    Attributes
    ----------
    given : str | None
        Given name(s).
    family : str | None
        Family name.
    literal : str | None
        Verbatim name, used for organizations.
    """

    given: str | None = None
    family: str | None = None
    literal: str | None = None


@runtime_checkable
class Entry(Protocol):
    """One normalized bibliographic reference.

    ``id`` is the key the entry is stored under in a library. It equals
    ``citekey`` unless reconciliation produced a composite key, in which case
    ``composite_citekey`` and ``source_database`` are set as well.
    """

    source_database: str | None
    composite_citekey: str | None

    @property
    def id(self) -> str: ...

    @property
    def citekey(self) -> str: ...

    @property
    def type(self) -> str: ...

    @property
    def title(self) -> str | None: ...

    @property
    def title_short(self) -> str | None: ...

    @property
    def author(self) -> list[Author] | None: ...

    @property
    def author_string(self) -> str | None: ...

    @property
    def year(self) -> int | None: ...

    @property
    def issued_date(self) -> date | None: ...

    @property
    def abstract(self) -> str | None: ...

    @property
    def doi(self) -> str | None: ...

    @property
    def url(self) -> str | None: ...

    @property
    def note(self) -> str | None: ...

    @property
    def publisher(self) -> str | None: ...

    @property
    def publisher_place(self) -> str | None: ...

    @property
    def container_title(self) -> str | None: ...

    @property
    def page(self) -> str | None: ...

    @property
    def volume(self) -> str | None: ...

    @property
    def series(self) -> str | None: ...

    @property
    def language(self) -> str | None: ...

    @property
    def source(self) -> str | None: ...

    @property
    def event_place(self) -> str | None: ...

    @property
    def keywords(self) -> list[str] | None: ...

    @property
    def files(self) -> list[str] | None: ...

    @property
    def eprint(self) -> str | None: ...

    @property
    def eprinttype(self) -> str | None: ...

    @property
    def zotero_id(self) -> str | None: ...

    @property
    def zotero_select_uri(self) -> str: ...

    def with_composite_key(self, source_name: str) -> Self: ...

    def to_dict(self) -> dict[str, Any]: ...
