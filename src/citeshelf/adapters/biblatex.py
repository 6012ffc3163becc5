"""BibLaTeX entry adapter.

Raw records come from :func:`citeshelf.parse.bibtex.parse_bibtex` and have
the shape::

    {
        "key": "citekey",
        "type": "article",
        "fields": {"title": ["..."], "note": ["...", "..."]},
        "creators": {"author": [{"firstName": ..., "lastName": ...}]},
    }
"""

from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Self

from citeshelf.adapters._helpers import (
    convert_note_links,
    entry_to_dict,
    join_names,
    parse_iso_date,
    render_biblatex_name,
    to_int,
    year_from_date_string,
)
from citeshelf.models import Author

__all__ = ["BibLaTeXEntry"]


@dataclass(frozen=True)
class BibLaTeXEntry:
    """Entry backed by one parsed BibLaTeX record.

    Attributes
    ----------
    data : Mapping[str, Any]
        Raw record with ``key``, ``type``, ``fields`` and ``creators``.
    source_database : str | None
        Owning source, set when the entry was re-keyed.
    composite_citekey : str | None
        ``"<citekey>@<source>"`` when the citekey collided across sources.
    """

    data: Mapping[str, Any]
    source_database: str | None = None
    composite_citekey: str | None = None

    @property
    def _fields(self) -> Mapping[str, Any]:
        return self.data.get("fields") or {}

    @property
    def _creators(self) -> Mapping[str, Any]:
        return self.data.get("creators") or {}

    def get_field(self, key: str) -> str | None:
        """Return the first value of a field, or None if absent."""
        values = self.get_array_field(key)
        return values[0] if values else None

    def get_array_field(self, key: str) -> list[str] | None:
        """Return every value of a field, or None if absent."""
        if key not in self._fields:
            return None
        value = self._fields[key]
        if isinstance(value, list):
            return [str(v) for v in value]
        return [str(value)]

    @property
    def id(self) -> str:
        return self.composite_citekey or self.citekey

    @property
    def citekey(self) -> str:
        return str(self.data["key"])

    @property
    def type(self) -> str:
        return str(self.data.get("type", ""))

    @property
    def title(self) -> str | None:
        return self.get_field("title")

    @property
    def title_short(self) -> str | None:
        return self.get_field("shorttitle")

    @property
    def author(self) -> list[Author] | None:
        names = self._creators.get("author")
        if names is None:
            return None
        return [
            Author(given=n.get("firstName"), family=n.get("lastName"), literal=n.get("literal"))
            for n in names
        ]

    @property
    def author_string(self) -> str | None:
        authors = self._creators.get("author")
        if authors is not None:
            return join_names(render_biblatex_name(a) for a in authors)
        editors = self._creators.get("editor")
        if editors is not None:
            return join_names((render_biblatex_name(e) for e in editors), editors=True)
        raw = self.get_array_field("author")
        return ", ".join(raw) if raw is not None else None

    @property
    def year(self) -> int | None:
        explicit = self.get_field("year")
        if explicit is not None:
            year = to_int(explicit)
            if year is not None:
                return year
        return year_from_date_string(self.get_field("date"))

    @property
    def issued_date(self) -> date | None:
        return parse_iso_date(self.get_field("date"))

    @property
    def abstract(self) -> str | None:
        return self.get_field("abstract")

    @property
    def doi(self) -> str | None:
        return self.get_field("doi")

    @property
    def url(self) -> str | None:
        return self.get_field("url")

    @property
    def note(self) -> str | None:
        notes = self.get_array_field("note")
        if not notes:
            return None
        return "\n\n".join(convert_note_links(n) for n in notes)

    @property
    def publisher(self) -> str | None:
        return self.get_field("publisher")

    @property
    def publisher_place(self) -> str | None:
        return self.get_field("location")

    @property
    def container_title(self) -> str | None:
        for key in ("booktitle", "journal", "journaltitle"):
            value = self.get_field(key)
            if value:
                return value

        eprint = self.eprint
        if not eprint:
            return None
        eprinttype = self.eprinttype
        prefix = f"{eprinttype}:" if eprinttype else ""
        primary_class = self.get_field("primaryclass")
        suffix = f" [{primary_class}]" if primary_class else ""
        return f"{prefix}{eprint}{suffix}"

    @property
    def page(self) -> str | None:
        return self.get_field("pages")

    @property
    def volume(self) -> str | None:
        return self.get_field("volume")

    @property
    def series(self) -> str | None:
        return self.get_field("series")

    @property
    def language(self) -> str | None:
        return self.get_field("language")

    @property
    def source(self) -> str | None:
        return self.get_field("source")

    @property
    def event_place(self) -> str | None:
        return self.get_field("venue") or self.get_field("location")

    @property
    def keywords(self) -> list[str] | None:
        return self.get_array_field("keywords")

    @property
    def files(self) -> list[str] | None:
        paths: list[str] = []
        for key in ("file", "files"):
            for value in self.get_array_field(key) or []:
                paths.extend(p.strip() for p in value.split(";") if p.strip())
        return paths or None

    @property
    def eprint(self) -> str | None:
        return self.get_field("eprint")

    @property
    def eprinttype(self) -> str | None:
        return self.get_field("eprinttype")

    @property
    def zotero_id(self) -> str | None:
        return self.get_field("zotero-key")

    @property
    def zotero_select_uri(self) -> str:
        return f"zotero://select/items/@{self.citekey}"

    def with_composite_key(self, source_name: str) -> Self:
        """Return a copy keyed ``"<citekey>@<source_name>"``."""
        return replace(
            self,
            source_database=source_name,
            composite_citekey=f"{self.citekey}@{source_name}",
        )

    def to_dict(self) -> dict[str, Any]:
        return entry_to_dict(self)
