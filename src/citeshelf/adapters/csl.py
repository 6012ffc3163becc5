"""CSL-JSON entry adapter.

Reference: https://citeproc-js.readthedocs.io/en/latest/csl-json/markup.html
"""

from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Self

from citeshelf.adapters._helpers import (
    entry_to_dict,
    join_names,
    render_csl_name,
    safe_date,
    to_int,
)
from citeshelf.models import Author

__all__ = ["CSLEntry"]


@dataclass(frozen=True)
class CSLEntry:
    """Entry backed by one CSL-JSON reference object.

    Attributes
    ----------
    data : Mapping[str, Any]
        Raw CSL-JSON object; must contain a string ``id``.
    source_database : str | None
        Owning source, set when the entry was re-keyed.
    composite_citekey : str | None
        ``"<citekey>@<source>"`` when the citekey collided across sources.
    """

    data: Mapping[str, Any]
    source_database: str | None = None
    composite_citekey: str | None = None

    def _get(self, key: str) -> str | None:
        value = self.data.get(key)
        return None if value is None else str(value)

    @property
    def id(self) -> str:
        return self.composite_citekey or self.citekey

    @property
    def citekey(self) -> str:
        return str(self.data["id"])

    @property
    def type(self) -> str:
        return str(self.data.get("type", ""))

    @property
    def title(self) -> str | None:
        return self._get("title")

    @property
    def title_short(self) -> str | None:
        return self._get("title-short")

    @property
    def author(self) -> list[Author] | None:
        names = self.data.get("author")
        if names is None:
            return None
        return [
            Author(given=n.get("given"), family=n.get("family"), literal=n.get("literal"))
            for n in names
            if isinstance(n, Mapping)
        ]

    @property
    def author_string(self) -> str | None:
        authors = self.data.get("author")
        if authors is not None:
            return join_names(render_csl_name(a) for a in authors if isinstance(a, Mapping))
        editors = self.data.get("editor")
        if editors is not None:
            return join_names(
                (render_csl_name(e) for e in editors if isinstance(e, Mapping)), editors=True
            )
        return None

    def _date_parts(self) -> list[Any] | None:
        issued = self.data.get("issued")
        if not isinstance(issued, Mapping):
            return None
        parts = issued.get("date-parts")
        if not parts or not isinstance(parts, list) or not isinstance(parts[0], list):
            return None
        return parts[0] or None

    @property
    def year(self) -> int | None:
        # Only the year component is consulted; month and day never shift it.
        parts = self._date_parts()
        if parts:
            year = to_int(parts[0])
            if year is not None:
                return year
        issued = self.issued_date
        return issued.year if issued else None

    @property
    def issued_date(self) -> date | None:
        parts = self._date_parts()
        if not parts:
            return None
        padded = [to_int(p) for p in parts[:3]] + [None, None]
        return safe_date(padded[0], padded[1], padded[2])

    @property
    def abstract(self) -> str | None:
        return self._get("abstract")

    @property
    def doi(self) -> str | None:
        return self._get("DOI")

    @property
    def url(self) -> str | None:
        return self._get("URL")

    @property
    def note(self) -> str | None:
        return self._get("note")

    @property
    def publisher(self) -> str | None:
        return self._get("publisher")

    @property
    def publisher_place(self) -> str | None:
        return self._get("publisher-place")

    @property
    def container_title(self) -> str | None:
        return self._get("container-title")

    @property
    def page(self) -> str | None:
        return self._get("page")

    @property
    def volume(self) -> str | None:
        return self._get("volume")

    @property
    def series(self) -> str | None:
        return self._get("collection-title")

    @property
    def language(self) -> str | None:
        return self._get("language")

    @property
    def source(self) -> str | None:
        return self._get("source")

    @property
    def event_place(self) -> str | None:
        return self._get("event-place")

    @property
    def keywords(self) -> list[str] | None:
        raw = self._get("keyword")
        if raw is None:
            return None
        return [k.strip() for k in raw.split(",")]

    @property
    def files(self) -> list[str] | None:
        return None

    @property
    def eprint(self) -> str | None:
        return None

    @property
    def eprinttype(self) -> str | None:
        return None

    @property
    def zotero_id(self) -> str | None:
        return self._get("zotero-key")

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
