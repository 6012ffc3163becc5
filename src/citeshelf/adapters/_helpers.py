"""Pure helpers shared by the format adapters."""

import re
from collections.abc import Iterable, Mapping
from dataclasses import fields, is_dataclass
from datetime import date
from typing import Any

# One match per \href{URL}{Text}; the text may hold one level of grouping braces
HREF_RE = re.compile(r"\\href\{([^}]*)\}\{((?:[^{}]|\{[^{}]*\})*)\}")
ANCHOR_RE = re.compile(r'<a href="([^"]+)">([^<]+)</a>')
LEADING_INT_RE = re.compile(r"^\s*(-?\d+)")
YEAR_PREFIX_RE = re.compile(r"^\s*(\d{4})")
ISO_DATE_RE = re.compile(r"^\s*(\d{4})(?:-(\d{1,2}))?(?:-(\d{1,2}))?")

EDITORS_SUFFIX = " (Eds.)"

# Attributes exported by Entry.to_dict(), in output order
ENTRY_EXPORT_FIELDS: tuple[str, ...] = (
    "id",
    "citekey",
    "type",
    "title",
    "title_short",
    "author_string",
    "year",
    "issued_date",
    "abstract",
    "doi",
    "url",
    "note",
    "publisher",
    "publisher_place",
    "container_title",
    "page",
    "volume",
    "series",
    "language",
    "source",
    "event_place",
    "keywords",
    "files",
    "eprint",
    "eprinttype",
    "zotero_id",
    "zotero_select_uri",
    "source_database",
    "composite_citekey",
)


def to_int(value: Any) -> int | None:
    """Interpret an int or numeric string as an integer.

    Parameters
    ----------
    value : Any
        Candidate value (int, float, numeric string, anything else).

    Returns
    -------
    int | None
        Parsed integer, or None when the value is not numeric.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        match = LEADING_INT_RE.match(value)
        if match:
            return int(match.group(1))
    return None


def safe_date(year: int | None, month: int | None = None, day: int | None = None) -> date | None:
    """Build a date with missing month/day defaulting to 1, or None if invalid."""
    if year is None:
        return None
    try:
        return date(year, month or 1, day or 1)
    except ValueError:
        return None


def parse_iso_date(value: str | None) -> date | None:
    """Parse ``YYYY[-MM[-DD]]`` prefixes as used by BibLaTeX ``date`` fields."""
    if not value:
        return None
    match = ISO_DATE_RE.match(value)
    if not match:
        return None
    year, month, day = match.groups()
    return safe_date(int(year), int(month) if month else None, int(day) if day else None)


def year_from_date_string(value: str | None) -> int | None:
    """Return the first four digits of a date string as the year."""
    if not value:
        return None
    match = YEAR_PREFIX_RE.match(value)
    return int(match.group(1)) if match else None


def join_names(names: Iterable[str], editors: bool = False) -> str:
    """Join rendered names, marking editor lists with ``(Eds.)``."""
    joined = ", ".join(names)
    return f"{joined}{EDITORS_SUFFIX}" if editors else joined


def render_csl_name(name: Mapping[str, Any]) -> str:
    """Render a CSL name object as ``literal`` or ``"given family"``."""
    literal = name.get("literal")
    if literal:
        return str(literal)
    given = name.get("given") or ""
    family = name.get("family") or ""
    return f"{given} {family}".strip()


def render_biblatex_name(name: Mapping[str, Any]) -> str:
    """Render a BibLaTeX creator as ``first prefix last suffix`` minus empty parts."""
    literal = name.get("literal")
    if literal:
        return str(literal)
    parts = (name.get("firstName"), name.get("prefix"), name.get("lastName"), name.get("suffix"))
    return " ".join(str(p) for p in parts if p)


def _href_to_markdown(match: re.Match[str]) -> str:
    label = match.group(2).replace("{", "").replace("}", "")
    return f"[{label}]({match.group(1)})"


def convert_note_links(text: str) -> str:
    """Convert inline LaTeX and HTML links in a note to Markdown links.

    Every ``\\href{URL}{Text}`` and ``<a href="URL">Text</a>`` occurrence is
    rewritten independently to ``[Text](URL)``; everything else in the line
    is left untouched. Grouping braces inside the LaTeX link text are dropped.

    Parameters
    ----------
    text : str
        Raw note text.

    Returns
    -------
    str
        Note text with Markdown links.
    """
    text = HREF_RE.sub(_href_to_markdown, text)
    return ANCHOR_RE.sub(r"[\2](\1)", text)


def entry_to_dict(entry: Any) -> dict[str, Any]:
    """Export the public attributes of an entry as JSON-ready values."""
    data: dict[str, Any] = {}
    for name in ENTRY_EXPORT_FIELDS:
        value = getattr(entry, name)
        if isinstance(value, date):
            value = value.isoformat()
        data[name] = value

    authors = entry.author
    data["author"] = (
        [{f.name: getattr(a, f.name) for f in fields(a)} for a in authors if is_dataclass(a)]
        if authors is not None
        else None
    )
    return data
