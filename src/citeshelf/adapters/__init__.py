"""Format adapters turning raw parsed records into entries.

Supported formats:
- CSL-JSON (``csl-json``) -> :class:`CSLEntry`
- BibLaTeX (``biblatex``) -> :class:`BibLaTeXEntry`
"""

from collections.abc import Iterable, Mapping
from typing import Any

from citeshelf.adapters.biblatex import BibLaTeXEntry
from citeshelf.adapters.csl import CSLEntry
from citeshelf.models import DatabaseFormat, Entry

__all__ = [
    "BibLaTeXEntry",
    "CSLEntry",
    "adapt_record",
    "adapt_records",
]

_ADAPTER_MAP: dict[DatabaseFormat, type[CSLEntry] | type[BibLaTeXEntry]] = {
    DatabaseFormat.CSL_JSON: CSLEntry,
    DatabaseFormat.BIBLATEX: BibLaTeXEntry,
}


def adapt_record(record: Mapping[str, Any], fmt: DatabaseFormat | str) -> Entry:
    """Wrap one raw record with the adapter of its format.

    Parameters
    ----------
    record : Mapping[str, Any]
        Raw record produced by :func:`citeshelf.parse.parse_database`.
    fmt : DatabaseFormat | str
        Declared database format.

    Returns
    -------
    Entry
        Normalized entry.

    Raises
    ------
    ValueError
        If the format is not supported.
    """
    adapter = _ADAPTER_MAP.get(DatabaseFormat(fmt))
    if adapter is None:
        raise ValueError(f"Unsupported database format: {fmt}")
    return adapter(record)


def adapt_records(records: Iterable[Mapping[str, Any]], fmt: DatabaseFormat | str) -> list[Entry]:
    """Wrap every raw record with the adapter of ``fmt``."""
    fmt = DatabaseFormat(fmt)
    return [adapt_record(r, fmt) for r in records]
