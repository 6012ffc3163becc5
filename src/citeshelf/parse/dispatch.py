"""Format dispatch for raw database parsing."""

from citeshelf.errors import ParseError
from citeshelf.models import DatabaseFormat
from citeshelf.parse.base import ParseResult, ParserFn
from citeshelf.parse.bibtex import parse_bibtex
from citeshelf.parse.csl_json import parse_csl_json

_PARSER_MAP: dict[DatabaseFormat, ParserFn] = {
    DatabaseFormat.CSL_JSON: parse_csl_json,
    DatabaseFormat.BIBLATEX: parse_bibtex,
}


def get_parser_for_format(fmt: DatabaseFormat | str) -> ParserFn | None:
    """Get parser function for format.

    Parameters
    ----------
    fmt : DatabaseFormat | str
        Format name (csl-json|biblatex).

    Returns
    -------
    ParserFn | None
        Parser function or None if format not supported.
    """
    try:
        return _PARSER_MAP.get(DatabaseFormat(fmt))
    except ValueError:
        return None


def parse_database(raw_text: str, fmt: DatabaseFormat | str) -> ParseResult:
    """Parse a whole database, failing on fatal errors.

    Parameters
    ----------
    raw_text : str
        Database text.
    fmt : DatabaseFormat | str
        Declared format.

    Returns
    -------
    ParseResult
        Records and non-fatal warnings; ``errors`` is always empty.

    Raises
    ------
    ParseError
        If the format is unsupported or the parser reports fatal errors.
    """
    parser = get_parser_for_format(fmt)
    if parser is None:
        raise ParseError(f"No parser available for format: {fmt}")

    result = parser(raw_text)
    if result.errors:
        raise ParseError(
            f"Fatal {fmt} parse error: {'; '.join(result.errors)}",
            errors=result.errors,
            warnings=result.warnings,
        )
    return result
