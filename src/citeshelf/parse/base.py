"""Base types and utilities for database parsers."""

from collections.abc import Callable
from typing import Any, NamedTuple

RawRecord = dict[str, Any]


class ParseResult(NamedTuple):
    """Result of parsing a raw database.

    Supports tuple unpacking: ``records, warnings, errors = parse_bibtex(...)``.

    Attributes
    ----------
    records : list[RawRecord]
        Raw records, ready for a format adapter.
    warnings : list[str]
        Non-fatal per-record messages.
    errors : list[str]
        Fatal messages; a non-empty list aborts the whole batch.
    """

    records: list[RawRecord]
    warnings: list[str]
    errors: list[str]


ParserFn = Callable[[str], ParseResult]


def detect_encoding(file_bytes: bytes) -> str:
    """Detect encoding of file bytes using deterministic strategy.

    Parameters
    ----------
    file_bytes : bytes
        Complete file content as bytes.

    Returns
    -------
    str
        Detected encoding (utf-8-sig, utf-8 or latin-1).
    """
    if file_bytes.startswith(b"\xef\xbb\xbf"):
        return "utf-8-sig"

    try:
        file_bytes.decode("utf-8")
        return "utf-8"
    except UnicodeDecodeError:
        pass

    return "latin-1"


def normalize_line_endings(content: str) -> str:
    """Normalize line endings to LF.

    Parameters
    ----------
    content : str
        Text content with potentially mixed line endings.

    Returns
    -------
    str
        Text with normalized line endings (\\n only).
    """
    content = content.replace("\r\n", "\n")
    return content.replace("\r", "\n")


def decode_bytes(file_bytes: bytes) -> str:
    """Decode raw file bytes to text with normalized line endings."""
    return normalize_line_endings(file_bytes.decode(detect_encoding(file_bytes)))
