"""Raw database parsing.

Supported formats:
- CSL-JSON (``csl-json``) - JSON array of reference objects
- BibLaTeX (``biblatex``) - ``.bib`` text

Main entry points:
- parse_database: Parse raw text of a declared format
- ParseWorkerChannel: Run parses off the event loop, one at a time
"""

from citeshelf.parse.base import ParseResult, decode_bytes
from citeshelf.parse.dispatch import get_parser_for_format, parse_database
from citeshelf.parse.worker import ParseWorkerChannel

__all__ = [
    "ParseResult",
    "ParseWorkerChannel",
    "decode_bytes",
    "get_parser_for_format",
    "parse_database",
]
