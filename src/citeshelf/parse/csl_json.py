"""CSL-JSON parser.

The document must be a JSON array of reference objects, each with a string
``id``. Anything else at the top level is fatal; bad items are skipped.
"""

import json

from citeshelf.parse.base import ParseResult, RawRecord


def parse_csl_json(raw_text: str) -> ParseResult:
    """Parse a CSL-JSON document.

    Parameters
    ----------
    raw_text : str
        Document text.

    Returns
    -------
    ParseResult
        Records, warnings, and errors.
    """
    warnings: list[str] = []
    records: list[RawRecord] = []

    try:
        document = json.loads(raw_text)
    except json.JSONDecodeError as e:
        return ParseResult([], [], [f"Line {e.lineno}, column {e.colno}: {e.msg}"])

    if not isinstance(document, list):
        return ParseResult(
            [], [], [f"Expected a JSON array of references, got {type(document).__name__}"]
        )

    for index, item in enumerate(document):
        if not isinstance(item, dict):
            warnings.append(f"Item {index}: expected an object, got {type(item).__name__}")
            continue
        item_id = item.get("id")
        if isinstance(item_id, int | float) and not isinstance(item_id, bool):
            item = {**item, "id": str(item_id)}
        elif not isinstance(item_id, str) or not item_id:
            warnings.append(f"Item {index}: missing citekey 'id'")
            continue
        records.append(item)

    return ParseResult(records, warnings, [])
