"""BibLaTeX format parser.

Entries: @<entrytype>{citekey, field = {value}, field = "value", field = 42}
Special entries (@STRING, @PREAMBLE, @COMMENT) are skipped.
Reference: http://www.bibtex.org/Format/

Problems confined to a single entry are warnings. An entry whose braces
never close swallows the rest of the file, so it is a fatal error.
"""

import re

from citeshelf.parse.base import ParseResult, RawRecord
from citeshelf.parse.names import CREATOR_FIELDS, parse_name_list, strip_braces

PARSER_NAME = "bibtex_parser"
PARSER_VERSION = "2.0.0"

ENTRY_START_PATTERN = re.compile(r"@(\w+)\s*([{(])", re.IGNORECASE)
CITEKEY_PATTERN = re.compile(r"\s*([^,\s{}()=]*)\s*(,?)")
FIELD_NAME_PATTERN = re.compile(r"([\w:.+/-]+)\s*=\s*", re.IGNORECASE)

# Values kept as written (links, paths); braces elsewhere are grouping only
VERBATIM_FIELDS = frozenset({"note", "url", "doi", "file", "files", "eprint"})
LIST_FIELDS = frozenset({"keywords"})
SPECIAL_ENTRIES = frozenset({"string", "preamble", "comment"})


def parse_bibtex(raw_text: str) -> ParseResult:
    """Parse BibLaTeX text and return raw records.

    Parameters
    ----------
    raw_text : str
        Database text with normalized line endings.

    Returns
    -------
    ParseResult
        Records, warnings, and errors.
    """
    warnings: list[str] = []
    errors: list[str] = []
    records: list[RawRecord] = []
    seen_keys: set[str] = set()

    content = raw_text
    i = 0
    while True:
        i = _next_entry_start(content, i)
        if i == -1:
            break

        line_no = _line_of(content, i)
        match = ENTRY_START_PATTERN.match(content, i)
        if not match:
            warnings.append(f"Line {line_no}: Malformed entry start: {_excerpt(content, i)}")
            i += 1
            continue

        entry_type = match.group(1).lower()
        open_pos = match.end() - 1
        closing = _find_closing_brace(content, open_pos)

        if closing == -1:
            errors.append(f"Line {line_no}: Unclosed entry @{entry_type}")
            break

        if entry_type in SPECIAL_ENTRIES:
            warnings.append(f"Line {line_no}: Skipping @{entry_type.upper()} entry")
            i = closing + 1
            continue

        body = content[open_pos + 1 : closing]
        key_match = CITEKEY_PATTERN.match(body)
        citekey = key_match.group(1) if key_match else ""
        if key_match and not key_match.group(2) and body[key_match.end() :].startswith("="):
            # "@article{title = ...}": the first token is a field name
            citekey = ""
        if not citekey:
            warnings.append(f"Line {line_no}: Entry @{entry_type} has no citekey, skipped")
            i = closing + 1
            continue

        if citekey in seen_keys:
            warnings.append(f"Line {line_no}: Duplicate citekey {citekey}")
        seen_keys.add(citekey)

        field_warnings: list[str] = []
        fields_data = _parse_fields(body[key_match.end() :], field_warnings)
        warnings.extend(f"Line {line_no}: {citekey}: {w}" for w in field_warnings)

        records.append(_build_record(entry_type, citekey, fields_data))
        i = closing + 1

    return ParseResult(records, warnings, errors)


def _next_entry_start(content: str, start: int) -> int:
    """Find the next ``@`` that begins a line (ignoring indentation)."""
    i = content.find("@", start)
    while i != -1:
        line_start = content.rfind("\n", 0, i) + 1
        if not content[line_start:i].strip():
            return i
        i = content.find("@", i + 1)
    return -1


def _line_of(content: str, pos: int) -> int:
    return content.count("\n", 0, pos) + 1


def _excerpt(content: str, pos: int) -> str:
    end = content.find("\n", pos)
    line = content[pos:] if end == -1 else content[pos:end]
    return line[:50]


def _find_closing_brace(content: str, open_pos: int) -> int:
    opener = content[open_pos]
    closer = "}" if opener == "{" else ")"
    brace_depth = 0
    in_quotes = False
    escape_next = False

    for i in range(open_pos + 1, len(content)):
        char = content[i]
        if escape_next:
            escape_next = False
            continue

        if char == "\\":
            escape_next = True
            continue

        # Quotes only delimit values at the entry's top level
        if char == '"' and brace_depth == 0:
            in_quotes = not in_quotes
        elif char == "{":
            brace_depth += 1
        elif char == "}" and brace_depth > 0:
            brace_depth -= 1
        elif char == closer and brace_depth == 0 and not in_quotes:
            return i

    return -1


def _parse_fields(content: str, warnings: list[str]) -> list[tuple[str, str]]:
    fields: list[tuple[str, str]] = []

    i = 0
    while i < len(content):
        # Skip whitespace and separators
        while i < len(content) and (content[i].isspace() or content[i] == ","):
            i += 1
        if i >= len(content):
            break

        field_match = FIELD_NAME_PATTERN.match(content, i)
        if not field_match:
            next_comma = content.find(",", i)
            warnings.append(f"Unparseable field text: {content[i:i + 30].strip()}")
            if next_comma == -1:
                break
            i = next_comma + 1
            continue

        field_name = field_match.group(1).lower()
        i = field_match.end()

        parts: list[str] = []
        while i < len(content):
            if content[i] == "{":
                value, i = _parse_braced_value(content, i)
            elif content[i] == '"':
                value, i = _parse_quoted_value(content, i)
            else:
                value, i = _parse_bare_value(content, i)
            parts.append(value)

            # BibTeX string concatenation: "a" # {b}
            while i < len(content) and content[i] in " \t\n":
                i += 1
            if i < len(content) and content[i] == "#":
                i += 1
                while i < len(content) and content[i] in " \t\n":
                    i += 1
                continue
            break

        fields.append((field_name, "".join(parts).strip()))

    return fields


def _parse_braced_value(content: str, start: int) -> tuple[str, int]:
    brace_depth = 0
    value_chars: list[str] = []
    i = start

    while i < len(content):
        char = content[i]
        if char == "{":
            brace_depth += 1
            if brace_depth > 1:
                value_chars.append(char)
        elif char == "}":
            brace_depth -= 1
            if brace_depth == 0:
                return "".join(value_chars), i + 1
            value_chars.append(char)
        else:
            value_chars.append(char)
        i += 1

    return "".join(value_chars), i


def _parse_quoted_value(content: str, start: int) -> tuple[str, int]:
    i = start + 1  # skip opening quote
    value_chars: list[str] = []
    brace_depth = 0

    while i < len(content):
        char = content[i]
        if char == "{":
            brace_depth += 1
        elif char == "}":
            brace_depth -= 1
        elif char == '"' and brace_depth == 0 and content[i - 1] != "\\":
            return "".join(value_chars), i + 1
        value_chars.append(char)
        i += 1

    return "".join(value_chars), i


def _parse_bare_value(content: str, start: int) -> tuple[str, int]:
    value_chars: list[str] = []
    i = start

    while i < len(content) and content[i] not in ",\n}#":
        value_chars.append(content[i])
        i += 1

    return "".join(value_chars).strip(), i


def _build_record(
    entry_type: str,
    citekey: str,
    fields_data: list[tuple[str, str]],
) -> RawRecord:
    fields: dict[str, list[str]] = {}
    creators: dict[str, list[dict[str, str]]] = {}

    for field_name, value in fields_data:
        if field_name in CREATOR_FIELDS:
            creators.setdefault(field_name, []).extend(parse_name_list(value))
            continue

        if field_name in VERBATIM_FIELDS:
            values = [value]
        elif field_name in LIST_FIELDS:
            values = [strip_braces(v) for v in value.split(",") if v.strip()]
        else:
            values = [strip_braces(value)]

        fields.setdefault(field_name, []).extend(values)

    return {
        "key": citekey,
        "type": entry_type,
        "fields": fields,
        "creators": creators,
    }
