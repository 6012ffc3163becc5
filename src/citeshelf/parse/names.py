"""BibTeX name-list splitting.

Handles the three BibTeX name forms:
- ``First von Last``
- ``von Last, First``
- ``von Last, Jr, First``

A name wrapped entirely in braces (``{Acme Corporation}``) is kept as a
literal.
"""

import re

_AND_RE = re.compile(r"\s+and\s+", re.IGNORECASE)

# Fields whose values are name lists rather than plain text
CREATOR_FIELDS = frozenset(
    {
        "author",
        "bookauthor",
        "commentator",
        "editor",
        "editora",
        "editorb",
        "editorc",
        "foreword",
        "holder",
        "introduction",
        "translator",
    }
)


def split_top_level(text: str, pattern: re.Pattern[str]) -> list[str]:
    """Split ``text`` on ``pattern`` matches that are not nested in braces."""
    parts: list[str] = []
    depth = 0
    start = 0
    i = 0
    while i < len(text):
        char = text[i]
        if char == "{":
            depth += 1
        elif char == "}":
            depth = max(depth - 1, 0)
        elif depth == 0:
            match = pattern.match(text, i)
            if match and match.end() > i:
                parts.append(text[start:i])
                start = i = match.end()
                continue
        i += 1
    parts.append(text[start:])
    return parts


def strip_braces(value: str) -> str:
    """Remove grouping braces and collapse whitespace."""
    return " ".join(value.replace("{", "").replace("}", "").split())


def _is_von(word: str) -> bool:
    stripped = word.lstrip("{\\")
    return bool(stripped) and word[0] != "{" and stripped[0].islower()


def _split_von_last(words: list[str]) -> tuple[str | None, str | None]:
    """Split ``von Last`` words into (prefix, last)."""
    von_end = 0
    for i, word in enumerate(words[:-1]):
        if _is_von(word):
            von_end = i + 1
    prefix = " ".join(words[:von_end]) or None
    last = " ".join(words[von_end:]) or None
    return prefix, last


def parse_name(raw: str) -> dict[str, str]:
    """Parse one BibTeX name into a creator dict.

    Parameters
    ----------
    raw : str
        A single name, already split from its name list.

    Returns
    -------
    dict[str, str]
        Keys among ``firstName``, ``prefix``, ``lastName``, ``suffix`` and
        ``literal``; empty parts are omitted.
    """
    raw = " ".join(raw.split())
    if raw.startswith("{") and raw.endswith("}") and _balanced_outer(raw):
        return {"literal": strip_braces(raw)}

    comma_parts = [p.strip() for p in split_top_level(raw, re.compile(r","))]
    first: str | None = None
    prefix: str | None = None
    last: str | None = None
    suffix: str | None = None

    if len(comma_parts) == 1:
        words = split_top_level(raw, re.compile(r"\s+"))
        words = [w for w in words if w]
        if len(words) == 1:
            last = words[0]
        else:
            von_start = next((i for i, w in enumerate(words[:-1]) if _is_von(w)), None)
            if von_start is None:
                first = " ".join(words[:-1])
                last = words[-1]
            else:
                first = " ".join(words[:von_start]) or None
                prefix, last = _split_von_last(words[von_start:])
    else:
        von_last = [w for w in split_top_level(comma_parts[0], re.compile(r"\s+")) if w]
        if von_last:
            prefix, last = _split_von_last(von_last)
        if len(comma_parts) == 2:
            first = comma_parts[1]
        else:
            suffix = comma_parts[1]
            first = ", ".join(comma_parts[2:])

    name = {
        "firstName": first,
        "prefix": prefix,
        "lastName": last,
        "suffix": suffix,
    }
    return {k: strip_braces(v) for k, v in name.items() if v and strip_braces(v)}


def _balanced_outer(value: str) -> bool:
    """Return True if the first brace of ``value`` closes at its last char."""
    depth = 0
    for i, char in enumerate(value):
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return i == len(value) - 1
    return False


def parse_name_list(value: str) -> list[dict[str, str]]:
    """Split a BibTeX ``and``-separated name list into creator dicts.

    ``others`` (as in ``Smith, John and others``) is dropped.
    """
    names: list[dict[str, str]] = []
    for part in split_top_level(value, _AND_RE):
        stripped = part.strip()
        if not stripped or stripped.casefold() == "others":
            continue
        names.append(parse_name(stripped))
    return names
