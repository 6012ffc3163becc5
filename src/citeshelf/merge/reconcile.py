"""Merge per-source entry lists into one library.

Keys are counted across all sources first. Every entry whose key occurs
more than once is replaced by a copy keyed ``"<citekey>@<source name>"``, so
colliding entries survive side by side instead of overwriting each other.
Entries with unique keys are inserted unchanged.

A composite key can still collide when one source repeats a key. Those
residual collisions are settled by the merge strategy.
"""

from collections import Counter
from collections.abc import Mapping, Sequence

from citeshelf.merge.models import KeyCollision, MergeReport
from citeshelf.models import Entry, Library, MergeStrategy

__all__ = ["COMPOSITE_KEY_SEPARATOR", "composite_key", "merge_sources", "reconcile"]

COMPOSITE_KEY_SEPARATOR = "@"


def composite_key(citekey: str, source_name: str) -> str:
    """Build the key used for a colliding citekey of ``source_name``."""
    return f"{citekey}{COMPOSITE_KEY_SEPARATOR}{source_name}"


def reconcile(
    per_source: Mapping[str, Sequence[Entry]],
    strategy: MergeStrategy | str = MergeStrategy.LAST_WINS,
) -> MergeReport:
    """Merge entries of every source, rewriting colliding keys.

    Parameters
    ----------
    per_source : Mapping[str, Sequence[Entry]]
        Entries keyed by source name, in source order.
    strategy : MergeStrategy | str, optional
        Policy for residual collisions. ``FIRST_WINS`` keeps the first
        occurrence; ``LAST_WINS`` and ``MOST_RECENT`` keep the last.

    Returns
    -------
    MergeReport
        Library plus collision diagnostics.
    """
    strategy = MergeStrategy(strategy)
    counts = Counter(entry.id for entries in per_source.values() for entry in entries)

    holders: dict[str, list[str]] = {}
    merged: dict[str, Entry] = {}
    residual: dict[str, None] = {}

    for source_name, entries in per_source.items():
        for entry in entries:
            if counts[entry.id] > 1:
                sources = holders.setdefault(entry.id, [])
                if source_name not in sources:
                    sources.append(source_name)
                entry = entry.with_composite_key(source_name)

            key = entry.id
            if key in merged:
                residual[key] = None
                if strategy is MergeStrategy.FIRST_WINS:
                    continue
            merged[key] = entry

    collisions = [
        KeyCollision(citekey=key, sources=tuple(sources), occurrences=counts[key])
        for key, sources in holders.items()
    ]
    return MergeReport(
        library=Library(merged),
        strategy=strategy,
        collisions=collisions,
        residual_collisions=list(residual),
        entries_in=sum(counts.values()),
    )


def merge_sources(
    per_source: Mapping[str, Sequence[Entry]],
    strategy: MergeStrategy | str = MergeStrategy.LAST_WINS,
) -> Library:
    """Merge entries of every source into a library.

    See :func:`reconcile` for the collision rules.
    """
    return reconcile(per_source, strategy).library
