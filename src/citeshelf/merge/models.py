"""Data models for merge results."""

from dataclasses import dataclass, field
from typing import Any

from citeshelf.models import Library, MergeStrategy

__all__ = ["KeyCollision", "MergeReport"]


@dataclass(frozen=True)
class KeyCollision:
    """A citekey that occurred more than once across sources.

    Attributes
    ----------
    citekey : str
        The colliding key.
    sources : tuple[str, ...]
        Names of the sources holding the key, in load order.
    occurrences : int
        Total number of entries with the key.
    """

    citekey: str
    sources: tuple[str, ...]
    occurrences: int


@dataclass
class MergeReport:
    """Outcome of reconciling the entries of every source.

    Attributes
    ----------
    library : Library
        Merged library.
    strategy : MergeStrategy
        Policy applied to residual collisions.
    collisions : list[KeyCollision]
        Keys that were rewritten to composite keys.
    residual_collisions : list[str]
        Final ids that still occurred more than once and were settled by
        ``strategy``.
    entries_in : int
        Number of entries received from all sources.
    """

    library: Library
    strategy: MergeStrategy
    collisions: list[KeyCollision] = field(default_factory=list)
    residual_collisions: list[str] = field(default_factory=list)
    entries_in: int = 0

    @property
    def entries_dropped(self) -> int:
        """Entries discarded while settling residual collisions."""
        return self.entries_in - self.library.size

    def to_dict(self) -> dict[str, Any]:
        """Summary for logging and JSON output."""
        return {
            "strategy": str(self.strategy),
            "entries_in": self.entries_in,
            "entries_out": self.library.size,
            "entries_dropped": self.entries_dropped,
            "collisions": [
                {"citekey": c.citekey, "sources": list(c.sources), "occurrences": c.occurrences}
                for c in self.collisions
            ],
            "residual_collisions": list(self.residual_collisions),
        }
