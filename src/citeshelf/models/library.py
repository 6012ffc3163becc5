"""Library, load state and merge policy models."""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, replace
from datetime import datetime
from enum import StrEnum
from types import MappingProxyType

from citeshelf.models.entry import Entry

__all__ = [
    "Library",
    "LibraryState",
    "LoadingStatus",
    "LoadProgress",
    "MergeStrategy",
]


class MergeStrategy(StrEnum):
    """Policy for residual key collisions across sources.

    Attributes
    ----------
    LAST_WINS : str
        Later sources override earlier ones.
    FIRST_WINS : str
        The first occurrence of a key is kept.
    MOST_RECENT : str
        Most recently modified source wins. Sources do not report
        modification times yet, so this behaves like ``LAST_WINS``.
    """

    LAST_WINS = "last-wins"
    FIRST_WINS = "first-wins"
    MOST_RECENT = "most-recent"


class LoadingStatus(StrEnum):
    """Library loading status.

    Attributes
    ----------
    IDLE : str
        Nothing loaded yet.
    LOADING : str
        A load cycle is running.
    SUCCESS : str
        The last load cycle produced a library.
    ERROR : str
        The last load cycle failed.
    """

    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class Library:
    """Immutable mapping from entry id to entry, built once per load cycle.

    Attributes
    ----------
    entries : Mapping[str, Entry]
        Read-only view of the entries keyed by ``Entry.id``.
    """

    __slots__ = ("_entries",)

    def __init__(self, entries: Mapping[str, Entry]) -> None:
        self._entries = MappingProxyType(dict(entries))

    @property
    def entries(self) -> Mapping[str, Entry]:
        return self._entries

    @property
    def size(self) -> int:
        """Number of entries in the library."""
        return len(self._entries)

    def get(self, key: str) -> Entry | None:
        return self._entries.get(key)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __repr__(self) -> str:
        return f"Library(size={self.size})"


@dataclass(frozen=True)
class LoadProgress:
    """Number of sources finished out of the total in the running cycle."""

    current: int
    total: int


@dataclass(frozen=True)
class LibraryState:
    """Snapshot of the library loading state.

    A new instance is published on every transition; instances are never
    mutated.

    Attributes
    ----------
    status : LoadingStatus
        Current status.
    progress : LoadProgress | None
        Source progress while loading.
    error : BaseException | None
        Cause of the failure when ``status`` is ``ERROR``.
    last_loaded : datetime | None
        Time of the last successful load.
    failed_sources : tuple[str, ...]
        Sources excluded from the last successful load because they failed.
    """

    status: LoadingStatus = LoadingStatus.IDLE
    progress: LoadProgress | None = None
    error: BaseException | None = None
    last_loaded: datetime | None = None
    failed_sources: tuple[str, ...] = ()

    @property
    def message(self) -> str | None:
        """Human-readable error message, if any."""
        return str(self.error) if self.error is not None else None

    def evolve(self, **changes: object) -> "LibraryState":
        """Return a copy with ``changes`` applied."""
        return replace(self, **changes)  # type: ignore[arg-type]
