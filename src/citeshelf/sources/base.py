"""Data source protocol and the shared file-source load pipeline.

A source turns one configured database into a list of entries:

    integrity check -> decode -> parse (worker channel) -> adapt

and owns at most one change watcher whose events are debounced before the
registered callback runs on the event loop.
"""

import asyncio
import warnings
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Protocol, runtime_checkable

from citeshelf.adapters import adapt_records
from citeshelf.audit import AuditLogger
from citeshelf.errors import ParseError
from citeshelf.models import DatabaseFormat, Entry
from citeshelf.parse import ParseWorkerChannel, decode_bytes
from citeshelf.utils import CancellationToken, Debouncer, calculate_digest

__all__ = ["DataSource", "FileSource", "DEFAULT_DEBOUNCE_DELAY"]

DEFAULT_DEBOUNCE_DELAY = 1.0


@runtime_checkable
class DataSource(Protocol):
    """Capability object for one configured database."""

    id: str
    name: str

    async def load(self, token: CancellationToken | None = None) -> list[Entry]: ...

    def watch(self, callback: Callable[[], object]) -> None: ...

    def dispose(self) -> None: ...


class FileSource(ABC):
    """Base class for sources backed by a single database file.

    Subclasses provide the byte-level read (with its integrity check) and the
    platform watcher; loading, debouncing and lifecycle live here.

    Attributes
    ----------
    id : str
        Source identifier, unique within a library.
    name : str
        Configured database name, used in composite keys.
    format : DatabaseFormat
        Declared database format.
    worker : ParseWorkerChannel
        Channel running the parses.
    debounce_delay : float
        Quiet period before a change notification fires.
    last_digest : str | None
        Digest of the content parsed by the last successful load.
    last_warnings : list[str]
        Parser warnings of the last successful load.
    """

    def __init__(
        self,
        id: str,
        name: str,
        fmt: DatabaseFormat | str,
        worker: ParseWorkerChannel,
        *,
        debounce_delay: float = DEFAULT_DEBOUNCE_DELAY,
        logger: AuditLogger | None = None,
    ) -> None:
        self.id = id
        self.name = name
        self.format = DatabaseFormat(fmt)
        self.worker = worker
        self.debounce_delay = debounce_delay
        self.logger = logger
        self.last_digest: str | None = None
        self.last_warnings: list[str] = []
        self._debouncer: Debouncer | None = None

    @property
    @abstractmethod
    def location(self) -> str:
        """Human-readable location of the database, used in messages."""

    @abstractmethod
    async def read_bytes(self) -> bytes:
        """Read the whole database.

        Raises
        ------
        IntegrityError
            If the file is missing or empty.
        """

    @abstractmethod
    def _start_watcher(self, notify: Callable[[], None]) -> None:
        """Install the platform watcher; ``notify`` may be called from any thread."""

    @abstractmethod
    def _stop_watcher(self) -> None:
        """Remove the platform watcher, if installed."""

    async def load(self, token: CancellationToken | None = None) -> list[Entry]:
        """Load and normalize every entry of the database.

        Parameters
        ----------
        token : CancellationToken | None, optional
            Token of the load cycle; checked between stages.

        Returns
        -------
        list[Entry]
            Entries in database order.

        Raises
        ------
        IntegrityError
            If the file is missing or empty.
        ParseError
            If the database cannot be parsed.
        CancellationError
            If ``token`` fired during the load.
        """
        if token is not None:
            token.raise_if_cancelled()

        file_bytes = await self.read_bytes()
        if token is not None:
            token.raise_if_cancelled()

        try:
            result = await self.worker.submit(decode_bytes(file_bytes), self.format, token)
        except ParseError as e:
            raise ParseError(
                f"Failed to parse {self.location}: {e}",
                source=self.location,
                errors=e.errors,
                warnings=e.warnings,
            ) from e

        entries = adapt_records(result.records, self.format)
        self.last_digest = calculate_digest(file_bytes)
        self.last_warnings = list(result.warnings)
        if self.logger is not None:
            self.logger.parse_warnings(self.name, result.warnings)
        return entries

    @property
    def watching(self) -> bool:
        return self._debouncer is not None

    def watch(self, callback: Callable[[], object]) -> None:
        """Call ``callback`` once per burst of changes to the database.

        Must be called from a running event loop; ``callback`` runs on that
        loop. Calling ``watch`` again before :meth:`dispose` warns and keeps
        the existing watcher.

        Parameters
        ----------
        callback : Callable[[], object]
            Invoked with no arguments after ``debounce_delay`` seconds
            without further changes.
        """
        if self._debouncer is not None:
            warnings.warn(
                f"Source {self.name!r} is already watched; dispose() it before watching again",
                RuntimeWarning,
                stacklevel=2,
            )
            return

        debouncer = Debouncer(callback, self.debounce_delay, asyncio.get_running_loop())
        self._debouncer = debouncer
        try:
            self._start_watcher(debouncer.trigger_threadsafe)
        except Exception:
            self._debouncer = None
            debouncer.close()
            raise

    def dispose(self) -> None:
        """Cancel a pending notification and close the watcher."""
        if self._debouncer is not None:
            self._debouncer.close()
            self._debouncer = None
        self._stop_watcher()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r}, name={self.name!r}, location={self.location!r})"
