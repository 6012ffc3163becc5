"""Library orchestrator.

One load cycle:

    cancel previous cycle -> LOADING -> recreate sources -> load all sources
    concurrently (failures become values) -> race against timeout and
    cancellation -> merge successes -> rebuild search index -> SUCCESS

If every source fails, or the cycle times out, the state becomes ERROR, the
previous library stays in place and a retry is scheduled with exponential
backoff. A cycle superseded by a newer ``load()`` publishes nothing.
"""

import asyncio
import time
import traceback
from collections.abc import Callable, Coroutine, Sequence
from dataclasses import dataclass
from typing import Any

from citeshelf.audit import AuditLogger
from citeshelf.engine.config import DatabaseConfig, LibraryConfig, SourceKind
from citeshelf.engine.events import LOAD_COMPLETE, LOAD_START, STATE_CHANGED, EventChannel
from citeshelf.errors import (
    AllSourcesFailedError,
    ConfigurationError,
    LoadTimeoutError,
)
from citeshelf.merge import MergeReport, reconcile
from citeshelf.models import Entry, Library, LibraryState, LoadingStatus, LoadProgress
from citeshelf.parse import ParseWorkerChannel
from citeshelf.search import SearchService
from citeshelf.sources import DataSource, LocalFileSource, VaultFileSource, VaultStorage
from citeshelf.utils import CancellationToken, Debouncer, utc_now

__all__ = ["LibraryService", "SourceOutcome", "SourceFactory"]

SourceFactory = Callable[[str, DatabaseConfig], DataSource]


@dataclass(frozen=True)
class SourceOutcome:
    """Result of loading one source within a cycle.

    Attributes
    ----------
    source : DataSource
        The loaded source.
    entries : list[Entry] | None
        Entries on success.
    error : Exception | None
        Failure cause; None on success.
    duration_seconds : float
        Time spent loading.
    """

    source: DataSource
    entries: list[Entry] | None = None
    error: Exception | None = None
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


class LibraryService:
    """Load, merge, index and watch a configured set of databases.

    Parameters
    ----------
    config : LibraryConfig
        Databases and loading policy.
    events : EventChannel | None, optional
        Channel receiving ``library-load-start``, ``library-load-complete``
        and ``library-state-changed``. A private channel is created when
        omitted.
    worker : ParseWorkerChannel | None, optional
        Parse channel shared by all sources. A private channel, closed by
        :meth:`dispose`, is created when omitted.
    search_service : SearchService | None, optional
        Index rebuilt after every successful load. Defaults to one writing
        to ``logger``.
    logger : AuditLogger | None, optional
        Audit logger; nothing is logged when omitted.
    source_factory : SourceFactory | None, optional
        Builds a source from ``(source id, database config)``.
    vault : VaultStorage | None, optional
        Storage for ``vault-file`` databases.
    """

    def __init__(
        self,
        config: LibraryConfig,
        *,
        events: EventChannel | None = None,
        worker: ParseWorkerChannel | None = None,
        search_service: SearchService | None = None,
        logger: AuditLogger | None = None,
        source_factory: SourceFactory | None = None,
        vault: VaultStorage | None = None,
    ) -> None:
        self.config = config
        self.events = events if events is not None else EventChannel()
        self._owns_worker = worker is None
        self.worker = worker if worker is not None else ParseWorkerChannel()
        self.logger = logger
        self.search_service = (
            search_service if search_service is not None else SearchService(logger=logger)
        )
        self.vault = vault
        self._source_factory = source_factory or self._create_source

        self._sources: list[DataSource] = []
        self._library: Library | None = None
        self._state = LibraryState()
        self.last_report: MergeReport | None = None

        self._token: CancellationToken | None = None
        self._cycle = 0
        self._retry_attempt = 0
        self._retry_handle: asyncio.TimerHandle | None = None
        self._reload_debouncer: Debouncer | None = None
        self._background: set[asyncio.Task[Any]] = set()
        self._disposed = False

    @property
    def state(self) -> LibraryState:
        """Current state snapshot."""
        return self._state

    @property
    def library(self) -> Library | None:
        """Library of the last successful load, None before the first one."""
        return self._library

    @property
    def is_loading(self) -> bool:
        return self._state.status is LoadingStatus.LOADING

    @property
    def retry_attempt(self) -> int:
        """Consecutive failed cycles since the last success."""
        return self._retry_attempt

    @property
    def retry_pending(self) -> bool:
        return self._retry_handle is not None

    def get_sources(self) -> list[DataSource]:
        """Sources of the current cycle, in configuration order."""
        return list(self._sources)

    async def load(self) -> Library | None:
        """Run one load cycle.

        Returns
        -------
        Library | None
            The new library, or None if the cycle failed or was superseded
            by a newer call.

        Raises
        ------
        RuntimeError
            If the service has been disposed.
        """
        if self._disposed:
            raise RuntimeError("LibraryService is disposed")

        if self._token is not None:
            self._token.cancel("Superseded by a newer load")
        self._cancel_retry()
        if self._reload_debouncer is not None:
            self._reload_debouncer.cancel()

        token = CancellationToken()
        self._token = token
        self._cycle += 1
        started = time.perf_counter()

        databases = self.config.databases
        if not databases:
            self._fail(ConfigurationError("No databases configured"), started, retry=False)
            return None

        total = len(databases)
        self._set_state(
            LibraryState(
                status=LoadingStatus.LOADING,
                progress=LoadProgress(0, total),
                last_loaded=self._state.last_loaded,
            )
        )
        self.events.emit(LOAD_START)
        if self.logger:
            self.logger.load_started(self._cycle, [db.name for db in databases])

        self._dispose_sources()
        try:
            self._sources = [
                self._source_factory(f"source-{i}", db) for i, db in enumerate(databases)
            ]
        except ConfigurationError as e:
            self._sources = []
            self._fail(e, started, retry=False)
            return None

        finished = 0

        def advance() -> None:
            nonlocal finished
            finished += 1
            if self._token is token and self.is_loading:
                self._set_state(self._state.evolve(progress=LoadProgress(finished, total)))

        gathered = asyncio.gather(
            *(self._load_source(source, token, advance) for source in self._sources)
        )
        cancel_waiter = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait(
                {gathered, cancel_waiter},
                timeout=self.config.load_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            cancel_waiter.cancel()

        if token.cancelled or self._token is not token:
            return None

        if gathered not in done:
            # Stop waiting on stale parses; their results are discarded
            token.cancel("Load timed out")
            self._fail(LoadTimeoutError(self.config.load_timeout), started)
            return None

        outcomes: list[SourceOutcome] = gathered.result()
        self._log_outcomes(outcomes)

        failures = [o for o in outcomes if not o.ok]
        successes = [o for o in outcomes if o.ok]
        failed_names = tuple(o.source.name for o in failures)

        if not successes:
            error = AllSourcesFailedError(
                [(o.source.name, o.error) for o in failures if o.error is not None]
            )
            self._fail(error, started, failed_sources=failed_names)
            return None

        try:
            report = reconcile(
                {o.source.name: o.entries or [] for o in successes},
                self.config.merge_strategy,
            )
            self.search_service.build_index(report.library.entries.values())
        except Exception as e:
            if self.logger:
                self.logger.error(type(e).__name__, str(e), traceback=traceback.format_exc())
            self._fail(e, started, failed_sources=failed_names)
            return None

        library = report.library
        self._library = library
        self.last_report = report
        self._retry_attempt = 0
        self._set_state(
            LibraryState(
                status=LoadingStatus.SUCCESS,
                last_loaded=utc_now(),
                failed_sources=failed_names,
            )
        )
        self.events.emit(LOAD_COMPLETE)
        if self.logger:
            self.logger.load_finished(
                "success",
                time.perf_counter() - started,
                entries=library.size,
                failed_sources=failed_names,
                collisions=len(report.collisions),
            )

        self.init_watcher()
        return library

    async def _load_source(
        self,
        source: DataSource,
        token: CancellationToken,
        on_done: Callable[[], None],
    ) -> SourceOutcome:
        started = time.perf_counter()
        try:
            entries = await source.load(token)
        except Exception as e:
            outcome = SourceOutcome(source, error=e, duration_seconds=time.perf_counter() - started)
        else:
            outcome = SourceOutcome(
                source, entries=entries, duration_seconds=time.perf_counter() - started
            )
        on_done()
        return outcome

    def _log_outcomes(self, outcomes: Sequence[SourceOutcome]) -> None:
        if not self.logger:
            return
        for outcome in outcomes:
            if outcome.error is not None:
                self.logger.source_failed(outcome.source.name, outcome.error)
            else:
                self.logger.source_loaded(
                    outcome.source.name,
                    len(outcome.entries or []),
                    outcome.duration_seconds,
                    sha256=getattr(outcome.source, "last_digest", None),
                )

    def _fail(
        self,
        error: Exception,
        started: float,
        *,
        retry: bool = True,
        failed_sources: tuple[str, ...] = (),
    ) -> None:
        self._set_state(
            LibraryState(
                status=LoadingStatus.ERROR,
                error=error,
                last_loaded=self._state.last_loaded,
                failed_sources=failed_sources,
            )
        )
        if self.logger:
            self.logger.load_finished(
                "error", time.perf_counter() - started, failed_sources=failed_sources
            )
            self.logger.error(type(error).__name__, str(error))

        if retry:
            self._schedule_retry()
        if self._sources:
            self.init_watcher()

    def _schedule_retry(self) -> None:
        self._retry_attempt += 1
        attempt = self._retry_attempt
        if attempt > self.config.max_retries:
            return

        delay = self.config.retry_delay(attempt)
        if self.logger:
            self.logger.retry_scheduled(attempt, delay)
        loop = asyncio.get_running_loop()
        self._retry_handle = loop.call_later(delay, self._run_retry)

    def _run_retry(self) -> None:
        self._retry_handle = None
        self._spawn(self.load())

    def _cancel_retry(self) -> None:
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None

    def init_watcher(self) -> None:
        """Reload the library, debounced, whenever a source changes.

        Sources already being watched are left alone. A source whose watcher
        cannot be installed is logged and skipped.
        """
        if self._disposed:
            return
        if self._reload_debouncer is None:
            self._reload_debouncer = Debouncer(
                self._on_source_changed,
                self.config.debounce_delay,
                asyncio.get_running_loop(),
            )

        for source in self._sources:
            if getattr(source, "watching", False):
                continue
            try:
                source.watch(self._reload_debouncer.trigger)
            except OSError as e:
                if self.logger:
                    self.logger.error(type(e).__name__, str(e), source=source.name)

    def _on_source_changed(self) -> None:
        if self._disposed:
            return
        if self.logger:
            self.logger.event("watch_triggered")
        self._spawn(self.load())

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task[Any]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None and self.logger:
            self.logger.error(type(error).__name__, str(error))

    def _set_state(self, state: LibraryState) -> None:
        self._state = state
        self.events.emit(STATE_CHANGED, state)

    def _create_source(self, source_id: str, db: DatabaseConfig) -> DataSource:
        if db.source is SourceKind.VAULT_FILE:
            if self.vault is None:
                raise ConfigurationError(
                    f"Database {db.name!r} reads from a vault but no vault is configured"
                )
            return VaultFileSource(
                source_id,
                db.name,
                db.path,
                db.format,
                self.worker,
                self.vault,
                debounce_delay=self.config.debounce_delay,
                logger=self.logger,
            )
        return LocalFileSource(
            source_id,
            db.name,
            db.path,
            db.format,
            self.worker,
            self.config.base_dir,
            debounce_delay=self.config.debounce_delay,
            logger=self.logger,
        )

    def _dispose_sources(self) -> None:
        sources, self._sources = self._sources, []
        for source in sources:
            source.dispose()

    def dispose(self) -> None:
        """Cancel the running cycle and release timers, watchers and the worker."""
        if self._disposed:
            return
        self._disposed = True

        if self._token is not None:
            self._token.cancel("Library disposed")
        self._cancel_retry()
        if self._reload_debouncer is not None:
            self._reload_debouncer.close()
            self._reload_debouncer = None
        self._dispose_sources()

        for task in list(self._background):
            task.cancel()
        if self._owns_worker:
            self.worker.close()

    async def __aenter__(self) -> "LibraryService":
        return self

    async def __aexit__(self, *args: Any) -> None:
        self.dispose()

    def __repr__(self) -> str:
        return (
            f"LibraryService(databases={len(self.config.databases)}, "
            f"status={self._state.status.value!r})"
        )

