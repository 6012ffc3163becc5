"""Source reading a database file straight from the filesystem."""

import asyncio
import os
from collections.abc import Callable
from pathlib import Path

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from citeshelf.audit import AuditLogger
from citeshelf.errors import IntegrityError
from citeshelf.models import DatabaseFormat
from citeshelf.parse import ParseWorkerChannel
from citeshelf.sources.base import DEFAULT_DEBOUNCE_DELAY, FileSource

__all__ = ["LocalFileSource", "FileChangeHandler"]

CHANGE_EVENTS = frozenset({EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED})


class FileChangeHandler(FileSystemEventHandler):
    """Forward change events concerning one file.

    The observer watches the parent directory so that editors replacing the
    file (write to temp, rename over) are still seen.
    """

    def __init__(self, path: Path, notify: Callable[[], None]) -> None:
        super().__init__()
        self.path = os.path.normpath(os.fspath(path))
        self.notify = notify

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in CHANGE_EVENTS:
            return
        target = event.dest_path if event.event_type == EVENT_TYPE_MOVED else event.src_path
        if os.path.normpath(os.fsdecode(target)) == self.path:
            self.notify()


class LocalFileSource(FileSource):
    """Database file on the local filesystem.

    Parameters
    ----------
    id : str
        Source identifier.
    name : str
        Database name.
    path : str | Path
        Database path; relative paths resolve against ``base_dir``.
    fmt : DatabaseFormat | str
        Declared format.
    worker : ParseWorkerChannel
        Channel running the parses.
    base_dir : str | Path | None, optional
        Directory relative paths resolve against. Defaults to the current
        working directory.
    """

    def __init__(
        self,
        id: str,
        name: str,
        path: str | Path,
        fmt: DatabaseFormat | str,
        worker: ParseWorkerChannel,
        base_dir: str | Path | None = None,
        *,
        debounce_delay: float = DEFAULT_DEBOUNCE_DELAY,
        logger: AuditLogger | None = None,
    ) -> None:
        super().__init__(id, name, fmt, worker, debounce_delay=debounce_delay, logger=logger)
        resolved = Path(path).expanduser()
        if not resolved.is_absolute() and base_dir is not None:
            resolved = Path(base_dir).expanduser() / resolved
        self.path = resolved.absolute()
        self._observer: BaseObserver | None = None

    @property
    def location(self) -> str:
        return str(self.path)

    async def read_bytes(self) -> bytes:
        return await asyncio.to_thread(self._read_checked)

    def _read_checked(self) -> bytes:
        try:
            file_bytes = self.path.read_bytes()
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            file_bytes = b""
        if not file_bytes:
            raise IntegrityError(
                f"Library file is empty or does not exist: {self.path}", source=str(self.path)
            )
        return file_bytes

    def _start_watcher(self, notify: Callable[[], None]) -> None:
        observer = Observer()
        observer.schedule(
            FileChangeHandler(self.path, notify), os.fspath(self.path.parent), recursive=False
        )
        observer.start()
        self._observer = observer

    def _stop_watcher(self) -> None:
        if self._observer is None:
            return
        observer, self._observer = self._observer, None
        observer.stop()
        observer.join()
