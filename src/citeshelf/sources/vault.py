"""Sources reading through a vault storage abstraction.

A vault is a directory-like store addressed by ``/``-separated relative
paths. It reports changes as named events (``create``, ``modify``,
``delete``, ``rename``) to listeners registered with :meth:`VaultStorage.on`.
"""

import asyncio
import os
import threading
from collections.abc import Callable
from pathlib import Path, PurePosixPath
from typing import Protocol, runtime_checkable

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
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

__all__ = [
    "DirectoryVault",
    "VaultFileSource",
    "VaultListener",
    "VaultStorage",
    "normalize_vault_path",
]

VaultListener = Callable[[str], None]

# Vault events that mean the watched file has new content
CHANGE_EVENTS = ("modify", "create")

_WATCHDOG_EVENTS = {
    EVENT_TYPE_CREATED: "create",
    EVENT_TYPE_MODIFIED: "modify",
    EVENT_TYPE_DELETED: "delete",
    EVENT_TYPE_MOVED: "rename",
}


def normalize_vault_path(path: str) -> str:
    """Return ``path`` as a clean vault-relative POSIX path."""
    parts = [p for p in PurePosixPath(path.replace("\\", "/")).parts if p not in ("/", ".")]
    return "/".join(parts)


@runtime_checkable
class VaultStorage(Protocol):
    """Storage a :class:`VaultFileSource` reads from.

    Listeners may be invoked from any thread.
    """

    def exists(self, path: str) -> bool: ...

    def read(self, path: str) -> bytes: ...

    def on(self, event: str, callback: VaultListener) -> object: ...

    def offref(self, ref: object) -> None: ...


class VaultFileSource(FileSource):
    """Database file addressed by a vault-relative path.

    Parameters
    ----------
    id : str
        Source identifier.
    name : str
        Database name.
    path : str
        Vault-relative path of the database.
    fmt : DatabaseFormat | str
        Declared format.
    worker : ParseWorkerChannel
        Channel running the parses.
    vault : VaultStorage
        Storage the file is read from and watched through.
    """

    def __init__(
        self,
        id: str,
        name: str,
        path: str,
        fmt: DatabaseFormat | str,
        worker: ParseWorkerChannel,
        vault: VaultStorage,
        *,
        debounce_delay: float = DEFAULT_DEBOUNCE_DELAY,
        logger: AuditLogger | None = None,
    ) -> None:
        super().__init__(id, name, fmt, worker, debounce_delay=debounce_delay, logger=logger)
        self.path = normalize_vault_path(path)
        self.vault = vault
        self._refs: list[object] = []

    @property
    def location(self) -> str:
        return f"vault:{self.path}"

    async def read_bytes(self) -> bytes:
        return await asyncio.to_thread(self._read_checked)

    def _read_checked(self) -> bytes:
        file_bytes = self.vault.read(self.path) if self.vault.exists(self.path) else b""
        if not file_bytes:
            raise IntegrityError(
                f"Library file is empty or does not exist: {self.path}", source=self.location
            )
        return file_bytes

    def _start_watcher(self, notify: Callable[[], None]) -> None:
        def on_change(changed_path: str) -> None:
            if normalize_vault_path(changed_path) == self.path:
                notify()

        self._refs = [self.vault.on(event, on_change) for event in CHANGE_EVENTS]

    def _stop_watcher(self) -> None:
        refs, self._refs = self._refs, []
        for ref in refs:
            self.vault.offref(ref)


class _VaultEventHandler(FileSystemEventHandler):
    def __init__(self, vault: "DirectoryVault") -> None:
        super().__init__()
        self.vault = vault

    def on_any_event(self, event: FileSystemEvent) -> None:
        vault_event = _WATCHDOG_EVENTS.get(event.event_type)
        if event.is_directory or vault_event is None:
            return
        src = self.vault.relative(os.fsdecode(event.src_path))
        if vault_event == "rename":
            dest = self.vault.relative(os.fsdecode(event.dest_path))
            if src is not None:
                self.vault.dispatch("rename", src)
            # A file renamed over the target is new content at ``dest``
            if dest is not None:
                self.vault.dispatch("modify", dest)
            return
        if src is not None:
            self.vault.dispatch(vault_event, src)


class DirectoryVault:
    """Vault backed by a local directory, watched with watchdog.

    The filesystem observer runs only while at least one listener is
    registered.

    Parameters
    ----------
    root : str | Path
        Vault root directory.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).expanduser().absolute()
        self._listeners: dict[int, tuple[str, VaultListener]] = {}
        self._next_ref = 0
        self._lock = threading.Lock()
        self._observer: BaseObserver | None = None

    def resolve(self, path: str) -> Path:
        """Map a vault path to a filesystem path inside the root."""
        return self.root.joinpath(*normalize_vault_path(path).split("/"))

    def relative(self, fs_path: str) -> str | None:
        """Map a filesystem path to its vault path, None if outside the vault."""
        try:
            rel = Path(os.path.normpath(fs_path)).relative_to(self.root)
        except ValueError:
            return None
        return rel.as_posix()

    def exists(self, path: str) -> bool:
        return self.resolve(path).is_file()

    def read(self, path: str) -> bytes:
        return self.resolve(path).read_bytes()

    def on(self, event: str, callback: VaultListener) -> int:
        """Register ``callback`` for ``event``; returns a ref for :meth:`offref`."""
        with self._lock:
            ref = self._next_ref
            self._next_ref += 1
            self._listeners[ref] = (event, callback)
            if self._observer is None:
                self._observer = self._start_observer()
        return ref

    def offref(self, ref: object) -> None:
        with self._lock:
            self._listeners.pop(ref, None)  # type: ignore[call-overload]
            stop = not self._listeners
        if stop:
            self.close()

    def dispatch(self, event: str, path: str) -> None:
        """Invoke every listener registered for ``event`` with ``path``."""
        with self._lock:
            callbacks = [cb for name, cb in self._listeners.values() if name == event]
        for callback in callbacks:
            callback(path)

    def close(self) -> None:
        """Stop the filesystem observer."""
        with self._lock:
            observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
            observer.join()

    def _start_observer(self) -> BaseObserver:
        observer = Observer()
        observer.schedule(_VaultEventHandler(self), os.fspath(self.root), recursive=True)
        observer.start()
        return observer
