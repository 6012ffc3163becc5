"""Tests for data sources."""

import asyncio
import json
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from watchdog.events import DirModifiedEvent, FileCreatedEvent, FileModifiedEvent, FileMovedEvent

from citeshelf.audit import AuditLogger
from citeshelf.errors import CancellationError, IntegrityError, ParseError
from citeshelf.models import Entry
from citeshelf.parse import ParseWorkerChannel
from citeshelf.sources import (
    DataSource,
    DirectoryVault,
    LocalFileSource,
    VaultFileSource,
    normalize_vault_path,
)
from citeshelf.sources.local_file import FileChangeHandler
from citeshelf.utils import CancellationToken


@pytest.fixture
def worker() -> Iterator[ParseWorkerChannel]:
    """Parse channel closed after the test."""
    channel = ParseWorkerChannel()
    yield channel
    channel.close()


class FakeVault:
    """Vault storage kept in a dict, dispatching events synchronously."""

    def __init__(self, files: dict[str, bytes] | None = None) -> None:
        self.files = dict(files or {})
        self.listeners: dict[int, tuple[str, Callable[[str], None]]] = {}
        self._next = 0

    def exists(self, path: str) -> bool:
        return path in self.files

    def read(self, path: str) -> bytes:
        return self.files[path]

    def on(self, event: str, callback: Callable[[str], None]) -> int:
        self._next += 1
        self.listeners[self._next] = (event, callback)
        return self._next

    def offref(self, ref: object) -> None:
        self.listeners.pop(ref)  # type: ignore[call-overload]

    def emit(self, event: str, path: str) -> None:
        for name, callback in list(self.listeners.values()):
            if name == event:
                callback(path)


# ---------------------------------------------------------------------------
# LocalFileSource: loading
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.asyncio
async def test_local_source_loads_csl_json(csl_file: Path, worker: ParseWorkerChannel) -> None:
    """Test a CSL-JSON file loads into entries in file order."""
    source = LocalFileSource("source-0", "Main", csl_file, "csl-json", worker)

    entries = await source.load()

    assert isinstance(source, DataSource)
    assert [e.id for e in entries] == ["smith2020", "doe2019"]
    assert all(isinstance(e, Entry) for e in entries)
    assert entries[0].year == 2020
    assert source.last_digest is not None
    assert source.last_digest.startswith("sha256:")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_local_source_loads_biblatex(bib_file: Path, worker: ParseWorkerChannel) -> None:
    """Test a BibLaTeX file loads into entries."""
    source = LocalFileSource("source-0", "Thesis", bib_file, "biblatex", worker)

    entries = await source.load()

    assert [e.id for e in entries] == ["smith2020", "knuth1984"]
    assert entries[1].title == "The TeXbook"
    assert entries[0].author_string == "John Smith"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_local_source_relative_path_uses_base_dir(
    csl_file: Path,
    worker: ParseWorkerChannel,
) -> None:
    """Test relative paths resolve against base_dir."""
    source = LocalFileSource("s", "Main", csl_file.name, "csl-json", worker, base_dir=csl_file.parent)

    assert source.path == csl_file
    assert len(await source.load()) == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_local_source_missing_file(tmp_path: Path, worker: ParseWorkerChannel) -> None:
    """Test a missing file fails the integrity check."""
    source = LocalFileSource("s", "Main", tmp_path / "nope.json", "csl-json", worker)

    with pytest.raises(IntegrityError, match="empty or does not exist"):
        await source.load()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_local_source_empty_file(tmp_path: Path, worker: ParseWorkerChannel) -> None:
    """Test an empty file fails the integrity check."""
    path = tmp_path / "empty.bib"
    path.write_bytes(b"")
    source = LocalFileSource("s", "Main", path, "biblatex", worker)

    with pytest.raises(IntegrityError) as exc_info:
        await source.load()

    assert exc_info.value.source == str(path)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_local_source_parse_error_names_file(
    tmp_path: Path,
    worker: ParseWorkerChannel,
) -> None:
    """Test fatal parse errors carry the file path."""
    path = tmp_path / "broken.json"
    path.write_text('{"not": "an array"}', encoding="utf-8")
    source = LocalFileSource("s", "Main", path, "csl-json", worker)

    with pytest.raises(ParseError) as exc_info:
        await source.load()

    assert str(path) in str(exc_info.value)
    assert exc_info.value.source == str(path)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_local_source_logs_parse_warnings(tmp_path: Path, worker: ParseWorkerChannel) -> None:
    """Test per-record warnings are written to the audit log."""
    path = tmp_path / "partial.json"
    path.write_text(json.dumps([{"id": "ok"}, {"title": "no id"}]), encoding="utf-8")
    log_path = tmp_path / "events.jsonl"

    with AuditLogger(run_id="test_run", log_path=log_path) as logger:
        source = LocalFileSource("s", "Main", path, "csl-json", worker, logger=logger)
        entries = await source.load()

    events = [json.loads(line) for line in log_path.read_text().splitlines()]
    assert len(entries) == 1
    assert source.last_warnings
    assert events[0]["event"] == "parse_warnings"
    assert events[0]["source"] == "Main"
    assert events[0]["data"]["count"] == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_local_source_respects_cancelled_token(
    csl_file: Path,
    worker: ParseWorkerChannel,
) -> None:
    """Test a fired token aborts the load."""
    token = CancellationToken()
    token.cancel()
    source = LocalFileSource("s", "Main", csl_file, "csl-json", worker)

    with pytest.raises(CancellationError):
        await source.load(token)


# ---------------------------------------------------------------------------
# LocalFileSource: watching
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.asyncio
async def test_local_source_second_watch_warns(csl_file: Path, worker: ParseWorkerChannel) -> None:
    """Test watching twice warns and keeps a single watcher."""
    source = LocalFileSource("s", "Main", csl_file, "csl-json", worker)
    try:
        source.watch(lambda: None)
        observer = source._observer

        with pytest.warns(RuntimeWarning, match="already watched"):
            source.watch(lambda: None)

        assert source._observer is observer
        assert source.watching
    finally:
        source.dispose()

    assert not source.watching
    assert source._observer is None


@pytest.mark.unit
def test_file_change_handler_filters_to_target(tmp_path: Path) -> None:
    """Test only events for the watched file notify."""
    target = tmp_path / "library.json"
    calls: list[int] = []
    handler = FileChangeHandler(target, lambda: calls.append(1))

    handler.dispatch(FileModifiedEvent(str(target)))
    handler.dispatch(FileCreatedEvent(str(target)))
    handler.dispatch(FileMovedEvent(str(tmp_path / "tmp123"), str(target)))
    handler.dispatch(FileModifiedEvent(str(tmp_path / "other.json")))
    handler.dispatch(DirModifiedEvent(str(tmp_path)))

    assert len(calls) == 3


# ---------------------------------------------------------------------------
# VaultFileSource
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.asyncio
async def test_vault_source_loads_through_storage(worker: ParseWorkerChannel) -> None:
    """Test vault sources read via the storage interface."""
    vault = FakeVault({"refs/library.json": b'[{"id": "v1"}]'})
    source = VaultFileSource("s", "Vault", "./refs/library.json", "csl-json", worker, vault)

    entries = await source.load()

    assert source.path == "refs/library.json"
    assert [e.id for e in entries] == ["v1"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_vault_source_missing_file(worker: ParseWorkerChannel) -> None:
    """Test a file absent from the vault fails the integrity check."""
    source = VaultFileSource("s", "Vault", "missing.bib", "biblatex", worker, FakeVault())

    with pytest.raises(IntegrityError, match="missing.bib"):
        await source.load()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_vault_source_debounces_change_events(worker: ParseWorkerChannel) -> None:
    """Test a burst of modify/create events calls back once."""
    vault = FakeVault({"lib.json": b"[]"})
    source = VaultFileSource("s", "Vault", "lib.json", "csl-json", worker, vault, debounce_delay=0.05)
    calls: list[int] = []
    source.watch(lambda: calls.append(1))

    for _ in range(5):
        vault.emit("modify", "lib.json")
        await asyncio.sleep(0.01)
    vault.emit("create", "lib.json")
    vault.emit("modify", "other.json")
    vault.emit("delete", "lib.json")
    await asyncio.sleep(0.2)

    assert calls == [1]
    source.dispose()
    assert vault.listeners == {}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_vault_source_dispose_cancels_pending_callback(worker: ParseWorkerChannel) -> None:
    """Test dispose drops a notification still waiting for its quiet period."""
    vault = FakeVault({"lib.json": b"[]"})
    source = VaultFileSource("s", "Vault", "lib.json", "csl-json", worker, vault, debounce_delay=0.05)
    calls: list[int] = []
    source.watch(lambda: calls.append(1))

    vault.emit("modify", "lib.json")
    await asyncio.sleep(0)
    source.dispose()
    await asyncio.sleep(0.15)

    assert calls == []


# ---------------------------------------------------------------------------
# DirectoryVault
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_normalize_vault_path() -> None:
    """Test vault paths are normalized to clean relative POSIX form."""
    assert normalize_vault_path("./a/b.bib") == "a/b.bib"
    assert normalize_vault_path("/a//b.bib") == "a/b.bib"
    assert normalize_vault_path("a\\b.bib") == "a/b.bib"


@pytest.mark.unit
def test_directory_vault_reads_and_maps_paths(tmp_path: Path) -> None:
    """Test the directory vault maps vault paths to files and back."""
    (tmp_path / "refs").mkdir()
    (tmp_path / "refs" / "lib.bib").write_bytes(b"@misc{a}")
    vault = DirectoryVault(tmp_path)

    assert vault.exists("refs/lib.bib")
    assert not vault.exists("refs")
    assert vault.read("refs/lib.bib") == b"@misc{a}"
    assert vault.relative(str(tmp_path / "refs" / "lib.bib")) == "refs/lib.bib"
    assert vault.relative("/somewhere/else") is None


@pytest.mark.unit
def test_directory_vault_listeners(tmp_path: Path) -> None:
    """Test listeners receive their events until removed."""
    vault = DirectoryVault(tmp_path)
    seen: list[tuple[str, str]] = []
    try:
        ref = vault.on("modify", lambda p: seen.append(("modify", p)))
        vault.on("create", lambda p: seen.append(("create", p)))

        vault.dispatch("modify", "a.bib")
        vault.dispatch("delete", "a.bib")
        vault.offref(ref)
        vault.dispatch("modify", "a.bib")
        vault.dispatch("create", "b.bib")
    finally:
        vault.close()

    assert seen == [("modify", "a.bib"), ("create", "b.bib")]
