"""Tests for the parse worker channel."""

import asyncio
import threading
from collections.abc import Iterator

import pytest

from citeshelf.errors import CancellationError, ParseError
from citeshelf.parse import ParseResult, ParseWorkerChannel
from citeshelf.parse import worker as worker_module
from citeshelf.utils import CancellationToken


@pytest.fixture
def channel() -> Iterator[ParseWorkerChannel]:
    """Channel closed after the test."""
    ch = ParseWorkerChannel()
    yield ch
    ch.close()


class BlockingParser:
    """Stand-in for parse_database that records calls and can be held."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.release = threading.Event()
        self.started = threading.Event()
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()
        self.block = True

    def __call__(self, raw_text: str, fmt: str) -> ParseResult:
        with self._lock:
            self.calls.append(raw_text)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        self.started.set()
        if self.block:
            self.release.wait(timeout=5)
        with self._lock:
            self.active -= 1
        return ParseResult([{"id": raw_text}], [], [])


@pytest.fixture
def blocking_parser(monkeypatch: pytest.MonkeyPatch) -> Iterator[BlockingParser]:
    """Patch the worker to use a controllable parser."""
    parser = BlockingParser()
    monkeypatch.setattr(worker_module, "parse_database", parser)
    yield parser
    parser.release.set()


async def _wait_started(parser: BlockingParser) -> None:
    await asyncio.to_thread(parser.started.wait, 5)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_submit_parses_off_loop(channel: ParseWorkerChannel) -> None:
    """Test a submission returns parsed records and warnings."""
    result = await channel.submit('[{"id": "a"}, {"id": 3}, 7]', "csl-json")

    assert [r["id"] for r in result.records] == ["a", "3"]
    assert len(result.warnings) == 1
    assert result.errors == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_submissions_run_one_at_a_time_in_order(
    channel: ParseWorkerChannel,
    blocking_parser: BlockingParser,
) -> None:
    """Test concurrent submissions are parsed FIFO without overlap."""
    blocking_parser.block = False

    results = await asyncio.gather(*(channel.submit(str(i), "csl-json") for i in range(5)))

    assert blocking_parser.calls == ["0", "1", "2", "3", "4"]
    assert blocking_parser.max_active == 1
    assert [r.records[0]["id"] for r in results] == ["0", "1", "2", "3", "4"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fatal_parse_error_raises(channel: ParseWorkerChannel) -> None:
    """Test a fatal grammar error fails the whole submission."""
    with pytest.raises(ParseError) as exc_info:
        await channel.submit("@article{a, title = {open", "biblatex")

    assert exc_info.value.errors


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unexpected_parser_exception_becomes_parse_error(
    channel: ParseWorkerChannel,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test parser crashes surface as ParseError."""

    def explode(raw_text: str, fmt: str) -> ParseResult:
        raise KeyError("boom")

    monkeypatch.setattr(worker_module, "parse_database", explode)

    with pytest.raises(ParseError, match="KeyError"):
        await channel.submit("x", "csl-json")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancelled_submission_returns_before_parse_finishes(
    channel: ParseWorkerChannel,
    blocking_parser: BlockingParser,
) -> None:
    """Test cancelling a token releases the waiter while the parse keeps running."""
    token = CancellationToken()
    pending = asyncio.ensure_future(channel.submit("slow", "csl-json", token))
    await _wait_started(blocking_parser)

    token.cancel("superseded")

    with pytest.raises(CancellationError, match="superseded"):
        await asyncio.wait_for(pending, timeout=2)
    assert blocking_parser.active == 1

    blocking_parser.release.set()
    blocking_parser.block = False
    result = await channel.submit("next", "csl-json")
    assert result.records[0]["id"] == "next"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_already_cancelled_token_fails_fast(channel: ParseWorkerChannel) -> None:
    """Test a fired token is rejected before queueing."""
    token = CancellationToken()
    token.cancel()

    with pytest.raises(CancellationError):
        await channel.submit("[]", "csl-json", token)
    assert channel.pending == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_queued_job_with_cancelled_token_is_skipped(
    channel: ParseWorkerChannel,
    blocking_parser: BlockingParser,
) -> None:
    """Test jobs cancelled while waiting in the queue never reach the parser."""
    first = asyncio.ensure_future(channel.submit("first", "csl-json"))
    await _wait_started(blocking_parser)

    token = CancellationToken()
    second = asyncio.ensure_future(channel.submit("second", "csl-json", token))
    await asyncio.sleep(0)
    token.cancel()

    with pytest.raises(CancellationError):
        await second

    blocking_parser.block = False
    blocking_parser.release.set()
    await first
    third = await channel.submit("third", "csl-json")

    assert blocking_parser.calls == ["first", "third"]
    assert third.records[0]["id"] == "third"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_submit_after_close_raises() -> None:
    """Test a closed channel refuses work."""
    channel = ParseWorkerChannel()
    await channel.submit("[]", "csl-json")
    channel.close()

    assert channel.closed
    with pytest.raises(RuntimeError, match="closed"):
        await channel.submit("[]", "csl-json")
