"""Serialized parse execution channel.

Parsing large databases is CPU bound, so it runs in an executor instead of
on the event loop. Jobs are queued FIFO and handed to the executor one at a
time; sources load concurrently but their parses never overlap.

Cancellation is cooperative: a cancelled submission returns immediately with
``CancellationError``, while a parse already running in the executor finishes
and its result is dropped.
"""

import asyncio
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass

from citeshelf.errors import CancellationError, ParseError
from citeshelf.models import DatabaseFormat
from citeshelf.parse.base import ParseResult
from citeshelf.parse.dispatch import parse_database
from citeshelf.utils.cancellation import CancellationToken

__all__ = ["ParseWorkerChannel"]


@dataclass
class _ParseJob:
    raw_text: str
    fmt: DatabaseFormat | str
    future: asyncio.Future[ParseResult]
    token: CancellationToken | None


def _consume_outcome(future: asyncio.Future[ParseResult]) -> None:
    # Results of abandoned jobs are never awaited; retrieve them so asyncio
    # does not report "exception was never retrieved".
    if not future.cancelled():
        future.exception()


class ParseWorkerChannel:
    """Single-consumer queue running parses in a dedicated executor.

    Attributes
    ----------
    closed : bool
        True once :meth:`close` has been called.
    """

    def __init__(self, executor: Executor | None = None) -> None:
        """Initialize channel.

        Parameters
        ----------
        executor : Executor | None, optional
            Executor that runs the parses. Defaults to a private
            single-thread pool, which is shut down by :meth:`close`.
        """
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="citeshelf-parse"
        )
        self._queue: asyncio.Queue[_ParseJob] | None = None
        self._consumer: asyncio.Task[None] | None = None
        self.closed = False

    @property
    def pending(self) -> int:
        """Number of jobs waiting in the queue."""
        return self._queue.qsize() if self._queue is not None else 0

    async def submit(
        self,
        raw_text: str,
        fmt: DatabaseFormat | str,
        token: CancellationToken | None = None,
    ) -> ParseResult:
        """Queue a parse and wait for its result.

        Parameters
        ----------
        raw_text : str
            Database text.
        fmt : DatabaseFormat | str
            Declared format.
        token : CancellationToken | None, optional
            Cancels the wait for this submission only.

        Returns
        -------
        ParseResult
            Records and non-fatal warnings.

        Raises
        ------
        ParseError
            If the database cannot be parsed.
        CancellationError
            If ``token`` fired before the result arrived.
        RuntimeError
            If the channel is closed.
        """
        if self.closed:
            raise RuntimeError("ParseWorkerChannel is closed")
        if token is not None:
            token.raise_if_cancelled()

        loop = asyncio.get_running_loop()
        future: asyncio.Future[ParseResult] = loop.create_future()
        future.add_done_callback(_consume_outcome)

        self._ensure_consumer()
        assert self._queue is not None
        self._queue.put_nowait(_ParseJob(raw_text, fmt, future, token))

        if token is None:
            return await asyncio.shield(future)

        cancel_waiter = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({future, cancel_waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancel_waiter.cancel()

        if token.cancelled:
            raise CancellationError(token.reason or "Parse cancelled")
        return future.result()

    def _ensure_consumer(self) -> None:
        if self._consumer is not None and not self._consumer.done():
            return
        if self._queue is None:
            self._queue = asyncio.Queue()
        self._consumer = asyncio.get_running_loop().create_task(
            self._consume(), name="citeshelf-parse-consumer"
        )

    async def _consume(self) -> None:
        assert self._queue is not None
        loop = asyncio.get_running_loop()
        while True:
            job = await self._queue.get()
            try:
                if job.future.done():
                    continue
                if job.token is not None and job.token.cancelled:
                    job.future.set_exception(
                        CancellationError(job.token.reason or "Parse cancelled")
                    )
                    continue
                try:
                    result = await loop.run_in_executor(
                        self._executor, parse_database, job.raw_text, job.fmt
                    )
                except ParseError as e:
                    if not job.future.done():
                        job.future.set_exception(e)
                except Exception as e:
                    if not job.future.done():
                        job.future.set_exception(
                            ParseError(f"Parser exception: {type(e).__name__}: {e}")
                        )
                else:
                    if not job.future.done():
                        job.future.set_result(result)
            finally:
                self._queue.task_done()

    def close(self) -> None:
        """Stop the consumer, fail queued jobs and release the executor."""
        if self.closed:
            return
        self.closed = True

        if self._queue is not None:
            while not self._queue.empty():
                job = self._queue.get_nowait()
                if not job.future.done():
                    job.future.set_exception(CancellationError("Parse channel closed"))
                self._queue.task_done()

        consumer, self._consumer = self._consumer, None
        # A consumer left on a closed loop cannot be cancelled anymore
        if consumer is not None and not consumer.get_loop().is_closed():
            consumer.cancel()

        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
