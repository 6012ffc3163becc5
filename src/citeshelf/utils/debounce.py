"""Trailing-edge debouncing on the event loop."""

import asyncio
from collections.abc import Callable

__all__ = ["Debouncer"]


class Debouncer:
    """Collapse bursts of triggers into one call.

    Every :meth:`trigger` restarts a fixed-delay timer; ``callback`` runs once
    the timer expires without a new trigger. The timer lives on the running
    event loop, so ``trigger`` must be called from the loop thread (use
    :meth:`trigger_threadsafe` from other threads).

    Parameters
    ----------
    callback : Callable[[], object]
        Called with no arguments when the delay elapses.
    delay : float
        Quiet period in seconds.
    loop : asyncio.AbstractEventLoop | None, optional
        Loop owning the timer. Resolved from the running loop on first
        trigger when omitted.
    """

    def __init__(
        self,
        callback: Callable[[], object],
        delay: float,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")
        self.callback = callback
        self.delay = delay
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self._closed = False

    @property
    def loop(self) -> asyncio.AbstractEventLoop | None:
        return self._loop

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> bool:
        """True while a call is scheduled."""
        return self._handle is not None

    def trigger(self) -> None:
        """Schedule the callback, restarting the quiet period."""
        if self._closed:
            return
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._handle = self._loop.call_later(self.delay, self._fire)

    def trigger_threadsafe(self) -> None:
        """Schedule :meth:`trigger` on the owning loop from any thread."""
        if self._loop is None:
            raise RuntimeError("Debouncer is not bound to an event loop")
        if self._closed or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self.trigger)

    def cancel(self) -> None:
        """Drop a scheduled call, if any."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def close(self) -> None:
        """Cancel and ignore every later trigger."""
        self._closed = True
        self.cancel()

    def _fire(self) -> None:
        self._handle = None
        self.callback()
