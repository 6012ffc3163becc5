"""Cooperative cancellation tokens.

A token is owned by one load cycle. Cancelling it never interrupts running
work; waiters observe the cancellation and discard whatever result arrives
afterwards.
"""

import asyncio

from citeshelf.errors import CancellationError

__all__ = ["CancellationToken"]


class CancellationToken:
    """One-shot cancellation signal.

    Attributes
    ----------
    reason : str | None
        Reason given to :meth:`cancel`, None while not cancelled.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Operation cancelled") -> None:
        """Fire the token. Later calls keep the first reason."""
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()

    async def wait(self) -> None:
        """Suspend until the token fires."""
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        """Raise ``CancellationError`` if the token has fired."""
        if self.cancelled:
            raise CancellationError(self.reason or "Operation cancelled")
