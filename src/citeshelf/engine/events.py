"""Named event channel for library notifications."""

import warnings
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

__all__ = [
    "EventChannel",
    "Subscription",
    "LOAD_START",
    "LOAD_COMPLETE",
    "STATE_CHANGED",
]

LOAD_START = "library-load-start"
LOAD_COMPLETE = "library-load-complete"
STATE_CHANGED = "library-state-changed"

EventCallback = Callable[..., object]


@dataclass(eq=False)
class Subscription:
    """Handle returned by :meth:`EventChannel.subscribe`."""

    channel: "EventChannel"
    name: str
    callback: EventCallback
    active: bool = field(default=True)

    def unsubscribe(self) -> None:
        """Stop receiving the event. Safe to call more than once."""
        if self.active:
            self.active = False
            self.channel._remove(self)


class EventChannel:
    """Synchronous publish/subscribe by event name.

    Callbacks run in subscription order, on the emitter's thread. An
    exception raised by a callback is reported as a ``RuntimeWarning`` and
    the remaining callbacks are still notified; it never reaches the emitter.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[Subscription]] = {}

    def subscribe(self, name: str, callback: EventCallback) -> Subscription:
        """Call ``callback`` with the event arguments on every ``emit(name, ...)``."""
        subscription = Subscription(self, name, callback)
        self._subscriptions.setdefault(name, []).append(subscription)
        return subscription

    def emit(self, name: str, *args: Any) -> None:
        # Snapshot so callbacks may unsubscribe while being notified
        for subscription in list(self._subscriptions.get(name, ())):
            if not subscription.active:
                continue
            try:
                subscription.callback(*args)
            except Exception as e:
                warnings.warn(
                    f"Listener for {name!r} raised {type(e).__name__}: {e}",
                    RuntimeWarning,
                    stacklevel=2,
                )

    def listener_count(self, name: str) -> int:
        return len(self._subscriptions.get(name, ()))

    def clear(self) -> None:
        """Drop every subscription."""
        for subscriptions in self._subscriptions.values():
            for subscription in subscriptions:
                subscription.active = False
        self._subscriptions.clear()

    def _remove(self, subscription: Subscription) -> None:
        subscriptions = self._subscriptions.get(subscription.name)
        if subscriptions and subscription in subscriptions:
            subscriptions.remove(subscription)
