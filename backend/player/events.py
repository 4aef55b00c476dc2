"""Typed observer registry for engine state changes."""
from __future__ import annotations

import logging
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

E = TypeVar("E")
Listener = Callable[[E], None]


class Subscription:
    """Handle returned by :meth:`StateBroadcaster.subscribe`."""

    def __init__(self, cancel: Callable[[], None]) -> None:
        self._cancel: Callable[[], None] | None = cancel

    @property
    def active(self) -> bool:
        return self._cancel is not None

    def unsubscribe(self) -> None:
        if self._cancel is not None:
            self._cancel()
            self._cancel = None

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.unsubscribe()


class StateBroadcaster(Generic[E]):
    """Deliver events to listeners in subscription order.

    A listener that raises is logged and skipped; it never prevents delivery
    to the remaining listeners or disturbs the publisher.
    """

    def __init__(self) -> None:
        self._listeners: dict[int, Listener[E]] = {}
        self._next_id = 0

    def __len__(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: Listener[E]) -> Subscription:
        token = self._next_id
        self._next_id += 1
        self._listeners[token] = listener
        return Subscription(lambda: self._listeners.pop(token, None))

    def publish(self, event: E) -> None:
        for listener in list(self._listeners.values()):
            try:
                listener(event)
            except Exception:
                logger.exception("State listener %r failed", listener)
