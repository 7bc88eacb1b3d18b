"""Observable channel for client-side auth state."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Generic, List, TypeVar

from ..identity import User

logger = logging.getLogger("devtoolbox")

EventT = TypeVar("EventT")


@dataclass(frozen=True, slots=True)
class AuthStateChanged:
    user: User | None

    @property
    def signed_in(self) -> bool:
        return self.user is not None


class EventChannel(Generic[EventT]):
    """Broadcast events to subscribers; late subscribers get the last event."""

    def __init__(self) -> None:
        self._handlers: List[Callable[[EventT], None]] = []
        self._last: EventT | None = None

    @property
    def last(self) -> EventT | None:
        return self._last

    def subscribe(self, handler: Callable[[EventT], None]) -> Callable[[], None]:
        self._handlers.append(handler)
        if self._last is not None:
            handler(self._last)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def publish(self, event: EventT) -> None:
        self._last = event
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler %r failed", handler)


__all__ = ["AuthStateChanged", "EventChannel"]
