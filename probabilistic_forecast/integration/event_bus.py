from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, DefaultDict, Protocol, Type, TypeVar

from probabilistic_forecast.integration.events import DomainEvent


logger = logging.getLogger(__name__)

E = TypeVar("E", bound=DomainEvent)
Handler = Callable[[DomainEvent], None]


class EventBus(Protocol):
    """Publish/subscribe interface for forecast events."""

    def publish(self, event: DomainEvent) -> int:
        ...

    def subscribe(self, event_type: Type[E], handler: Callable[[E], None]) -> None:
        ...


class InMemoryEventBus:
    """Synchronous in-process bus.

    Handlers run in subscription order. A failing handler is logged and does
    not stop the remaining handlers.
    """

    def __init__(self) -> None:
        self._handlers: DefaultDict[Type[DomainEvent], list[Handler]] = defaultdict(list)

    def publish(self, event: DomainEvent) -> int:
        """Deliver `event` to every matching handler; return how many ran."""
        delivered = 0
        for event_type, handlers in list(self._handlers.items()):
            if not isinstance(event, event_type):
                continue
            for handler in list(handlers):
                delivered += 1
                try:
                    handler(event)
                except Exception:
                    logger.exception("Handler %s failed for %s", handler, type(event).__name__)
        return delivered

    def subscribe(self, event_type: Type[E], handler: Callable[[E], None]) -> None:
        self._handlers[event_type].append(handler)  # type: ignore[arg-type]

    def unsubscribe(self, event_type: Type[E], handler: Callable[[E], None]) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)  # type: ignore[arg-type]
