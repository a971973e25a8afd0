"""Ordered observer list for wallet notifications."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from logging import getLogger

from proofledger.domain.model import WalletEvent

log = getLogger(__name__)

EventHandler = Callable[[object], None]
Unsubscribe = Callable[[], None]


class EventBus:
    """Dispatch wallet events synchronously, in registration order.

    A failing handler is logged and does not prevent later handlers from running.
    """

    def __init__(self) -> None:
        self._handlers: defaultdict[WalletEvent, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event: WalletEvent, handler: EventHandler) -> Unsubscribe:
        self._handlers[event].append(handler)

        def unsubscribe() -> None:
            self.unsubscribe(event, handler)

        return unsubscribe

    def unsubscribe(self, event: WalletEvent, handler: EventHandler) -> None:
        handlers = self._handlers.get(event)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def emit(self, event: WalletEvent, payload: object) -> None:
        for handler in tuple(self._handlers.get(event, ())):
            try:
                handler(payload)
            except Exception:
                log.exception("Error in %s handler %r", event.value, handler)

    def handler_count(self, event: WalletEvent) -> int:
        return len(self._handlers.get(event, ()))
