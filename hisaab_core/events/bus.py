# =============================================================================
# hisaab_core/events/bus.py
# Typed, synchronous invalidation bus
# =============================================================================
"""
InvalidationBus - one publish delivers each event exactly once to every
subscriber registered at that moment, in registration order, before
publish() returns. There are no timers and no repeated broadcasts.
"""

from __future__ import annotations
import threading
from typing import Callable, Dict, List, Optional
import logging

from hisaab_core.events.events import InvalidationEvent, InvalidationEventName

logger = logging.getLogger(__name__)

Subscriber = Callable[[InvalidationEvent], None]
Unsubscribe = Callable[[], None]


class InvalidationBus:
    """
    Usage:
        bus = InvalidationBus()
        unsubscribe = bus.subscribe("expense-added", on_expense_added)
        bus.publish(InvalidationEvent("expense-added", {"expense": row}))
        unsubscribe()
    """

    def __init__(self):
        self._subscribers: Dict[Optional[InvalidationEventName], List[Subscriber]] = {}
        self._lock = threading.Lock()

    def subscribe(self, name, handler: Subscriber) -> Unsubscribe:
        return self._add(InvalidationEventName(name), handler)

    def subscribe_all(self, handler: Subscriber) -> Unsubscribe:
        return self._add(None, handler)

    def _add(self, key: Optional[InvalidationEventName], handler: Subscriber) -> Unsubscribe:
        with self._lock:
            self._subscribers.setdefault(key, []).append(handler)

        def unsubscribe() -> None:
            with self._lock:
                handlers = self._subscribers.get(key, [])
                if handler in handlers:
                    handlers.remove(handler)

        return unsubscribe

    def subscriber_count(self, name=None) -> int:
        key = InvalidationEventName(name) if name is not None else None
        with self._lock:
            return len(self._subscribers.get(key, []))

    def publish(self, event: InvalidationEvent) -> int:
        """
        Deliver an event.

        Returns:
            Number of subscribers that received it
        """
        with self._lock:
            handlers = list(self._subscribers.get(event.name, []))
            handlers += self._subscribers.get(None, [])

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in '{event.name.value}' subscriber: {e}", exc_info=True)

        logger.debug(f"Published '{event.name.value}' to {len(handlers)} subscribers")
        return len(handlers)
