# =============================================================================
# hisaab_core/events/__init__.py
# Client-side cache invalidation
# =============================================================================
"""
Client-side invalidation: after a screen writes to the backend it calls
MutationPublisher.record(), which updates the shared QueryCache and publishes
InvalidationEvents on the InvalidationBus.

Usage:
    from hisaab_core.events import InvalidationBus, QueryCache, MutationPublisher

    bus = InvalidationBus()
    queries = QueryCache()
    publisher = MutationPublisher(queries, bus)
    bus.subscribe("budget-refresh", lambda event: reload_budgets())
    publisher.record("expense", "add", {"id": 7, "amount": 1200})
"""

from hisaab_core.events.events import InvalidationEvent, InvalidationEventName
from hisaab_core.events.bus import InvalidationBus
from hisaab_core.events.query_cache import QueryCache
from hisaab_core.events.mutations import (
    Entity,
    MutationAction,
    MutationPublisher,
)

__all__ = [
    "InvalidationEvent",
    "InvalidationEventName",
    "InvalidationBus",
    "QueryCache",
    "Entity",
    "MutationAction",
    "MutationPublisher",
]
