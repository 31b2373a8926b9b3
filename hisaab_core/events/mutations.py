# =============================================================================
# hisaab_core/events/mutations.py
# Mutation -> query cache update -> invalidation events
# =============================================================================
"""
MutationPublisher - what a screen calls after a successful write to the
backend.

One call:
    1. applies the record to every held query under the entity's key
       (add appends, update replaces by id, delete removes by id)
    2. invalidates the queries that depend on the entity
    3. publishes each mapped event exactly once

All three happen before record() returns, so a screen reading the cache
right after sees the mutation.
"""

from __future__ import annotations
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union
import logging

from hisaab_core.events.bus import InvalidationBus
from hisaab_core.events.events import InvalidationEvent, InvalidationEventName as E
from hisaab_core.events.query_cache import QueryCache, QueryKey

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class Entity(str, Enum):
    EXPENSE = "expense"
    BUDGET = "budget"
    INCOME = "income"
    WALLET = "wallet"


class MutationAction(str, Enum):
    ADD = "add"
    UPDATE = "update"
    DELETE = "delete"


# Queries holding the entity's rows; updated in place
ENTITY_QUERIES: Dict[Entity, List[QueryKey]] = {
    Entity.EXPENSE: [("expenses",)],
    Entity.BUDGET: [("budgets",)],
    Entity.INCOME: [("monthly_income",)],
    Entity.WALLET: [("wallet-additions",), ("wallet-additions-all",)],
}

# Queries derived from the entity; marked stale
DEPENDENT_QUERIES: Dict[Entity, List[QueryKey]] = {
    Entity.EXPENSE: [("budgets",)],
    Entity.BUDGET: [],
    Entity.INCOME: [("budgets",)],
    Entity.WALLET: [("monthly_income",)],
}

MUTATION_EVENTS: Dict[tuple, List[E]] = {
    (Entity.EXPENSE, MutationAction.ADD): [E.EXPENSE_ADDED, E.EXPENSES_UPDATED, E.FINNY_EXPENSE_ADDED, E.BUDGET_REFRESH],
    (Entity.EXPENSE, MutationAction.UPDATE): [E.EXPENSE_UPDATED, E.EXPENSES_UPDATED, E.BUDGET_REFRESH],
    (Entity.EXPENSE, MutationAction.DELETE): [E.EXPENSES_UPDATED, E.EXPENSE_REFRESH, E.BUDGET_REFRESH],
    (Entity.BUDGET, MutationAction.ADD): [E.BUDGET_UPDATED, E.BUDGET_REFRESH],
    (Entity.BUDGET, MutationAction.UPDATE): [E.BUDGET_UPDATED, E.BUDGET_REFRESH],
    (Entity.BUDGET, MutationAction.DELETE): [E.BUDGET_UPDATED, E.BUDGET_REFRESH],
    (Entity.INCOME, MutationAction.ADD): [E.INCOME_UPDATED, E.BUDGET_REFRESH],
    (Entity.INCOME, MutationAction.UPDATE): [E.INCOME_UPDATED, E.BUDGET_REFRESH],
    (Entity.INCOME, MutationAction.DELETE): [E.INCOME_UPDATED, E.BUDGET_REFRESH],
    (Entity.WALLET, MutationAction.ADD): [E.WALLET_UPDATED],
    (Entity.WALLET, MutationAction.UPDATE): [E.WALLET_UPDATED],
    (Entity.WALLET, MutationAction.DELETE): [E.WALLET_UPDATED],
}

# Extra events keyed by where the mutation came from
SOURCE_EVENTS: Dict[str, List[E]] = {
    "receipt-scan": [E.RECEIPT_SCANNED, E.EXPENSE_REFRESH],
    "finny": [E.EXPENSE_REFRESH],
}


def _apply(rows: Any, action: MutationAction, records: Sequence[Record]) -> Any:
    if not isinstance(rows, list):
        return rows

    if action == MutationAction.ADD:
        return rows + list(records)

    by_id = {r.get("id"): r for r in records if r.get("id") is not None}
    if action == MutationAction.UPDATE:
        return [by_id.get(row.get("id"), row) for row in rows]
    return [row for row in rows if row.get("id") not in by_id]


class MutationPublisher:
    """
    Usage:
        publisher = MutationPublisher(query_cache, bus)
        publisher.record("expense", "add", new_expense, source="manual-entry")
    """

    def __init__(self, query_cache: QueryCache, bus: InvalidationBus):
        self.query_cache = query_cache
        self.bus = bus

    def events_for(self, entity, action, source: Optional[str] = None) -> List[E]:
        entity, action = Entity(entity), MutationAction(action)
        events = list(MUTATION_EVENTS[(entity, action)])
        if entity == Entity.EXPENSE:
            for extra in SOURCE_EVENTS.get(source or "", []):
                if extra not in events:
                    events.append(extra)
        return events

    def record(
        self,
        entity: Union[Entity, str],
        action: Union[MutationAction, str],
        record: Union[Record, Sequence[Record]],
        source: Optional[str] = None,
    ) -> List[InvalidationEvent]:
        """
        Apply a completed mutation and announce it.

        Returns:
            The published events, in publish order
        """
        entity, action = Entity(entity), MutationAction(action)
        records = [record] if isinstance(record, dict) else list(record)

        for prefix in ENTITY_QUERIES[entity]:
            for key in self.query_cache.keys():
                if key[:len(prefix)] == prefix:
                    self.query_cache.update(key, lambda rows: _apply(rows, action, records))

        for prefix in DEPENDENT_QUERIES[entity]:
            self.query_cache.invalidate(prefix)

        detail: Dict[str, Any] = {"action": action.value}
        if len(records) == 1:
            detail[entity.value] = records[0]
        else:
            detail[f"{entity.value}s"] = records
            detail["count"] = len(records)

        published = []
        for name in self.events_for(entity, action, source):
            event = InvalidationEvent(name, detail=detail, source=source)
            self.bus.publish(event)
            published.append(event)

        logger.info(
            f"{entity.value} {action.value} ({len(records)} records) -> "
            f"{[e.name.value for e in published]}"
        )
        return published
