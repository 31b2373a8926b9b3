# =============================================================================
# hisaab_core/events/events.py
# Invalidation event names and payloads
# =============================================================================

from __future__ import annotations
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class InvalidationEventName(str, Enum):
    """Event names screens listen for after a local mutation."""
    EXPENSES_UPDATED = "expenses-updated"
    EXPENSE_ADDED = "expense-added"
    EXPENSE_REFRESH = "expense-refresh"
    EXPENSE_UPDATED = "expense-updated"
    RECEIPT_SCANNED = "receipt-scanned"
    FINNY_EXPENSE_ADDED = "finny-expense-added"
    BUDGET_UPDATED = "budget-updated"
    BUDGET_REFRESH = "budget-refresh"
    WALLET_UPDATED = "wallet-updated"
    INCOME_UPDATED = "income-updated"


@dataclass(frozen=True)
class InvalidationEvent:
    """A transient signal that some query data is stale."""
    name: InvalidationEventName
    detail: Dict[str, Any] = field(default_factory=dict)
    source: Optional[str] = None
    timestamp: float = field(default_factory=lambda: time.time() * 1000)

    def __post_init__(self):
        object.__setattr__(self, "name", InvalidationEventName(self.name))
