# =============================================================================
# tests/unit/test_events.py
# Unit Tests for the invalidation bus, query cache and mutation publisher
# =============================================================================

import pytest

from hisaab_core.events import (
    InvalidationBus,
    InvalidationEvent,
    InvalidationEventName,
    MutationPublisher,
    QueryCache,
)


@pytest.fixture
def bus():
    return InvalidationBus()


@pytest.fixture
def query_cache():
    return QueryCache()


@pytest.fixture
def publisher(query_cache, bus):
    return MutationPublisher(query_cache, bus)


def collect(bus, *names):
    received = []
    for name in names:
        bus.subscribe(name, received.append)
    return received


class TestInvalidationBus:

    def test_each_subscriber_receives_once(self, bus):
        first, second = [], []
        bus.subscribe("expense-added", first.append)
        bus.subscribe(InvalidationEventName.EXPENSE_ADDED, second.append)

        delivered = bus.publish(InvalidationEvent("expense-added", {"expense": {"id": 1}}))

        assert delivered == 2
        assert len(first) == 1
        assert len(second) == 1
        assert first[0].detail == {"expense": {"id": 1}}

    def test_other_events_not_delivered(self, bus):
        received = collect(bus, "budget-refresh")

        bus.publish(InvalidationEvent("expense-added"))

        assert received == []

    def test_unknown_name_rejected(self, bus):
        with pytest.raises(ValueError):
            bus.subscribe("expense-exploded", lambda e: None)

    def test_unsubscribe(self, bus):
        received = []
        unsubscribe = bus.subscribe("wallet-updated", received.append)
        unsubscribe()

        bus.publish(InvalidationEvent("wallet-updated"))

        assert received == []
        assert bus.subscriber_count("wallet-updated") == 0

    def test_failing_subscriber_does_not_block_others(self, bus):
        def broken(event):
            raise RuntimeError("screen crashed")

        received = []
        bus.subscribe("income-updated", broken)
        bus.subscribe("income-updated", received.append)

        assert bus.publish(InvalidationEvent("income-updated")) == 2
        assert len(received) == 1

    def test_subscribe_all(self, bus):
        received = []
        bus.subscribe_all(received.append)

        bus.publish(InvalidationEvent("budget-updated"))
        bus.publish(InvalidationEvent("wallet-updated"))

        assert [e.name for e in received] == [
            InvalidationEventName.BUDGET_UPDATED,
            InvalidationEventName.WALLET_UPDATED,
        ]


class TestQueryCache:

    def test_get_set(self, query_cache):
        query_cache.set(("expenses",), [{"id": 1}])

        assert query_cache.get(("expenses",)) == [{"id": 1}]
        assert query_cache.get(("budgets",), default=[]) == []

    def test_update_ignores_missing_keys(self, query_cache):
        assert query_cache.update(("expenses",), lambda rows: rows + [1]) is None
        assert query_cache.keys() == []

    def test_invalidate_prefix(self, query_cache):
        query_cache.set(("budgets", "2026-09"), [])
        query_cache.set(("budgets", "2026-10"), [])
        query_cache.set(("expenses",), [])

        stale = query_cache.invalidate(("budgets",))

        assert sorted(stale) == [("budgets", "2026-09"), ("budgets", "2026-10")]
        assert query_cache.is_stale(("budgets", "2026-10"))
        assert not query_cache.is_stale(("expenses",))

    def test_set_clears_stale(self, query_cache):
        query_cache.set(("budgets",), [])
        query_cache.invalidate(("budgets",))
        query_cache.set(("budgets",), [{"id": 3}])

        assert not query_cache.is_stale(("budgets",))

    def test_listeners_notified_once(self, query_cache):
        calls = []
        query_cache.subscribe(("budgets",), calls.append)
        query_cache.subscribe(("expenses",), calls.append)

        query_cache.invalidate(("budgets", "2026-10"))

        assert calls == [("budgets", "2026-10")]


class TestMutationPublisher:

    def test_expense_add_updates_cache_before_events(self, publisher, query_cache, bus):
        query_cache.set(("expenses",), [{"id": 1, "amount": 200}])
        seen_rows = []
        bus.subscribe("expense-added", lambda e: seen_rows.append(query_cache.get(("expenses",))))

        publisher.record("expense", "add", {"id": 2, "amount": 450})

        assert seen_rows == [[{"id": 1, "amount": 200}, {"id": 2, "amount": 450}]]

    def test_expense_add_events(self, publisher, bus):
        received = []
        bus.subscribe_all(received.append)

        publisher.record("expense", "add", {"id": 2})

        assert [e.name.value for e in received] == [
            "expense-added", "expenses-updated", "finny-expense-added", "budget-refresh",
        ]

    def test_each_event_delivered_exactly_once(self, publisher, bus):
        received = collect(bus, "budget-refresh")

        publisher.record("expense", "update", {"id": 1, "amount": 10})

        assert len(received) == 1

    def test_expense_update_and_delete(self, publisher, query_cache):
        query_cache.set(("expenses",), [{"id": 1, "amount": 1}, {"id": 2, "amount": 2}])

        publisher.record("expense", "update", {"id": 2, "amount": 20})
        assert query_cache.get(("expenses",)) == [{"id": 1, "amount": 1}, {"id": 2, "amount": 20}]

        publisher.record("expense", "delete", {"id": 1})
        assert query_cache.get(("expenses",)) == [{"id": 2, "amount": 20}]

    def test_expense_marks_budgets_stale(self, publisher, query_cache):
        query_cache.set(("budgets", "2026-10"), [{"category": "Food", "amount": 5000}])

        publisher.record("expense", "add", {"id": 9})

        assert query_cache.is_stale(("budgets", "2026-10"))

    def test_receipt_scan_adds_source_events(self, publisher):
        events = publisher.record("expense", "add", [{"id": 1}, {"id": 2}], source="receipt-scan")

        names = [e.name.value for e in events]
        assert "receipt-scanned" in names
        assert "expense-refresh" in names
        assert len(names) == len(set(names))
        assert events[0].detail["count"] == 2
        assert events[0].source == "receipt-scan"

    def test_wallet_updates_both_wallet_queries(self, publisher, query_cache, bus):
        query_cache.set(("wallet-additions", "2026-10"), [])
        query_cache.set(("wallet-additions-all",), [])
        query_cache.set(("monthly_income",), 50000)
        received = collect(bus, "wallet-updated")

        publisher.record("wallet", "add", {"id": 7, "amount": 1000})

        assert query_cache.get(("wallet-additions", "2026-10")) == [{"id": 7, "amount": 1000}]
        assert query_cache.get(("wallet-additions-all",)) == [{"id": 7, "amount": 1000}]
        assert query_cache.is_stale(("monthly_income",))
        assert len(received) == 1
        assert received[0].detail == {"action": "add", "wallet": {"id": 7, "amount": 1000}}

    def test_income_and_budget_events(self, publisher):
        assert publisher.events_for("income", "update") == [
            InvalidationEventName.INCOME_UPDATED, InvalidationEventName.BUDGET_REFRESH,
        ]
        assert publisher.events_for("budget", "delete") == [
            InvalidationEventName.BUDGET_UPDATED, InvalidationEventName.BUDGET_REFRESH,
        ]

    def test_unknown_entity_rejected(self, publisher):
        with pytest.raises(ValueError):
            publisher.record("loan", "add", {"id": 1})
