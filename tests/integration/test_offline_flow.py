# =============================================================================
# tests/integration/test_offline_flow.py
# Integration Tests for the Offline Flow (Install → Online → Offline → Sync)
# =============================================================================

import pytest

from hisaab_core.events import InvalidationBus, MutationPublisher, QueryCache
from hisaab_core.offline.cache_storage import SQLiteCacheStorage
from hisaab_core.offline.config import OfflineConfig
from hisaab_core.offline.connection_manager import ConnectionManager
from hisaab_core.offline.http import Destination, FetchRequest
from hisaab_core.offline.strategies import BackgroundTasks
from hisaab_core.offline.sync import SyncManager
from hisaab_core.offline.worker import ServiceWorker, ServiceWorkerRegistration, WorkerState

from tests.conftest import ORIGIN, SUPABASE


EXPENSES_URL = f"{SUPABASE}/rest/v1/expenses?select=*&month=2026-10"
BUDGETS_URL = f"{SUPABASE}/rest/v1/budgets?select=*"
CHUNK_URL = f"{ORIGIN}/assets/Dashboard-3f9c1a7b.js"


class TestOfflineFlowIntegration:
    """
    Integration tests for a whole session.

    Tests the flow:
    1. First visit installs and activates the worker
    2. Online requests populate the caches
    3. Offline requests fall back to the caches or the placeholder
    4. Queued sync tags are delivered when connectivity returns
    5. Mutations update the query cache and notify screens
    """

    @pytest.fixture
    def session(self, shell_network, tmp_path):
        storage = SQLiteCacheStorage(tmp_path / "cache.db")
        tasks = BackgroundTasks()
        registration = ServiceWorkerRegistration()
        page = registration.clients.open(f"{ORIGIN}/app")
        worker = ServiceWorker(
            OfflineConfig(origin=ORIGIN),
            storage=storage,
            network=shell_network,
            clients=registration.clients,
            tasks=tasks,
        )
        registration.register(worker)

        yield registration, worker, page

        tasks.shutdown()
        storage.close()

    def test_session_survives_going_offline(self, session, shell_network):
        registration, worker, page = session
        assert worker.state == WorkerState.ACTIVATED
        assert page.controller is worker

        # Online: data and a static image are fetched and stored
        shell_network.set_response(EXPENSES_URL, b'[{"id": 1, "amount": 450}]',
                                   headers={"Content-Type": "application/json"})
        shell_network.set_response(f"{ORIGIN}/icon-192.png", b"png")
        shell_network.set_response(CHUNK_URL, b"console.log(1)")

        assert worker.handle_fetch(FetchRequest.get(EXPENSES_URL)).json() == [{"id": 1, "amount": 450}]
        worker.handle_fetch(FetchRequest.get(f"{ORIGIN}/icon-192.png", destination=Destination.IMAGE))
        worker.handle_fetch(FetchRequest.get(CHUNK_URL, destination=Destination.SCRIPT))

        cached_keys = [key for _, key, _ in worker.storage.entries()]
        assert f"GET {EXPENSES_URL}" in cached_keys
        assert f"GET {CHUNK_URL}" not in cached_keys

        # Offline: everything fails on the wire
        for url in [EXPENSES_URL, BUDGETS_URL, f"{ORIGIN}/icon-192.png", f"{ORIGIN}/app/budget"]:
            shell_network.fail(url)

        cached = worker.handle_fetch(FetchRequest.get(EXPENSES_URL))
        assert cached.json() == [{"id": 1, "amount": 450}]

        placeholder = worker.handle_fetch(FetchRequest.get(BUDGETS_URL))
        assert placeholder.status == 200
        assert placeholder.json() == {
            "offline": True,
            "data": [],
            "error": "Offline - cached data not available",
        }

        icon = worker.handle_fetch(FetchRequest.get(f"{ORIGIN}/icon-192.png", destination=Destination.IMAGE))
        assert icon.body == b"png"

        shell = worker.handle_fetch(FetchRequest.navigate(f"{ORIGIN}/app/budget"))
        assert shell.body == b"<html>shell</html>"

        assert worker.tasks.wait_idle(timeout=5)

    def test_queued_sync_delivered_after_reconnect(self, session, shell_network):
        registration, worker, page = session
        connection = ConnectionManager()
        connection.force_offline()
        sync_manager = SyncManager(worker, connection)

        sync_manager.register("sync-expenses")
        sync_manager.register("sync-budgets")
        assert page.messages == []

        shell_network.set_response(f"{ORIGIN}/api/sync/expenses", b"", status=200)
        shell_network.set_response(f"{ORIGIN}/api/sync/budgets", b"", status=500)
        connection.set_online()

        assert page.messages == [{"type": "EXPENSES_SYNCED"}]
        assert sync_manager.pending_tags == []

    def test_update_replaces_old_caches(self, session, shell_network):
        registration, worker, page = session
        shell_network.set_response(EXPENSES_URL, b"[]")
        worker.handle_fetch(FetchRequest.get(EXPENSES_URL))
        assert sorted(worker.storage.keys()) == ["app-shell-v4", "data-cache-v4"]

        upgraded = ServiceWorker(
            OfflineConfig(origin=ORIGIN, cache_version="v5"),
            storage=worker.storage,
            network=shell_network,
            clients=registration.clients,
            tasks=BackgroundTasks(),
        )
        registration.register(upgraded)

        assert sorted(upgraded.storage.keys()) == ["app-shell-v5"]
        assert worker.state == WorkerState.REDUNDANT
        assert page.controller is upgraded
        upgraded.close()

    def test_mutation_reaches_screens(self):
        bus = InvalidationBus()
        queries = QueryCache()
        publisher = MutationPublisher(queries, bus)
        queries.set(("expenses",), [])
        queries.set(("budgets",), [{"category": "Food", "spent": 0}])

        budget_screen = []
        expense_screen = []
        bus.subscribe("budget-refresh", budget_screen.append)
        bus.subscribe("expenses-updated", lambda e: expense_screen.append(queries.get(("expenses",))))

        publisher.record("expense", "add", {"id": 11, "category": "Food", "amount": 900})

        assert expense_screen == [[{"id": 11, "category": "Food", "amount": 900}]]
        assert len(budget_screen) == 1
        assert queries.is_stale(("budgets",))
