# =============================================================================
# tests/conftest.py
# Pytest Configuration and Fixtures
# =============================================================================

import sqlite3
import threading
from contextlib import contextmanager
from typing import Dict, List, Optional, Union
from unittest.mock import MagicMock

import pytest

from hisaab_core.errors import NetworkError
from hisaab_core.offline.cache_storage import MemoryCacheStorage, SQLiteCacheStorage
from hisaab_core.offline.clients import ClientRegistry
from hisaab_core.offline.config import OfflineConfig
from hisaab_core.offline.http import FetchRequest, Response
from hisaab_core.offline.strategies import BackgroundTasks
from hisaab_core.offline.worker import ServiceWorker


ORIGIN = "https://app.hisaabdost.test"
SUPABASE = "https://abcd1234.supabase.co"


# =============================================================================
# FAKE NETWORK
# =============================================================================

class FakeNetwork:
    """
    Scripted network. Unknown URLs behave as offline.

    set_response(url, ...) answers with a Response, fail(url) raises
    NetworkError, block(url) holds the fetch until release(url).
    """

    def __init__(self):
        self._routes: Dict[str, Union[Response, Exception]] = {}
        self._gates: Dict[str, threading.Event] = {}
        self.calls: List[FetchRequest] = []
        self._lock = threading.Lock()

    def set_response(self, url: str, body: Union[bytes, str] = b"ok", status: int = 200,
                     headers: Optional[Dict[str, str]] = None) -> None:
        if isinstance(body, str):
            body = body.encode("utf-8")
        self._routes[url] = Response(url=url, status=status, headers=headers or {}, body=body)

    def fail(self, url: str, error: Optional[NetworkError] = None) -> None:
        self._routes[url] = error or NetworkError("Failed to fetch", url=url)

    def block(self, url: str) -> threading.Event:
        gate = threading.Event()
        self._gates[url] = gate
        return gate

    def release(self, url: str) -> None:
        self._gates.pop(url).set()

    def calls_for(self, url: str) -> List[FetchRequest]:
        with self._lock:
            return [c for c in self.calls if c.url == url]

    def fetch(self, request: FetchRequest) -> Response:
        with self._lock:
            self.calls.append(request)
        gate = self._gates.get(request.url)
        if gate is not None:
            gate.wait(timeout=5)

        result = self._routes.get(request.url)
        if result is None:
            raise NetworkError("Failed to fetch", url=request.url)
        if isinstance(result, Exception):
            raise result
        return result

    def post(self, url: str, body: Optional[bytes] = None) -> Response:
        return self.fetch(FetchRequest(url=url, method="POST", body=body))


# =============================================================================
# CORE FIXTURES
# =============================================================================

@pytest.fixture
def config():
    return OfflineConfig(origin=ORIGIN)


@pytest.fixture
def network():
    return FakeNetwork()


@pytest.fixture
def storage():
    return MemoryCacheStorage()


@pytest.fixture
def tasks():
    background = BackgroundTasks()
    yield background
    background.shutdown()


@pytest.fixture
def clients():
    return ClientRegistry()


@pytest.fixture
def shell_network(network):
    """Network that serves the app shell files."""
    network.set_response(f"{ORIGIN}/", "<html>root</html>", headers={"Content-Type": "text/html"})
    network.set_response(f"{ORIGIN}/index.html", "<html>shell</html>", headers={"Content-Type": "text/html"})
    network.set_response(f"{ORIGIN}/manifest.json", '{"name": "HisaabDost"}',
                         headers={"Content-Type": "application/json"})
    return network


@pytest.fixture
def worker(config, storage, shell_network, clients, tasks):
    """A fresh, not yet installed worker."""
    return ServiceWorker(config, storage=storage, network=shell_network, clients=clients, tasks=tasks)


@pytest.fixture
def active_worker(worker):
    worker.install()
    worker.activate()
    return worker


# =============================================================================
# SQLITE FIXTURES
# =============================================================================

@contextmanager
def exclusive_lock(db_path):
    """Hold an EXCLUSIVE lock on the database from a second connection."""
    conn = sqlite3.connect(str(db_path), isolation_level=None)
    conn.execute("BEGIN EXCLUSIVE")
    try:
        yield conn
    finally:
        conn.execute("ROLLBACK")
        conn.close()


@pytest.fixture
def sqlite_storage(tmp_path):
    """On-disk storage that gives up quickly when the file is locked."""
    storage = SQLiteCacheStorage(tmp_path / "cache.db", busy_timeout=0.1)
    yield storage
    storage.close()


# =============================================================================
# MOCK FIXTURES
# =============================================================================

@pytest.fixture
def mock_streamlit(monkeypatch):
    """Mock Streamlit for testing"""
    mock_st = MagicMock()
    mock_st.session_state = {}
    mock_st.sidebar.__enter__ = MagicMock(return_value=mock_st.sidebar)
    mock_st.sidebar.__exit__ = MagicMock(return_value=False)

    monkeypatch.setattr("hisaab_core.errors.handlers.st", mock_st)
    monkeypatch.setattr("hisaab_core.ui.status_panel.st", mock_st)
    return mock_st


@pytest.fixture
def mock_session():
    """Mock requests.Session"""
    session = MagicMock()
    session.headers = {}
    return session
