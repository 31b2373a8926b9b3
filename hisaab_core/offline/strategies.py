# =============================================================================
# hisaab_core/offline/strategies.py
# Caching Strategies
# =============================================================================
"""
Caching strategies used by the request router.

- CacheFirstStrategy: static assets. Serve the stored copy at once and
  refresh it in the background.
- NetworkFirstStrategy: data and everything else. Prefer the live response,
  fall back to any stored copy, then to an offline JSON placeholder for data
  backend hosts.
- AppShellStrategy: navigations. Client-side routing renders every path
  from the same entry document.

Strategies receive their storage, network and config explicitly; none of
them keeps module-level state.
"""

from __future__ import annotations
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from fnmatch import fnmatch
from typing import Callable, List, Optional, Protocol
import logging

from hisaab_core.errors import CacheWriteError, NetworkError
from hisaab_core.offline.cache_storage import CacheStorage
from hisaab_core.offline.config import OfflineConfig
from hisaab_core.offline.http import FetchRequest, Response, resolve_url

logger = logging.getLogger(__name__)

OFFLINE_ERROR_MESSAGE = "Offline - cached data not available"


class Fetcher(Protocol):
    def fetch(self, request: FetchRequest) -> Response: ...


class BackgroundTasks:
    """
    Runs fire-and-forget work (background refreshes) off the caller's thread.

    Usage:
        tasks = BackgroundTasks()
        tasks.submit(refresh, request)
        tasks.wait_idle(timeout=5)
    """

    MAX_WORKERS = 4

    def __init__(self, max_workers: Optional[int] = None):
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or self.MAX_WORKERS,
            thread_name_prefix="CacheRefresh",
        )
        self._pending: List[Future] = []
        self._lock = threading.Lock()

    def submit(self, func: Callable, *args, **kwargs) -> Future:
        future = self._executor.submit(func, *args, **kwargs)
        with self._lock:
            self._pending = [f for f in self._pending if not f.done()]
            self._pending.append(future)
        return future

    @property
    def pending_count(self) -> int:
        with self._lock:
            return sum(1 for f in self._pending if not f.done())

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Block until every submitted task has finished.

        Returns:
            True if all tasks finished within the timeout
        """
        with self._lock:
            pending = list(self._pending)
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait_for_tasks: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_tasks)


def is_data_backend_host(url_or_host: str, patterns: List[str]) -> bool:
    """Whether a host (or URL) matches one of the configured host patterns."""
    host = url_or_host
    if "://" in url_or_host:
        host = FetchRequest.get(url_or_host).host
    host = host.lower()
    return any(fnmatch(host, pattern.lower()) for pattern in patterns)


def offline_placeholder(request: FetchRequest) -> Response:
    """JSON body data screens can render as an empty offline state."""
    return Response.json_response(
        request.url,
        {"offline": True, "data": [], "error": OFFLINE_ERROR_MESSAGE},
    )


class Strategy:
    """Base class: a strategy turns a request into a response."""

    name = "strategy"

    def __init__(self, storage: CacheStorage, network: Fetcher, config: OfflineConfig):
        self.storage = storage
        self.network = network
        self.config = config

    def handle(self, request: FetchRequest) -> Response:
        raise NotImplementedError

    def _lookup(self, request: FetchRequest, cache_name: Optional[str] = None) -> Optional[Response]:
        """Stored snapshot from one store, or any store; an unreadable store is a miss."""
        try:
            if cache_name is None:
                return self.storage.match(request)
            return self.storage.open(cache_name).match(request)
        except CacheWriteError as e:
            logger.warning(f"Cache lookup failed for {request.url}: {e.message}")
            return None

    def _store(self, cache_name: str, request: FetchRequest, response: Response) -> bool:
        """Best-effort write; a storage failure never reaches the caller."""
        try:
            return self.storage.open(cache_name).put(request, response)
        except CacheWriteError as e:
            logger.warning(f"Could not cache {request.url} in '{cache_name}': {e.message}")
            return False

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class PassthroughStrategy(Strategy):
    """Straight to the network; no store is read or written."""

    name = "passthrough"

    def handle(self, request: FetchRequest) -> Response:
        return self.network.fetch(request)


class CacheFirstStrategy(Strategy):
    """
    Serve any stored copy, refresh it in the background.

    The lookup covers every store, so an asset already held in the data
    cache is not refetched; writes go to cache_name (the app shell store). A hit
    returns without waiting on the network. A miss waits for the network
    and stores a 200 response; with nothing to fall back on, a network
    failure on a miss propagates.
    """

    name = "cache-first"

    def __init__(
        self,
        storage: CacheStorage,
        network: Fetcher,
        config: OfflineConfig,
        tasks: BackgroundTasks,
        cache_name: Optional[str] = None,
    ):
        super().__init__(storage, network, config)
        self.tasks = tasks
        self.cache_name = cache_name or config.app_shell_cache

    def handle(self, request: FetchRequest) -> Response:
        cached = self._lookup(request)
        if cached is not None:
            self.tasks.submit(self.refresh, request)
            return cached

        response = self.network.fetch(request)
        if response.status == 200:
            self._store(self.cache_name, request, response)
        return response

    def refresh(self, request: FetchRequest) -> bool:
        """Overwrite the stored copy with a fresh 200 response. Never raises."""
        try:
            response = self.network.fetch(request)
        except NetworkError as e:
            logger.debug(f"Background refresh skipped for {request.url}: {e.message}")
            return False

        if response.status != 200:
            logger.debug(f"Background refresh for {request.url} returned {response.status}")
            return False
        return self._store(self.cache_name, request, response)


class NetworkFirstStrategy(Strategy):
    """
    Prefer the live response; fall back to the cache, then to a placeholder.

    Only data backend hosts get the placeholder; any other request with
    nothing cached re-raises the network failure.
    """

    name = "network-first"

    def __init__(
        self,
        storage: CacheStorage,
        network: Fetcher,
        config: OfflineConfig,
        cache_name: Optional[str] = None,
    ):
        super().__init__(storage, network, config)
        self.cache_name = cache_name or config.data_cache

    def handle(self, request: FetchRequest) -> Response:
        try:
            response = self.network.fetch(request)
        except NetworkError:
            logger.info(f"Network failed for {request.url}, trying cache")
            cached = self._lookup(request)
            if cached is not None:
                return cached
            if is_data_backend_host(request.host, self.config.data_backend_hosts):
                return offline_placeholder(request)
            raise

        if response.status == 200:
            self._store(self.cache_name, request, response)
        return response


class AppShellStrategy(Strategy):
    """Navigations resolve to the cached entry document."""

    name = "app-shell"

    def __init__(
        self,
        storage: CacheStorage,
        network: Fetcher,
        config: OfflineConfig,
        cache_name: Optional[str] = None,
    ):
        super().__init__(storage, network, config)
        self.cache_name = cache_name or config.app_shell_cache
        self.shell_request = FetchRequest.get(
            resolve_url(config.origin, config.entry_document)
        )

    def handle(self, request: FetchRequest) -> Response:
        shell = self._lookup(self.shell_request, self.cache_name)
        if shell is not None:
            logger.debug(f"Serving app shell for {request.url}")
            return shell
        return self.network.fetch(request)
