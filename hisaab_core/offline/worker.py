# =============================================================================
# hisaab_core/offline/worker.py
# Worker Lifecycle: install, activate, fetch, sync, push
# =============================================================================
"""
ServiceWorker - owns the caches for one app version and answers every
request in its scope.

Lifecycle:
    PARSED -> INSTALLING -> INSTALLED (waiting) -> ACTIVATING -> ACTIVATED
                  |
                  +-> REDUNDANT (install failed, or replaced by a newer worker)

- install: pre-cache the app shell, all or nothing; then skip waiting
- activate: delete every store not belonging to this version, claim clients
- fetch: classify and dispatch through the request router
- sync: run the handler registered for the tag
- push: show the data-update notification
"""

from __future__ import annotations
import threading
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
import logging

from hisaab_core.errors import CacheWriteError, InstallError
from hisaab_core.logging import LogContext
from hisaab_core.offline.cache_storage import CacheStorage, create_storage
from hisaab_core.offline.clients import ClientRegistry
from hisaab_core.offline.config import OfflineConfig
from hisaab_core.offline.http import FetchRequest, Response, resolve_url
from hisaab_core.offline.network import NetworkClient
from hisaab_core.offline.notifications import Notification, NotificationCenter, show_push_notification
from hisaab_core.offline.router import RequestRouter
from hisaab_core.offline.strategies import (
    AppShellStrategy,
    BackgroundTasks,
    CacheFirstStrategy,
    NetworkFirstStrategy,
    PassthroughStrategy,
)
from hisaab_core.offline.sync import SyncRegistry

logger = logging.getLogger(__name__)


class WorkerState(Enum):
    """Worker lifecycle states."""
    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"     # waiting to activate
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"


class ServiceWorker:
    """
    One version of the offline worker.

    Usage:
        worker = ServiceWorker(config)
        worker.install()
        worker.activate()
        response = worker.handle_fetch(FetchRequest.get(url))
    """

    def __init__(
        self,
        config: OfflineConfig,
        storage: Optional[CacheStorage] = None,
        network: Optional[NetworkClient] = None,
        clients: Optional[ClientRegistry] = None,
        notifications: Optional[NotificationCenter] = None,
        tasks: Optional[BackgroundTasks] = None,
    ):
        self.config = config
        if storage is None:
            storage = create_storage(config.cache_db_path, config.quota_bytes)
        self.storage = storage
        if network is None:
            network = NetworkClient(timeout=config.request_timeout)
        self.network = network
        self.clients = clients if clients is not None else ClientRegistry()
        self.notifications = notifications if notifications is not None else NotificationCenter()
        self.tasks = tasks if tasks is not None else BackgroundTasks()

        self._state = WorkerState.PARSED
        self._state_lock = threading.Lock()
        self._state_listeners: List[Callable[[WorkerState], None]] = []
        self.skip_waiting_requested = False

        self.router = RequestRouter.default(
            config,
            passthrough=PassthroughStrategy(self.storage, self.network, config),
            app_shell=AppShellStrategy(self.storage, self.network, config),
            network_first=NetworkFirstStrategy(self.storage, self.network, config),
            cache_first=CacheFirstStrategy(self.storage, self.network, config, self.tasks),
        )
        self.sync_registry = SyncRegistry.with_defaults(
            config.sync_endpoints, config.origin, self.network, self.clients,
        )

    def __repr__(self) -> str:
        return f"ServiceWorker(version={self.config.cache_version!r}, state={self.state.value})"

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def state(self) -> WorkerState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state == WorkerState.ACTIVATED

    def on_state_change(self, listener: Callable[[WorkerState], None]) -> None:
        if listener not in self._state_listeners:
            self._state_listeners.append(listener)

    def _set_state(self, state: WorkerState) -> None:
        with self._state_lock:
            old = self._state
            self._state = state
        logger.info(f"Worker {self.config.cache_version}: {old.value} -> {state.value}")
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error(f"Error in worker state listener: {e}")

    def mark_redundant(self) -> None:
        self._set_state(WorkerState.REDUNDANT)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def install(self) -> None:
        """
        Pre-cache the app shell and ask to skip waiting.

        Raises:
            InstallError: if any app shell file cannot be cached; the worker
                becomes redundant and nothing is stored
        """
        if self._state != WorkerState.PARSED:
            raise InstallError(f"Cannot install a worker in state '{self._state.value}'")

        self._set_state(WorkerState.INSTALLING)
        shell_requests = [
            FetchRequest.get(resolve_url(self.config.origin, path))
            for path in self.config.app_shell_files
        ]

        try:
            with LogContext(
                logger, "Caching app shell",
                version=self.config.cache_version, files=len(shell_requests),
            ):
                try:
                    cache = self.storage.open(self.config.app_shell_cache)
                except CacheWriteError as e:
                    raise InstallError(
                        f"Could not open '{self.config.app_shell_cache}': {e.message}",
                        details=e.details,
                    ) from e
                cache.add_all(shell_requests, self.network)
        except InstallError:
            self._set_state(WorkerState.REDUNDANT)
            raise

        self._set_state(WorkerState.INSTALLED)
        self.skip_waiting()

    def skip_waiting(self) -> None:
        """Activate as soon as installed instead of waiting for old pages to close."""
        self.skip_waiting_requested = True

    def activate(self) -> List[str]:
        """
        Drop caches from other versions and take control of open pages.

        Returns:
            Names of the deleted stores
        """
        if self._state != WorkerState.INSTALLED:
            raise RuntimeError(f"Cannot activate a worker in state '{self._state.value}'")

        self._set_state(WorkerState.ACTIVATING)
        deleted = self.storage.delete_stores_not_in(self.config.allowed_caches)
        self.clients.claim(self)
        self._set_state(WorkerState.ACTIVATED)
        return deleted

    # =========================================================================
    # EVENTS
    # =========================================================================

    def handle_fetch(self, request: FetchRequest) -> Response:
        """Answer an intercepted request. Inactive workers do not intercept."""
        if not self.is_active:
            return self.network.fetch(request)
        return self.router.route(request)

    def handle_sync(self, tag: str) -> bool:
        return self.sync_registry.dispatch(tag)

    def handle_push(self, payload: Any) -> Optional[Notification]:
        return show_push_notification(self.notifications, payload)

    def close(self) -> None:
        self.tasks.shutdown(wait_for_tasks=True)

    def get_status_display(self) -> Dict[str, Any]:
        """Worker information for UI display."""
        return {
            "version": self.config.cache_version,
            "state": self._state.value,
            "caches": self.storage.keys(),
            "clients": len(self.clients),
            "sync_tags": self.sync_registry.tags(),
            "background_tasks": self.tasks.pending_count,
        }


class ServiceWorkerRegistration:
    """
    Tracks the installing, waiting and active worker for one scope.

    Usage:
        registration = ServiceWorkerRegistration(clients)
        registration.on_update(lambda event, worker: ...)
        registration.register(ServiceWorker(config, clients=clients))
    """

    def __init__(self, clients: Optional[ClientRegistry] = None):
        self.clients = clients if clients is not None else ClientRegistry()
        self.installing: Optional[ServiceWorker] = None
        self.waiting: Optional[ServiceWorker] = None
        self.active: Optional[ServiceWorker] = None
        self._update_listeners: List[Callable[[str, ServiceWorker], None]] = []

    def on_update(self, listener: Callable[[str, ServiceWorker], None]) -> None:
        if listener not in self._update_listeners:
            self._update_listeners.append(listener)

    def _notify(self, event: str, worker: ServiceWorker) -> None:
        for listener in list(self._update_listeners):
            try:
                listener(event, worker)
            except Exception as e:
                logger.error(f"Error in registration listener: {e}")

    def register(self, worker: ServiceWorker) -> ServiceWorker:
        """
        Install a worker and activate it when allowed.

        Raises:
            InstallError: if installation fails; the current active worker
                keeps control
        """
        self.installing = worker
        self._notify("updatefound", worker)
        try:
            worker.install()
        finally:
            self.installing = None

        has_controller = any(c.controller is not None for c in self.clients.match_all())
        if has_controller:
            self._notify("installed", worker)

        if worker.skip_waiting_requested or self.active is None:
            self._promote(worker)
        else:
            self.waiting = worker
        return worker

    def _promote(self, worker: ServiceWorker) -> None:
        previous = self.active
        worker.activate()
        self.active = worker
        self.waiting = None
        if previous is not None and previous is not worker:
            previous.mark_redundant()
            previous.close()
        self._notify("activated", worker)
