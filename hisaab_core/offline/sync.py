# =============================================================================
# hisaab_core/offline/sync.py
# Background Sync
# =============================================================================
"""
Background sync - named tasks the platform redelivers when connectivity
returns.

- SyncRegistry: worker side. Maps a tag to one handler. Adding a sync type
  is a register() call.
- SyncManager: platform side. Queues registered tags and delivers them to
  the worker when online; retries belong to it, not to the handlers.
"""

from __future__ import annotations
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Dict, List, Optional
import logging

from hisaab_core.errors import NetworkError, SyncError
from hisaab_core.offline.clients import ClientRegistry
from hisaab_core.offline.connection_manager import ConnectionStatus
from hisaab_core.offline.http import resolve_url

if TYPE_CHECKING:
    from hisaab_core.offline.connection_manager import ConnectionManager, ConnectionState
    from hisaab_core.offline.network import NetworkClient

logger = logging.getLogger(__name__)

SyncHandler = Callable[[], bool]

# tag -> message posted to clients once the sync succeeded
SYNC_MESSAGES = {
    "sync-expenses": "EXPENSES_SYNCED",
    "sync-budgets": "BUDGETS_SYNCED",
}


def make_post_sync_handler(
    url: str,
    message_type: str,
    network: NetworkClient,
    clients: ClientRegistry,
) -> SyncHandler:
    """
    Handler that POSTs (no body) to a fixed endpoint.

    Any 2xx broadcasts {"type": message_type} to every client. Failures are
    logged and reported as False.
    """

    def handler() -> bool:
        logger.info(f"Syncing via POST {url}")
        try:
            response = network.post(url)
        except NetworkError as e:
            logger.error(f"Sync POST to {url} failed: {e.message}")
            return False

        if not response.ok:
            logger.error(f"Sync POST to {url} returned {response.status}")
            return False

        clients.broadcast({"type": message_type})
        return True

    return handler


class SyncRegistry:
    """Tag -> handler map used by the worker's sync event."""

    def __init__(self):
        self._handlers: Dict[str, SyncHandler] = {}

    def register(self, tag: str, handler: SyncHandler) -> None:
        if tag in self._handlers:
            logger.warning(f"Replacing sync handler for '{tag}'")
        self._handlers[tag] = handler

    def unregister(self, tag: str) -> None:
        self._handlers.pop(tag, None)

    def tags(self) -> List[str]:
        return list(self._handlers)

    def __contains__(self, tag: str) -> bool:
        return tag in self._handlers

    def dispatch(self, tag: str) -> bool:
        """
        Run the handler for a tag.

        Returns:
            The handler's result; False for unknown tags

        Raises:
            SyncError: when the handler asks for redelivery
        """
        handler = self._handlers.get(tag)
        if handler is None:
            logger.warning(f"No sync handler registered for '{tag}'")
            return False
        logger.info(f"Background sync triggered: {tag}")
        return bool(handler())

    @classmethod
    def with_defaults(
        cls,
        endpoints: Dict[str, str],
        origin: str,
        network: NetworkClient,
        clients: ClientRegistry,
    ) -> SyncRegistry:
        registry = cls()
        for tag, path in endpoints.items():
            message_type = SYNC_MESSAGES.get(
                tag, tag.replace("sync-", "").upper().replace("-", "_") + "_SYNCED"
            )
            registry.register(
                tag,
                make_post_sync_handler(resolve_url(origin, path), message_type, network, clients),
            )
        return registry


@dataclass
class PendingSync:
    tag: str
    registered_at: datetime = field(default_factory=datetime.now)
    attempts: int = 0
    last_error: Optional[str] = None
    in_flight: bool = False


class SyncManager:
    """
    Platform side of background sync.

    Usage:
        manager = SyncManager(worker, connection_manager)
        manager.register("sync-expenses")   # queued while offline
        # ... connectivity returns -> the tag is delivered to the worker
    """

    MAX_ATTEMPTS = 3

    def __init__(self, worker, connection: Optional[ConnectionManager] = None):
        self.worker = worker
        self.connection = connection
        self._pending: Dict[str, PendingSync] = {}
        self._lock = threading.Lock()

        if connection is not None:
            connection.register_callback(self._on_connection_change)

    @property
    def pending_tags(self) -> List[str]:
        with self._lock:
            return list(self._pending)

    def register(self, tag: str) -> None:
        """Queue a tag; registering a queued tag again is a no-op."""
        with self._lock:
            if tag not in self._pending:
                self._pending[tag] = PendingSync(tag)
        logger.debug(f"Sync registered: {tag}")

        if self._is_online():
            self.process_pending()

    def _is_online(self) -> bool:
        return self.connection is None or self.connection.is_online

    def _on_connection_change(self, state: ConnectionState) -> None:
        if state.status == ConnectionStatus.ONLINE:
            logger.info("Connection restored, delivering pending sync tags")
            self.process_pending()

    def process_pending(self) -> Dict[str, bool]:
        """
        Deliver every queued tag to the worker.

        Returns:
            tag -> handler result for the tags delivered in this pass
        """
        if not self._is_online():
            logger.debug("Cannot deliver sync tags: offline")
            return {}

        results = {}
        for tag in self.pending_tags:
            pending = self._claim(tag)
            if pending is None:
                continue

            try:
                results[tag] = self.worker.handle_sync(tag)
            except SyncError as e:
                results[tag] = False
                self._release(pending, e.message)
                continue

            self._drop(tag)
        return results

    def _claim(self, tag: str) -> Optional[PendingSync]:
        """Mark a queued tag in flight; None if it is gone or another pass holds it."""
        with self._lock:
            pending = self._pending.get(tag)
            if pending is None or pending.in_flight:
                return None
            pending.in_flight = True
            pending.attempts += 1
            return pending

    def _release(self, pending: PendingSync, error: str) -> None:
        with self._lock:
            pending.last_error = error
            pending.in_flight = False
            give_up = pending.attempts >= self.MAX_ATTEMPTS
            if give_up:
                self._pending.pop(pending.tag, None)

        if give_up:
            logger.error(f"Giving up on sync '{pending.tag}' after {pending.attempts} attempts")
        else:
            logger.warning(f"Sync '{pending.tag}' failed, will retry: {error}")

    def _drop(self, tag: str) -> None:
        with self._lock:
            self._pending.pop(tag, None)
