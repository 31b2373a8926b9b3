# =============================================================================
# hisaab_core/offline/clients.py
# Open pages controlled by the worker
# =============================================================================
"""
Clients are the open pages/tabs. The worker talks to them only by posting
messages; each client keeps what it received and forwards it to listeners.
"""

from __future__ import annotations
import threading
import uuid
from typing import Any, Callable, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

Message = Dict[str, Any]


class Client:
    """One open page."""

    def __init__(self, url: str, client_id: Optional[str] = None):
        self.url = url
        self.id = client_id or uuid.uuid4().hex
        self.controller = None
        self.messages: List[Message] = []
        self._listeners: List[Callable[[Message], None]] = []
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"Client({self.url!r}, id={self.id[:8]})"

    def on_message(self, listener: Callable[[Message], None]) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def post_message(self, message: Message) -> None:
        with self._lock:
            self.messages.append(dict(message))
        for listener in list(self._listeners):
            try:
                listener(dict(message))
            except Exception as e:
                logger.error(f"Error in message listener for {self}: {e}")


class ClientRegistry:
    """The set of pages within the worker's scope."""

    def __init__(self):
        self._clients: Dict[str, Client] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._clients)

    def add(self, client: Client) -> Client:
        with self._lock:
            self._clients[client.id] = client
        return client

    def open(self, url: str) -> Client:
        return self.add(Client(url))

    def remove(self, client: Client) -> None:
        with self._lock:
            self._clients.pop(client.id, None)

    def match_all(self) -> List[Client]:
        with self._lock:
            return list(self._clients.values())

    def claim(self, worker) -> int:
        """Make the worker the controller of every open client."""
        clients = self.match_all()
        for client in clients:
            client.controller = worker
        logger.info(f"Claimed {len(clients)} clients")
        return len(clients)

    def broadcast(self, message: Message) -> int:
        """Post one copy of the message to every client."""
        clients = self.match_all()
        for client in clients:
            client.post_message(message)
        logger.debug(f"Broadcast {message} to {len(clients)} clients")
        return len(clients)
