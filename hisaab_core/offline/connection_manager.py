# =============================================================================
# hisaab_core/offline/connection_manager.py
# Connection Status Detection and Management
# =============================================================================
"""
ConnectionManager - Detects and monitors internet and data-backend connectivity.

Features:
- Connection detection by socket probe
- Optional background health checks
- Callbacks on status change (the sync manager listens here)
"""

from __future__ import annotations
import socket
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Tuple
from urllib.parse import urlparse
import logging

logger = logging.getLogger(__name__)


class ConnectionStatus(Enum):
    """Connection status states."""
    ONLINE = "online"           # Internet and data backend reachable
    OFFLINE = "offline"         # No connectivity
    DEGRADED = "degraded"       # Internet OK but data backend unavailable
    CHECKING = "checking"       # Currently checking status
    UNKNOWN = "unknown"         # Initial state


@dataclass
class ConnectionState:
    """Current connection state with metadata."""
    status: ConnectionStatus = ConnectionStatus.UNKNOWN
    internet_available: bool = False
    backend_available: bool = False
    last_check: Optional[datetime] = None
    last_online: Optional[datetime] = None
    consecutive_failures: int = 0
    error_message: Optional[str] = None


class ConnectionManager:
    """
    Tracks whether the app can reach the network and its data backend.

    Usage:
        manager = ConnectionManager(backend_url=os.getenv("SUPABASE_URL"))
        manager.check_connection()
        if manager.is_online:
            # deliver queued sync tags
    """

    CHECK_INTERVAL_ONLINE = 30      # Seconds between checks when online
    CHECK_INTERVAL_OFFLINE = 10     # Seconds between checks when offline
    CONNECTION_TIMEOUT = 5          # Timeout for connection probes

    PROBE_HOSTS: List[Tuple[str, int]] = [
        ("8.8.8.8", 53),        # Google DNS
        ("1.1.1.1", 53),        # Cloudflare DNS
        ("208.67.222.222", 53), # OpenDNS
    ]

    def __init__(self, backend_url: Optional[str] = None):
        self.backend_url = backend_url
        self._state = ConnectionState()
        self._callbacks: List[Callable[[ConnectionState], None]] = []
        self._monitor_thread: Optional[threading.Thread] = None
        self._stop_monitoring = threading.Event()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def status(self) -> ConnectionStatus:
        return self._state.status

    @property
    def is_online(self) -> bool:
        return self._state.status == ConnectionStatus.ONLINE

    @property
    def is_offline(self) -> bool:
        return self._state.status == ConnectionStatus.OFFLINE

    def check_connection(self) -> ConnectionState:
        """
        Perform a connection check and update state.

        Returns:
            Updated ConnectionState
        """
        old_status = self._state.status
        self._state.status = ConnectionStatus.CHECKING
        self._state.last_check = datetime.now()

        internet_ok = self._check_internet()
        self._state.internet_available = internet_ok

        backend_ok = internet_ok and self._check_backend()
        self._state.backend_available = backend_ok

        if internet_ok and backend_ok:
            self._set_status(old_status, ConnectionStatus.ONLINE)
        elif internet_ok:
            self._set_status(old_status, ConnectionStatus.DEGRADED)
        else:
            self._set_status(old_status, ConnectionStatus.OFFLINE)

        return self._state

    def _set_status(self, old_status: ConnectionStatus, status: ConnectionStatus) -> None:
        self._state.status = status
        if status == ConnectionStatus.ONLINE:
            self._state.last_online = datetime.now()
            self._state.consecutive_failures = 0
            self._state.error_message = None
        else:
            self._state.consecutive_failures += 1

        if old_status != status:
            logger.info(f"Connection status changed: {old_status.value} -> {status.value}")
            self._notify_callbacks()

    def _probe(self, host: str, port: int) -> bool:
        try:
            with socket.create_connection((host, port), timeout=self.CONNECTION_TIMEOUT):
                return True
        except OSError as e:
            logger.debug(f"Probe {host}:{port} failed: {e}")
            return False

    def _check_internet(self) -> bool:
        return any(self._probe(host, port) for host, port in self.PROBE_HOSTS)

    def _check_backend(self) -> bool:
        """
        Probe the data backend. Without a configured backend URL the app runs
        against its own origin only, which counts as available.
        """
        if not self.backend_url:
            return True

        parsed = urlparse(self.backend_url)
        if not parsed.hostname:
            self._state.error_message = f"Invalid backend URL: {self.backend_url}"
            return False

        port = parsed.port or (443 if parsed.scheme == "https" else 80)
        ok = self._probe(parsed.hostname, port)
        if not ok:
            self._state.error_message = f"Data backend {parsed.hostname} unreachable"
        return ok

    def set_online(self) -> None:
        """Mark the connection as online without probing (platform 'online' event)."""
        old_status = self._state.status
        self._state.internet_available = True
        self._state.backend_available = True
        self._set_status(old_status, ConnectionStatus.ONLINE)

    def force_offline(self) -> None:
        """Force offline mode (for testing or user preference)."""
        old_status = self._state.status
        self._state.internet_available = False
        self._state.backend_available = False
        self._set_status(old_status, ConnectionStatus.OFFLINE)
        logger.info("Forced offline mode")

    def start_monitoring(self) -> None:
        """Start background connection monitoring."""
        if self._monitor_thread is not None and self._monitor_thread.is_alive():
            return

        self._stop_monitoring.clear()
        self._monitor_thread = threading.Thread(
            target=self._monitoring_loop,
            daemon=True,
            name="ConnectionMonitor"
        )
        self._monitor_thread.start()
        logger.debug("Connection monitoring started")

    def stop_monitoring(self) -> None:
        """Stop background connection monitoring."""
        self._stop_monitoring.set()
        if self._monitor_thread:
            self._monitor_thread.join(timeout=5)
        logger.debug("Connection monitoring stopped")

    def _monitoring_loop(self) -> None:
        while not self._stop_monitoring.is_set():
            interval = (
                self.CHECK_INTERVAL_ONLINE
                if self.is_online
                else self.CHECK_INTERVAL_OFFLINE
            )

            if self._stop_monitoring.wait(timeout=interval):
                break

            try:
                self.check_connection()
            except Exception as e:
                logger.error(f"Error in connection check: {e}")

    def register_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self) -> None:
        for callback in list(self._callbacks):
            try:
                callback(self._state)
            except Exception as e:
                logger.error(f"Error in connection callback: {e}")

    def get_status_display(self) -> dict:
        """Get status information for UI display."""
        return {
            "status": self._state.status.value,
            "is_online": self.is_online,
            "internet": self._state.internet_available,
            "backend": self._state.backend_available,
            "last_check": self._state.last_check.isoformat() if self._state.last_check else None,
            "last_online": self._state.last_online.isoformat() if self._state.last_online else None,
            "failures": self._state.consecutive_failures,
            "error": self._state.error_message,
        }
