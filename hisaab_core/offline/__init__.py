# =============================================================================
# hisaab_core/offline/__init__.py
# Offline-First Architecture for HisaabDost
# =============================================================================
"""
Offline-First Architecture Module

Every request from the app goes through a ServiceWorker, which classifies it
and answers from the network, from a cache store, or both.

Architecture:
------------
┌──────────────────────────────────────────────────────────────┐
│                        ServiceWorker                          │
│      install / activate / fetch / sync / push handlers        │
└──────────────────────────────────────────────────────────────┘
          │                     │                     │
          ▼                     ▼                     ▼
 ┌─────────────────┐   ┌─────────────────┐   ┌─────────────────┐
 │  RequestRouter  │   │  SyncRegistry   │   │ NotificationCtr │
 │ (ordered routes)│   │  (tag->handler) │   │ (tag replaces)  │
 └─────────────────┘   └─────────────────┘   └─────────────────┘
          │                     ▲
          ▼                     │
 ┌─────────────────┐   ┌─────────────────┐
 │   Strategies    │   │   SyncManager   │◄── ConnectionManager
 │ cache / network │   │  (redelivery)   │
 └─────────────────┘   └─────────────────┘
          │
          ▼
 ┌─────────────────┐   ┌─────────────────┐
 │  CacheStorage   │   │  NetworkClient  │
 │ (memory/SQLite) │   │   (requests)    │
 └─────────────────┘   └─────────────────┘

Usage:
------
from hisaab_core.offline import ServiceWorker, ServiceWorkerRegistration, load_config

config = load_config()
registration = ServiceWorkerRegistration()
worker = registration.register(ServiceWorker(config, clients=registration.clients))
response = worker.handle_fetch(FetchRequest.get("https://xyz.supabase.co/rest/v1/expenses"))
"""

from hisaab_core.offline.config import OfflineConfig, load_config

from hisaab_core.offline.http import (
    Destination,
    FetchRequest,
    RequestMode,
    Response,
)

from hisaab_core.offline.cache_storage import (
    Cache,
    CacheStorage,
    MemoryCacheStorage,
    SQLiteCacheStorage,
    create_storage,
)

from hisaab_core.offline.network import NetworkClient

from hisaab_core.offline.strategies import (
    AppShellStrategy,
    BackgroundTasks,
    CacheFirstStrategy,
    NetworkFirstStrategy,
    PassthroughStrategy,
)

from hisaab_core.offline.router import RequestRouter, Route

from hisaab_core.offline.clients import Client, ClientRegistry

from hisaab_core.offline.sync import SyncManager, SyncRegistry

from hisaab_core.offline.notifications import Notification, NotificationCenter

from hisaab_core.offline.connection_manager import (
    ConnectionManager,
    ConnectionState,
    ConnectionStatus,
)

from hisaab_core.offline.worker import (
    ServiceWorker,
    ServiceWorkerRegistration,
    WorkerState,
)

__all__ = [
    # Configuration
    "OfflineConfig",
    "load_config",
    # Requests / responses
    "Destination",
    "FetchRequest",
    "RequestMode",
    "Response",
    # Cache storage
    "Cache",
    "CacheStorage",
    "MemoryCacheStorage",
    "SQLiteCacheStorage",
    "create_storage",
    # Network
    "NetworkClient",
    # Strategies and routing
    "AppShellStrategy",
    "BackgroundTasks",
    "CacheFirstStrategy",
    "NetworkFirstStrategy",
    "PassthroughStrategy",
    "RequestRouter",
    "Route",
    # Clients, sync, push
    "Client",
    "ClientRegistry",
    "SyncManager",
    "SyncRegistry",
    "Notification",
    "NotificationCenter",
    # Connectivity
    "ConnectionManager",
    "ConnectionState",
    "ConnectionStatus",
    # Worker
    "ServiceWorker",
    "ServiceWorkerRegistration",
    "WorkerState",
]
