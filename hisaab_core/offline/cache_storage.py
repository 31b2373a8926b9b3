# =============================================================================
# hisaab_core/offline/cache_storage.py
# Named, versioned request -> response stores
# =============================================================================
"""
CacheStorage - the worker's cache stores.

A storage holds any number of named stores ("app-shell-v4", "data-cache-v4").
Each store maps a request identity (GET + URL) to one immutable response
snapshot. Snapshots never expire; they are only overwritten or dropped along
with their store.

Backends:
- MemoryCacheStorage: dict-backed, for tests and short-lived processes
- SQLiteCacheStorage: single SQLite file, survives restarts

Writes through a ``Cache`` handle are best-effort: ``put`` reports failure as
False and logs it, so caching never fails the operation that produced the
response.
"""

from __future__ import annotations
import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Iterator, List, Optional, Sequence, Tuple
import logging

from hisaab_core.errors import CacheWriteError, InstallError, NetworkError, QuotaExceededError
from hisaab_core.offline.http import FetchRequest, Response

if TYPE_CHECKING:
    from hisaab_core.offline.network import NetworkClient

logger = logging.getLogger(__name__)


class Cache:
    """Handle on one named store. Cheap to create; holds no data itself."""

    def __init__(self, storage: CacheStorage, name: str):
        self.storage = storage
        self.name = name

    def __repr__(self) -> str:
        return f"Cache({self.name!r})"

    def __eq__(self, other) -> bool:
        return (
            isinstance(other, Cache)
            and other.storage is self.storage
            and other.name == self.name
        )

    def __hash__(self) -> int:
        return hash((id(self.storage), self.name))

    def match(self, request: FetchRequest) -> Optional[Response]:
        """Stored snapshot for the request, or None."""
        if not request.is_get:
            return None
        return self.storage.read(self.name, request.cache_key)

    def put(self, request: FetchRequest, response: Response) -> bool:
        """
        Store a snapshot of the response.

        Returns:
            True if stored; False if the request is not cacheable or the
            write failed (the failure is logged, never raised)
        """
        if not request.is_get:
            logger.debug(f"Refusing to cache {request.method} {request.url}")
            return False

        try:
            self.storage.write(self.name, request.cache_key, response.snapshot())
            return True
        except CacheWriteError as e:
            logger.warning(f"Cache write to '{self.name}' failed for {request.url}: {e}")
            return False

    def delete(self, request: FetchRequest) -> bool:
        return self.storage.remove(self.name, request.cache_key)

    def keys(self) -> List[str]:
        return self.storage.entry_keys(self.name)

    def add_all(self, requests: Sequence[FetchRequest], network: NetworkClient) -> None:
        """
        Fetch every request and store all of them, or none.

        Raises:
            InstallError: if any request fails or answers with a non-200
                status, or the batch cannot be written
        """
        fetched: List[Tuple[str, Response]] = []
        failed: List[str] = []

        for request in requests:
            try:
                response = network.fetch(request)
            except NetworkError as e:
                logger.error(f"Pre-cache fetch failed for {request.url}: {e}")
                failed.append(request.url)
                continue
            if response.status != 200:
                logger.error(f"Pre-cache fetch for {request.url} returned {response.status}")
                failed.append(request.url)
                continue
            fetched.append((request.cache_key, response.snapshot()))

        if failed:
            raise InstallError(
                f"Could not pre-cache {len(failed)} of {len(requests)} resources",
                failed_urls=failed,
            )

        try:
            self.storage.write_many(self.name, fetched)
        except CacheWriteError as e:
            raise InstallError(
                f"Could not store pre-cached resources in '{self.name}': {e.message}",
                details=e.details,
            ) from e


class CacheStorage(ABC):
    """
    Registry of named stores.

    Subclasses implement the underscore-prefixed primitives; this class adds
    locking, quota enforcement and the store-level operations.
    """

    def __init__(self, quota_bytes: Optional[int] = None):
        self.quota_bytes = quota_bytes
        self._lock = threading.RLock()

    # =========================================================================
    # BACKEND PRIMITIVES
    # =========================================================================

    @abstractmethod
    def _store_names(self) -> List[str]:
        """Store names in creation order."""

    @abstractmethod
    def _create_store(self, name: str) -> None: ...

    @abstractmethod
    def _drop_store(self, name: str) -> None: ...

    @abstractmethod
    def _get(self, name: str, key: str) -> Optional[Response]: ...

    @abstractmethod
    def _set_many(self, name: str, items: Sequence[Tuple[str, Response]]) -> None: ...

    @abstractmethod
    def _remove(self, name: str, key: str) -> bool: ...

    @abstractmethod
    def _keys(self, name: str) -> List[str]: ...

    @abstractmethod
    def _sizes(self) -> Iterable[Tuple[str, str, int]]:
        """(store, key, size) for every stored entry."""

    # =========================================================================
    # STORE OPERATIONS
    # =========================================================================

    def open(self, name: str) -> Cache:
        """Open a store, creating it on first use. Idempotent."""
        with self._lock:
            if name not in self._store_names():
                self._create_store(name)
                logger.debug(f"Created cache store '{name}'")
        return Cache(self, name)

    def has(self, name: str) -> bool:
        with self._lock:
            return name in self._store_names()

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._store_names())

    def delete(self, name: str) -> bool:
        with self._lock:
            if name not in self._store_names():
                return False
            self._drop_store(name)
        logger.info(f"Deleted cache store '{name}'")
        return True

    def delete_stores_not_in(self, allow_list: Iterable[str]) -> List[str]:
        """
        Delete every store whose name is not in the allow-list.

        Returns:
            Names of the deleted stores
        """
        allowed = set(allow_list)
        deleted = []
        with self._lock:
            for name in self._store_names():
                if name not in allowed:
                    self._drop_store(name)
                    deleted.append(name)
        for name in deleted:
            logger.info(f"Deleted old cache store '{name}'")
        return deleted

    def match(self, request: FetchRequest) -> Optional[Response]:
        """First snapshot for the request across all stores, in creation order."""
        if not request.is_get:
            return None
        with self._lock:
            for name in self._store_names():
                response = self._get(name, request.cache_key)
                if response is not None:
                    return response
        return None

    def entries(self) -> Iterator[Tuple[str, str, Response]]:
        """(store, key, snapshot) for every entry; used for inventories."""
        with self._lock:
            items = [
                (name, key, self._get(name, key))
                for name in self._store_names()
                for key in self._keys(name)
            ]
        for name, key, response in items:
            if response is not None:
                yield name, key, response

    def total_bytes(self) -> int:
        with self._lock:
            return sum(size for _, _, size in self._sizes())

    # =========================================================================
    # ENTRY OPERATIONS (used through Cache handles)
    # =========================================================================

    def read(self, name: str, key: str) -> Optional[Response]:
        with self._lock:
            if name not in self._store_names():
                return None
            return self._get(name, key)

    def write(self, name: str, key: str, response: Response) -> None:
        self.write_many(name, [(key, response)])

    def write_many(self, name: str, items: Sequence[Tuple[str, Response]]) -> None:
        """
        Write all items into a store atomically.

        Raises:
            QuotaExceededError: if the writes would exceed the quota
            CacheWriteError: if the backend rejects the write
        """
        if not items:
            return
        with self._lock:
            if name not in self._store_names():
                self._create_store(name)
            self._check_quota(name, items)
            self._set_many(name, items)

    def remove(self, name: str, key: str) -> bool:
        with self._lock:
            if name not in self._store_names():
                return False
            return self._remove(name, key)

    def entry_keys(self, name: str) -> List[str]:
        with self._lock:
            if name not in self._store_names():
                return []
            return self._keys(name)

    def _check_quota(self, name: str, items: Sequence[Tuple[str, Response]]) -> None:
        if self.quota_bytes is None:
            return

        replaced = {key for key, _ in items}
        current = sum(
            size for store, key, size in self._sizes()
            if not (store == name and key in replaced)
        )
        required = current + sum(response.size for _, response in items)
        if required > self.quota_bytes:
            raise QuotaExceededError(
                "Cache storage quota exceeded",
                quota_bytes=self.quota_bytes,
                required_bytes=required,
                store=name,
            )


class MemoryCacheStorage(CacheStorage):
    """In-process stores. Every handle onto a name shares one dict."""

    def __init__(self, quota_bytes: Optional[int] = None):
        super().__init__(quota_bytes=quota_bytes)
        self._stores: dict = {}

    def _store_names(self) -> List[str]:
        return list(self._stores)

    def _create_store(self, name: str) -> None:
        self._stores[name] = {}

    def _drop_store(self, name: str) -> None:
        del self._stores[name]

    def _get(self, name: str, key: str) -> Optional[Response]:
        response = self._stores[name].get(key)
        return response.snapshot() if response is not None else None

    def _set_many(self, name: str, items: Sequence[Tuple[str, Response]]) -> None:
        self._stores[name].update(items)

    def _remove(self, name: str, key: str) -> bool:
        return self._stores[name].pop(key, None) is not None

    def _keys(self, name: str) -> List[str]:
        return list(self._stores[name])

    def _sizes(self) -> Iterable[Tuple[str, str, int]]:
        for name, store in self._stores.items():
            for key, response in store.items():
                yield name, key, response.size


class SQLiteCacheStorage(CacheStorage):
    """
    Stores persisted in one SQLite file.

    Connections are thread-local, so the path must be a real file for
    background refresh threads to see the same data.
    """

    SCHEMA = {
        "cache_stores": """
            CREATE TABLE IF NOT EXISTS cache_stores (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL UNIQUE,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """,
        "cache_entries": """
            CREATE TABLE IF NOT EXISTS cache_entries (
                store_name TEXT NOT NULL,
                cache_key TEXT NOT NULL,
                url TEXT NOT NULL,
                status INTEGER NOT NULL,
                headers_json TEXT NOT NULL,
                body BLOB NOT NULL,
                size INTEGER NOT NULL,
                stored_at TEXT NOT NULL,
                PRIMARY KEY (store_name, cache_key),
                FOREIGN KEY (store_name) REFERENCES cache_stores(name) ON DELETE CASCADE
            )
        """,
    }

    def __init__(self, db_path: Path, quota_bytes: Optional[int] = None, busy_timeout: float = 5.0):
        super().__init__(quota_bytes=quota_bytes)
        self.db_path = Path(db_path)
        self.busy_timeout = busy_timeout
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        self._initialize()

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if getattr(self._local, "connection", None) is None:
            conn = sqlite3.connect(
                str(self.db_path), timeout=self.busy_timeout, check_same_thread=False,
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            self._local.connection = conn
        return self._local.connection

    @contextmanager
    def transaction(self):
        """Context manager for database transactions."""
        try:
            conn = self._get_connection()
        except sqlite3.Error as e:
            raise CacheWriteError(f"SQLite connection failed: {e}") from e
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            try:
                conn.rollback()
            except sqlite3.Error:
                logger.debug("Rollback failed after SQLite error", exc_info=True)
            raise CacheWriteError(f"SQLite write failed: {e}") from e

    def _read(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        """Run a SELECT; driver errors surface as CacheWriteError like writes do."""
        try:
            return self._get_connection().execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise CacheWriteError(f"SQLite read failed: {e}") from e

    def _initialize(self) -> None:
        with self.transaction() as conn:
            for table_name, schema in self.SCHEMA.items():
                conn.execute(schema)
                logger.debug(f"Created/verified table: {table_name}")
        logger.info(f"Cache database initialized at: {self.db_path}")

    def close(self) -> None:
        conn = getattr(self._local, "connection", None)
        if conn is not None:
            conn.close()
            self._local.connection = None

    def _store_names(self) -> List[str]:
        rows = self._read("SELECT name FROM cache_stores ORDER BY id")
        return [row["name"] for row in rows]

    def _create_store(self, name: str) -> None:
        with self.transaction() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO cache_stores (name, created_at) VALUES (?, ?)",
                (name, datetime.now().isoformat()),
            )

    def _drop_store(self, name: str) -> None:
        with self.transaction() as conn:
            conn.execute("DELETE FROM cache_stores WHERE name = ?", (name,))

    def _get(self, name: str, key: str) -> Optional[Response]:
        rows = self._read(
            "SELECT url, status, headers_json, body FROM cache_entries "
            "WHERE store_name = ? AND cache_key = ?",
            (name, key),
        )
        if not rows:
            return None
        row = rows[0]
        return Response(
            url=row["url"],
            status=row["status"],
            headers=json.loads(row["headers_json"]),
            body=bytes(row["body"]),
        )

    def _set_many(self, name: str, items: Sequence[Tuple[str, Response]]) -> None:
        stored_at = datetime.now().isoformat()
        try:
            rows = [
                (
                    name,
                    key,
                    response.url,
                    response.status,
                    json.dumps(response.headers),
                    sqlite3.Binary(response.body),
                    response.size,
                    stored_at,
                )
                for key, response in items
            ]
        except (TypeError, ValueError) as e:
            raise CacheWriteError(f"Could not serialize response: {e}", store=name)

        with self.transaction() as conn:
            conn.executemany(
                "INSERT OR REPLACE INTO cache_entries "
                "(store_name, cache_key, url, status, headers_json, body, size, stored_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                rows,
            )

    def _remove(self, name: str, key: str) -> bool:
        with self.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM cache_entries WHERE store_name = ? AND cache_key = ?",
                (name, key),
            )
            return cursor.rowcount > 0

    def _keys(self, name: str) -> List[str]:
        rows = self._read(
            "SELECT cache_key FROM cache_entries WHERE store_name = ? ORDER BY stored_at",
            (name,),
        )
        return [row["cache_key"] for row in rows]

    def _sizes(self) -> Iterable[Tuple[str, str, int]]:
        rows = self._read("SELECT store_name, cache_key, size FROM cache_entries")
        return [(row["store_name"], row["cache_key"], row["size"]) for row in rows]


def create_storage(db_path: Optional[Path] = None, quota_bytes: Optional[int] = None) -> CacheStorage:
    """SQLite-backed storage when a path is configured, in-memory otherwise."""
    if db_path is not None:
        return SQLiteCacheStorage(db_path, quota_bytes=quota_bytes)
    return MemoryCacheStorage(quota_bytes=quota_bytes)
