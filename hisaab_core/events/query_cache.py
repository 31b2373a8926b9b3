# =============================================================================
# hisaab_core/events/query_cache.py
# Shared query cache
# =============================================================================
"""
QueryCache - the locally held query results screens read from.

Keys are tuples such as ("expenses",) or ("budgets", "2026-10"). Invalidating
a prefix marks every key under it stale and notifies its listeners once.
"""

from __future__ import annotations
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

QueryKey = Tuple[Any, ...]


@dataclass
class QueryEntry:
    data: Any
    stale: bool = False


def _starts_with(key: QueryKey, prefix: QueryKey) -> bool:
    return key[:len(prefix)] == prefix


class QueryCache:

    def __init__(self):
        self._entries: Dict[QueryKey, QueryEntry] = {}
        self._listeners: List[Tuple[QueryKey, Callable[[QueryKey], None]]] = []
        self._lock = threading.RLock()

    def get(self, key: QueryKey, default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get(tuple(key))
            return entry.data if entry is not None else default

    def set(self, key: QueryKey, data: Any) -> None:
        with self._lock:
            self._entries[tuple(key)] = QueryEntry(data)

    def update(self, key: QueryKey, updater: Callable[[Any], Any]) -> Optional[Any]:
        """Apply updater to a held entry; keys nobody has loaded are left alone."""
        with self._lock:
            entry = self._entries.get(tuple(key))
            if entry is None:
                return None
            entry.data = updater(entry.data)
            return entry.data

    def keys(self) -> List[QueryKey]:
        with self._lock:
            return list(self._entries)

    def is_stale(self, key: QueryKey) -> bool:
        with self._lock:
            entry = self._entries.get(tuple(key))
            return entry is None or entry.stale

    def subscribe(self, prefix: QueryKey, callback: Callable[[QueryKey], None]) -> Callable[[], None]:
        listener = (tuple(prefix), callback)
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def invalidate(self, prefix: QueryKey) -> List[QueryKey]:
        """
        Mark every key under prefix stale and notify listeners.

        Returns:
            The keys that were marked stale
        """
        prefix = tuple(prefix)
        with self._lock:
            matched = [key for key in self._entries if _starts_with(key, prefix)]
            for key in matched:
                self._entries[key].stale = True
            listeners = [
                callback for listen_prefix, callback in self._listeners
                if _starts_with(prefix, listen_prefix) or _starts_with(listen_prefix, prefix)
            ]

        for callback in listeners:
            try:
                callback(prefix)
            except Exception as e:
                logger.error(f"Error in query listener for {prefix}: {e}")
        return matched
