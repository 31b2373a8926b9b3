# =============================================================================
# hisaab_core/ui/status_panel.py
# Offline status sidebar
# =============================================================================

from __future__ import annotations
from typing import Optional

import pandas as pd
import streamlit as st

from hisaab_core.errors import ErrorContext
from hisaab_core.offline.cache_storage import CacheStorage
from hisaab_core.offline.connection_manager import ConnectionManager
from hisaab_core.offline.sync import SyncManager
from hisaab_core.offline.worker import ServiceWorker

INVENTORY_COLUMNS = ["store", "method", "url", "status", "content_type", "size_bytes"]

STATUS_ICONS = {
    "online": "🟢",
    "degraded": "🟡",
    "offline": "🔴",
    "checking": "⏳",
    "unknown": "⚪",
}


def inventory_frame(storage: CacheStorage) -> pd.DataFrame:
    """One row per cached entry across every store."""
    rows = []
    for store, key, response in storage.entries():
        method, _, url = key.partition(" ")
        rows.append({
            "store": store,
            "method": method,
            "url": url,
            "status": response.status,
            "content_type": response.content_type,
            "size_bytes": response.size,
        })
    return pd.DataFrame(rows, columns=INVENTORY_COLUMNS)


def render_offline_status(
    worker: ServiceWorker,
    connection: Optional[ConnectionManager] = None,
    sync_manager: Optional[SyncManager] = None,
) -> None:
    """Render connection, worker and cache status in the sidebar."""
    with st.sidebar:
        st.markdown("### Offline status")

        if connection is not None:
            status = connection.get_status_display()
            icon = STATUS_ICONS.get(status["status"], "⚪")
            st.markdown(f"{icon} **{status['status'].title()}**")
            if status["error"]:
                st.caption(status["error"])

        worker_status = worker.get_status_display()
        st.caption(f"Worker {worker_status['version']}: {worker_status['state']}")

        if sync_manager is not None:
            pending = sync_manager.pending_tags
            st.metric("Pending sync", len(pending))
            if pending:
                st.caption(", ".join(pending))

        with ErrorContext("Rendering cache inventory") as ctx:
            frame = inventory_frame(worker.storage)
            st.metric("Cached responses", len(frame))
            if not frame.empty:
                summary = frame.groupby("store")["size_bytes"].agg(["count", "sum"])
                st.dataframe(summary.rename(columns={"count": "entries", "sum": "bytes"}))
        if ctx.error:
            st.caption("Cache inventory unavailable")
