"""
Offline console for the HisaabDost worker.

Run with:
    streamlit run app.py

Wires a ServiceWorker from .streamlit/secrets.toml / environment settings and
lets an operator push requests and sync tags through it while watching the
cache stores.
"""

from __future__ import annotations
import os

import streamlit as st

from hisaab_core.errors import HisaabError, InstallError, handle_error, safe_execute
from hisaab_core.logging import setup_logging
from hisaab_core.offline import (
    ConnectionManager,
    Destination,
    FetchRequest,
    RequestMode,
    ServiceWorker,
    ServiceWorkerRegistration,
    SyncManager,
    load_config,
)
from hisaab_core.ui import inventory_frame, render_offline_status

st.set_page_config(
    page_title="HisaabDost - Offline Console",
    page_icon="📴",
    layout="wide",
)


@st.cache_resource
def get_runtime():
    """Build the worker, registration and platform services once per process."""
    setup_logging(log_to_file=False)
    config = load_config()

    registration = ServiceWorkerRegistration()
    worker = ServiceWorker(config, clients=registration.clients)
    registration.clients.open(config.origin)

    connection = ConnectionManager(backend_url=os.getenv("SUPABASE_URL"))
    safe_execute(connection.check_connection, error_message="Connectivity probe failed")
    sync_manager = SyncManager(worker, connection)

    try:
        registration.register(worker)
    except InstallError as e:
        handle_error(e)

    return registration, worker, connection, sync_manager


registration, worker, connection, sync_manager = get_runtime()
render_offline_status(worker, connection, sync_manager)

st.title("Offline Console")

if not worker.is_active:
    st.warning(f"Worker is {worker.state.value}; requests go straight to the network.")

# ============================================================================
# FETCH THROUGH THE WORKER
# ============================================================================
st.subheader("Fetch")
col_url, col_kind = st.columns([3, 1])
with col_url:
    url = st.text_input("URL", value=f"{worker.config.origin}/index.html")
with col_kind:
    kind = st.selectbox("Request", ["navigate", "script", "style", "image", "font", "data"])

if st.button("Fetch", type="primary"):
    if kind == "navigate":
        request = FetchRequest.navigate(url)
    elif kind == "data":
        request = FetchRequest.get(url, mode=RequestMode.CORS)
    else:
        request = FetchRequest.get(url, destination=Destination(kind))

    route = worker.router.classify(request)
    try:
        response = worker.handle_fetch(request)
        st.success(f"{response.status} via {route.name} ({route.strategy.name})")
        st.code(response.text[:2000] or "<empty body>")
    except HisaabError as e:
        handle_error(e, show_user_message=True)

# ============================================================================
# BACKGROUND SYNC
# ============================================================================
st.subheader("Background sync")
col_tag, col_action = st.columns([3, 1])
with col_tag:
    tag = st.selectbox("Tag", worker.sync_registry.tags())
with col_action:
    if st.button("Register sync"):
        sync_manager.register(tag)

client_messages = [m for client in registration.clients.match_all() for m in client.messages]
if client_messages:
    st.json(client_messages)

# ============================================================================
# CACHE INVENTORY
# ============================================================================
st.subheader("Cache inventory")
st.dataframe(inventory_frame(worker.storage), use_container_width=True)
