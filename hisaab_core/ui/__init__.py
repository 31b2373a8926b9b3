# =============================================================================
# hisaab_core/ui/__init__.py
# =============================================================================

from .status_panel import inventory_frame, render_offline_status

__all__ = ["inventory_frame", "render_offline_status"]
