# =============================================================================
# hisaab_core/offline/notifications.py
# Push Notifications
# =============================================================================
"""
Inbound push handling. Every notification carries the same tag, so a new
push replaces an undismissed one instead of stacking.
"""

from __future__ import annotations
import json
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union
import logging

from hisaab_core.errors import PushPayloadError

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "HisaabDost"
DEFAULT_BODY = "Your financial data has been updated"
NOTIFICATION_ICON = "/icon-192.png"
NOTIFICATION_BADGE = "/badge-72.png"
NOTIFICATION_TAG = "data-update"


@dataclass(frozen=True)
class Notification:
    title: str
    body: str
    icon: str
    badge: str
    tag: str
    data: Dict[str, Any] = field(default_factory=dict)
    shown_at: datetime = field(default_factory=datetime.now)


class NotificationCenter:
    """Displayed notifications, at most one per tag."""

    def __init__(self):
        self._by_tag: Dict[str, Notification] = {}
        self._lock = threading.Lock()

    def show(self, title: str, body: str, icon: str, badge: str, tag: str,
             data: Optional[Dict[str, Any]] = None) -> Notification:
        notification = Notification(
            title=title, body=body, icon=icon, badge=badge, tag=tag, data=data or {},
        )
        with self._lock:
            replaced = tag in self._by_tag
            self._by_tag[tag] = notification
        logger.info(f"{'Replaced' if replaced else 'Showing'} notification '{tag}': {title}")
        return notification

    def dismiss(self, tag: str) -> None:
        with self._lock:
            self._by_tag.pop(tag, None)

    def get_notifications(self) -> List[Notification]:
        with self._lock:
            return list(self._by_tag.values())


def parse_push_payload(payload: Union[bytes, str, Dict[str, Any], None]) -> Optional[Dict[str, Any]]:
    """
    Decode a push payload.

    Returns:
        The decoded object, or None when the push carried no data

    Raises:
        PushPayloadError: if the payload is not a JSON object
    """
    if payload is None or payload == b"" or payload == "":
        return None
    if isinstance(payload, dict):
        return payload
    try:
        data = json.loads(payload)
    except (ValueError, UnicodeDecodeError) as e:
        raise PushPayloadError(f"Push payload is not valid JSON: {e}")
    if not isinstance(data, dict):
        raise PushPayloadError("Push payload must be a JSON object")
    return data


def show_push_notification(
    center: NotificationCenter,
    payload: Union[bytes, str, Dict[str, Any], None],
) -> Optional[Notification]:
    data = parse_push_payload(payload)
    if data is None:
        return None

    return center.show(
        title=data.get("title") or DEFAULT_TITLE,
        body=data.get("body") or DEFAULT_BODY,
        icon=NOTIFICATION_ICON,
        badge=NOTIFICATION_BADGE,
        tag=NOTIFICATION_TAG,
        data=data,
    )
