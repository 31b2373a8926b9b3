# =============================================================================
# tests/unit/test_notifications.py
# Unit Tests for push notifications
# =============================================================================

import pytest

from hisaab_core.errors import PushPayloadError
from hisaab_core.offline.notifications import (
    DEFAULT_BODY,
    DEFAULT_TITLE,
    NotificationCenter,
    parse_push_payload,
    show_push_notification,
)


@pytest.fixture
def center():
    return NotificationCenter()


class TestParsePushPayload:

    @pytest.mark.parametrize("payload", [None, b"", ""])
    def test_empty_payload(self, payload):
        assert parse_push_payload(payload) is None

    def test_bytes_payload(self):
        assert parse_push_payload(b'{"title": "Hi"}') == {"title": "Hi"}

    @pytest.mark.parametrize("payload", [b"not json", "{broken", b"\x80abc"])
    def test_invalid_json(self, payload):
        with pytest.raises(PushPayloadError):
            parse_push_payload(payload)

    def test_non_object_rejected(self):
        with pytest.raises(PushPayloadError):
            parse_push_payload("[1, 2, 3]")


class TestShowPushNotification:

    def test_payload_title_and_body(self, center):
        notification = show_push_notification(
            center, '{"title": "Budget alert", "body": "Food is at 90%"}'
        )

        assert notification.title == "Budget alert"
        assert notification.body == "Food is at 90%"
        assert notification.icon == "/icon-192.png"
        assert notification.badge == "/badge-72.png"
        assert notification.tag == "data-update"

    def test_defaults_fill_missing_fields(self, center):
        notification = show_push_notification(center, {"url": "/app"})

        assert notification.title == DEFAULT_TITLE
        assert notification.body == DEFAULT_BODY
        assert notification.data == {"url": "/app"}

    def test_empty_push_shows_nothing(self, center):
        assert show_push_notification(center, b"") is None
        assert center.get_notifications() == []

    def test_same_tag_replaces(self, center):
        show_push_notification(center, {"title": "First"})
        show_push_notification(center, {"title": "Second"})

        shown = center.get_notifications()
        assert [n.title for n in shown] == ["Second"]

    def test_dismiss(self, center):
        show_push_notification(center, {"title": "First"})
        center.dismiss("data-update")

        assert center.get_notifications() == []


def test_worker_push_event(active_worker):
    notification = active_worker.handle_push(b'{"body": "3 new expenses synced"}')

    assert notification.body == "3 new expenses synced"
    assert active_worker.notifications.get_notifications() == [notification]
