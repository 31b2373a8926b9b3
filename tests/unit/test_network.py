# =============================================================================
# tests/unit/test_network.py
# Unit Tests for the requests-based network client
# =============================================================================

from unittest.mock import MagicMock

import pytest
import requests

from hisaab_core.errors import NetworkError
from hisaab_core.offline.http import FetchRequest
from hisaab_core.offline.network import NetworkClient


def make_raw_response(status=200, body=b"{}", headers=None, url="https://example.test/api/x"):
    raw = MagicMock()
    raw.status_code = status
    raw.content = body
    raw.headers = headers or {"Content-Type": "application/json"}
    raw.url = url
    return raw


class TestNetworkClient:

    def test_fetch_returns_response(self, mock_session):
        mock_session.request.return_value = make_raw_response(body=b'{"ok": true}')
        client = NetworkClient(session=mock_session)

        response = client.fetch(FetchRequest.get("https://example.test/api/x"))

        assert response.status == 200
        assert response.json() == {"ok": True}
        assert response.content_type == "application/json"

    def test_error_status_is_not_raised(self, mock_session):
        mock_session.request.return_value = make_raw_response(status=503, body=b"busy")
        client = NetworkClient(session=mock_session)

        response = client.fetch(FetchRequest.get("https://example.test/api/x"))

        assert response.status == 503
        assert not response.ok

    @pytest.mark.parametrize("error", [
        requests.exceptions.ConnectionError("refused"),
        requests.exceptions.Timeout("slow"),
    ])
    def test_transport_failure_raises_network_error(self, mock_session, error):
        mock_session.request.side_effect = error
        client = NetworkClient(session=mock_session)

        with pytest.raises(NetworkError) as exc_info:
            client.fetch(FetchRequest.get("https://example.test/api/x"))

        assert exc_info.value.details["url"] == "https://example.test/api/x"
        assert exc_info.value.code == "NET_001"

    def test_no_timeout_by_default(self, mock_session):
        mock_session.request.return_value = make_raw_response()
        NetworkClient(session=mock_session).fetch(FetchRequest.get("https://example.test/a"))

        assert mock_session.request.call_args.kwargs["timeout"] is None

    def test_post_has_no_body(self, mock_session):
        mock_session.request.return_value = make_raw_response(status=204, body=b"")
        client = NetworkClient(session=mock_session, timeout=10)

        response = client.post("https://example.test/api/sync/expenses")

        kwargs = mock_session.request.call_args.kwargs
        assert kwargs["method"] == "POST"
        assert kwargs["data"] is None
        assert kwargs["timeout"] == 10
        assert response.ok

    def test_default_headers(self, mock_session):
        NetworkClient(session=mock_session, headers={"apikey": "anon"})

        assert mock_session.headers["apikey"] == "anon"
