# =============================================================================
# hisaab_core/offline/network.py
# HTTP transport used by the worker
# =============================================================================
"""
NetworkClient - performs live fetches over a requests.Session.

HTTP error statuses are returned as ordinary responses (the strategies decide
what to store); only transport failures raise NetworkError.
"""

from __future__ import annotations
from typing import Dict, Optional
import logging

import requests

from hisaab_core.errors import NetworkError
from hisaab_core.offline.http import FetchRequest, Response

logger = logging.getLogger(__name__)


class NetworkClient:
    """
    Live network access for the worker.

    Usage:
        network = NetworkClient(timeout=None)
        response = network.fetch(FetchRequest.get("https://example.com/app.js"))
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout

        if headers:
            self.session.headers.update(headers)

    def fetch(self, request: FetchRequest) -> Response:
        """
        Perform the request.

        Returns:
            Response for any HTTP status

        Raises:
            NetworkError: when no response could be obtained
        """
        try:
            raw = self.session.request(
                method=request.method,
                url=request.url,
                headers=request.headers or None,
                data=request.body,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.debug(f"Fetch failed for {request.method} {request.url}: {e}")
            raise NetworkError(
                f"Network request failed: {e}",
                url=request.url,
                method=request.method,
            ) from e

        return Response(
            url=raw.url or request.url,
            status=raw.status_code,
            headers=dict(raw.headers),
            body=raw.content or b"",
        )

    def post(self, url: str, body: Optional[bytes] = None) -> Response:
        """POST helper used by background sync handlers."""
        return self.fetch(FetchRequest(url=url, method="POST", body=body))

    def close(self) -> None:
        self.session.close()
