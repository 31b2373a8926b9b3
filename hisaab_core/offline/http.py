# =============================================================================
# hisaab_core/offline/http.py
# Request / Response value types seen by the worker
# =============================================================================
"""
Value types for intercepted requests and captured response snapshots.

A ``FetchRequest`` carries what the router needs to classify a request
(method, navigation mode, resource destination). A ``Response`` is immutable:
what goes into a cache store is exactly what was received, and reading it back
yields an independent copy.
"""

from __future__ import annotations
import json
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import urldefrag, urljoin, urlparse


class RequestMode(Enum):
    """How the page issued the request."""
    NAVIGATE = "navigate"
    SAME_ORIGIN = "same-origin"
    NO_CORS = "no-cors"
    CORS = "cors"


class Destination(Enum):
    """What the response will be used for."""
    DOCUMENT = "document"
    SCRIPT = "script"
    STYLE = "style"
    IMAGE = "image"
    FONT = "font"
    MANIFEST = "manifest"
    EMPTY = ""


STATIC_DESTINATIONS = frozenset({
    Destination.SCRIPT,
    Destination.STYLE,
    Destination.IMAGE,
    Destination.FONT,
})


@dataclass(frozen=True)
class FetchRequest:
    """A request intercepted by the worker."""
    url: str
    method: str = "GET"
    mode: RequestMode = RequestMode.CORS
    destination: Destination = Destination.EMPTY
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None

    def __post_init__(self):
        object.__setattr__(self, "method", self.method.upper())

    @classmethod
    def get(cls, url: str, **kwargs) -> FetchRequest:
        return cls(url=url, method="GET", **kwargs)

    @classmethod
    def navigate(cls, url: str) -> FetchRequest:
        return cls(
            url=url,
            method="GET",
            mode=RequestMode.NAVIGATE,
            destination=Destination.DOCUMENT,
        )

    @property
    def is_get(self) -> bool:
        return self.method == "GET"

    @property
    def host(self) -> str:
        return urlparse(self.url).hostname or ""

    @property
    def path(self) -> str:
        return urlparse(self.url).path or "/"

    @property
    def cache_key(self) -> str:
        """Identity used by cache stores: method plus URL without fragment."""
        return f"{self.method} {urldefrag(self.url)[0]}"


@dataclass(frozen=True)
class Response:
    """An HTTP response, or a stored snapshot of one."""
    url: str
    status: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def content_type(self) -> str:
        for name, value in self.headers.items():
            if name.lower() == "content-type":
                return value
        return ""

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.body)

    @property
    def size(self) -> int:
        return len(self.body)

    def snapshot(self) -> Response:
        """Independent copy safe to hand to another caller."""
        return replace(self, headers=dict(self.headers))

    @classmethod
    def json_response(cls, url: str, payload: Any, status: int = 200) -> Response:
        return cls(
            url=url,
            status=status,
            headers={"Content-Type": "application/json"},
            body=json.dumps(payload).encode("utf-8"),
        )


def resolve_url(origin: str, path: str) -> str:
    """Resolve a scope-relative path like '/index.html' against the origin."""
    return urljoin(origin.rstrip("/") + "/", path)
