# =============================================================================
# hisaab_core/offline/router.py
# Request Classification and Dispatch
# =============================================================================
"""
RequestRouter - classifies intercepted requests and dispatches them.

Routes are an ordered list of (predicate, strategy) pairs; the first
predicate that matches wins. Default table:

    1. non-GET            -> passthrough
    2. hashed asset chunk -> passthrough
    3. navigation         -> app shell
    4. data backend       -> network-first
    5. static asset       -> cache-first
    6. anything else      -> network-first
"""

from __future__ import annotations
import re
from dataclasses import dataclass
from typing import Callable, List, Optional
import logging

from hisaab_core.offline.config import OfflineConfig
from hisaab_core.offline.http import STATIC_DESTINATIONS, FetchRequest, RequestMode, Response
from hisaab_core.offline.strategies import Strategy, is_data_backend_host

logger = logging.getLogger(__name__)

Predicate = Callable[[FetchRequest], bool]


# =============================================================================
# PREDICATES
# =============================================================================

def is_mutation(request: FetchRequest) -> bool:
    return not request.is_get


def make_asset_chunk_predicate(pattern: str) -> Predicate:
    compiled = re.compile(pattern)

    def is_asset_chunk(request: FetchRequest) -> bool:
        return bool(compiled.search(request.path))

    return is_asset_chunk


def is_navigation(request: FetchRequest) -> bool:
    return request.mode == RequestMode.NAVIGATE


def make_data_request_predicate(host_patterns: List[str], path_prefixes: List[str]) -> Predicate:
    def is_data_request(request: FetchRequest) -> bool:
        if is_data_backend_host(request.host, host_patterns):
            return True
        return any(request.path.startswith(prefix) for prefix in path_prefixes)

    return is_data_request


def is_static_asset(request: FetchRequest) -> bool:
    return request.destination in STATIC_DESTINATIONS


def always(request: FetchRequest) -> bool:
    return True


# =============================================================================
# ROUTER
# =============================================================================

@dataclass(frozen=True)
class Route:
    """A named (predicate, strategy) pair."""
    name: str
    predicate: Predicate
    strategy: Strategy

    def matches(self, request: FetchRequest) -> bool:
        return self.predicate(request)


class RequestRouter:
    """
    Ordered route table evaluated top-down.

    Usage:
        router = RequestRouter.default(config, passthrough, shell, network_first, cache_first)
        response = router.route(FetchRequest.get(url))
    """

    def __init__(self, routes: Optional[List[Route]] = None):
        self._routes: List[Route] = list(routes or [])

    @classmethod
    def default(
        cls,
        config: OfflineConfig,
        passthrough: Strategy,
        app_shell: Strategy,
        network_first: Strategy,
        cache_first: Strategy,
    ) -> RequestRouter:
        return cls([
            Route("mutation", is_mutation, passthrough),
            Route("asset-chunk", make_asset_chunk_predicate(config.asset_chunk_pattern), passthrough),
            Route("navigation", is_navigation, app_shell),
            Route(
                "data",
                make_data_request_predicate(config.data_backend_hosts, config.data_path_prefixes),
                network_first,
            ),
            Route("static-asset", is_static_asset, cache_first),
            Route("default", always, network_first),
        ])

    @property
    def routes(self) -> List[Route]:
        return list(self._routes)

    def add_route(self, route: Route, before: Optional[str] = None) -> None:
        """Insert a route before the named one, or append it."""
        if before is None:
            self._routes.append(route)
            return
        for index, existing in enumerate(self._routes):
            if existing.name == before:
                self._routes.insert(index, route)
                return
        raise KeyError(f"No route named {before!r}")

    def classify(self, request: FetchRequest) -> Route:
        for route in self._routes:
            if route.matches(request):
                return route
        raise LookupError(f"No route matches {request.method} {request.url}")

    def route(self, request: FetchRequest) -> Response:
        route = self.classify(request)
        logger.debug(f"{request.method} {request.url} -> {route.name} ({route.strategy.name})")
        return route.strategy.handle(request)
