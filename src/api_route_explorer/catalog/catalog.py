"""Route catalog: the normalized snapshot of one registry read."""

import logging
from collections import Counter

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from api_route_explorer.errors import ExplorerError, NotFoundError
from api_route_explorer.registry.base import Route
from api_route_explorer.registry.normalize import RouteNormalizer
from api_route_explorer.registry.provider import RouteRegistryProvider

logger = logging.getLogger(__name__)


class RouteFilter(BaseModel):
    """Combinable route filters. Unset filters match everything."""

    namespace: str | None = None
    method: str | None = None
    public_only: bool = False
    search: str | None = None

    def matches(self, route: Route) -> bool:
        if self.namespace and route.namespace != self.namespace:
            return False
        if self.method and not route.has_method(self.method):
            return False
        if self.public_only and not route.is_public:
            return False
        if self.search:
            term = self.search.lower()
            if term not in route.pattern.lower() and term not in route.description.lower():
                return False
        return True


class CatalogStats(BaseModel):
    total_routes: int
    public_routes: int
    private_routes: int
    methods_count: dict[str, int]
    namespaces_count: dict[str, int]
    total_endpoints: int


class RouteCatalog:
    """Normalized routes keyed by pattern, in registry order."""

    def __init__(self, routes: dict[str, Route]):
        self.routes = routes

    @classmethod
    def load(cls, provider: RouteRegistryProvider, normalizer: RouteNormalizer) -> "RouteCatalog":
        """Read the registry and normalize every entry.

        An entry that cannot be normalized at all is logged and skipped;
        the rest of the catalog still loads.
        """
        routes: dict[str, Route] = {}
        for pattern, raw_entry in provider.get_routes().items():
            try:
                routes[pattern] = normalizer.normalize(pattern, raw_entry)
            except ExplorerError as e:
                logger.warning("Skipping route %r: %s", pattern, e.message)
            except PydanticValidationError as e:
                logger.warning("Skipping route %r: %d invalid field(s)", pattern, e.error_count())
        logger.info("Loaded %d routes", len(routes))
        return cls(routes)

    def __len__(self) -> int:
        return len(self.routes)

    def __iter__(self):
        return iter(self.routes.values())

    def get(self, pattern: str) -> Route:
        try:
            return self.routes[pattern]
        except KeyError:
            raise NotFoundError(f"Route not found: {pattern}") from None

    def group_by_namespace(self) -> dict[str, list[Route]]:
        groups: dict[str, list[Route]] = {}
        for route in self.routes.values():
            groups.setdefault(route.namespace, []).append(route)
        return dict(sorted(groups.items()))

    def filter(self, route_filter: RouteFilter | None = None) -> list[Route]:
        route_filter = route_filter or RouteFilter()
        return [r for r in self.routes.values() if route_filter.matches(r)]

    def stats(self) -> CatalogStats:
        methods: Counter = Counter()
        namespaces: Counter = Counter()
        public = 0
        for route in self.routes.values():
            if route.is_public:
                public += 1
            methods.update(route.methods.keys())
            namespaces[route.namespace] += 1

        return CatalogStats(
            total_routes=len(self.routes),
            public_routes=public,
            private_routes=len(self.routes) - public,
            methods_count=dict(methods),
            namespaces_count=dict(namespaces),
            total_endpoints=sum(len(r.methods) for r in self.routes.values()),
        )
