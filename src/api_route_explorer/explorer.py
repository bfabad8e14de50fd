"""Explorer service, the command surface used by the CLI.

Every method returns JSON-ready data and raises ExplorerError subclasses
for anything the caller should see as ``{message, status_code}``.
"""

import logging
from datetime import datetime
from typing import Callable

from api_route_explorer.catalog.catalog import RouteCatalog, RouteFilter
from api_route_explorer.catalog.openapi import SiteInfo, build_openapi
from api_route_explorer.config import Settings
from api_route_explorer.errors import NotFoundError, PermissionDenied, PersistenceError, ValidationError
from api_route_explorer.history.base import Caller, HistoryStore, TestLogEntry
from api_route_explorer.history.sqlite import SqliteHistoryStore
from api_route_explorer.registry.examples import sample_requests
from api_route_explorer.registry.normalize import RouteNormalizer
from api_route_explorer.registry.params import to_brace_syntax
from api_route_explorer.registry.provider import CachedRegistryProvider, RouteRegistryProvider, open_provider
from api_route_explorer.testing.base import TestRequest, TestResult
from api_route_explorer.testing.bulk import BulkTestRunner
from api_route_explorer.testing.executor import EndpointTestExecutor
from api_route_explorer.testing.transport import HttpxTransport

logger = logging.getLogger(__name__)


class RouteExplorer:
    def __init__(
        self,
        settings: Settings,
        provider: RouteRegistryProvider | None,
        store: HistoryStore | None = None,
        executor: EndpointTestExecutor | None = None,
        runner: BulkTestRunner | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.settings = settings
        if provider is not None and settings.cache_duration_seconds > 0:
            provider = CachedRegistryProvider(provider, settings.cache_duration_seconds)
        self.provider = provider
        self.normalizer = RouteNormalizer(settings.base_url, clock)
        self.executor = executor or EndpointTestExecutor(HttpxTransport(verify=settings.verify_ssl))
        self.runner = runner or BulkTestRunner(self.executor, default_timeout_seconds=settings.default_timeout_seconds)
        self.clock = clock
        self._store = store

    @classmethod
    def from_settings(cls, settings: Settings) -> "RouteExplorer":
        provider = None
        if settings.registry:
            provider = open_provider(settings.registry, timeout=settings.default_timeout_seconds)
        return cls(settings, provider)

    @property
    def store(self) -> HistoryStore:
        # Opened on first use; route commands never touch the database.
        if self._store is None:
            self._store = SqliteHistoryStore(self.settings.history_db, clock=self.clock)
        return self._store

    # Routes

    def catalog(self) -> RouteCatalog:
        if self.provider is None:
            raise ValidationError("No route registry configured; pass --registry or set ROUTE_EXPLORER_REGISTRY")
        return RouteCatalog.load(self.provider, self.normalizer)

    def list_routes(
        self,
        namespace: str | None = None,
        method: str | None = None,
        public_only: bool = False,
        search: str | None = None,
    ) -> dict:
        route_filter = RouteFilter(
            namespace=namespace or None,
            method=method.upper() if method else None,
            public_only=public_only or not self.settings.show_private_routes,
            search=search or None,
        )
        routes = self.catalog().filter(route_filter)
        return {"routes": [r.summary() for r in routes], "count": len(routes)}

    def grouped_routes(self) -> dict:
        groups = self.catalog().group_by_namespace()
        if not self.settings.show_private_routes:
            groups = {ns: [r for r in routes if r.is_public] for ns, routes in groups.items()}
            groups = {ns: routes for ns, routes in groups.items() if routes}
        return {ns: [r.summary() for r in routes] for ns, routes in groups.items()}

    def route_stats(self) -> dict:
        return self.catalog().stats().model_dump()

    def route_details(self, pattern: str) -> dict:
        route = self.catalog().get(pattern)
        if not route.is_public and not self.settings.show_private_routes:
            raise NotFoundError(f"Route not found: {pattern}")
        details = route.model_dump(mode="json")
        details["display_pattern"] = to_brace_syntax(route.pattern)
        details["test_data"] = sample_requests(route, self.clock)
        return details

    def openapi(self) -> dict:
        site = SiteInfo(
            name=self.settings.site_name,
            description=self.settings.site_description,
            url=self.settings.site_url,
            base_url=self.settings.base_url,
        )
        return build_openapi(self.catalog(), site)

    # Testing

    def test_endpoint(self, payload: dict, caller: Caller | None = None) -> dict:
        """Validate, execute and record one test.

        A history failure is reported in ``log_error`` next to the result;
        it never turns a completed test into an error.
        """
        self._require_testing()
        request = TestRequest.from_payload(payload, self.settings.default_timeout_seconds)
        result = self.executor.execute(request)
        log_id, log_error = self._record(request, result, caller or Caller())
        return {"result": result.model_dump(mode="json"), "log_id": log_id, "log_error": log_error}

    def bulk_test(self, endpoints: list, caller: Caller | None = None) -> dict:
        """Run a list of endpoint descriptors sequentially.

        An invalid descriptor becomes a failed result with status code 0 and
        is not recorded in history; the rest of the run continues.
        """
        self._require_testing()
        if not endpoints or not isinstance(endpoints, list):
            raise ValidationError("Endpoints array is required")

        items: list[dict] = []

        def _on_result(index: int, request: TestRequest | dict, result: TestResult) -> None:
            if isinstance(request, TestRequest):
                url, method = request.url, request.method
                log_id, log_error = self._record(request, result, caller or Caller())
            else:
                url, method = _descriptor_target(request)
                log_id, log_error = None, None
            items.append({
                "url": url,
                "method": method,
                "result": result.model_dump(mode="json"),
                "log_id": log_id,
                "log_error": log_error,
            })

        _, summary = self.runner.execute_all(endpoints, on_result=_on_result)
        return {"results": items, "summary": summary.model_dump()}

    def _require_testing(self) -> None:
        if not self.settings.enable_api_testing:
            raise PermissionDenied("API testing is disabled")

    def _record(self, request: TestRequest, result: TestResult, caller: Caller) -> tuple[int | None, dict | None]:
        if not self.settings.enable_logging:
            return None, None
        entry = TestLogEntry.from_test(request, result, caller, self.clock())
        try:
            return self.store.append(entry).id, None
        except PersistenceError as e:
            logger.warning("Test of %s completed but was not logged: %s", request.url, e.message)
            return None, e.to_payload()

    # History

    def history(self, limit: int = 20, offset: int = 0) -> list[dict]:
        return [e.model_dump(mode="json") for e in self.store.list_entries(limit, offset)]

    def history_entry(self, entry_id: int) -> dict:
        entry = self.store.get(entry_id)
        if entry is None:
            raise NotFoundError(f"Test not found: {entry_id}")
        return entry.model_dump(mode="json")

    def history_stats(self) -> dict:
        return self.store.stats().model_dump(mode="json")

    def clear_history(self) -> dict:
        deleted = self.store.truncate()
        return {"message": "Request history cleared successfully", "deleted_count": deleted}

    def prune_history(self, days: int | None = None) -> dict:
        days = self.settings.log_retention_days if days is None else days
        deleted = self.store.delete_older_than(days)
        return {"message": f"Cleared {deleted} old log entries", "deleted_count": deleted}


def _descriptor_target(descriptor) -> tuple[str, str]:
    if not isinstance(descriptor, dict):
        return "", ""
    return str(descriptor.get("url") or ""), str(descriptor.get("method") or "GET").upper()
