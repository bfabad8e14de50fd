import json
import logging
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import yaml
from click.testing import CliRunner

from api_route_explorer.cli import main
from api_route_explorer.config import Settings
from api_route_explorer.errors import PermissionDenied

FIXTURES = Path(__file__).parent / "fixtures"
REGISTRY = str(FIXTURES / "registry.yaml")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in list(Settings.model_fields):
        monkeypatch.delenv(f"ROUTE_EXPLORER_{name.upper()}", raising=False)


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


def _invoke(*args, db=None):
    runner = CliRunner()
    base = ["--registry", REGISTRY]
    if db is not None:
        base += ["--db", str(db)]
    return runner.invoke(main, [*base, *args])


class TestCliRoutes:
    def test_routes_json(self):
        result = _invoke("routes", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["count"] == 10

    def test_routes_filtered_text(self):
        result = _invoke("routes", "--public-only", "--namespace", "wp/v2")
        assert result.exit_code == 0
        assert "/wp/v2/categories" in result.output
        assert "[public]" in result.output
        assert "3 routes" in result.output

    def test_routes_grouped(self):
        result = _invoke("routes", "--grouped")
        assert result.exit_code == 0
        assert "wc/v3 (3)" in result.output

    def test_show(self):
        result = _invoke("show", "/wc/v3/orders")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["display_pattern"] == "/wc/v3/orders"
        assert json.loads(data["test_data"]["POST"]["body"]) == {"customer_id": 123}

    def test_show_missing_route(self):
        result = _invoke("show", "/wp/v2/nope")
        assert result.exit_code == 1
        assert '"status_code": 404' in result.output
        assert "Route not found: /wp/v2/nope" in result.output

    def test_stats(self):
        result = _invoke("stats")
        assert result.exit_code == 0
        assert json.loads(result.output)["total_endpoints"] == 15

    def test_no_registry(self):
        result = CliRunner().invoke(main, ["routes"])
        assert result.exit_code == 1
        assert "No route registry configured" in result.output

    def test_unreadable_registry(self, tmp_path):
        result = CliRunner().invoke(main, ["--registry", str(tmp_path / "missing.yaml"), "routes"])
        assert result.exit_code == 1
        assert '"status_code": 502' in result.output


class TestCliOpenApi:
    def test_openapi_stdout(self):
        result = _invoke("openapi")
        assert result.exit_code == 0
        assert json.loads(result.output)["openapi"] == "3.0.0"

    def test_openapi_yaml_file(self, tmp_path):
        output = tmp_path / "out" / "openapi.yaml"
        result = _invoke("openapi", "-o", str(output), "--format", "yaml")
        assert result.exit_code == 0
        assert "OpenAPI document saved" in result.output
        doc = yaml.safe_load(output.read_text())
        assert "/wp/v2/posts/{id}" in doc["paths"]


class TestCliTesting:
    @patch("api_route_explorer.cli.RouteExplorer")
    def test_test_command(self, MockExplorer):
        explorer = MagicMock()
        explorer.test_endpoint.return_value = {"result": {"success": True, "status_code": 200}, "log_id": 1, "log_error": None}
        MockExplorer.from_settings.return_value = explorer

        result = CliRunner().invoke(main, [
            "test", "http://localhost/wp-json/wp/v2/posts",
            "-X", "POST",
            "-H", "Authorization: Bearer abc",
            "-d", '{"title": "Hi"}',
            "--timeout", "10",
        ])

        assert result.exit_code == 0
        assert json.loads(result.output)["log_id"] == 1
        payload, caller = explorer.test_endpoint.call_args.args
        assert payload == {
            "url": "http://localhost/wp-json/wp/v2/posts",
            "method": "POST",
            "headers": ["Authorization: Bearer abc"],
            "body": '{"title": "Hi"}',
            "timeout": 10,
        }
        assert caller.user_agent.startswith("api-route-explorer/")

    @patch("api_route_explorer.cli.RouteExplorer")
    def test_test_command_disabled(self, MockExplorer):
        explorer = MagicMock()
        explorer.test_endpoint.side_effect = PermissionDenied("API testing is disabled")
        MockExplorer.from_settings.return_value = explorer

        result = CliRunner().invoke(main, ["test", "http://localhost/x"])

        assert result.exit_code == 1
        assert json.loads(result.output.strip().splitlines()[-1]) == {
            "message": "API testing is disabled",
            "status_code": 403,
        }

    @patch("api_route_explorer.cli.RouteExplorer")
    def test_bulk_command(self, MockExplorer):
        explorer = MagicMock()
        explorer.bulk_test.return_value = {"results": [], "summary": {"total": 2}}
        MockExplorer.from_settings.return_value = explorer

        result = CliRunner().invoke(main, ["bulk", str(FIXTURES / "endpoints.yaml")])

        assert result.exit_code == 0
        endpoints = explorer.bulk_test.call_args.args[0]
        assert [e["method"] for e in endpoints] == ["GET", "POST"]
        assert endpoints[1]["body"] == {"title": "Hello"}

    @patch("api_route_explorer.cli.RouteExplorer")
    def test_bulk_endpoints_key(self, MockExplorer, tmp_path):
        explorer = MagicMock()
        explorer.bulk_test.return_value = {"results": [], "summary": {}}
        MockExplorer.from_settings.return_value = explorer
        f = tmp_path / "bulk.json"
        f.write_text(json.dumps({"endpoints": [{"url": "http://localhost/x"}]}))

        result = CliRunner().invoke(main, ["bulk", str(f)])

        assert result.exit_code == 0
        assert explorer.bulk_test.call_args.args[0] == [{"url": "http://localhost/x"}]

    def test_bulk_invalid_url(self, tmp_path):
        f = tmp_path / "bulk.yaml"
        f.write_text("- url: nope\n")
        result = _invoke("bulk", str(f), db=tmp_path / "history.db")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["summary"]["failed"] == 1
        assert data["results"][0]["result"]["error_message"] == "Invalid URL format"


class TestCliHistory:
    def test_empty_history(self, tmp_path):
        result = _invoke("history", "list", db=tmp_path / "history.db")
        assert result.exit_code == 0
        assert json.loads(result.output) == []

    def test_history_without_registry(self, tmp_path):
        result = CliRunner().invoke(main, ["--db", str(tmp_path / "history.db"), "history", "stats"])
        assert result.exit_code == 0
        assert json.loads(result.output)["total_count"] == 0

    def test_show_missing_entry(self, tmp_path):
        result = _invoke("history", "show", "42", db=tmp_path / "history.db")
        assert result.exit_code == 1
        assert "Test not found: 42" in result.output

    def test_clear_requires_confirmation(self, tmp_path):
        result = CliRunner().invoke(main, ["--db", str(tmp_path / "history.db"), "history", "clear"], input="n\n")
        assert result.exit_code == 1

    def test_clear(self, tmp_path):
        result = _invoke("history", "clear", "--yes", db=tmp_path / "history.db")
        assert result.exit_code == 0
        assert json.loads(result.output)["deleted_count"] == 0

    def test_prune(self, tmp_path):
        result = _invoke("history", "prune", "--days", "7", db=tmp_path / "history.db")
        assert result.exit_code == 0
        assert json.loads(result.output) == {"message": "Cleared 0 old log entries", "deleted_count": 0}

    def test_invalid_limit(self, tmp_path):
        result = _invoke("history", "list", "--limit", "0", db=tmp_path / "history.db")
        assert result.exit_code == 1
        assert '"status_code": 400' in result.output
