"""CLI entry point for api-route-explorer."""

import functools
import getpass
import json
import logging
import sys
from pathlib import Path

import click
import yaml

from api_route_explorer.config import load_settings
from api_route_explorer.errors import ExplorerError, ValidationError
from api_route_explorer.explorer import RouteExplorer
from api_route_explorer.history.base import Caller
from api_route_explorer.logging_setup import configure_logging

VERSION = "0.1.0"
USER_AGENT = f"api-route-explorer/{VERSION}"

logger = logging.getLogger(__name__)


def _echo_json(data) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def handle_errors(func):
    """Report ExplorerError as ``{message, status_code}`` on stderr and exit 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ExplorerError as e:
            click.echo(json.dumps(e.to_payload()), err=True)
            sys.exit(1)
        except Exception:
            logger.debug("Unexpected error in %s", func.__name__, exc_info=True)
            click.echo(json.dumps({"message": "Internal error", "status_code": 500}), err=True)
            sys.exit(1)

    return wrapper


def _explorer(ctx: click.Context) -> RouteExplorer:
    obj = ctx.find_root().obj
    if "explorer" not in obj:
        settings = load_settings(obj["config_path"], registry=obj["registry"], history_db=obj["history_db"])
        obj["explorer"] = RouteExplorer.from_settings(settings)
    return obj["explorer"]


def _caller() -> Caller:
    try:
        user = getpass.getuser()
    except (OSError, KeyError):
        user = None
    return Caller(user_id=user, ip_address="127.0.0.1", user_agent=USER_AGENT)


@click.group()
@click.option("--config", "config_path", default=None, type=click.Path(exists=True, dir_okay=False, path_type=Path), help="YAML settings file.")
@click.option("--registry", default=None, help="Route registry dump: file path or http(s) URL.")
@click.option("--db", "history_db", default=None, help="Test history database file.")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging.")
@click.option("--log-json", is_flag=True, help="Log as JSON lines.")
@click.pass_context
def main(ctx, config_path, registry, history_db, verbose, log_json):
    """API Route Explorer: browse registered API routes and test them."""
    configure_logging(verbose=verbose, json_format=log_json)
    ctx.ensure_object(dict)
    ctx.obj.update(config_path=config_path, registry=registry, history_db=history_db)


@main.command()
@click.option("--namespace", default=None, help="Only routes in this namespace (e.g. wp/v2).")
@click.option("--method", default=None, help="Only routes supporting this HTTP method.")
@click.option("--public-only", is_flag=True, help="Only public routes.")
@click.option("--search", default=None, help="Case-insensitive text in pattern or description.")
@click.option("--grouped", is_flag=True, help="Group by namespace.")
@click.option("--json", "as_json", is_flag=True, help="Print JSON.")
@click.pass_context
@handle_errors
def routes(ctx, namespace, method, public_only, search, grouped, as_json):
    """List registered routes."""
    explorer = _explorer(ctx)

    if grouped:
        groups = explorer.grouped_routes()
        if as_json:
            _echo_json(groups)
            return
        for ns, items in groups.items():
            click.echo(f"{ns} ({len(items)})")
            for item in items:
                click.echo(f"  {_route_line(item)}")
        return

    data = explorer.list_routes(namespace=namespace, method=method, public_only=public_only, search=search)
    if as_json:
        _echo_json(data)
        return
    for item in data["routes"]:
        click.echo(_route_line(item))
    click.echo(f"{data['count']} routes")


def _route_line(item: dict) -> str:
    access = "public" if item["is_public"] else "private"
    return f"{','.join(item['methods']) or '-':<24} {item['pattern']}  [{access}]"


@main.command()
@click.argument("pattern")
@click.pass_context
@handle_errors
def show(ctx, pattern):
    """Show one route with sample test requests."""
    _echo_json(_explorer(ctx).route_details(pattern))


@main.command()
@click.pass_context
@handle_errors
def stats(ctx):
    """Route statistics."""
    _echo_json(_explorer(ctx).route_stats())


@main.command()
@click.option("-o", "--output", default=None, type=click.Path(path_type=Path), help="Write to file instead of stdout.")
@click.option("--format", "fmt", default="json", type=click.Choice(["json", "yaml"]), help="Output format.")
@click.pass_context
@handle_errors
def openapi(ctx, output, fmt):
    """Export the catalog as an OpenAPI 3.0 document."""
    doc = _explorer(ctx).openapi()
    if fmt == "yaml":
        text = yaml.safe_dump(doc, sort_keys=False, allow_unicode=True)
    else:
        text = json.dumps(doc, indent=2, ensure_ascii=False)

    if output is None:
        click.echo(text)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8")
    click.echo(f"OpenAPI document saved to {output}")


@main.command("test")
@click.argument("url")
@click.option("-X", "--method", default="GET", help="HTTP method.")
@click.option("-H", "--header", "headers", multiple=True, help='Request header, "Name: value". Repeatable.')
@click.option("-d", "--data", "body", default="", help="Request body (POST/PUT/PATCH).")
@click.option("--timeout", type=int, default=None, help="Timeout in seconds (1-300).")
@click.pass_context
@handle_errors
def test_endpoint(ctx, url, method, headers, body, timeout):
    """Send one test request and record it."""
    payload = {"url": url, "method": method, "headers": list(headers), "body": body, "timeout": timeout}
    _echo_json(_explorer(ctx).test_endpoint(payload, _caller()))


@main.command()
@click.argument("endpoints_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
@handle_errors
def bulk(ctx, endpoints_file):
    """Run every endpoint listed in a YAML/JSON file, one after another."""
    try:
        data = yaml.safe_load(endpoints_file.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ValidationError(f"Cannot parse {endpoints_file}: {e}") from None
    if isinstance(data, dict):
        data = data.get("endpoints")

    result = _explorer(ctx).bulk_test(data, _caller())
    _echo_json(result)


@main.group()
def history():
    """Recorded test executions."""


@history.command("list")
@click.option("--limit", default=20, show_default=True, type=int)
@click.option("--offset", default=0, show_default=True, type=int)
@click.pass_context
@handle_errors
def history_list(ctx, limit, offset):
    """Most recent tests first."""
    _echo_json(_explorer(ctx).history(limit=limit, offset=offset))


@history.command("show")
@click.argument("entry_id", type=int)
@click.pass_context
@handle_errors
def history_show(ctx, entry_id):
    _echo_json(_explorer(ctx).history_entry(entry_id))


@history.command("stats")
@click.pass_context
@handle_errors
def history_stats(ctx):
    _echo_json(_explorer(ctx).history_stats())


@history.command("clear")
@click.confirmation_option(prompt="Delete all recorded tests?")
@click.pass_context
@handle_errors
def history_clear(ctx):
    """Delete every recorded test."""
    _echo_json(_explorer(ctx).clear_history())


@history.command("prune")
@click.option("--days", type=int, default=None, help="Retention in days (default: log_retention_days setting).")
@click.pass_context
@handle_errors
def history_prune(ctx, days):
    """Delete tests older than the retention period."""
    _echo_json(_explorer(ctx).prune_history(days))
