"""AsyncClick CLI for operating the gateway.

Provides user-facing commands:
- serve: Run the HTTP gateway
- tools: List the allowlisted tool catalog
- check: Run the content firewall over a JSON payload
- proposals: Show live proposals from the snapshot file
- rpc: Send one JSON-RPC call to a running gateway
- propose-approve: Propose a write tool call, then approve it
"""

import json
import random
from typing import Any

import aiohttp
import asyncclick as click
import structlog

from gateway.core.config import load_config
from gateway.core.proposals import JsonFileBackend, SystemClock
from gateway.core.safety.firewall import PatternScanner
from gateway.core.safety.risk import get_category_description
from gateway.tools.catalog import build_registry
from gateway.tools.client import CrmClient

logger = structlog.get_logger()

DEFAULT_URL = "http://127.0.0.1:3000/mcp"


async def post_rpc(url: str, method: str, params: dict[str, Any], request_id: int) -> dict[str, Any]:
    """POST one JSON-RPC request and return the decoded response."""
    payload = {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params}
    async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=60)) as session:
        async with session.post(url, json=payload) as response:
            return await response.json(content_type=None)


def _load_json(ctx: click.Context, raw: str, what: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError:
        click.echo(f"[-] Invalid JSON {what}")
        ctx.exit(1)


def _content_payload(response: dict[str, Any]) -> dict[str, Any] | None:
    """Decode the JSON text block of a tools/call result."""
    try:
        text = response["result"]["content"][0]["text"]
        payload = json.loads(text)
    except (KeyError, IndexError, TypeError, ValueError):
        return None
    return payload if isinstance(payload, dict) else None


@click.group()
@click.pass_context
async def cli(ctx):
    """GHL Tool Gateway - safety-gated tool access for the LeadConnector API"""
    ctx.ensure_object(dict)


@cli.command()
@click.option("--host", default=None, help="Bind address (default: HOST or 0.0.0.0)")
@click.option("--port", "-p", type=int, default=None, help="Bind port (default: PORT or 3000)")
async def serve(host: str | None, port: int | None):
    """Run the HTTP gateway.

    Examples:
        gateway serve
        gateway serve --host 127.0.0.1 -p 8080
    """
    from gateway.api.server import serve as run_server

    config = load_config()
    if host:
        config.host = host
    if port:
        config.port = port

    click.echo(f"[*] GHL Tool Gateway listening on {config.host}:{config.port}")
    missing = config.missing_downstream_settings()
    if missing:
        click.echo(f"[!] Missing environment variables: {', '.join(missing)}")
    await run_server(config)


@cli.command()
async def tools():
    """List the allowlisted tool catalog with categories."""
    config = load_config()
    registry = build_registry(CrmClient.from_config(config))

    available = registry.available()
    click.echo(f"[+] {len(available)} tools available")
    for tool in available:
        click.echo(f"    {tool.name} [{tool.category.value}] {tool.description}")
    click.echo("")
    for tool_category in sorted({t.category for t in available}, key=lambda c: c.value):
        click.echo(f"[*] {tool_category.value}: {get_category_description(tool_category)}")


@cli.command()
@click.argument("payload")
@click.pass_context
async def check(ctx, payload: str):
    """Run the content firewall over a JSON payload.

    Exits with status 2 when the payload would be blocked.

    Example:
        gateway check '{"note": "SSN 123-45-6789"}'
    """
    data = _load_json(ctx, payload, "payload")
    verdict = PatternScanner().scan(data)
    if verdict.blocked:
        click.echo(f"[!] Blocked (rule: {verdict.reason})")
        ctx.exit(2)
    click.echo("[+] Clear")


@cli.command()
@click.option("--path", default=None, help="Snapshot file (default: PROPOSAL_STORE_PATH)")
@click.option("--status", default=None, help="Only show proposals with this status")
@click.option("--limit", "-n", type=int, default=20, help="Maximum number of proposals")
@click.pass_context
async def proposals(ctx, path: str | None, status: str | None, limit: int):
    """Show live proposals from the snapshot file, arguments redacted."""
    path = path or load_config().proposal_store_path
    if not path:
        click.echo("[-] No snapshot file configured (set PROPOSAL_STORE_PATH or --path)")
        ctx.exit(1)

    now = SystemClock().now_ms()
    live = [p for p in JsonFileBackend(path).load() if not p.is_expired(now)]
    if status:
        live = [p for p in live if p.status.value == status]
    live.sort(key=lambda p: p.created_at, reverse=True)
    live = live[: max(0, limit)]

    click.echo(f"[+] {len(live)} live proposals")
    for proposal in live:
        click.echo(json.dumps(proposal.to_safe_dict(), indent=2, ensure_ascii=False))


@cli.command()
@click.argument("method")
@click.argument("params", default="{}")
@click.option("--url", default=DEFAULT_URL, show_default=True, help="Gateway JSON-RPC URL")
@click.pass_context
async def rpc(ctx, method: str, params: str, url: str):
    """Send one JSON-RPC call to a running gateway.

    Example:
        gateway rpc tools/list
        gateway rpc tools/proposals/list '{"limit": 5}'
    """
    data = _load_json(ctx, params, "params")
    try:
        response = await post_rpc(url, method, data, random.randint(1000, 9999))
    except aiohttp.ClientError as e:
        click.echo(f"[-] Request failed: {e}")
        ctx.exit(1)
    click.echo(json.dumps(response, indent=2, ensure_ascii=False))


@cli.command("propose-approve")
@click.argument("tool_name")
@click.argument("arguments")
@click.option("--url", default=DEFAULT_URL, show_default=True, help="Gateway JSON-RPC URL")
@click.pass_context
async def propose_approve(ctx, tool_name: str, arguments: str, url: str):
    """Propose a write tool call, then approve it.

    Example:
        gateway propose-approve tasks_create '{"title": "Call back", "dueDateTime": "2026-02-18T17:00:00-05:00"}'
    """
    args = _load_json(ctx, arguments, "arguments")
    request_id = random.randint(1000, 9999)

    try:
        proposed = await post_rpc(
            url, "tools/call", {"name": tool_name, "arguments": args}, request_id
        )
        payload = _content_payload(proposed) or {}
        proposal_id = payload.get("proposal_id")
        if not proposal_id:
            click.echo("[-] No proposal_id found in response")
            click.echo(json.dumps(proposed, indent=2, ensure_ascii=False))
            ctx.exit(2)

        click.echo(f"[*] Proposal {proposal_id}: {payload.get('summary', tool_name)}")
        approved = await post_rpc(
            url, "tools/approve", {"proposal_id": proposal_id, "approve": True}, request_id + 1
        )
    except aiohttp.ClientError as e:
        click.echo(f"[-] Request failed: {e}")
        ctx.exit(1)

    click.echo(json.dumps(approved, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    cli()
