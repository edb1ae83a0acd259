"""aiohttp transport for the gateway.

Routes:
- POST /mcp, POST /api/mcp: JSON-RPC 2.0
- GET /health, GET /api/mcp/health: liveness
- GET /ready: downstream configuration check
- GET /mcp/tools, GET /api/mcp/tools: tool manifest

Provides:
- create_app: Build the web application
- serve: Run the application until shutdown
"""

import asyncio
import json
import signal
import sys
from typing import Any, AsyncIterator

import structlog
from aiohttp import web

from gateway.api.rpc import RpcHandler, rpc_error
from gateway.app import Gateway, build_gateway
from gateway.core.config import Config, load_config
from gateway.core.errors import PARSE_ERROR

logger = structlog.get_logger()

CONFIG_KEY = web.AppKey("config", Config)
GATEWAY_KEY = web.AppKey("gateway", Gateway)
RPC_KEY = web.AppKey("rpc", RpcHandler)


async def handle_rpc(request: web.Request) -> web.Response:
    raw = await request.read()
    if not raw.strip():
        body: Any = {}
    else:
        try:
            body = json.loads(raw)
        except ValueError:
            logger.info("rpc_parse_error", path=request.path)
            return web.json_response(rpc_error(None, PARSE_ERROR, "Parse error"))

    response = await request.app[RPC_KEY].handle(body)
    return web.json_response(response, dumps=lambda obj: json.dumps(obj, default=str))


async def handle_health(request: web.Request) -> web.Response:
    return web.json_response({"ok": True})


async def handle_ready(request: web.Request) -> web.Response:
    missing = request.app[CONFIG_KEY].missing_downstream_settings()
    logger.info("ready_check", missing_count=len(missing), missing_keys=missing or None)
    if missing:
        return web.json_response(
            {
                "ok": False,
                "missing": missing,
                "message": "Server not ready: missing required environment variables",
            },
            status=503,
        )
    return web.json_response({"ok": True})


async def handle_tools(request: web.Request) -> web.Response:
    return web.json_response({"tools": request.app[GATEWAY_KEY].registry.manifest()})


def create_app(config: Config | None = None, **gateway_overrides: Any) -> web.Application:
    """Build the web application.

    Gateway components are built on startup and released on cleanup. Keyword
    arguments are forwarded to ``build_gateway`` (tests pass fake clients,
    clocks and backends this way).
    """
    app = web.Application()
    app[CONFIG_KEY] = config or load_config()

    async def gateway_context(app: web.Application) -> AsyncIterator[None]:
        gateway = await build_gateway(app[CONFIG_KEY], **gateway_overrides)
        gateway.start()
        app[GATEWAY_KEY] = gateway
        app[RPC_KEY] = RpcHandler(gateway)
        yield
        await gateway.close()

    app.cleanup_ctx.append(gateway_context)

    for path in ("/mcp", "/api/mcp"):
        app.router.add_post(path, handle_rpc)
    for path in ("/health", "/api/mcp/health"):
        app.router.add_get(path, handle_health)
    app.router.add_get("/ready", handle_ready)
    for path in ("/mcp/tools", "/api/mcp/tools"):
        app.router.add_get(path, handle_tools)
    return app


async def serve(config: Config, shutdown_event: asyncio.Event | None = None) -> None:
    """Run the server until ``shutdown_event`` is set or SIGINT/SIGTERM arrives."""
    app = create_app(config)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, config.host, config.port)
    await site.start()

    if shutdown_event is None:
        shutdown_event = asyncio.Event()
        if sys.platform != "win32":
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, shutdown_event.set)

    missing = config.missing_downstream_settings()
    logger.info(
        "server_listening",
        host=config.host,
        port=config.port,
        api_base=config.crm_api_base,
        api_version=config.crm_api_version,
        token_set=bool(config.crm_api_token),
        location_set=bool(config.crm_location_id),
    )
    if missing:
        logger.warning("missing_environment", keys=missing)

    try:
        await shutdown_event.wait()
    finally:
        await runner.cleanup()
