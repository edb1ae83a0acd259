"""JSON-RPC method table and HTTP transport."""

from .rpc import RpcHandler
from .server import create_app, serve

__all__ = ["RpcHandler", "create_app", "serve"]
