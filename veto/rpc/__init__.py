"""JSON-RPC interception pipeline."""

from .server import ProxyServer
from .jsonrpc import JsonRpcRequest, parse_json_rpc, error_response
from .gatekeeper import Allow, Deny, decide

__all__ = [
    "ProxyServer",
    "JsonRpcRequest",
    "parse_json_rpc",
    "error_response",
    "Allow",
    "Deny",
    "decide",
]
