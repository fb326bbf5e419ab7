"""Allow/deny decision for a validated request."""

from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, Union

from veto.rpc.jsonrpc import JsonRpcRequest


@dataclass(frozen=True)
class Allow:
    pass


@dataclass(frozen=True)
class Deny:
    method: str


Decision = Union[Allow, Deny]


def decide(request: JsonRpcRequest, blocked_methods: AbstractSet[str]) -> Decision:
    """Exact, case-insensitive match against the normalized blocklist.

    No wildcard expansion: every concrete method has to be listed.
    """
    if request.method.lower() in blocked_methods:
        return Deny(request.method)
    return Allow()
