"""
JSON-RPC 2.0 envelope handling.

``parse_json_rpc`` validates the raw request body and ``error_response``
renders pipeline errors back to the caller:
https://www.jsonrpc.org/specification
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Any, Optional

from fastapi.responses import JSONResponse

from veto.rpc.errors import (
    BatchRejected,
    InvalidEnvelope,
    MalformedJson,
    PipelineError,
)

JSONRPC_VERSION = "2.0"
JSON_MEDIA_TYPE = "application/json"

_MISSING = object()


@dataclass(frozen=True)
class JsonRpcRequest:
    method: str
    id: Any = None
    jsonrpc: Optional[str] = None
    params: Any = _MISSING

    @property
    def has_params(self) -> bool:
        return self.params is not _MISSING


@dataclass(frozen=True)
class JsonRpcErrorResponse:
    code: int
    message: str
    id: Any = None

    def to_dict(self) -> dict:
        return {
            "jsonrpc": JSONRPC_VERSION,
            "error": {"code": self.code, "message": self.message},
            "id": self.id,
        }


class _DuplicateKey(Exception):
    pass


def _reject_duplicate_keys(pairs: list[tuple[str, Any]]) -> dict:
    obj: dict = {}
    for key, value in pairs:
        if key in obj:
            raise _DuplicateKey(key)
        obj[key] = value
    return obj


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name}")


def _is_encodable(value: str) -> bool:
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def _is_valid_id(value: Any) -> bool:
    """Ids are echoed back, so they must survive strict JSON rendering."""
    if value is None or isinstance(value, int) and not isinstance(value, bool):
        return True
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, str):
        return _is_encodable(value)
    return False


def is_json_content_type(content_type: Optional[str]) -> bool:
    if content_type is None:
        return True
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == JSON_MEDIA_TYPE


def parse_json_rpc(body: bytes, content_type: Optional[str] = None) -> JsonRpcRequest:
    """Parse ``body`` into a single JSON-RPC request.

    Raises:
        InvalidEnvelope: wrong content type, empty body, non-object payload,
            duplicate keys, or a bad ``method``/``jsonrpc``/``id`` field.
        MalformedJson: the body is not valid JSON.
        BatchRejected: the payload is a JSON array. Elements are never
            inspected.
    """
    if not is_json_content_type(content_type):
        raise InvalidEnvelope(f"unsupported content type {content_type!r}", http_status=415)

    stripped = body.lstrip()
    if not stripped:
        raise InvalidEnvelope("empty body")
    # A top-level array is a batch whatever it contains, even if unparseable.
    if stripped[:1] == b"[":
        raise BatchRejected()

    try:
        value = json.loads(
            body,
            object_pairs_hook=_reject_duplicate_keys,
            parse_constant=_reject_constant,
        )
    except _DuplicateKey as exc:
        raise InvalidEnvelope(f"duplicate key {exc}") from None
    except (ValueError, RecursionError):
        raise MalformedJson() from None

    if isinstance(value, list):
        raise BatchRejected()
    if not isinstance(value, dict):
        raise InvalidEnvelope("payload must be an object")

    request_id = value.get("id")
    if not _is_valid_id(request_id):
        raise InvalidEnvelope("id must be a string, finite number or null")

    jsonrpc = value.get("jsonrpc", _MISSING)
    if jsonrpc is not _MISSING and jsonrpc != JSONRPC_VERSION:
        raise InvalidEnvelope("jsonrpc must be 2.0", request_id)

    method = value.get("method")
    if not isinstance(method, str) or not method.strip() or not _is_encodable(method):
        raise InvalidEnvelope("method is required", request_id)

    return JsonRpcRequest(
        method=method,
        id=request_id,
        jsonrpc=None if jsonrpc is _MISSING else jsonrpc,
        params=value.get("params", _MISSING),
    )


def error_response(error: PipelineError) -> JSONResponse:
    """Render ``error`` as a JSON-RPC error response.

    Output is compact JSON with a fixed key order, so identical errors are
    byte-identical on the wire.
    """
    payload = JsonRpcErrorResponse(error.code, error.message, error.request_id)
    return JSONResponse(payload.to_dict(), status_code=error.http_status)
