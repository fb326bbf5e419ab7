"""
Pipeline error taxonomy.

Every way a request can fail inside the proxy is a ``PipelineError``
subclass with a fixed JSON-RPC code, a deterministic message and the HTTP
status it is reported with. Stages raise them; the server turns them into
responses.
"""

from __future__ import annotations

from typing import Any

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INTERNAL_ERROR = -32603


class PipelineError(Exception):
    code: int = INTERNAL_ERROR
    http_status: int = 500

    def __init__(self, message: str = "Internal error", request_id: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.request_id = request_id


class MalformedJson(PipelineError):
    code = PARSE_ERROR
    http_status = 400

    def __init__(self) -> None:
        super().__init__("Parse error")


class BatchRejected(PipelineError):
    code = INVALID_REQUEST
    http_status = 400

    def __init__(self) -> None:
        super().__init__("Invalid request: batch requests are not supported")


class InvalidEnvelope(PipelineError):
    """Any structural problem with the request.

    The message is the same whatever the cause so callers cannot probe
    which check failed. ``reason`` is kept for logging only.
    """

    code = INVALID_REQUEST

    def __init__(self, reason: str, request_id: Any = None, http_status: int = 400) -> None:
        super().__init__("Invalid request", request_id)
        self.reason = reason
        self.http_status = http_status


class MethodBlocked(PipelineError):
    code = METHOD_NOT_FOUND
    http_status = 200

    def __init__(self, method: str, request_id: Any = None) -> None:
        super().__init__(f"Method '{method}' blocked by veto proxy", request_id)
        self.method = method


class UpstreamUnreachable(PipelineError):
    http_status = 502

    def __init__(self, request_id: Any = None) -> None:
        super().__init__("Upstream unreachable", request_id)


class UpstreamError(PipelineError):
    http_status = 502

    def __init__(self, detail: str, request_id: Any = None) -> None:
        super().__init__(f"Upstream error: {detail}", request_id)
        self.detail = detail
