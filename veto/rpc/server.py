"""
JSON-RPC proxy HTTP app.

A single catch-all route runs every request through the pipeline:
validate the envelope, check the blocklist, then answer with an error or
relay the upstream node's response. Whatever fails along the way, the
caller gets a JSON-RPC response.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import Response

from veto.common.config import Config
from veto.rpc.errors import InvalidEnvelope, MethodBlocked, PipelineError
from veto.rpc.forwarder import Forwarder, UpstreamResponse
from veto.rpc.gatekeeper import Deny, decide
from veto.rpc.jsonrpc import error_response, parse_json_rpc

logger = logging.getLogger(__name__)


ALL_HTTP_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def _relay(upstream: UpstreamResponse) -> Response:
    response = Response(content=upstream.content, status_code=upstream.status_code)
    response.raw_headers.extend(
        (name.lower().encode("latin-1"), value.encode("latin-1"))
        for name, value in upstream.headers
    )
    return response


class ProxyServer:
    """JSON-RPC gatekeeper in front of a single upstream node."""

    def __init__(
        self,
        config: Config,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self._transport = transport
        self.forwarder: Optional[Forwarder] = None
        self.app = FastAPI(
            title="veto JSON-RPC proxy",
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
            lifespan=self._lifespan,
        )
        self._setup_routes()

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        self.forwarder = Forwarder(self.config, transport=self._transport)
        try:
            yield
        finally:
            await self.forwarder.aclose()
            self.forwarder = None

    def _setup_routes(self) -> None:
        @self.app.api_route("/{path:path}", methods=ALL_HTTP_METHODS)
        async def handle_rpc(request: Request) -> Response:
            request.state.rpc_id = None
            try:
                return await self._handle(request)
            except InvalidEnvelope as exc:
                logger.debug("invalid request: %s", exc.reason)
                return error_response(exc)
            except PipelineError as exc:
                if not isinstance(exc, MethodBlocked) and exc.http_status < 500:
                    logger.debug("rejected request: %s", exc.message)
                return error_response(exc)
            except Exception:
                logger.exception("unexpected proxy error")
                return error_response(PipelineError(request_id=request.state.rpc_id))

    async def _handle(self, request: Request) -> Response:
        if request.method != "POST":
            raise InvalidEnvelope(f"HTTP method {request.method} not allowed", http_status=405)

        body = await request.body()
        rpc_request = parse_json_rpc(body, request.headers.get("content-type"))
        request.state.rpc_id = rpc_request.id

        decision = decide(rpc_request, self.config.blocked_methods)
        if isinstance(decision, Deny):
            logger.info("blocked %s (id=%r)", decision.method, rpc_request.id)
            raise MethodBlocked(decision.method, rpc_request.id)

        logger.debug("forwarding %s (id=%r)", rpc_request.method, rpc_request.id)
        if self.forwarder is None:
            raise RuntimeError("proxy used outside of its lifespan")
        upstream = await self.forwarder.forward(
            body,
            path=request.url.path,
            query=request.scope.get("query_string", b""),
            headers=request.headers,
            request_id=rpc_request.id,
        )
        return _relay(upstream)
