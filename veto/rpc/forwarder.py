"""
Upstream forwarding.

Relays the caller's original body bytes to the upstream node and hands the
upstream's status, headers and raw (still encoded) body back unchanged.
A single attempt is made per request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import httpx

from veto.common.config import Config
from veto.rpc.errors import UpstreamError, UpstreamUnreachable

logger = logging.getLogger(__name__)

# Headers that only describe a single connection and must not be relayed
# (RFC 9110 section 7.6.1).
HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "proxy-connection",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
})

_MAX_DETAIL_LENGTH = 200


@dataclass(frozen=True)
class UpstreamResponse:
    status_code: int
    headers: list[tuple[str, str]]
    content: bytes


def build_target_url(upstream_url: str, path: str, query: bytes = b"") -> httpx.URL:
    """Map the inbound path and query onto the upstream URL.

    ``/`` keeps the upstream path as-is, so URLs carrying an API key in
    their path keep working. Other paths are appended to it.
    """
    base = httpx.URL(upstream_url)
    if path and path != "/":
        base = base.copy_with(path=base.path.rstrip("/") + path)
    if query:
        base = base.copy_with(query=query)
    return base


def filter_request_headers(headers: Mapping[str, str]) -> dict[str, str]:
    forwarded = {}
    for name, value in headers.items():
        lower = name.lower()
        if lower in HOP_BY_HOP_HEADERS or lower in ("host", "content-length"):
            continue
        forwarded[lower] = value
    # Callers that send no accept-encoding get an unencoded body.
    forwarded.setdefault("accept-encoding", "identity")
    return forwarded


def filter_response_headers(headers: httpx.Headers) -> list[tuple[str, str]]:
    return [
        (name, value)
        for name, value in headers.multi_items()
        if name.lower() not in HOP_BY_HOP_HEADERS and name.lower() != "content-length"
    ]


def describe_transport_error(exc: Exception) -> str:
    detail = str(exc).strip()
    if detail and len(detail) <= _MAX_DETAIL_LENGTH and detail.isascii() and detail.isprintable():
        return detail
    return type(exc).__name__


class Forwarder:
    """Shared upstream client. One instance serves all requests."""

    def __init__(
        self,
        config: Config,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.upstream_url = config.upstream_url
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(config.upstream_timeout),
            transport=transport,
            follow_redirects=False,
            trust_env=False,
        )

    async def forward(
        self,
        body: bytes,
        path: str = "/",
        query: bytes = b"",
        headers: Optional[Mapping[str, str]] = None,
        request_id: Any = None,
    ) -> UpstreamResponse:
        """POST ``body`` to the upstream and return its response verbatim.

        Raises:
            UpstreamUnreachable: no connection could be made, or the call
                timed out.
            UpstreamError: the upstream answered but the response could not
                be read.
        """
        url = build_target_url(self.upstream_url, path, query)
        request = self._client.build_request(
            "POST",
            url,
            content=body,
            headers=filter_request_headers(headers or {}),
        )

        try:
            response = await self._client.send(request, stream=True)
            try:
                content = b"".join([chunk async for chunk in response.aiter_raw()])
            finally:
                await response.aclose()
        except (httpx.TimeoutException, httpx.ConnectError) as exc:
            logger.warning("upstream %s unreachable: %s", url, describe_transport_error(exc))
            raise UpstreamUnreachable(request_id) from exc
        except httpx.HTTPError as exc:
            detail = describe_transport_error(exc)
            logger.warning("upstream %s failed: %s", url, detail)
            raise UpstreamError(detail, request_id) from exc

        if not 100 <= response.status_code <= 599:
            detail = f"unexpected status {response.status_code}"
            logger.warning("upstream %s returned %s", url, detail)
            raise UpstreamError(detail, request_id)

        return UpstreamResponse(
            status_code=response.status_code,
            headers=filter_response_headers(response.headers),
            content=content,
        )

    async def aclose(self) -> None:
        await self._client.aclose()
