"""
httpx based transport.
"""
import logging
import os
from typing import AsyncIterator, Optional

import httpx

from .cancellation import CancellationToken
from .const import ExpectedResponseBodyType
from .types import RawResponse, RequestDescriptor

logger = logging.getLogger("api_reach.transport")


def _is_ssl_verify_disabled_by_env() -> bool:
    """
    Check if SSL verification is disabled via environment variables.

    Returns True if any of these are set:
    - NODE_TLS_REJECT_UNAUTHORIZED=0
    - SSL_CERT_VERIFY=0
    """
    node_tls = os.environ.get("NODE_TLS_REJECT_UNAUTHORIZED", "")
    ssl_cert_verify = os.environ.get("SSL_CERT_VERIFY", "")
    return node_tls == "0" or ssl_cert_verify == "0"


class HttpxByteStream:
    """
    Async byte iterator over a streamed httpx response.

    The response is closed once iteration ends or ``aclose()`` is called,
    whichever comes first, including when the body is never read.
    """

    def __init__(self, response: httpx.Response, cancel_token: CancellationToken):
        self._response = response
        self._cancel_token = cancel_token

    @property
    def closed(self) -> bool:
        return self._response.is_closed

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._iter_chunks()

    async def _iter_chunks(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.aiter_bytes():
                self._cancel_token.raise_if_cancelled()
                yield chunk
        finally:
            await self._response.aclose()

    async def aclose(self) -> None:
        await self._response.aclose()


class HttpxTransport:
    """
    Transport on top of ``httpx.AsyncClient``.

    Timeouts are owned by the executor, so the httpx client is created
    without its own timeouts unless one is given.
    """

    def __init__(
        self,
        httpx_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[httpx.Timeout] = None,
    ):
        if httpx_client is not None:
            self._client = httpx_client
            self._owns_client = False
        else:
            # NODE_TLS_REJECT_UNAUTHORIZED=0 or SSL_CERT_VERIFY=0 will disable SSL verification
            verify_ssl = not _is_ssl_verify_disabled_by_env()
            self._client = httpx.AsyncClient(
                timeout=timeout or httpx.Timeout(None),
                verify=verify_ssl,
            )
            self._owns_client = True

    async def __call__(self, request: RequestDescriptor, cancel_token: CancellationToken) -> RawResponse:
        cancel_token.raise_if_cancelled()

        stream = request.response_type == ExpectedResponseBodyType.STREAM
        http_request = self._client.build_request(
            method=request.method,
            url=request.url,
            headers=request.headers,
            content=request.body,
        )
        logger.debug(f"HttpxTransport: {request.method} {request.url} (stream={stream})")

        response = await self._client.send(http_request, stream=stream)
        if cancel_token.cancelled:
            await response.aclose()
            cancel_token.raise_if_cancelled()

        if stream:
            body = HttpxByteStream(response, cancel_token)
        else:
            body = response.content

        logger.debug(f"HttpxTransport: {request.url} -> {response.status_code}")
        return RawResponse(
            status=response.status_code,
            status_text=response.reason_phrase or "",
            headers=dict(response.headers),
            body=body,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpxTransport":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()
