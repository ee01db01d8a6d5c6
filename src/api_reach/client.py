"""
Client facade: builds requests, resolves options and runs executions.
"""
import logging
from typing import Any, Callable, Mapping, Optional, Union

from .cache import CacheCoordinator
from .cancellation import CancellableTask, CancellationToken
from .classifier import release_body
from .config import (
    ClientOptions,
    ExecutionOptions,
    RequestOptions,
    is_debug_enabled_by_env,
    merge_options,
    resolve_options,
)
from .console import print_failure, print_request, print_response
from .errors import ApiReachError, apply_throw_policy
from .executor import RequestExecutor
from .request_builder import build_request
from .transport import HttpxTransport
from .types import RequestData, RequestDescriptor, ResponseEnvelope, Transport

logger = logging.getLogger("api_reach.client")

Data = Union[RequestData, Mapping[str, Any], None]


def execute(
    request: RequestDescriptor,
    options: ExecutionOptions,
    transport: Transport,
    token_factory: Callable[[], CancellationToken] = CancellationToken,
    debug: bool = False,
) -> "CancellableTask[ResponseEnvelope]":
    """
    Start one execution: cache strategy, attempt loop, write-through and
    throw policy, in that order.

    Must be called with a running event loop.

    Args:
        request: Fully built request
        options: Resolved execution options
        transport: Transport used for every attempt
        token_factory: Factory for per-attempt cancellation tokens
        debug: Print request and response panels

    Returns:
        Awaitable task; ``cancel()`` aborts the execution
    """
    executor = RequestExecutor(request, options, transport, token_factory)
    coordinator = CacheCoordinator(request, options.cache)

    async def _run() -> ResponseEnvelope:
        if debug:
            print_request(request)
        try:
            response = await coordinator.execute(executor.run)
        except ApiReachError as error:
            if debug:
                print_failure(request, error)
            try:
                response = apply_throw_policy(error, options.throw)
            except ApiReachError:
                await release_body(error.response)
                raise
        if debug:
            print_response(response)
        return response

    return CancellableTask(_run(), executor.abort)


class ApiClient:
    """
    HTTP API client.

    Every request method returns a ``CancellableTask`` that resolves to a
    ``ResponseEnvelope`` or raises an ``ApiReachError``.

    Example:
        client = ApiClient(ClientOptions(base="https://api.example.com"))
        response = await client.get("/users/:id", {"params": {"id": 5}})
    """

    def __init__(
        self,
        options: Optional[ClientOptions] = None,
        transport: Optional[Transport] = None,
        token_factory: Callable[[], CancellationToken] = CancellationToken,
    ):
        self._options = options or ClientOptions()
        self._owns_transport = transport is None
        self._transport: Transport = transport or HttpxTransport()
        self._token_factory = token_factory

    @property
    def client_options(self) -> ClientOptions:
        return self._options

    def request(
        self,
        method: str,
        url: str,
        data: Data = None,
        options: Optional[RequestOptions] = None,
    ) -> "CancellableTask[ResponseEnvelope]":
        """
        Send a request.

        Raises:
            ValueError: url cannot be built, before anything is sent
            TypeError: body does not fit the request body type
        """
        merged = merge_options(self._options, options)
        request = build_request(method, url, data, merged)
        execution = resolve_options(merged)
        debug = merged.debug if merged.debug is not None else is_debug_enabled_by_env()
        logger.debug(f"ApiClient.request: {request.method} {request.url}")
        return execute(request, execution, self._transport, self._token_factory, debug)

    def get(self, url: str, data: Data = None, options: Optional[RequestOptions] = None):
        return self.request("GET", url, data, options)

    def post(self, url: str, data: Data = None, options: Optional[RequestOptions] = None):
        return self.request("POST", url, data, options)

    def put(self, url: str, data: Data = None, options: Optional[RequestOptions] = None):
        return self.request("PUT", url, data, options)

    def patch(self, url: str, data: Data = None, options: Optional[RequestOptions] = None):
        return self.request("PATCH", url, data, options)

    def delete(self, url: str, data: Data = None, options: Optional[RequestOptions] = None):
        return self.request("DELETE", url, data, options)

    def head(self, url: str, data: Data = None, options: Optional[RequestOptions] = None):
        return self.request("HEAD", url, data, options)

    def options(self, url: str, data: Data = None, options: Optional[RequestOptions] = None):
        return self.request("OPTIONS", url, data, options)

    async def aclose(self) -> None:
        """Close the transport when the client created it."""
        if self._owns_transport and hasattr(self._transport, "aclose"):
            await self._transport.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()


def create_api_client(
    options: Optional[ClientOptions] = None,
    transport: Optional[Transport] = None,
) -> ApiClient:
    """Create an ApiClient."""
    return ApiClient(options, transport)
