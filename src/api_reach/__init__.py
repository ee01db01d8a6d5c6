"""
api_reach - HTTP API client with retries, timeouts, cancellation and
response caching.

Example:
    from api_reach import ApiClient, ClientOptions

    async with ApiClient(ClientOptions(base="https://api.example.com")) as client:
        response = await client.get("/users/:id", {"params": {"id": 5}})
        print(response.body)
"""
from .cache import CacheCoordinator, default_cache_key, wait_for_pending_writes
from .cancellation import CancellableTask, CancellationToken
from .classifier import (
    build_envelope,
    classify,
    decode_body,
    is_aborted,
    is_client_error,
    is_informational,
    is_redirect,
    is_server_error,
    is_success,
    serve_response,
)
from .client import ApiClient, create_api_client, execute
from .config import (
    DEFAULT_RETRY_POLICY,
    DEFAULT_THROW_OPTIONS,
    DEFAULT_TIMEOUT,
    BackoffStrategy,
    CacheOptions,
    ClientOptions,
    ExecutionOptions,
    RequestOptions,
    RetryPolicy,
    ThrowOptions,
    TimeoutConfig,
    calculate_interval,
    merge_options,
    resolve_options,
)
from .const import (
    ExpectedResponseBodyType,
    LoadStrategy,
    RequestBodyType,
    ResponseCategory,
    SaveStrategy,
)
from .errors import (
    AbortError,
    ApiReachError,
    ApiTimeoutError,
    CacheMissError,
    ErrorKind,
    HttpClientError,
    HttpError,
    HttpServerError,
    ResponseDataTypeMismatchError,
    UnknownError,
    UnknownStatusError,
    apply_throw_policy,
    normalize_error,
)
from .executor import RequestExecutor
from .request_builder import build_request, build_url
from .stores import MemoryCacheStore, RedisCacheStore
from .transport import HttpxTransport
from .types import (
    CacheStore,
    RawResponse,
    RequestData,
    RequestDescriptor,
    ResponseEnvelope,
    Transport,
    TryInfo,
)

__version__ = "1.0.0"

__all__ = [
    # Client
    "ApiClient",
    "create_api_client",
    "execute",
    "RequestExecutor",
    "CacheCoordinator",
    "HttpxTransport",
    "CancellableTask",
    "CancellationToken",
    # Options
    "ClientOptions",
    "RequestOptions",
    "ExecutionOptions",
    "TimeoutConfig",
    "RetryPolicy",
    "BackoffStrategy",
    "ThrowOptions",
    "CacheOptions",
    "DEFAULT_TIMEOUT",
    "DEFAULT_RETRY_POLICY",
    "DEFAULT_THROW_OPTIONS",
    "merge_options",
    "resolve_options",
    "calculate_interval",
    # Constants
    "ResponseCategory",
    "ExpectedResponseBodyType",
    "RequestBodyType",
    "LoadStrategy",
    "SaveStrategy",
    # Types
    "RequestData",
    "RequestDescriptor",
    "RawResponse",
    "ResponseEnvelope",
    "TryInfo",
    "Transport",
    "CacheStore",
    # Errors
    "ErrorKind",
    "ApiReachError",
    "AbortError",
    "ApiTimeoutError",
    "HttpClientError",
    "HttpServerError",
    "HttpError",
    "ResponseDataTypeMismatchError",
    "CacheMissError",
    "UnknownError",
    "UnknownStatusError",
    "normalize_error",
    "apply_throw_policy",
    # Classification
    "classify",
    "is_success",
    "is_client_error",
    "is_server_error",
    "is_redirect",
    "is_aborted",
    "is_informational",
    "decode_body",
    "build_envelope",
    "serve_response",
    # Helpers
    "build_request",
    "build_url",
    "default_cache_key",
    "wait_for_pending_writes",
    # Stores
    "MemoryCacheStore",
    "RedisCacheStore",
]
