"""
Error taxonomy for api_reach.

Every error raised out of an execution is an ``ApiReachError``. The class
tells ``except`` clauses what happened; the ``kind`` tag carries the same
information for code that prefers to branch on a value.
"""
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from .config import ThrowOptions
    from .types import ResponseEnvelope


class ErrorKind(str, Enum):
    """Closed set of error kinds"""
    ABORT = "abort"
    TIMEOUT = "timeout"
    HTTP_CLIENT = "http_client"
    HTTP_SERVER = "http_server"
    RESPONSE_DATA_TYPE_MISMATCH = "response_data_type_mismatch"
    CACHE_MISS = "cache_miss"
    UNKNOWN = "unknown"


class ApiReachError(Exception):
    """Base error. Never raised directly."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str = "",
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})
        if cause is not None:
            self.__cause__ = cause

    @property
    def response(self) -> Optional["ResponseEnvelope"]:
        """Response attached to the error, if any."""
        return self.details.get("response")

    @property
    def is_http(self) -> bool:
        return self.kind in (ErrorKind.HTTP_CLIENT, ErrorKind.HTTP_SERVER)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, message={self.message!r})"


class AbortError(ApiReachError):
    """Request was cancelled by the caller, not by a timer."""

    kind = ErrorKind.ABORT


class ApiTimeoutError(ApiReachError):
    """Per-attempt or global timer fired."""

    kind = ErrorKind.TIMEOUT


class HttpClientError(ApiReachError):
    """Response classified as a client error (4xx)."""

    kind = ErrorKind.HTTP_CLIENT


class HttpServerError(ApiReachError):
    """Response classified as a server error (5xx)."""

    kind = ErrorKind.HTTP_SERVER


class ResponseDataTypeMismatchError(ApiReachError):
    """
    Response body could not be decoded as the expected type.

    Raised even when the status code is a success.
    """

    kind = ErrorKind.RESPONSE_DATA_TYPE_MISMATCH


class CacheMissError(ApiReachError):
    """cache-only load strategy found no entry."""

    kind = ErrorKind.CACHE_MISS


class UnknownError(ApiReachError):
    """Anything that is not one of the known kinds."""

    kind = ErrorKind.UNKNOWN


class UnknownStatusError(UnknownError):
    """Status code that falls outside every known range."""


HttpError = (HttpClientError, HttpServerError)


class AttemptCancelledError(Exception):
    """
    Raised inside a single attempt when its cancellation token fires.

    Transports may raise it themselves; the executor turns it into an
    ``AbortError`` or ``ApiTimeoutError``.
    """


def normalize_error(error: BaseException) -> ApiReachError:
    """Wrap anything that is not an ``ApiReachError`` into ``UnknownError``."""
    if isinstance(error, ApiReachError):
        return error
    return UnknownError(str(error) or type(error).__name__, cause=error)


def apply_throw_policy(error: ApiReachError, throw: "ThrowOptions") -> "ResponseEnvelope":
    """
    Downgrade an HTTP error to its response when the throw policy allows it.

    Raises:
        ApiReachError: the given error, when it must be surfaced
    """
    if error.kind == ErrorKind.HTTP_CLIENT and not throw.on_client_error_responses:
        return error.details["response"]
    if error.kind == ErrorKind.HTTP_SERVER and not throw.on_server_error_responses:
        return error.details["response"]
    raise error
