"""
Type definitions for api_reach
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Optional, Protocol, Union

from .const import ExpectedResponseBodyType, RequestBodyType, ResponseCategory
from .cancellation import CancellationToken


@dataclass
class RequestData:
    """Per-request data given by the caller"""

    params: Optional[Dict[str, Any]] = None
    """Values for ``:name`` placeholders in the url"""

    query: Optional[Dict[str, Any]] = None
    """Query string values, merged with any query already in the url"""

    body: Any = None
    """Request body, encoded according to the request body type"""

    headers: Optional[Dict[str, str]] = None
    """Request headers"""


@dataclass(frozen=True)
class RequestDescriptor:
    """Fully resolved request. Created once per execution."""

    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[Union[str, bytes]] = None
    original_url: Optional[str] = None
    query: Optional[Dict[str, Any]] = None
    params: Optional[Dict[str, Any]] = None
    request_type: RequestBodyType = RequestBodyType.JSON
    response_type: ExpectedResponseBodyType = ExpectedResponseBodyType.JSON


@dataclass(frozen=True)
class RawResponse:
    """What a transport returns for a single attempt"""

    status: int
    status_text: str
    headers: Dict[str, str]
    body: Union[bytes, AsyncIterator[bytes], None] = None
    """Buffered bytes, or an async byte iterator for stream responses"""


@dataclass(frozen=True)
class ResponseEnvelope:
    """Classified response"""

    status: int
    status_text: str
    headers: Dict[str, str]
    body: Any
    category: ResponseCategory
    request: Optional[RequestDescriptor] = None
    cached: bool = False
    raw_body: Optional[str] = None
    """Undecoded text when the body did not match the expected type"""

    @property
    def ok(self) -> bool:
        return self.category == ResponseCategory.SUCCESS


@dataclass(frozen=True)
class TryInfo:
    """Passed to retry policy callbacks"""

    try_no: int
    """1-based number of the attempt about to run"""

    last_error: Optional[Exception] = None


class Transport(Protocol):
    """Raw HTTP transport function"""

    async def __call__(
        self, request: RequestDescriptor, cancel_token: CancellationToken
    ) -> RawResponse:
        ...


class CacheStore(ABC):
    """Async key/value store used for response caching. Keys and values are strings."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Get a value, or None when missing or expired."""
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl: Optional[float] = None) -> bool:
        """Store a value. ``ttl`` in seconds, None for no expiry."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a value."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Remove every value."""
        pass
