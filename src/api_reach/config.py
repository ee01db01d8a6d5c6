"""
Configuration for api_reach: timeouts, retry policy, throw policy, cache
options, and how client level and request level options are merged.
"""
import math
import os
import random
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

from .const import ExpectedResponseBodyType, LoadStrategy, RequestBodyType, SaveStrategy
from .types import CacheStore, RequestDescriptor, ResponseEnvelope, TryInfo


class BackoffStrategy(str, Enum):
    """Backoff strategy type"""
    CONSTANT = "constant"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class TimeoutConfig:
    """Timeouts in seconds. None, 0 or inf disables a timer."""

    single: Optional[float] = 30.0
    """Budget for a single attempt"""

    total: Optional[float] = 60.0
    """Budget for the whole execution, waits included"""


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry policy.

    ``retries`` is the number of extra attempts after the first one, so the
    default counting policy allows ``retries + 1`` attempts in total.
    """

    retries: int = 1
    """Extra attempts after the first. Default: 1"""

    interval_seconds: float = 0.1
    """Base wait between attempts (seconds). Default: 0.1"""

    backoff_strategy: BackoffStrategy = BackoffStrategy.CONSTANT
    """How the wait grows between attempts. Default: constant"""

    linear_increment_seconds: float = 0.1
    """Increment for linear backoff (seconds). Default: 0.1"""

    max_interval_seconds: float = 30.0
    """Upper bound for a single wait (seconds). Default: 30.0"""

    jitter_factor: float = 0.0
    """Jitter factor (0-1). Default: 0"""

    should_retry: Optional[Callable[[TryInfo], bool]] = None
    """Custom predicate: may attempt ``try_no`` run?"""

    interval: Optional[Callable[[TryInfo], float]] = None
    """Custom wait (seconds) before attempt ``try_no``"""

    def allows_try(self, try_info: TryInfo) -> bool:
        if self.should_retry is not None:
            return bool(self.should_retry(try_info))
        return try_info.try_no <= self.retries + 1

    def interval_for(self, try_info: TryInfo) -> float:
        if self.interval is not None:
            return float(self.interval(try_info))
        return calculate_interval(try_info.try_no, self)


@dataclass(frozen=True)
class ThrowOptions:
    """Whether HTTP error responses are raised or returned"""

    on_client_error_responses: bool = True
    on_server_error_responses: bool = True


CacheKey = Union[str, Callable[[RequestDescriptor], Optional[str]]]
CacheTtl = Union[float, None, Callable[[ResponseEnvelope], Optional[float]]]
ShouldCacheResponse = Union[bool, Callable[[ResponseEnvelope], bool]]


@dataclass
class CacheOptions:
    """Response cache configuration"""

    storage: CacheStore
    """Async key/value store"""

    key: Optional[CacheKey] = None
    """Literal key, or function of the request returning a key or None. Default: default_cache_key"""

    ttl: CacheTtl = None
    """Seconds, None for no expiry, or function of the response"""

    should_cache_response: ShouldCacheResponse = True
    """Bool, or predicate over the final response"""

    load_strategy: LoadStrategy = LoadStrategy.PREFER_CACHE
    save_strategy: SaveStrategy = SaveStrategy.SAVE

    wait_for_save: bool = False
    """Await the cache write before settling. Failures are still swallowed."""

    def __post_init__(self) -> None:
        self.load_strategy = LoadStrategy(self.load_strategy)
        self.save_strategy = SaveStrategy(self.save_strategy)


@dataclass(frozen=True)
class ExecutionOptions:
    """Resolved policy bundle for one execution"""

    timeout: TimeoutConfig = field(default_factory=TimeoutConfig)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    cache: Optional[CacheOptions] = None
    throw: ThrowOptions = field(default_factory=ThrowOptions)


@dataclass
class ClientOptions:
    """
    Options accepted by ``ApiClient`` and by each request.

    Request options override client options field by field; headers are
    merged.
    """

    base: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)
    request_type: Optional[RequestBodyType] = None
    response_type: Optional[ExpectedResponseBodyType] = None
    timeout: Union[TimeoutConfig, float, None] = None
    retry: Union[RetryPolicy, int, None] = None
    cache: Optional[CacheOptions] = None
    throw: Optional[ThrowOptions] = None
    debug: Optional[bool] = None


# Default values
DEFAULT_TIMEOUT = TimeoutConfig(single=30.0, total=60.0)
DEFAULT_RETRY_POLICY = RetryPolicy()
DEFAULT_THROW_OPTIONS = ThrowOptions()
DEFAULT_REQUEST_TYPE = RequestBodyType.JSON
DEFAULT_RESPONSE_TYPE = ExpectedResponseBodyType.JSON


def is_enabled_timeout(value: Optional[float]) -> bool:
    """Whether a timeout value should start a timer."""
    return value is not None and value > 0 and math.isfinite(value)


def calculate_interval(try_no: int, policy: RetryPolicy) -> float:
    """
    Wait before attempt ``try_no`` based on the backoff strategy.

    Args:
        try_no: 1-based attempt number, the first retry is attempt 2
        policy: Retry policy

    Returns:
        Delay in seconds
    """
    retry_index = max(0, try_no - 2)
    base = policy.interval_seconds
    max_interval = policy.max_interval_seconds
    jitter = policy.jitter_factor

    if policy.backoff_strategy == BackoffStrategy.LINEAR:
        base_delay = min(max_interval, base + policy.linear_increment_seconds * retry_index)
    elif policy.backoff_strategy == BackoffStrategy.EXPONENTIAL:
        base_delay = min(max_interval, base * (2 ** retry_index))
    else:  # CONSTANT (default)
        base_delay = min(max_interval, base)

    if jitter <= 0:
        return base_delay

    jitter_amount = random.random() * jitter * base_delay
    delay = base_delay * (1 - jitter / 2) + jitter_amount
    return min(delay, max_interval)


def normalize_timeout(timeout: Union[TimeoutConfig, float, None]) -> TimeoutConfig:
    """A bare number is the single attempt timeout; total keeps its default."""
    if timeout is None:
        return DEFAULT_TIMEOUT
    if isinstance(timeout, (int, float)):
        return TimeoutConfig(single=float(timeout), total=DEFAULT_TIMEOUT.total)
    return timeout


def normalize_retry(retry: Union[RetryPolicy, int, None]) -> RetryPolicy:
    """A bare number is the count of extra attempts."""
    if retry is None:
        return DEFAULT_RETRY_POLICY
    if isinstance(retry, bool):
        raise TypeError("retry must be an int or a RetryPolicy")
    if isinstance(retry, int):
        if retry < 0:
            raise ValueError("retry must not be negative")
        return replace(DEFAULT_RETRY_POLICY, retries=retry)
    return retry


def is_debug_enabled_by_env() -> bool:
    """Check API_REACH_DEBUG=1"""
    return os.environ.get("API_REACH_DEBUG", "") in ("1", "true", "yes")


def merge_options(base: Optional[ClientOptions], override: Optional[ClientOptions] = None) -> ClientOptions:
    """
    Merge request options over client options.

    Args:
        base: Client options
        override: Request options

    Returns:
        New ClientOptions; neither input is modified
    """
    base = base or ClientOptions()
    if override is None:
        return replace(base, headers=dict(base.headers))

    merged: Dict[str, Any] = {}
    for f in fields(ClientOptions):
        if f.name == "headers":
            merged["headers"] = {**base.headers, **override.headers}
            continue
        value = getattr(override, f.name)
        merged[f.name] = value if value is not None else getattr(base, f.name)
    return ClientOptions(**merged)


def resolve_options(options: ClientOptions) -> ExecutionOptions:
    """Apply defaults and build the immutable policy bundle."""
    return ExecutionOptions(
        timeout=normalize_timeout(options.timeout),
        retry=normalize_retry(options.retry),
        cache=options.cache,
        throw=options.throw or DEFAULT_THROW_OPTIONS,
    )


RequestOptions = ClientOptions
"""Per-request options. Same shape as ClientOptions; set fields win."""
