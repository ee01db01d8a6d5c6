"""
Response cache coordination: load strategies around the attempt loop and
best-effort write-through of the final response.
"""
import asyncio
import base64
import hashlib
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from .classifier import classify, serve_response
from .config import CacheOptions
from .const import ExpectedResponseBodyType, LoadStrategy, SaveStrategy
from .errors import ApiReachError, CacheMissError, UnknownStatusError, normalize_error
from .types import RequestDescriptor, ResponseEnvelope

logger = logging.getLogger("api_reach.cache")

# Strong references to in-flight background writes
_pending_writes: Set["asyncio.Task[None]"] = set()

_UNRESOLVED = object()


def default_cache_key(request: RequestDescriptor) -> Optional[str]:
    """
    Default key function. Only GET requests are cached.

    Returns:
        sha256 hex digest of method, url, headers and expected response type
    """
    if request.method.upper() != "GET":
        return None
    canonical = json.dumps(
        {
            "method": request.method.upper(),
            "url": request.url,
            "headers": request.headers,
            "response_type": request.response_type.value,
        },
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def serialize_entry(response: ResponseEnvelope) -> str:
    """Serialize a response into a cached entry (JSON text)."""
    entry: Dict[str, Any] = {
        "status": response.status,
        "statusText": response.status_text,
        "headers": response.headers,
        "body": response.body,
    }
    if isinstance(response.body, (bytes, bytearray)):
        entry["body"] = base64.b64encode(bytes(response.body)).decode("ascii")
        entry["bodyEncoding"] = "base64"
    return json.dumps(entry)


def parse_entry(payload: str, request: RequestDescriptor) -> ResponseEnvelope:
    """
    Rebuild a response from a cached entry.

    Raises:
        ValueError: payload is not a valid cached entry
    """
    data = json.loads(payload)
    if not isinstance(data, dict) or "status" not in data:
        raise ValueError("cached entry has no status")

    status = int(data["status"])
    body = data.get("body")
    if data.get("bodyEncoding") == "base64":
        body = base64.b64decode(body or "")

    return ResponseEnvelope(
        status=status,
        status_text=data.get("statusText", ""),
        headers=dict(data.get("headers") or {}),
        body=body,
        category=classify(status),
        request=request,
        cached=True,
    )


async def wait_for_pending_writes() -> None:
    """Wait until every background cache write has finished."""
    while _pending_writes:
        await asyncio.gather(*list(_pending_writes), return_exceptions=True)


class CacheCoordinator:
    """
    Applies one execution's cache options around the attempt loop.

    The key is computed once, on first use. Without a key (None or an empty
    string) the coordinator is disabled and never touches the store.
    """

    def __init__(self, request: RequestDescriptor, options: Optional[CacheOptions]):
        self._request = request
        self._options = options
        self._key: Any = _UNRESOLVED

    @property
    def key(self) -> Optional[str]:
        """
        Cache key for this execution.

        Raises:
            ApiReachError: the key function failed
        """
        if self._key is _UNRESOLVED:
            self._key = self._resolve_key()
        return self._key

    @property
    def enabled(self) -> bool:
        return bool(self.key)

    def _resolve_key(self) -> Optional[str]:
        if self._options is None or self._options.storage is None:
            return None
        key = self._options.key
        if key is None:
            return default_cache_key(self._request)
        if callable(key):
            try:
                key = key(self._request)
            except ApiReachError:
                raise
            except Exception as error:
                raise normalize_error(error) from error
        return key or None

    async def execute(
        self, run_request: Callable[[], Awaitable[ResponseEnvelope]]
    ) -> ResponseEnvelope:
        """
        Run the request according to the load strategy, then write the
        final response through when the save strategy allows it.
        """
        if not self.enabled:
            return await run_request()

        strategy = self._options.load_strategy

        if strategy in (LoadStrategy.CACHE_ONLY, LoadStrategy.PREFER_CACHE):
            cached = await self.read()
            if cached is not None:
                logger.debug(f"cache hit for {self._request.url}")
                return serve_response(cached)
            if strategy == LoadStrategy.CACHE_ONLY:
                raise CacheMissError(
                    f"No cached response for {self._request.url}", {"key": self.key}
                )

        try:
            response = await run_request()
        except ApiReachError as error:
            if strategy == LoadStrategy.PREFER_REQUEST:
                cached = await self.read()
                if cached is not None:
                    logger.debug(f"request failed ({error!r}), serving cached response")
                    return serve_response(cached)
            if error.is_http:
                await self.save(error.response)
            raise

        await self.save(response)
        return response

    async def read(self) -> Optional[ResponseEnvelope]:
        """Read the cached entry. Store failures and bad entries are a miss."""
        try:
            payload = await self._options.storage.get(self.key)
        except Exception as error:
            logger.warning(f"cache read failed for key {self.key}: {error!r}")
            return None
        if payload is None:
            return None
        try:
            return parse_entry(payload, self._request)
        except (ValueError, TypeError, KeyError, UnknownStatusError) as error:
            logger.warning(f"ignoring unreadable cache entry {self.key}: {error!r}")
            return None

    async def save(self, response: Optional[ResponseEnvelope]) -> None:
        """Schedule the cache write. Awaited only when ``wait_for_save`` is set."""
        if response is None or response.cached:
            return
        if self._options.save_strategy == SaveStrategy.NO_SAVE:
            return
        if self._request.response_type == ExpectedResponseBodyType.STREAM:
            return

        task = asyncio.ensure_future(self._write(response))
        _pending_writes.add(task)
        task.add_done_callback(_pending_writes.discard)
        if self._options.wait_for_save:
            await task

    async def _write(self, response: ResponseEnvelope) -> None:
        options = self._options
        try:
            should_cache = options.should_cache_response
            if callable(should_cache):
                should_cache = should_cache(response)
            if not should_cache:
                logger.debug(f"response for {self._request.url} not cached by predicate")
                return

            ttl = options.ttl(response) if callable(options.ttl) else options.ttl
            await options.storage.set(self.key, serialize_entry(response), ttl)
            logger.debug(f"cached response for {self._request.url} (ttl={ttl})")
        except Exception as error:
            logger.warning(f"cache write failed for key {self.key}: {error!r}")
