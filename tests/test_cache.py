"""
Tests for api_reach cache coordination.
"""
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from api_reach.cache import (
    CacheCoordinator,
    default_cache_key,
    parse_entry,
    serialize_entry,
    wait_for_pending_writes,
)
from api_reach.config import CacheOptions
from api_reach.const import ExpectedResponseBodyType, ResponseCategory
from api_reach.errors import CacheMissError, HttpClientError, HttpServerError, UnknownError
from api_reach.stores.memory import MemoryCacheStore
from api_reach.types import RequestDescriptor, ResponseEnvelope


def _envelope(request, status=200, body=None, cached=False):
    return ResponseEnvelope(
        status=status,
        status_text="OK" if status < 400 else "Error",
        headers={"content-type": "application/json"},
        body={"v": 1} if body is None else body,
        category=ResponseCategory.SUCCESS if status < 400 else ResponseCategory.SERVER_ERROR,
        request=request,
        cached=cached,
    )


class TestDefaultCacheKey:
    """Tests for default_cache_key."""

    def test_skips_non_get(self, descriptor):
        """Should return None for non GET requests."""
        post = RequestDescriptor(method="POST", url=descriptor.url)
        assert default_cache_key(post) is None

    def test_stable_for_equal_requests(self, descriptor):
        """Should give equal keys for equal requests regardless of header order."""
        a = RequestDescriptor(method="GET", url="https://x/y", headers={"A": "1", "B": "2"})
        b = RequestDescriptor(method="GET", url="https://x/y", headers={"B": "2", "A": "1"})
        assert default_cache_key(a) == default_cache_key(b)
        assert len(default_cache_key(a)) == 64

    def test_differs_by_url(self):
        """Should give different keys for different urls."""
        a = RequestDescriptor(method="GET", url="https://x/1")
        b = RequestDescriptor(method="GET", url="https://x/2")
        assert default_cache_key(a) != default_cache_key(b)


class TestEntries:
    """Tests for cached entry serialization."""

    def test_entry_shape(self, descriptor):
        """Should store status, statusText, headers and body."""
        data = json.loads(serialize_entry(_envelope(descriptor)))
        assert data == {
            "status": 200,
            "statusText": "OK",
            "headers": {"content-type": "application/json"},
            "body": {"v": 1},
        }

    def test_binary_bodies_are_base64(self, descriptor):
        """Should base64 encode bytes and restore them."""
        payload = serialize_entry(_envelope(descriptor, body=b"\x00\xff"))
        assert json.loads(payload)["bodyEncoding"] == "base64"
        assert parse_entry(payload, descriptor).body == b"\x00\xff"

    def test_parse_marks_cached_and_reclassifies(self, descriptor):
        """Should rebuild a cached envelope with the category from the status."""
        payload = json.dumps({"status": 404, "statusText": "Not Found", "headers": {}, "body": None})
        response = parse_entry(payload, descriptor)
        assert response.cached
        assert response.category == ResponseCategory.CLIENT_ERROR
        assert response.request is descriptor

    def test_parse_rejects_garbage(self, descriptor):
        """Should raise ValueError for payloads that are not entries."""
        with pytest.raises(ValueError):
            parse_entry("[]", descriptor)


class TestCacheCoordinator:
    """Tests for CacheCoordinator."""

    @pytest.fixture
    def store(self):
        return MemoryCacheStore()

    def _options(self, store, **kwargs):
        kwargs.setdefault("wait_for_save", True)
        return CacheOptions(storage=store, **kwargs)

    class TestKey:
        """Tests for key resolution."""

        def test_disabled_without_options(self, descriptor):
            """Should be disabled without cache options."""
            assert not CacheCoordinator(descriptor, None).enabled

        def test_literal_key(self, descriptor):
            """Should use a literal key as is."""
            coordinator = CacheCoordinator(descriptor, CacheOptions(storage=MemoryCacheStore(), key="k"))
            assert coordinator.key == "k"

        def test_key_function_called_once(self, descriptor):
            """Should compute the key exactly once."""
            calls = []

            def key(request):
                calls.append(request)
                return "k"

            coordinator = CacheCoordinator(descriptor, CacheOptions(storage=MemoryCacheStore(), key=key))
            coordinator.key
            coordinator.key
            assert calls == [descriptor]

        def test_key_function_not_called_on_creation(self, descriptor):
            """Should defer the key function until the key is needed."""
            key = MagicMock(return_value="k")
            CacheCoordinator(descriptor, CacheOptions(storage=MemoryCacheStore(), key=key))
            key.assert_not_called()

        @pytest.mark.asyncio
        async def test_key_function_failure_is_typed(self, descriptor):
            """Should surface a failing key function as UnknownError from execute."""
            storage = AsyncMock()
            key = MagicMock(side_effect=KeyError("tenant"))
            coordinator = CacheCoordinator(descriptor, CacheOptions(storage=storage, key=key))
            run = AsyncMock(return_value=_envelope(descriptor))

            with pytest.raises(UnknownError) as exc_info:
                await coordinator.execute(run)

            assert isinstance(exc_info.value.__cause__, KeyError)
            run.assert_not_awaited()
            storage.get.assert_not_awaited()

        @pytest.mark.asyncio
        async def test_empty_key_disables_cache(self, descriptor):
            """Should treat an empty string key as no key."""
            storage = AsyncMock()
            coordinator = CacheCoordinator(descriptor, CacheOptions(storage=storage, key=lambda r: ""))
            run = AsyncMock(return_value=_envelope(descriptor))

            assert not coordinator.enabled
            await coordinator.execute(run)

            run.assert_awaited_once()
            storage.get.assert_not_awaited()
            storage.set.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_disabled_never_touches_store(self, descriptor):
        """Should not read or write when the key is None."""
        storage = AsyncMock()
        coordinator = CacheCoordinator(descriptor, CacheOptions(storage=storage, key=lambda r: None))
        run = AsyncMock(return_value=_envelope(descriptor))

        await coordinator.execute(run)

        storage.get.assert_not_awaited()
        storage.set.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_prefer_cache_miss_then_hit(self, descriptor, store):
        """Should run the request on miss, save it, then serve from cache."""
        options = self._options(store)
        run = AsyncMock(return_value=_envelope(descriptor))

        first = await CacheCoordinator(descriptor, options).execute(run)
        second = await CacheCoordinator(descriptor, options).execute(run)

        assert not first.cached
        assert second.cached
        assert second.body == {"v": 1}
        assert run.await_count == 1

    @pytest.mark.asyncio
    async def test_cache_only_miss(self, descriptor, store):
        """Should raise CacheMissError without running the request."""
        run = AsyncMock()
        with pytest.raises(CacheMissError):
            await CacheCoordinator(descriptor, self._options(store, load_strategy="cache-only")).execute(run)
        run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_request_only_never_reads(self, descriptor):
        """Should always run the request with request-only."""
        storage = AsyncMock()
        storage.set.return_value = True
        options = CacheOptions(storage=storage, load_strategy="request-only", wait_for_save=True)
        run = AsyncMock(return_value=_envelope(descriptor))

        await CacheCoordinator(descriptor, options).execute(run)

        storage.get.assert_not_awaited()
        storage.set.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_prefer_request_falls_back_to_cache(self, descriptor, store):
        """Should serve the cached response when the request fails."""
        await store.set(default_cache_key(descriptor), serialize_entry(_envelope(descriptor)))
        options = self._options(store, load_strategy="prefer-request")
        run = AsyncMock(side_effect=UnknownError("network down"))

        response = await CacheCoordinator(descriptor, options).execute(run)

        assert response.cached
        assert response.body == {"v": 1}

    @pytest.mark.asyncio
    async def test_prefer_request_miss_reraises(self, descriptor, store):
        """Should re-raise the original failure on miss."""
        options = self._options(store, load_strategy="prefer-request")
        error = UnknownError("network down")
        with pytest.raises(UnknownError) as exc_info:
            await CacheCoordinator(descriptor, options).execute(AsyncMock(side_effect=error))
        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_saves_http_error_responses(self, descriptor, store):
        """Should cache the response attached to an HTTP error and raise it again on read."""
        options = self._options(store)
        response = _envelope(descriptor, status=500)
        run = AsyncMock(side_effect=HttpServerError("Error", {"response": response}))

        with pytest.raises(HttpServerError):
            await CacheCoordinator(descriptor, options).execute(run)
        with pytest.raises(HttpServerError) as exc_info:
            await CacheCoordinator(descriptor, options).execute(run)

        assert exc_info.value.response.cached
        assert run.await_count == 1

    @pytest.mark.asyncio
    async def test_no_save(self, descriptor, store):
        """Should not write with save strategy no-save."""
        options = self._options(store, save_strategy="no-save")
        await CacheCoordinator(descriptor, options).execute(AsyncMock(return_value=_envelope(descriptor)))
        assert await store.size() == 0

    @pytest.mark.asyncio
    async def test_should_cache_response_predicate(self, descriptor, store):
        """Should skip the write when the predicate says no."""
        options = self._options(store, should_cache_response=lambda response: response.status == 201)
        await CacheCoordinator(descriptor, options).execute(AsyncMock(return_value=_envelope(descriptor)))
        assert await store.size() == 0

    @pytest.mark.asyncio
    async def test_ttl_function(self, descriptor):
        """Should resolve the ttl from the response."""
        storage = AsyncMock()
        storage.get.return_value = None
        options = CacheOptions(storage=storage, key="k", ttl=lambda response: 42, wait_for_save=True)
        await CacheCoordinator(descriptor, options).execute(AsyncMock(return_value=_envelope(descriptor)))
        assert storage.set.await_args.args[2] == 42

    @pytest.mark.asyncio
    async def test_skips_streams(self, store):
        """Should never cache stream responses."""
        request = RequestDescriptor(method="GET", url="https://x/s", response_type=ExpectedResponseBodyType.STREAM)
        await CacheCoordinator(request, self._options(store)).execute(AsyncMock(return_value=_envelope(request)))
        assert await store.size() == 0

    @pytest.mark.asyncio
    async def test_store_failures_are_swallowed(self, descriptor):
        """Should treat read failures as a miss and ignore write failures."""
        storage = AsyncMock()
        storage.get.side_effect = ConnectionError("redis down")
        storage.set.side_effect = ConnectionError("redis down")
        options = CacheOptions(storage=storage)
        response = _envelope(descriptor)

        result = await CacheCoordinator(descriptor, options).execute(AsyncMock(return_value=response))
        await wait_for_pending_writes()

        assert result is response
        storage.set.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_client_error_not_written_when_cached(self, descriptor, store):
        """Should not write back a response served from cache."""
        payload = json.dumps({"status": 404, "statusText": "Not Found", "headers": {}, "body": None})
        key = default_cache_key(descriptor)
        await store.set(key, payload)
        store.set = AsyncMock(wraps=store.set)
        options = CacheOptions(storage=store, wait_for_save=True)

        with pytest.raises(HttpClientError):
            await CacheCoordinator(descriptor, options).execute(AsyncMock())
        store.set.assert_not_awaited()
