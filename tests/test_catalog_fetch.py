"""Tests for chat_gateway/catalog/cache.py and fetch.py."""

import time

import httpx
import pytest

from chat_gateway.catalog.cache import MemoryCache
from chat_gateway.catalog.fetch import fetch_models
from chat_gateway.errors import UpstreamFetchError


class TestMemoryCache:

    async def test_get_set(self):
        cache = MemoryCache()
        assert await cache.get("k") is None
        await cache.set("k", {"a": 1})
        assert await cache.get("k") == {"a": 1}

    async def test_delete_and_clear(self):
        cache = MemoryCache()
        await cache.set("a", 1)
        await cache.set("b", 2)
        await cache.delete("a")
        assert await cache.get("a") is None
        cache.clear()
        assert await cache.get("b") is None

    async def test_ttl_expiry(self):
        cache = MemoryCache(ttl=10)
        await cache.set("k", "v")
        assert await cache.get("k") == "v"

        # Expire the entry
        value, _ = cache._entries["k"]
        cache._entries["k"] = (value, time.monotonic() - 1)
        assert await cache.get("k") is None

    async def test_no_ttl_never_expires(self):
        cache = MemoryCache()
        await cache.set("k", "v")
        assert cache._entries["k"][1] is None

    async def test_falsy_values_cached(self):
        cache = MemoryCache()
        await cache.set("k", [])
        assert await cache.get("k") == []


def _transport(handler):
    return httpx.MockTransport(handler)


class TestFetchModels:

    async def test_parses_ids(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json={"data": [{"id": "m1"}, {"id": "m2"}, "m3", {"x": 1}]})

        models = await fetch_models(
            base_url="https://api.example.com/v1/", api_key="sk-1", transport=_transport(handler)
        )
        assert models == ["m1", "m2", "m3"]
        assert seen["url"] == "https://api.example.com/v1/models"
        assert seen["auth"] == "Bearer sk-1"

    async def test_bare_list_payload(self):
        transport = _transport(lambda r: httpx.Response(200, json=["a", "b"]))
        assert await fetch_models(base_url="https://x", api_key="k", transport=transport) == ["a", "b"]

    async def test_headers_layered(self):
        seen = {}

        def handler(request):
            seen.update(request.headers)
            return httpx.Response(200, json={"data": []})

        await fetch_models(
            base_url="https://x",
            api_key="k",
            headers={"X-Team": "a", "Authorization": "Bearer caller"},
            transport=_transport(handler),
        )
        assert seen["x-team"] == "a"
        assert seen["authorization"] == "Bearer caller"

    async def test_user_id_query(self):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"data": []})

        await fetch_models(
            base_url="https://x", api_key="k", user_id="u1", user_id_query=True,
            transport=_transport(handler),
        )
        assert seen["params"] == {"user": "u1"}

    async def test_error_status(self):
        transport = _transport(lambda r: httpx.Response(401, json={"error": "bad key"}))
        with pytest.raises(UpstreamFetchError) as exc_info:
            await fetch_models(base_url="https://x", api_key="k", transport=transport)
        assert exc_info.value.upstream_status == 401
        assert exc_info.value.reason == "status"

    async def test_connect_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(UpstreamFetchError) as exc_info:
            await fetch_models(base_url="https://x", api_key="k", transport=_transport(handler))
        assert exc_info.value.reason == "unreachable"

    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(UpstreamFetchError) as exc_info:
            await fetch_models(base_url="https://x", api_key="k", transport=_transport(handler))
        assert exc_info.value.reason == "timeout"

    async def test_invalid_json(self):
        transport = _transport(lambda r: httpx.Response(200, text="<html>"))
        with pytest.raises(UpstreamFetchError) as exc_info:
            await fetch_models(base_url="https://x", api_key="k", transport=transport)
        assert exc_info.value.reason == "invalid"
