"""Tests for locating and caching the KissKH token bundle."""
import asyncio

import httpx
import pytest

from kisskh_addon.services.token_script import (
    TokenScriptCache,
    find_script_path,
    resolve_script_url,
)
from kisskh_addon.settings import settings

LANDING = """
<html><head>
<script src="/js/runtime.5f1.js"></script>
<script src="/js/common.8ab12f.js?v=3"></script>
</head><body></body></html>
"""


def _site(calls, landing=LANDING, landing_status=200, script_status=200):
    def handler(request):
        calls.append(request.url.path)
        if request.url.path == "/":
            return httpx.Response(landing_status, text=landing)
        if "common" in request.url.path:
            return httpx.Response(script_status, text="function _0x54b991(){ return 'tok'; }")
        return httpx.Response(404)
    return handler


def test_find_script_path_prefers_common_bundle():
    assert find_script_path(LANDING) == "/js/common.8ab12f.js?v=3"
    assert find_script_path("<script src='/js/app.js'></script>") is None


def test_find_script_path_falls_back_to_raw_html():
    html = '<div data-x=\'loader("x")\'></div><link href="x"> src="assets/common-chunk.js"'
    assert find_script_path(html) == "assets/common-chunk.js"


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("/js/common.js", "https://kisskh.test/js/common.js"),
        ("js/common.js", "https://kisskh.test/js/common.js"),
        ("https://cdn.test/common.js", "https://cdn.test/common.js"),
    ],
)
def test_resolve_script_url(path, expected):
    assert resolve_script_url("https://kisskh.test/", path) == expected


@pytest.mark.asyncio
async def test_script_fetched_once_for_concurrent_and_sequential_callers(mock_client):
    calls = []
    cache = TokenScriptCache(base_url="https://kisskh.test")
    client = mock_client(_site(calls))

    results = await asyncio.gather(*[cache.get_script(client) for _ in range(8)])
    again = await cache.get_script(client)

    assert all(result == again for result in results)
    assert "_0x54b991" in again
    assert calls.count("/") == 1
    assert calls.count("/js/common.8ab12f.js") == 1


@pytest.mark.asyncio
async def test_missing_bundle_returns_none_and_is_not_cached(mock_client):
    calls = []
    cache = TokenScriptCache(base_url="https://kisskh.test")
    client = mock_client(_site(calls, landing="<html><script src='/js/app.js'></script></html>"))

    assert await cache.get_script(client) is None
    assert await cache.get_script(client) is None
    assert calls.count("/") == 2
    assert cache.cached is None


@pytest.mark.asyncio
async def test_unreachable_landing_page_returns_none(mock_client):
    calls = []
    cache = TokenScriptCache(base_url="https://kisskh.test")
    client = mock_client(_site(calls, landing_status=503))

    assert await cache.get_script(client) is None
    assert calls == ["/"]


@pytest.mark.asyncio
async def test_failed_bundle_download_returns_none(mock_client):
    cache = TokenScriptCache(base_url="https://kisskh.test")
    client = mock_client(_site([], script_status=500))

    assert await cache.get_script(client) is None


@pytest.mark.asyncio
async def test_repeated_failures_drop_cached_script(mock_client, monkeypatch):
    monkeypatch.setattr(settings, "script_failure_threshold", 2)
    calls = []
    cache = TokenScriptCache(base_url="https://kisskh.test")
    client = mock_client(_site(calls))

    await cache.get_script(client)
    cache.record_failure()
    assert cache.cached is not None
    cache.record_failure()
    assert cache.cached is None

    await cache.get_script(client)
    assert calls.count("/") == 2


def test_threshold_zero_never_drops(monkeypatch):
    monkeypatch.setattr(settings, "script_failure_threshold", 0)
    cache = TokenScriptCache(base_url="https://kisskh.test")
    cache._script = "function f(){}"
    for _ in range(10):
        cache.record_failure()
    assert cache.cached == "function f(){}"
