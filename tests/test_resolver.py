"""Tests for stream resolution and the subtitle-language gate."""
import json

import httpx
import pytest

from kisskh_addon.constants import STREAM_UID, SUBTITLE_UID
from kisskh_addon.services import resolver
from kisskh_addon.settings import settings

FRENCH = [
    {"src": "https://sub.test/1.en.srt", "label": "English"},
    {"src": "https://sub.test/1.fr.srt", "label": "Français"},
]
ENGLISH_ONLY = [
    {"src": "https://sub.test/1.en.srt", "label": "English"},
    {"src": "https://sub.test/1.id.srt", "label": "Indonesia"},
]


@pytest.fixture(autouse=True)
def relay(monkeypatch):
    monkeypatch.setattr(settings, "mediaflow_proxy_url", "https://relay.test/")
    monkeypatch.setattr(settings, "mediaflow_api_password", "secret")
    monkeypatch.setattr(settings, "subtitle_language", "fr")


@pytest.fixture
def tokens(monkeypatch):
    seen = []

    async def fake_derive_token(client, episode_id, uid):
        seen.append((episode_id, uid))
        return f"tok-{uid[:4]}-{len(seen)}"

    monkeypatch.setattr(resolver, "derive_token", fake_derive_token)
    return seen


def _upstream(video, subtitles, calls=None, octets=False):
    def handler(request):
        if calls is not None:
            calls.append(request.url.path)
        if "/Episode/" in request.url.path:
            payload = json.dumps({"Video": video, "ThirdParty": None}).encode()
            if octets:
                return httpx.Response(200, content=payload, headers={"content-type": "application/octet-stream"})
            return httpx.Response(200, content=payload, headers={"content-type": "application/json"})
        if "/api/Sub/" in request.url.path:
            return httpx.Response(200, json=subtitles)
        return httpx.Response(404)
    return handler


@pytest.mark.asyncio
async def test_countdown_placeholder_yields_nothing(mock_client, tokens):
    calls = []
    client = mock_client(_upstream("https://www.tickcounter.com/countdown/123", FRENCH, calls))

    assert await resolver.resolve_streams(client, "42", "1001") == []
    assert not any("/api/Sub/" in path for path in calls)


@pytest.mark.asyncio
async def test_streams_without_target_subtitles_are_suppressed(mock_client, tokens):
    client = mock_client(_upstream("https://cdn.test/v/720/index.m3u8", ENGLISH_ONLY))

    assert await resolver.resolve_streams(client, "42", "1001") == []


@pytest.mark.asyncio
async def test_target_subtitles_give_relayed_and_direct_streams(mock_client, tokens):
    client = mock_client(_upstream("https://cdn.test/v/720/index.m3u8", FRENCH))

    streams = await resolver.resolve_streams(client, "42", "1001")

    assert len(streams) == 2
    relayed, direct = streams
    assert relayed.binge_group == direct.binge_group == "kisskh-42"
    assert relayed.subtitles == direct.subtitles
    assert [s.lang for s in relayed.subtitles] == ["en", "fr"]
    assert relayed.quality == "720p"
    assert relayed.is_hls and direct.is_hls
    assert relayed.url.startswith("https://relay.test/proxy/hls/manifest.m3u8?")
    assert "api_password=secret" in relayed.url
    assert direct.url == "https://cdn.test/v/720/index.m3u8"

    payload = direct.to_stremio()
    assert payload["behaviorHints"]["notWebReady"] is True
    assert payload["behaviorHints"]["proxyHeaders"]["request"]["Referer"] == "https://kisskh.ovh/"
    assert "proxyHeaders" not in relayed.to_stremio()["behaviorHints"]
    assert payload["subtitles"][1] == {"id": "1-fr", "url": "https://sub.test/1.fr.srt", "lang": "fr"}


@pytest.mark.asyncio
async def test_direct_file_defaults_to_hd(mock_client, tokens):
    client = mock_client(_upstream("https://cdn.test/v/movie.mp4", [{"src": "https://sub.test/a.srt", "label": "FRENCH"}]))

    relayed, direct = await resolver.resolve_streams(client, "7", "70")

    assert relayed.quality == "HD"
    assert relayed.transport == "file"
    assert "/proxy/stream?" in relayed.url
    assert direct.to_stremio()["behaviorHints"]["notWebReady"] is False
    assert "(MP4)" in direct.title


@pytest.mark.asyncio
async def test_octet_stream_payload_is_decoded(mock_client, tokens):
    client = mock_client(_upstream("https://cdn.test/v/1080/index.m3u8", FRENCH, octets=True))

    streams = await resolver.resolve_streams(client, "42", "1001")

    assert len(streams) == 2
    assert streams[0].quality == "1080p"


@pytest.mark.asyncio
async def test_tokens_use_separate_uids(mock_client, tokens):
    calls = []
    client = mock_client(_upstream("https://cdn.test/v/720/index.m3u8", FRENCH, calls))

    await resolver.resolve_streams(client, "42", "1001")

    assert tokens == [("1001", STREAM_UID), ("1001", SUBTITLE_UID)]


@pytest.mark.asyncio
async def test_malformed_stream_payload_yields_nothing(mock_client, tokens):
    def handler(request):
        return httpx.Response(200, content=b"not json at all")

    assert await resolver.resolve_streams(mock_client(handler), "42", "1001") == []


@pytest.mark.asyncio
async def test_stream_endpoint_retries_with_stream_delay(mock_client, tokens, delays, monkeypatch):
    monkeypatch.setattr(settings, "stream_retry_delay", 1.5)
    attempts = []
    upstream = _upstream("https://cdn.test/v/480/index.m3u8", FRENCH)

    def handler(request):
        if "/Episode/" in request.url.path:
            attempts.append(request.url.params["kkey"])
            if len(attempts) < 3:
                return httpx.Response(504)
        return upstream(request)

    streams = await resolver.resolve_streams(mock_client(handler), "42", "1001")

    assert len(streams) == 2
    assert len(attempts) == 3
    assert delays == [1.5, 3.0]
    # every attempt carries a freshly derived key
    assert [uid for _, uid in tokens] == [STREAM_UID] * 3 + [SUBTITLE_UID]
    assert len(set(attempts)) == 3


@pytest.mark.asyncio
async def test_rejected_token_is_plain_upstream_failure(mock_client, monkeypatch, delays):
    async def no_token(client, episode_id, uid):
        return ""

    monkeypatch.setattr(resolver, "derive_token", no_token)

    keys = []

    def handler(request):
        keys.append(request.url.params.get("kkey"))
        return httpx.Response(401)

    assert await resolver.resolve_streams(mock_client(handler), "42", "1001") == []
    assert keys == [""]
    assert delays == []


@pytest.mark.asyncio
async def test_resolve_subtitles_is_not_gated(mock_client, tokens):
    client = mock_client(_upstream("unused", ENGLISH_ONLY))

    tracks = await resolver.resolve_subtitles(client, "1001")

    assert [(t.lang, t.url) for t in tracks] == [
        ("en", "https://sub.test/1.en.srt"),
        ("id", "https://sub.test/1.id.srt"),
    ]


def test_language_helpers():
    assert {"fr", "french", "français"} <= resolver.language_variants("fr")
    assert resolver.normalize_language("French") == "fr"
    assert resolver.normalize_language("indonesia") == "id"
    assert resolver.normalize_language("Tagalog") == "ta"
    assert resolver.normalize_language("Bahasa Indonesia") == "id"
    assert resolver.normalize_language("Tiếng Việt") == "vi"
    assert resolver.normalize_language("Bahasa Melayu") == "ms"
    assert resolver.has_language([{"language": "FR"}], "fr")
    assert not resolver.has_language([{"label": "Frisian"}], "fr")


def test_quality_and_transport():
    assert resolver.infer_quality("https://x/1080/a.mp4") == "1080p"
    assert resolver.infer_quality("https://x/a.mp4") == "HD"
    assert resolver.is_hls_url("https://x/a.m3u8?t=1")
    assert not resolver.is_hls_url("https://x/a.mp4")
