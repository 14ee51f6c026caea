"""Turn a KissKH episode into Stremio streams and subtitle tracks.

Streams are only offered when the episode has a subtitle in the configured
target language; each playable URL yields two descriptors sharing one binge
group: one through the MediaFlow relay and one direct with the headers the
player has to send.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Set

import httpx

from kisskh_addon.constants import (
    COUNTDOWN_DOMAIN,
    LANGUAGE_CODES,
    LANGUAGE_FLAGS,
    NATIVE_LANGUAGE_NAMES,
    STREAM_UID,
    SUBTITLE_UID,
    browser_headers,
)
from kisskh_addon.models import StreamDescriptor, SubtitleTrack
from kisskh_addon.services import kisskh
from kisskh_addon.services.fetcher import decode_payload, fetch
from kisskh_addon.services.mediaflow import build_mediaflow_url
from kisskh_addon.services.sandbox import derive_token
from kisskh_addon.settings import settings

log = logging.getLogger("kisskh.resolver")

_LANGUAGE_CODES_LOWER = {name.lower(): code for name, code in LANGUAGE_CODES.items()}
_NATIVE_CODES = {name: code for code, names in NATIVE_LANGUAGE_NAMES.items() for name in names}


def language_variants(code: str) -> Set[str]:
    """Every lowercase label that counts as ``code``: the code, English and native names."""
    code = code.lower()
    variants = {code}
    variants.update(name for name, mapped in _LANGUAGE_CODES_LOWER.items() if mapped == code)
    variants.update(NATIVE_LANGUAGE_NAMES.get(code, []))
    return variants


def language_name(code: str) -> str:
    for name, mapped in LANGUAGE_CODES.items():
        if mapped == code.lower():
            return name
    return code.upper()


def subtitle_label(entry: dict) -> str:
    return str(entry.get("label") or entry.get("language") or "")


def normalize_language(label: str) -> str:
    """Map a free-form upstream label to a 2-letter code."""
    label = (label or "Unknown").strip()
    key = label.lower()
    return _LANGUAGE_CODES_LOWER.get(key) or _NATIVE_CODES.get(key) or key[:2]


def has_language(entries: List[dict], code: str) -> bool:
    variants = language_variants(code)
    return any(subtitle_label(entry).strip().lower() in variants for entry in entries if isinstance(entry, dict))


def format_subtitles(entries: List[dict]) -> List[SubtitleTrack]:
    tracks: List[SubtitleTrack] = []
    for entry in entries:
        if not isinstance(entry, dict) or not entry.get("src"):
            continue
        label = subtitle_label(entry) or "Unknown"
        tracks.append(SubtitleTrack(lang=normalize_language(label), url=entry["src"], label=label))
    return tracks


def is_hls_url(url: str) -> bool:
    return ".m3u8" in url


def infer_quality(url: str) -> str:
    for marker in ("1080", "720", "480"):
        if marker in url:
            return f"{marker}p"
    return "HD"


def is_countdown(url: str) -> bool:
    return COUNTDOWN_DOMAIN in url


async def get_episode_stream(client: httpx.AsyncClient, episode_id: str) -> Optional[dict]:
    async def stream_request_url() -> str:
        # kkey is single-use: one per attempt
        token = await derive_token(client, episode_id, STREAM_UID)
        url = kisskh.stream_url(episode_id, token)
        log.info("Fetching stream: %s", url)
        return url

    body = await fetch(
        client,
        stream_request_url,
        headers=browser_headers(settings.base_url),
        base_delay=settings.stream_retry_delay,
    )
    if not body:
        log.error("Stream request failed for episode %s: %s", episode_id, body)
        return None
    data = decode_payload(body)
    if not isinstance(data, dict):
        return None
    log.info("Stream Video URL: %s", str(data.get("Video") or "null")[:100])
    return data


async def get_subtitles(client: httpx.AsyncClient, episode_id: str) -> Optional[List[dict]]:
    token = await derive_token(client, episode_id, SUBTITLE_UID)
    body = await fetch(client, kisskh.subtitle_url(episode_id, token), headers=browser_headers(settings.base_url))
    if not body:
        log.error("Subtitle request failed for episode %s: %s", episode_id, body)
        return None
    data = decode_payload(body)
    return data if isinstance(data, list) else None


def build_descriptors(
    series_id: str,
    video_url: str,
    subtitles: List[SubtitleTrack],
    language: str,
) -> List[StreamDescriptor]:
    quality = infer_quality(video_url)
    hls = is_hls_url(video_url)
    flag = LANGUAGE_FLAGS.get(language, language.upper())
    kind = "(HLS)" if hls else "(MP4)"
    subs_label = f"{language_name(language)} Subs"
    binge_group = f"kisskh-{series_id}"
    origin = settings.base_url.rstrip("/")

    relayed = StreamDescriptor(
        name=f"KissKH {flag}",
        title=f"{quality} {kind} - {subs_label}",
        url=build_mediaflow_url(video_url, hls),
        quality=quality,
        is_hls=hls,
        binge_group=binge_group,
        subtitles=subtitles,
        subtitle_language=language,
    )
    direct = StreamDescriptor(
        name=f"KissKH Direct {flag}",
        title=f"{quality} {kind} Direct - {subs_label}",
        url=video_url,
        quality=quality,
        is_hls=hls,
        binge_group=binge_group,
        subtitles=subtitles,
        subtitle_language=language,
        proxy_headers={"Referer": origin + "/", "Origin": origin},
    )
    return [relayed, direct]


async def resolve_streams(
    client: httpx.AsyncClient,
    series_id: str,
    episode_id: str,
    language: Optional[str] = None,
) -> List[StreamDescriptor]:
    """Playable descriptors for one episode, empty when anything is missing."""
    language = (language or settings.subtitle_language).lower()
    try:
        stream_data = await get_episode_stream(client, episode_id)
        video_url = (stream_data or {}).get("Video")
        if not video_url or not isinstance(video_url, str):
            return []
        if is_countdown(video_url):
            log.info("Episode %s not yet released (countdown found)", episode_id)
            return []

        raw_subtitles = await get_subtitles(client, episode_id) or []
        if not has_language(raw_subtitles, language):
            log.info("No %s subtitles found for episode %s", language_name(language), episode_id)
            return []

        subtitles = format_subtitles(raw_subtitles)
        log.info("Found %s subtitles, including %s", len(subtitles), language_name(language))
        return build_descriptors(series_id, video_url, subtitles, language)
    except Exception:  # noqa: BLE001
        log.exception("Stream resolution failed for %s/%s", series_id, episode_id)
        return []


async def resolve_subtitles(client: httpx.AsyncClient, episode_id: str) -> List[SubtitleTrack]:
    """All subtitle tracks of an episode, without language gating."""
    try:
        return format_subtitles(await get_subtitles(client, episode_id) or [])
    except Exception:  # noqa: BLE001
        log.exception("Subtitle resolution failed for episode %s", episode_id)
        return []
