from __future__ import annotations

import logging
from typing import Optional

import httpx

from kisskh_addon.constants import cinemeta_bases
from kisskh_addon.services.fetcher import decode_payload, fetch
from kisskh_addon.settings import settings

log = logging.getLogger("kisskh.cinemeta")


async def fetch_cinemeta_meta(client: httpx.AsyncClient, media_type: str, imdb_id: str) -> Optional[dict]:
    """Cinemeta ``meta`` record for an IMDb id, trying each mirror in turn."""
    last_failure = None
    for base in cinemeta_bases:
        url = f"{base}/meta/{media_type}/{imdb_id}.json"
        log.info("Fetching Cinemeta: %s", url)
        body = await fetch(client, url, timeout=settings.cinemeta_timeout)
        if not body:
            last_failure = body
            continue
        payload = decode_payload(body)
        if isinstance(payload, dict) and isinstance(payload.get("meta"), dict):
            return payload["meta"]
    log.warning("Failed to fetch Cinemeta metadata for %s: %s", imdb_id, last_failure or "no meta in response")
    return None


async def fetch_title(client: httpx.AsyncClient, media_type: str, imdb_id: str) -> Optional[str]:
    meta = await fetch_cinemeta_meta(client, media_type, imdb_id)
    if not meta:
        return None
    return meta.get("name") or None
