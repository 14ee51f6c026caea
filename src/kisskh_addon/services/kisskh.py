"""KissKH catalog API: search, item details and endpoint URLs."""

from __future__ import annotations

import logging
from typing import List, Optional
from urllib.parse import quote, urlencode

import httpx

from kisskh_addon.constants import SEARCH_RESULTS_PER_TYPE, SEARCH_TYPES, browser_headers
from kisskh_addon.models import CatalogItem
from kisskh_addon.services.fetcher import fetch_json
from kisskh_addon.settings import settings

log = logging.getLogger("kisskh.catalog")


def search_url(query: str, type_code: int) -> str:
    return f"{settings.api_url}/Search?{urlencode({'q': query, 'type': type_code}, quote_via=quote)}"


def details_url(series_id: str) -> str:
    return f"{settings.api_url}/Drama/{series_id}"


def stream_url(episode_id: str, token: str) -> str:
    return f"{settings.api_url}/Episode/{episode_id}.png?kkey={token}"


def subtitle_url(episode_id: str, token: str) -> str:
    return f"{settings.base_url.rstrip('/')}/api/Sub/{episode_id}?kkey={token}"


def _types_for(type_code: Optional[int]) -> List[dict]:
    if type_code is None:
        return list(SEARCH_TYPES.values())
    for search_type in SEARCH_TYPES.values():
        if search_type["code"] == type_code:
            return [search_type]
    return [{"code": type_code, "name": None}]


async def search(client: httpx.AsyncClient, query: str, type_code: Optional[int] = None) -> List[dict]:
    """Search one catalog type, or all four in order when ``type_code`` is None.

    Each hit is the raw upstream record annotated with ``searchType`` and
    ``typeCode``; at most ``SEARCH_RESULTS_PER_TYPE`` hits per type.
    """
    results: List[dict] = []
    for search_type in _types_for(type_code):
        url = search_url(query, search_type["code"])
        log.info("Searching: %s", url)
        data = await fetch_json(client, url, headers=browser_headers(settings.base_url))
        if not isinstance(data, list):
            continue
        for item in data[:SEARCH_RESULTS_PER_TYPE]:
            if not isinstance(item, dict):
                continue
            results.append({**item, "searchType": search_type["name"], "typeCode": search_type["code"]})
    return results


async def get_details(client: httpx.AsyncClient, series_id: str) -> Optional[CatalogItem]:
    data = await fetch_json(client, details_url(series_id), headers=browser_headers(settings.base_url))
    if not isinstance(data, dict):
        log.warning("No details for series %s", series_id)
        return None
    try:
        return CatalogItem.from_payload(data)
    except Exception as exc:  # noqa: BLE001
        log.error("Malformed details for series %s: %s", series_id, exc)
        return None


def convert_to_meta(item: CatalogItem, detailed: bool = False) -> dict:
    """Stremio meta object for a catalog item; ``detailed`` adds the episode list."""
    description = item.description or f"{item.country or ''} {item.status or ''}".strip()
    meta = {
        "id": f"kisskh:{item.id}",
        "type": item.type,
        "name": item.title,
        "poster": item.poster,
        "background": item.poster,
        "description": description,
        "releaseInfo": item.year,
        "imdbRating": item.rating or None,
        "genres": list(item.genres),
        "country": item.country,
    }

    if detailed and item.type == "series" and item.episodes:
        meta["videos"] = [
            {
                "id": f"kisskh:{item.id}:{episode.id}",
                "title": f"Episode {episode.number:g}",
                "season": 1,
                "episode": int(episode.number),
                "released": episode.released or item.release_date,
            }
            for episode in item.sorted_episodes()
        ]

    return meta


async def first_episode_id(client: httpx.AsyncClient, series_id: str) -> Optional[str]:
    """Id of the lowest-numbered episode, used when a request names only the series."""
    item = await get_details(client, series_id)
    if item is None or not item.episodes:
        return None
    return item.sorted_episodes()[0].id
