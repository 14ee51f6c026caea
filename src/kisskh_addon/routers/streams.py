from fastapi import APIRouter
from fastapi.responses import JSONResponse
import httpx
import logging
from typing import List

from kisskh_addon.settings import settings
from kisskh_addon.constants import cloudflare_cache_headers
from kisskh_addon.models import StreamDescriptor
from kisskh_addon.services import kisskh, reconcile, resolver
from kisskh_addon.utils import parse_kisskh_id

router = APIRouter()
logger = logging.getLogger("kisskh.routers.streams")


async def streams_for_kisskh_id(client: httpx.AsyncClient, series_id: str, episode_id: str | None) -> List[StreamDescriptor]:
    if not episode_id:
        episode_id = await kisskh.first_episode_id(client, series_id)
    if not episode_id:
        return []
    return await resolver.resolve_streams(client, series_id, episode_id)


async def streams_for_imdb_id(client: httpx.AsyncClient, media_type: str, raw_id: str) -> List[StreamDescriptor]:
    ref = reconcile.parse_external_id(raw_id)
    if ref is None:
        logger.info("Unrecognized external id: %s", raw_id)
        return []
    logger.info("Parsed IMDb ID: %s, Season: %s, Episode: %s", ref.imdb_id, ref.season, ref.episode)

    matches = reconcile.iter_matches(client, media_type, ref)
    try:
        async for item, episode in matches:
            found = await resolver.resolve_streams(client, item.id, episode.id)
            if found:
                for stream in found:
                    stream.title = f"{item.title}\n{stream.title}"
                return found
    finally:
        await matches.aclose()
    return []


@router.get("/stream/{type}/{id}.json")
async def get_streams(type: str, id: str):
    """Streams for ``kisskh:<series>[:<episode>]`` or an IMDb id (``tt...[:s:e]``)."""
    logger.info("Stream request: type=%s, id=%s", type, id)
    streams: List[StreamDescriptor] = []
    try:
        async with httpx.AsyncClient(follow_redirects=True, timeout=settings.request_timeout) as client:
            parsed = parse_kisskh_id(id)
            if parsed:
                streams = await streams_for_kisskh_id(client, *parsed)
            elif id.startswith("tt"):
                streams = await streams_for_imdb_id(client, type, id)
    except Exception:
        logger.exception("Stream handler error")
        streams = []

    logger.info("Returning %s streams", len(streams))
    return JSONResponse(
        content={"streams": [stream.to_stremio() for stream in streams]},
        headers=cloudflare_cache_headers,
    )
