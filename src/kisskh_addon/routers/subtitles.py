from fastapi import APIRouter
from fastapi.responses import JSONResponse
import httpx
import logging
from typing import List, Optional

from kisskh_addon.settings import settings
from kisskh_addon.constants import cloudflare_cache_headers
from kisskh_addon.services import kisskh, reconcile, resolver
from kisskh_addon.utils import parse_kisskh_id

router = APIRouter()
logger = logging.getLogger("kisskh.routers.subtitles")


async def _episode_for(client: httpx.AsyncClient, media_type: str, raw_id: str) -> Optional[str]:
    parsed = parse_kisskh_id(raw_id)
    if parsed:
        series_id, episode_id = parsed
        return episode_id or await kisskh.first_episode_id(client, series_id)

    ref = reconcile.parse_external_id(raw_id)
    if ref is None:
        return None
    match = await reconcile.reconcile(client, media_type, ref)
    return match[1].id if match else None


@router.get("/subtitles/{type}/{id}.json")
@router.get("/subtitles/{type}/{id}/{extra}.json")
async def get_subtitles(type: str, id: str, extra: str = ""):
    """Every subtitle track KissKH has for the episode, whatever the language."""
    logger.info("Subtitles request: type=%s, id=%s", type, id)
    subtitles: List[dict] = []
    try:
        async with httpx.AsyncClient(follow_redirects=True, timeout=settings.request_timeout) as client:
            episode_id = await _episode_for(client, type, id)
            if episode_id:
                tracks = await resolver.resolve_subtitles(client, episode_id)
                subtitles = [track.to_stremio(f"kisskh-{track.lang}") for track in tracks]
                logger.info("Returning %s subtitles", len(subtitles))
    except Exception:
        logger.exception("Subtitles handler error")
        subtitles = []
    return JSONResponse(content={"subtitles": subtitles}, headers=cloudflare_cache_headers)
