from fastapi import APIRouter
from fastapi.responses import JSONResponse
import httpx
import logging

from kisskh_addon.settings import settings
from kisskh_addon.constants import cloudflare_cache_headers
from kisskh_addon.services import kisskh
from kisskh_addon.utils import parse_kisskh_id

router = APIRouter()
logger = logging.getLogger("kisskh.routers.meta")


@router.get("/meta/{type}/{id}.json")
async def get_meta(type: str, id: str):
    logger.info("Meta request: type=%s, id=%s", type, id)
    meta = None
    parsed = parse_kisskh_id(id)
    if parsed:
        try:
            async with httpx.AsyncClient(follow_redirects=True, timeout=settings.request_timeout) as client:
                item = await kisskh.get_details(client, parsed[0])
            if item is not None:
                meta = kisskh.convert_to_meta(item, detailed=True)
        except Exception:
            logger.exception("Meta handler error")
    return JSONResponse(content={"meta": meta}, headers=cloudflare_cache_headers)
