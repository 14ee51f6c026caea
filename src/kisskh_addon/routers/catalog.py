from fastapi import APIRouter
from fastapi.responses import JSONResponse
import httpx
import asyncio
import logging
from typing import List, Optional

from kisskh_addon.settings import settings
from kisskh_addon.constants import (
    CATALOG_PAGE_SIZE,
    DEFAULT_CATALOG_TERMS,
    SEARCH_TYPES,
    cloudflare_cache_headers,
)
from kisskh_addon.services import kisskh
from kisskh_addon.utils import parse_extra, strip_json_suffix

router = APIRouter()
logger = logging.getLogger("kisskh.routers.catalog")


async def _metas_for(client: httpx.AsyncClient, results: List[dict], media_type: str, seen: set) -> List[dict]:
    ids = []
    for item in results:
        item_id = str(item.get("id", ""))
        if item_id and f"kisskh:{item_id}" not in seen and item_id not in ids:
            ids.append(item_id)

    details = await asyncio.gather(*[kisskh.get_details(client, item_id) for item_id in ids])
    metas = []
    for item in details:
        if item is None or item.type != media_type:
            continue
        meta = kisskh.convert_to_meta(item)
        seen.add(meta["id"])
        metas.append(meta)
    return metas


async def build_catalog(client: httpx.AsyncClient, media_type: str, catalog_id: str, search: Optional[str]) -> List[dict]:
    type_config = SEARCH_TYPES.get(catalog_id.removeprefix("kisskh-"))
    type_code = type_config["code"] if type_config else None
    seen: set = set()

    if search:
        results = await kisskh.search(client, search, type_code)
        return await _metas_for(client, results, media_type, seen)

    metas: List[dict] = []
    for term in DEFAULT_CATALOG_TERMS:
        results = await kisskh.search(client, term, type_code)
        metas.extend(await _metas_for(client, results[:10], media_type, seen))
        if len(metas) >= CATALOG_PAGE_SIZE:
            break
    return metas[:CATALOG_PAGE_SIZE]


@router.get("/catalog/{type}/{catalog_id}.json")
@router.get("/catalog/{type}/{catalog_id}/{extra}.json")
async def get_catalog(type: str, catalog_id: str, extra: str = ""):
    logger.info("Catalog request: type=%s, id=%s, extra=%s", type, catalog_id, extra)
    search = parse_extra(extra).get("search")
    metas: List[dict] = []
    try:
        async with httpx.AsyncClient(follow_redirects=True, timeout=settings.request_timeout) as client:
            metas = await build_catalog(client, type, strip_json_suffix(catalog_id), search)
    except Exception:
        logger.exception("Catalog handler error")
    return JSONResponse(content={"metas": metas}, headers=cloudflare_cache_headers)
