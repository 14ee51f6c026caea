from fastapi import APIRouter
from fastapi.responses import JSONResponse

from kisskh_addon import __version__
from kisskh_addon.constants import LANGUAGE_FLAGS, SEARCH_TYPES, cloudflare_cache_headers
from kisskh_addon.services.resolver import language_name
from kisskh_addon.settings import settings

router = APIRouter()


def build_manifest() -> dict:
    language = settings.subtitle_language.lower()
    flag = LANGUAGE_FLAGS.get(language, language.upper())
    catalogs = [
        {
            "type": search_type["stremio_type"],
            "id": f"kisskh-{key}",
            "name": f"KissKH {search_type['name']}",
            "extra": [
                {"name": "search", "isRequired": False},
                {"name": "skip", "isRequired": False},
            ],
        }
        for key, search_type in SEARCH_TYPES.items()
    ]
    return {
        "id": f"community.kisskh.{language}",
        "version": __version__,
        "name": f"KissKH {flag}",
        "description": f"Asian Dramas, Movies, Anime with {language_name(language)} subtitles from KissKH",
        "logo": f"{settings.base_url.rstrip('/')}/favicon.ico",
        "resources": ["catalog", "meta", "stream", "subtitles"],
        "types": ["movie", "series"],
        "idPrefixes": ["kisskh:", "tt"],
        "catalogs": catalogs,
        "behaviorHints": {"adult": False, "p2p": False},
    }


@router.get("/manifest.json")
async def get_manifest():
    return JSONResponse(content=build_manifest(), headers=cloudflare_cache_headers)
