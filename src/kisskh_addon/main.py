from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from kisskh_addon import __version__
from kisskh_addon.settings import settings
from kisskh_addon.logger import setup_logging
from kisskh_addon.constants import cloudflare_cache_headers
from kisskh_addon.routers import manifest, catalog, meta, streams, subtitles

setup_logging()
logger = logging.getLogger("kisskh")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Started KissKH addon %s on port %s", __version__, settings.port)
    if not settings.relay_configured and not settings.testing:
        logger.warning("MEDIAFLOW_PROXY_URL or MEDIAFLOW_API_PASSWORD not set.")
        logger.warning("Relayed streams will not play without MediaFlow Proxy configuration.")
    yield
    logger.info("Shutdown")


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)

app.include_router(manifest.router)
app.include_router(catalog.router)
app.include_router(meta.router)
app.include_router(streams.router)
app.include_router(subtitles.router)


@app.get('/healthz')
async def healthz():
    return JSONResponse(content={"status": "ok"}, headers=cloudflare_cache_headers)
