"""MediaFlow relay URLs for players that cannot send Referer/Origin themselves."""

from urllib.parse import urlencode

from kisskh_addon.constants import USER_AGENT
from kisskh_addon.settings import settings


def build_mediaflow_url(video_url: str, is_hls: bool = False) -> str:
    endpoint = "/proxy/hls/manifest.m3u8" if is_hls else "/proxy/stream"
    origin = settings.base_url.rstrip("/")
    params = {
        "d": video_url,
        "h_referer": origin + "/",
        "h_origin": origin,
        "h_user-agent": USER_AGENT,
        "api_password": settings.mediaflow_api_password,
    }
    base = settings.mediaflow_proxy_url.rstrip("/")
    return f"{base}{endpoint}?{urlencode(params)}"
