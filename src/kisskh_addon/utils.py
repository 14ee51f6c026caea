import urllib.parse
from typing import Optional, Tuple

KISSKH_PREFIX = "kisskh:"


def strip_json_suffix(raw: str) -> str:
    return raw[:-5] if raw.endswith(".json") else raw


def parse_extra(extra: str) -> dict:
    """Parse a Stremio extra path segment such as ``search=love%20story&skip=20``."""
    if not extra:
        return {}
    parsed = urllib.parse.parse_qs(strip_json_suffix(extra), keep_blank_values=False)
    return {key: values[0] for key, values in parsed.items() if values}


def parse_kisskh_id(raw_id: str) -> Optional[Tuple[str, Optional[str]]]:
    """Split ``kisskh:<series>[:<episode>]`` into its parts."""
    raw_id = urllib.parse.unquote(strip_json_suffix(raw_id or ""))
    if not raw_id.startswith(KISSKH_PREFIX):
        return None
    parts = raw_id[len(KISSKH_PREFIX):].split(":")
    series_id = parts[0]
    if not series_id:
        return None
    episode_id = parts[1] if len(parts) > 1 and parts[1] else None
    return series_id, episode_id
