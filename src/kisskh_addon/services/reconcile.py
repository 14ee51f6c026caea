"""Map IMDb references (``tt123``, ``tt123:1:5``) onto KissKH items and episodes.

KissKH numbers episodes as one flat, possibly fractional sequence per item,
so the season is not used for lookup. The positional fallback below is a
heuristic and is known to be wrong for multi-season shows.
"""

from __future__ import annotations

import logging
import re
from typing import AsyncIterator, List, Optional, Tuple
from urllib.parse import unquote

import httpx

from kisskh_addon.models import CatalogItem, EpisodeRef, ExternalRef
from kisskh_addon.services import cinemeta, kisskh

log = logging.getLogger("kisskh.reconcile")

SERIES_ID_RE = re.compile(r"^(tt\d+):(\d+):(\d+)$")
MOVIE_ID_RE = re.compile(r"^(tt\d+)$")
MAX_CANDIDATES = 3


def parse_external_id(raw_id: str) -> Optional[ExternalRef]:
    s = raw_id or ""
    # Stremio clients sometimes encode the colons once or twice
    for _ in range(2):
        decoded = unquote(s)
        if decoded == s:
            break
        s = decoded
    if s.endswith(".json"):
        s = s[:-5]

    match = SERIES_ID_RE.match(s)
    if match:
        return ExternalRef(imdb_id=match.group(1), season=int(match.group(2)), episode=int(match.group(3)))
    match = MOVIE_ID_RE.match(s)
    if match:
        return ExternalRef(imdb_id=match.group(1))
    return None


def titles_match(query: str, candidate: str) -> bool:
    """Loose title comparison between an IMDb title and a KissKH title."""
    wanted = (query or "").strip().lower()
    found = (candidate or "").strip().lower()
    if not wanted or not found:
        return False
    if wanted in found or found in wanted:
        return True

    wanted_words = wanted.split()
    found_words = found.split()
    overlap = [w for w in wanted_words if any(fw in w or w in fw for fw in found_words)]
    return len(overlap) >= min(2, len(wanted_words))


def sort_episodes(episodes: List[EpisodeRef]) -> List[EpisodeRef]:
    return sorted(episodes, key=lambda ep: ep.number)


def select_episode(episodes: List[EpisodeRef], ref: ExternalRef, media_type: str = "series") -> Optional[EpisodeRef]:
    ordered = sort_episodes(episodes)
    if not ordered:
        return None

    if media_type == "movie" or ref.is_movie:
        return ordered[0]
    if ref.episode is None:
        return None

    for episode in ordered:
        if episode.number == ref.episode:
            return episode

    if ref.season and ref.season > 1:
        log.info("Episode %s not found, this might be a multi-season show", ref.episode)

    if 1 <= ref.episode <= len(ordered):
        return ordered[ref.episode - 1]
    return None


async def iter_matches(
    client: httpx.AsyncClient,
    media_type: str,
    ref: ExternalRef,
    title: Optional[str] = None,
) -> AsyncIterator[Tuple[CatalogItem, EpisodeRef]]:
    """Yield (item, episode) for each acceptable search hit, best first.

    Only the first ``MAX_CANDIDATES`` search hits are considered.
    """
    if title is None:
        title = await cinemeta.fetch_title(client, media_type, ref.imdb_id)
    if not title:
        log.info("Could not get metadata from Cinemeta for: %s", ref.imdb_id)
        return

    log.info("Searching KissKH for: %r", title)
    results = await kisskh.search(client, title)
    if not results:
        log.info("No results found in KissKH for: %r", title)
        return

    for result in results[:MAX_CANDIDATES]:
        item = await kisskh.get_details(client, str(result.get("id", "")))
        if item is None or not item.episodes:
            continue
        if not titles_match(title, item.title):
            log.debug("Skipping %r, title does not match %r", item.title, title)
            continue
        episode = select_episode(item.episodes, ref, media_type)
        if episode is None:
            continue
        log.info("Found matching episode: %s (%g) in %r", episode.id, episode.number, item.title)
        yield item, episode


async def reconcile(
    client: httpx.AsyncClient,
    media_type: str,
    ref: ExternalRef,
) -> Optional[Tuple[CatalogItem, EpisodeRef]]:
    """First catalog item and episode matching ``ref``, or None."""
    matches = iter_matches(client, media_type, ref)
    try:
        async for match in matches:
            return match
    except Exception:  # noqa: BLE001
        log.exception("Reconciliation failed for %s", ref.imdb_id)
    finally:
        await matches.aclose()
    return None
