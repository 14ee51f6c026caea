"""Catalog, episode and stream records exchanged between services and routers."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

_LEADING_NUMBER_RE = re.compile(r"^\s*([-+]?(?:\d+(?:\.\d*)?|\.\d+))")


def parse_episode_number(raw: Any) -> float:
    """Read the leading decimal of an upstream episode number.

    Upstream numbers arrive as ints, floats or strings such as ``"1.5"``;
    anything unreadable sorts first as ``0.0``.
    """
    if isinstance(raw, bool):
        return 0.0
    if isinstance(raw, (int, float)):
        return float(raw)
    match = _LEADING_NUMBER_RE.match(str(raw or ""))
    if not match:
        return 0.0
    return float(match.group(1))


@dataclass(frozen=True)
class EpisodeRef:
    id: str
    number: float
    released: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: dict) -> "EpisodeRef":
        return cls(
            id=str(payload.get("id", "")),
            number=parse_episode_number(payload.get("number")),
            released=payload.get("createdDate"),
        )


@dataclass
class CatalogItem:
    """A titled work in the KissKH library."""

    id: str
    title: str
    type: Literal["movie", "series"]
    release_date: Optional[str] = None
    episodes: List[EpisodeRef] = field(default_factory=list)
    poster: Optional[str] = None
    description: Optional[str] = None
    country: Optional[str] = None
    status: Optional[str] = None
    rating: Optional[float] = None
    genres: List[str] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: dict) -> "CatalogItem":
        raw_type = str(payload.get("type") or "").lower()
        is_movie = raw_type == "movie" or payload.get("episodesCount") == 1
        genres = []
        for genre in payload.get("genres") or []:
            name = genre.get("name") if isinstance(genre, dict) else genre
            if name:
                genres.append(str(name))
        return cls(
            id=str(payload.get("id", "")),
            title=payload.get("title") or "",
            type="movie" if is_movie else "series",
            release_date=payload.get("releaseDate"),
            episodes=[EpisodeRef.from_payload(ep) for ep in payload.get("episodes") or [] if isinstance(ep, dict)],
            poster=payload.get("thumbnail") or payload.get("poster"),
            description=payload.get("description"),
            country=payload.get("country"),
            status=payload.get("status"),
            rating=payload.get("rating"),
            genres=genres,
        )

    @property
    def year(self) -> str:
        if not self.release_date:
            return ""
        return self.release_date.split("T")[0].split("-")[0]

    def sorted_episodes(self) -> List[EpisodeRef]:
        return sorted(self.episodes, key=lambda ep: ep.number)


@dataclass
class SubtitleTrack:
    lang: str
    url: str
    label: str = ""

    def to_stremio(self, track_id: str) -> Dict[str, str]:
        return {"id": track_id, "url": self.url, "lang": self.lang}


@dataclass
class StreamDescriptor:
    name: str
    title: str
    url: str
    quality: str
    is_hls: bool
    binge_group: str
    subtitles: List[SubtitleTrack] = field(default_factory=list)
    subtitle_language: str = "fr"
    proxy_headers: Optional[Dict[str, str]] = None

    @property
    def transport(self) -> str:
        return "hls" if self.is_hls else "file"

    def to_stremio(self) -> dict:
        hints: Dict[str, Any] = {
            "bingeGroup": self.binge_group,
            "subtitleLanguages": [self.subtitle_language],
        }
        if self.proxy_headers is not None:
            hints["notWebReady"] = self.is_hls
            hints["proxyHeaders"] = {"request": dict(self.proxy_headers)}
        return {
            "name": self.name,
            "title": self.title,
            "url": self.url,
            "subtitles": [
                sub.to_stremio(f"{index}-{sub.lang}") for index, sub in enumerate(self.subtitles)
            ],
            "behaviorHints": hints,
        }


@dataclass
class ExternalRef:
    """IMDb reference as sent by Stremio, e.g. ``tt1234567:1:5``."""

    imdb_id: str
    season: Optional[int] = None
    episode: Optional[int] = None

    @property
    def is_movie(self) -> bool:
        return self.season is None and self.episode is None
