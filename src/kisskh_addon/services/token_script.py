"""Process-wide cache for the KissKH token bundle (``common*.js``).

The bundle is located by scanning the landing page for a script tag whose
``src`` contains ``common`` and ends in ``.js``. It is fetched lazily on the
first token request and kept until ``invalidate()`` is called.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Optional
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from kisskh_addon.constants import browser_headers
from kisskh_addon.services.fetcher import decode_text, fetch
from kisskh_addon.settings import settings

log = logging.getLogger("kisskh.token_script")

COMMON_SCRIPT_RE = re.compile(r"[^\"'\s]*common[^\"'\s]*\.js[^\"'\s]*")
_SRC_ATTR_RE = re.compile(r"src=\"([^\"]*common[^\"]*\.js[^\"]*)\"")


def find_script_path(html: str) -> Optional[str]:
    """Return the ``src`` of the first common-bundle script in ``html``."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all("script", src=True):
        src = tag.get("src") or ""
        if COMMON_SCRIPT_RE.fullmatch(src):
            return src
    # Bundles injected by inline loaders never show up as script tags
    match = _SRC_ATTR_RE.search(html)
    return match.group(1) if match else None


def resolve_script_url(base_url: str, path: str) -> str:
    if path.startswith(("http://", "https://", "//")):
        return urljoin(base_url.rstrip("/") + "/", path)
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


class TokenScriptCache:
    def __init__(self, base_url: Optional[str] = None) -> None:
        self._base_url = base_url
        self._script: Optional[str] = None
        self._lock: Optional[asyncio.Lock] = None
        self._failures = 0

    @property
    def base_url(self) -> str:
        return self._base_url or settings.base_url

    @property
    def cached(self) -> Optional[str]:
        return self._script

    async def get_script(self, client: httpx.AsyncClient) -> Optional[str]:
        """Return the bundle text, fetching it once per process.

        ``None`` means token derivation is unavailable right now; a failed
        fetch is not remembered, so the next caller tries again.
        """
        if self._script is not None:
            return self._script

        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            if self._script is not None:
                return self._script
            script = await self._download(client)
            if script:
                self._script = script
                self._failures = 0
            return script

    async def _download(self, client: httpx.AsyncClient) -> Optional[str]:
        headers = browser_headers(self.base_url)
        try:
            page = await fetch(client, self.base_url, headers=headers, retries=1, timeout=settings.script_timeout)
            if not page:
                log.error("Landing page unreachable: %s", self.base_url)
                return None

            path = find_script_path(decode_text(page))
            if not path:
                log.error("Could not find common.js script on %s", self.base_url)
                return None

            script_url = resolve_script_url(self.base_url, path)
            log.info("Fetching token code from: %s", script_url)
            body = await fetch(client, script_url, headers=headers, retries=1, timeout=settings.script_timeout)
            if not body:
                log.error("Token script download failed: %s", script_url)
                return None
            return decode_text(body)
        except Exception as exc:  # noqa: BLE001
            log.error("Error fetching token generation code: %s", exc)
            return None

    def record_failure(self) -> None:
        """Count an evaluation failure and drop the script past the threshold."""
        self._failures += 1
        threshold = settings.script_failure_threshold
        if threshold and self._failures >= threshold and self._script is not None:
            log.warning("Token script failed %s times in a row, dropping cached copy", self._failures)
            self.invalidate()

    def record_success(self) -> None:
        self._failures = 0

    def invalidate(self) -> None:
        self._script = None
        self._failures = 0


script_cache = TokenScriptCache()
