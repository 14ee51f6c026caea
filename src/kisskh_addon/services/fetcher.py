"""HTTP GET with bounded retries for every upstream call.

Only gateway-style statuses (502/503/504) and transport errors are retried;
a malformed URL or any other non-2xx status ends the call at once. Callers
never see an exception from here, only the body bytes or a falsy
``FetchFailure``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import httpx
from charset_normalizer import from_bytes

from kisskh_addon.settings import settings

log = logging.getLogger("kisskh.fetcher")

TRANSIENT_STATUSES = frozenset({502, 503, 504})


@dataclass
class FetchFailure:
    url: str
    status: Optional[int] = None
    error: Optional[str] = None
    attempts: int = 0

    def __bool__(self) -> bool:
        return False


FetchResult = Union[bytes, FetchFailure]
UrlFactory = Callable[[], Awaitable[str]]


async def _backoff(delay: float) -> None:
    await asyncio.sleep(delay)


async def fetch(
    client: httpx.AsyncClient,
    url: Union[str, UrlFactory],
    *,
    headers: Optional[Dict[str, str]] = None,
    retries: Optional[int] = None,
    base_delay: Optional[float] = None,
    timeout: Optional[float] = None,
) -> FetchResult:
    """GET ``url`` and return the raw body, retrying transient failures.

    ``url`` may also be an async callable producing the URL; it is awaited
    before every attempt, for endpoints whose query carries a one-shot token.
    Attempt ``n`` that fails transiently is followed by a ``n * base_delay``
    pause, as long as another attempt remains.
    """
    attempts_allowed = max(1, retries if retries is not None else settings.request_retries)
    delay_unit = settings.api_retry_delay if base_delay is None else base_delay
    per_attempt = settings.request_timeout if timeout is None else timeout

    failure = FetchFailure(url=url if isinstance(url, str) else "")
    for attempt in range(1, attempts_allowed + 1):
        failure.attempts = attempt
        target = url if isinstance(url, str) else await url()
        failure.url = target
        try:
            response = await client.get(target, headers=headers, timeout=per_attempt, follow_redirects=True)
        except httpx.InvalidURL as exc:
            failure.status = None
            failure.error = f"{type(exc).__name__}: {exc}"
            log.error("Invalid URL: %r - %s", target, exc)
            return failure
        except httpx.HTTPError as exc:
            failure.status = None
            failure.error = f"{type(exc).__name__}: {exc}"
            if attempt < attempts_allowed:
                wait = attempt * delay_unit
                log.warning(
                    "Request error, retrying in %.1fs (%s/%s): %s", wait, attempt, attempts_allowed, failure.error
                )
                await _backoff(wait)
                continue
            log.error("Request error: %s - %s", target, failure.error)
            return failure

        if 200 <= response.status_code < 300:
            return response.content

        failure.status = response.status_code
        failure.error = None
        if response.status_code in TRANSIENT_STATUSES and attempt < attempts_allowed:
            wait = attempt * delay_unit
            log.warning(
                "Request failed (%s), retrying in %.1fs (%s/%s)", response.status_code, wait, attempt, attempts_allowed
            )
            await _backoff(wait)
            continue

        log.error("Request failed: %s - Status: %s", target, response.status_code)
        return failure

    return failure


def decode_text(body: bytes) -> str:
    """Turn a raw transport payload into text, guessing the charset if it is not UTF-8."""
    try:
        return body.decode("utf-8-sig")
    except UnicodeDecodeError:
        best = from_bytes(body).best()
        if best is None:
            return body.decode("utf-8", errors="replace")
        return str(best)


def decode_payload(body: Union[bytes, str, None]) -> Optional[Any]:
    """Normalize a JSON payload delivered as text or as an octet buffer.

    Returns ``None`` when the payload is missing or is not JSON.
    """
    if body is None or isinstance(body, FetchFailure):
        return None
    text = decode_text(body) if isinstance(body, (bytes, bytearray)) else body
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError) as exc:
        log.error("Failed to parse payload as JSON: %s (%r)", exc, text[:200])
        return None


async def fetch_json(client: httpx.AsyncClient, url: str, **kwargs: Any) -> Optional[Any]:
    body = await fetch(client, url, **kwargs)
    if not body:
        return None
    return decode_payload(body)
