"""Run the KissKH token bundle inside an embedded V8 context.

Each evaluation gets a fresh ``MiniRacer`` context, closed when it is done,
and every evaluation runs on one dedicated worker thread. V8 contexts carry no
filesystem, network or process bindings, so the only host surface the
bundle sees is the fake ``window`` built by ``browser_prelude``. Execution
is bounded by ``settings.sandbox_timeout_ms`` across both the bundle
evaluation and the token call.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, List, Optional

import httpx
from py_mini_racer import JSTimeoutException, MiniRacer

from kisskh_addon.constants import (
    TOKEN_APP_NAME,
    TOKEN_APP_NAME_REPEAT,
    TOKEN_APP_VERSION,
    TOKEN_FUNCTION,
    TOKEN_PLATFORM_VERSION,
    USER_AGENT,
)
from kisskh_addon.services.token_script import TokenScriptCache, script_cache
from kisskh_addon.settings import settings

log = logging.getLogger("kisskh.sandbox")

_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="kisskh-sandbox")


class SandboxTimeout(Exception):
    pass


def browser_prelude(origin: str, user_agent: str = USER_AGENT) -> str:
    """JS declaring the minimal browser globals the bundle expects."""
    window = {
        "document": {"URL": origin},
        "location": {"href": origin, "origin": origin.rstrip("/")},
        "navigator": {
            "userAgent": user_agent,
            "platform": "Win32",
            "appCodeName": "Mozilla",
            "appName": "Netscape",
        },
    }
    return (
        f"var window = {json.dumps(window)};\n"
        "var document = window.document;\n"
        "var navigator = window.navigator;\n"
        "var location = window.location;\n"
    )


def token_arguments(episode_id: str, uid: str) -> List[Any]:
    """Positional arguments of the upstream token function."""
    episode: Any = int(episode_id) if str(episode_id).isdigit() else str(episode_id)
    return [
        episode,
        None,
        TOKEN_APP_VERSION,
        uid,
        TOKEN_PLATFORM_VERSION,
        *([TOKEN_APP_NAME] * TOKEN_APP_NAME_REPEAT),
    ]


def evaluate(script: str, function_name: str, args: List[Any], origin: str, timeout_ms: int) -> Optional[str]:
    """Blocking evaluation; raises ``SandboxTimeout`` or the engine's own errors."""
    deadline = time.monotonic() + timeout_ms / 1000.0

    def remaining() -> int:
        left = int((deadline - time.monotonic()) * 1000)
        if left <= 0:
            raise SandboxTimeout(f"token script exceeded {timeout_ms}ms")
        return left

    try:
        with MiniRacer() as ctx:
            ctx.eval(browser_prelude(origin), timeout=remaining())
            ctx.eval(script, timeout=remaining())
            result = ctx.call(function_name, *args, timeout=remaining())
    except JSTimeoutException as exc:
        raise SandboxTimeout(f"token script exceeded {timeout_ms}ms") from exc
    return result if isinstance(result, str) else None


class TokenEvaluator:
    def __init__(
        self,
        cache: TokenScriptCache = script_cache,
        function_name: Optional[str] = None,
        timeout_ms: Optional[int] = None,
    ) -> None:
        self.cache = cache
        self._function_name = function_name
        self._timeout_ms = timeout_ms

    @property
    def function_name(self) -> str:
        return self._function_name or settings.token_function or TOKEN_FUNCTION

    @property
    def timeout_ms(self) -> int:
        return self._timeout_ms or settings.sandbox_timeout_ms

    async def derive_token(self, client: httpx.AsyncClient, episode_id: str, uid: str) -> str:
        """Return the upstream ``kkey`` for ``episode_id``, or ``""`` on any failure."""
        script = await self.cache.get_script(client)
        if not script:
            log.error("No token generation code available")
            return ""

        try:
            # MiniRacer contexts must not be used from several threads at once
            token = await asyncio.get_running_loop().run_in_executor(
                _executor,
                functools.partial(
                    evaluate,
                    script,
                    self.function_name,
                    token_arguments(episode_id, uid),
                    self.cache.base_url,
                    self.timeout_ms,
                ),
            )
        except SandboxTimeout as exc:
            log.error("Token generation timed out for episode %s: %s", episode_id, exc)
            self.cache.record_failure()
            return ""
        except Exception as exc:  # noqa: BLE001
            log.error("Token generation error: %s", exc)
            self.cache.record_failure()
            return ""

        if not token:
            log.warning("Token function returned no string for episode %s", episode_id)
            self.cache.record_failure()
            return ""

        self.cache.record_success()
        log.info("Generated token for episode %s: %s...", episode_id, token[:20])
        return token


token_evaluator = TokenEvaluator()


async def derive_token(client: httpx.AsyncClient, episode_id: str, uid: str) -> str:
    return await token_evaluator.derive_token(client, episode_id, uid)
