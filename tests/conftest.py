import httpx
import pytest

from kisskh_addon.services import fetcher
from kisskh_addon.services.token_script import script_cache


@pytest.fixture
def delays(monkeypatch):
    """Record backoff delays instead of sleeping."""
    recorded = []

    async def fake_backoff(delay):
        recorded.append(delay)

    monkeypatch.setattr(fetcher, "_backoff", fake_backoff)
    return recorded


@pytest.fixture
def mock_client():
    """Build an ``httpx.AsyncClient`` whose requests are answered by ``handler``."""

    def _build(handler):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return client

    return _build


@pytest.fixture(autouse=True)
def fresh_script_cache():
    script_cache.invalidate()
    yield
    script_cache.invalidate()
