import sys
from pathlib import Path

import httpx
import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from services.weather.geocoding import GeocodingClient  # noqa: E402


def _client(handler):
    return GeocodingClient(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


@pytest.mark.asyncio
async def test_resolve_returns_first_match():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "results": [
                    {"name": "Madrid", "latitude": 40.4165, "longitude": -3.70256, "timezone": "Europe/Madrid"}
                ]
            },
        )

    result = await _client(handler).resolve("Madrid")
    assert result.ok is True
    assert result.lat == pytest.approx(40.4165)
    assert result.lon == pytest.approx(-3.70256)
    assert result.timezone == "Europe/Madrid"
    assert seen[0].url.params["name"] == "Madrid"
    assert seen[0].url.params["count"] == "1"


@pytest.mark.asyncio
async def test_resolve_without_results():
    result = await _client(lambda request: httpx.Response(200, json={"generationtime_ms": 0.4})).resolve("Atlantis")
    assert result.ok is False
    assert result.status == 200


@pytest.mark.asyncio
async def test_resolve_upstream_error_does_not_raise():
    def handler(request):
        raise httpx.ConnectError("down", request=request)

    result = await _client(handler).resolve("Madrid")
    assert result.ok is False
    assert result.status is None

    result = await _client(lambda request: httpx.Response(500)).resolve("Madrid")
    assert result.ok is False
    assert result.status == 500


@pytest.mark.asyncio
async def test_blank_city_skips_request():
    calls = []
    result = await _client(lambda request: calls.append(request)).resolve("  ")
    assert result.ok is False
    assert calls == []
