"""City name -> coordinates via the Open-Meteo geocoding API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

from utils.logger import get_logger

logger = get_logger("weather.geocoding")


@dataclass(frozen=True)
class GeocodeResult:
    ok: bool
    status: Optional[int] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    name: Optional[str] = None
    timezone: Optional[str] = None


class GeocodingClient:
    GEO_URL = "https://geocoding-api.open-meteo.com/v1/search"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_seconds: float = 10.0,
        user_agent: str = "kickoff-weather/1.0",
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url or self.GEO_URL
        self._timeout = timeout_seconds
        self._user_agent = user_agent
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                headers={"User-Agent": self._user_agent},
            )
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def resolve(self, city: Optional[str]) -> GeocodeResult:
        """Best single match for ``city``; never raises for upstream problems."""
        query = (city or "").strip()
        if not query:
            return GeocodeResult(ok=False)

        try:
            client = await self._get_client()
            resp = await client.get(self._base_url, params={"name": query, "count": 1})
        except httpx.HTTPError as exc:
            logger.warning("Geocoding request failed", city=query, error=str(exc))
            return GeocodeResult(ok=False)

        if resp.status_code != 200:
            return GeocodeResult(ok=False, status=resp.status_code)

        try:
            data = resp.json() or {}
            hit = (data.get("results") or [])[0]
            return GeocodeResult(
                ok=True,
                status=resp.status_code,
                lat=float(hit["latitude"]),
                lon=float(hit["longitude"]),
                name=hit.get("name"),
                timezone=hit.get("timezone"),
            )
        except (ValueError, TypeError, KeyError, IndexError, AttributeError):
            logger.info("No geocoding match", city=query, status=resp.status_code)
            return GeocodeResult(ok=False, status=resp.status_code)
