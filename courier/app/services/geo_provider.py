"""
Geocoding and routing provider.

Geocoding via OpenStreetMap Nominatim, routing via the OSRM public API.
Both are free and keyless, so calls are spaced out (Nominatim allows one
request per second) and wrapped in circuit breakers.

Any transport error, bad status, malformed payload or open circuit is a
ProviderUnavailableError internally; public methods either degrade
(geocode -> None, reverse_geocode -> placeholder label) or let the route
builder fall back to interpolation.
"""

import logging
from typing import Any, Optional

import httpx

from courier.app.core.config import Settings
from courier.app.core.exceptions import ProviderUnavailableError
from courier.app.core.rate_limiter import IntervalGate
from courier.app.core.reliability import CircuitBreaker, CircuitOpenError
from courier.app.domain.transit.geometry import Waypoint
from courier.app.domain.transit.route_builder import NativeRoute

logger = logging.getLogger("courier.geo")

# OSRM reports these when the two points are not connected by road
OSRM_NO_PATH_CODES = {"NoRoute", "NoSegment"}


class GeoProvider:
    """Nominatim + OSRM client."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Settings,
        gate: IntervalGate,
        label_cache=None,
    ):
        self.client = client
        self.gate = gate
        self.label_cache = label_cache
        self.nominatim_url = settings.nominatim_url.rstrip("/")
        self.osrm_url = settings.osrm_url.rstrip("/")
        self.fallback_label = settings.fallback_location_label
        self.nominatim_breaker = CircuitBreaker(
            "nominatim",
            failure_threshold=settings.provider_failure_threshold,
            reset_timeout=settings.provider_reset_timeout,
        )
        self.osrm_breaker = CircuitBreaker(
            "osrm",
            failure_threshold=settings.provider_failure_threshold,
            reset_timeout=settings.provider_reset_timeout,
        )

    # -----------------------------
    # Transport
    # -----------------------------
    async def _request(self, breaker: CircuitBreaker, url: str, params: dict, polite: bool) -> httpx.Response:
        async def send() -> httpx.Response:
            if polite:
                await self.gate.acquire()
            response = await self.client.get(url, params=params, headers={"Accept": "application/json"})
            if response.status_code >= 500 or response.status_code == 429:
                raise ProviderUnavailableError(f"{breaker.name} HTTP {response.status_code}")
            return response

        try:
            return await breaker.call(send)
        except CircuitOpenError as e:
            raise ProviderUnavailableError(str(e)) from e
        except httpx.HTTPError as e:
            raise ProviderUnavailableError(f"{breaker.name} {e.__class__.__name__}: {e}") from e

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ProviderUnavailableError("malformed JSON payload") from e

    # -----------------------------
    # Geocoding
    # -----------------------------
    async def geocode(self, address: str) -> Optional[Waypoint]:
        """Resolve a free-text address to coordinates, or None."""
        try:
            response = await self._request(
                self.nominatim_breaker,
                f"{self.nominatim_url}/search",
                {"q": address, "format": "json", "limit": 1},
                polite=True,
            )
            if response.status_code != 200:
                return None
            data = self._json(response)
        except ProviderUnavailableError as e:
            logger.warning("Geocoding unavailable for %r: %s", address, e)
            return None

        if not isinstance(data, list) or not data:
            return None
        try:
            point = Waypoint(float(data[0]["lat"]), float(data[0]["lon"]))
        except (KeyError, TypeError, ValueError):
            return None
        return point if point.is_finite() else None

    async def reverse_geocode(self, lat: float, lng: float) -> str:
        """Human readable "road, city" label; the placeholder when unknown."""
        if self.label_cache is not None:
            cached = await self.label_cache.get(lat, lng)
            if cached:
                return cached

        try:
            response = await self._request(
                self.nominatim_breaker,
                f"{self.nominatim_url}/reverse",
                {"lat": lat, "lon": lng, "format": "json"},
                polite=True,
            )
            if response.status_code != 200:
                return self.fallback_label
            data = self._json(response)
        except ProviderUnavailableError as e:
            logger.warning("Reverse geocoding unavailable at (%s, %s): %s", lat, lng, e)
            return self.fallback_label

        label = format_address_label(data)
        if not label:
            return self.fallback_label
        if self.label_cache is not None:
            await self.label_cache.set(lat, lng, label)
        return label

    # -----------------------------
    # Routing
    # -----------------------------
    async def fetch_route(self, origin: Waypoint, destination: Waypoint) -> Optional[NativeRoute]:
        """
        Road path between two points, or None when no path exists.

        Raises:
            ProviderUnavailableError: provider down, timed out or returned junk
        """
        url = (
            f"{self.osrm_url}/route/v1/driving/"
            f"{origin.lng},{origin.lat};{destination.lng},{destination.lat}"
        )
        response = await self._request(
            self.osrm_breaker, url, {"overview": "full", "geometries": "geojson"}, polite=False
        )
        data = self._json(response)
        if not isinstance(data, dict):
            raise ProviderUnavailableError("unexpected OSRM payload")

        code = data.get("code")
        if code in OSRM_NO_PATH_CODES:
            return None
        if response.status_code != 200 or code != "Ok":
            raise ProviderUnavailableError(f"OSRM HTTP {response.status_code} code={code}")

        routes = data.get("routes") or []
        if not routes:
            return None

        try:
            coords = routes[0]["geometry"]["coordinates"]
            points = [Waypoint(float(lat), float(lng)) for lng, lat in coords]
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderUnavailableError("malformed OSRM geometry") from e

        distance = routes[0].get("distance")
        try:
            distance = float(distance) if distance is not None else None
        except (TypeError, ValueError):
            distance = None

        return NativeRoute(points=points, distance_meters=distance)


def format_address_label(payload: Any) -> str:
    """Pick road and locality from a Nominatim reverse payload."""
    if not isinstance(payload, dict):
        return ""
    address = payload.get("address") or {}
    if not isinstance(address, dict):
        return ""
    road = address.get("road") or address.get("pedestrian")
    place = (
        address.get("city")
        or address.get("town")
        or address.get("village")
        or address.get("county")
    )
    return ", ".join(part for part in (road, place) if part)
