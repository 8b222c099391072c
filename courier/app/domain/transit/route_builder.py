"""
Route builder with provider fallback.

Strategies are tried in order and the first success wins:

1. TryExternalRoute - provider-computed road path, down-sampled to N points.
2. Interpolate      - straight lat/lng interpolation, always succeeds.

build_route() therefore never fails; it only degrades in quality.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

from courier.app.core.exceptions import ProviderUnavailableError
from courier.app.domain.transit.geometry import (
    Route, Waypoint, downsample, haversine_meters, interpolate,
)

logger = logging.getLogger("courier.routing")

DEFAULT_ROUTE_POINTS = 100


@dataclass(frozen=True)
class NativeRoute:
    """Path as returned by the routing provider, before sampling."""
    points: Sequence[Waypoint]
    distance_meters: Optional[float] = None


@dataclass(frozen=True)
class RouteAttempt:
    """Result of one strategy: either a route or the reason it gave up."""
    strategy: str
    route: Optional[Route] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.route is not None

    @classmethod
    def success(cls, strategy: str, route: Route) -> "RouteAttempt":
        return cls(strategy=strategy, route=route)

    @classmethod
    def failure(cls, strategy: str, reason: str) -> "RouteAttempt":
        return cls(strategy=strategy, reason=reason)


class TryExternalRoute:
    """Ask the routing provider for a road path."""

    name = "external"

    def __init__(self, provider):
        self.provider = provider

    async def attempt(self, origin: Waypoint, destination: Waypoint, n: int) -> RouteAttempt:
        try:
            native = await self.provider.fetch_route(origin, destination)
        except ProviderUnavailableError as e:
            return RouteAttempt.failure(self.name, f"provider unavailable: {e}")

        if native is None:
            return RouteAttempt.failure(self.name, "no feasible path")

        points = list(native.points)
        if len(points) < 2:
            return RouteAttempt.failure(self.name, f"degenerate path ({len(points)} point(s))")
        if not all(p.is_finite() for p in points):
            return RouteAttempt.failure(self.name, "malformed coordinates")

        distance = native.distance_meters
        if distance is None or not math.isfinite(distance) or distance < 0:
            distance = haversine_meters(origin, destination)

        route = Route(waypoints=tuple(downsample(points, n)), total_distance_meters=float(distance))
        return RouteAttempt.success(self.name, route)


class Interpolate:
    """Straight-line fallback between the two endpoints."""

    name = "interpolate"

    async def attempt(self, origin: Waypoint, destination: Waypoint, n: int) -> RouteAttempt:
        route = Route(
            waypoints=tuple(interpolate(origin, destination, n)),
            total_distance_meters=haversine_meters(origin, destination),
        )
        return RouteAttempt.success(self.name, route)


class RouteBuilder:
    """
    Builds a fixed-cardinality route between two coordinates.

    An Interpolate strategy is always appended last if the caller did not
    supply one, so the chain cannot run dry.
    """

    def __init__(self, strategies: List, n: int = DEFAULT_ROUTE_POINTS):
        if n < 2:
            raise ValueError("route needs at least 2 points")
        self.n = n
        self.strategies = list(strategies)
        if not self.strategies or not isinstance(self.strategies[-1], Interpolate):
            self.strategies.append(Interpolate())

    async def build_route(self, origin: Waypoint, destination: Waypoint) -> Route:
        for strategy in self.strategies:
            result = await strategy.attempt(origin, destination, self.n)
            if result.ok:
                logger.info(
                    "Route built",
                    extra={
                        "strategy": result.strategy,
                        "points": len(result.route),
                        "distance_m": round(result.route.total_distance_meters, 1),
                    },
                )
                return result.route
            logger.warning("Route strategy %s failed: %s", result.strategy, result.reason)

        # Unreachable: the chain always ends with Interpolate
        raise RuntimeError("no route strategy succeeded")


def default_route_builder(provider, n: int = DEFAULT_ROUTE_POINTS) -> RouteBuilder:
    return RouteBuilder([TryExternalRoute(provider), Interpolate()], n=n)
