"""
Geometry helpers for simulated transit routes.

Waypoints, routes, great-circle distance, interpolation and
down-sampling of provider paths.
"""

import json
import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

# Radius of Earth in meters
EARTH_RADIUS_METERS = 6_371_000.0


@dataclass(frozen=True)
class Waypoint:
    """A single point on a route."""
    lat: float
    lng: float

    def is_finite(self) -> bool:
        return math.isfinite(self.lat) and math.isfinite(self.lng)


@dataclass(frozen=True)
class Route:
    """
    Ordered, immutable waypoint sequence from origin (index 0) to
    destination (index N-1), plus total distance in meters.
    """
    waypoints: Tuple[Waypoint, ...]
    total_distance_meters: float

    def __post_init__(self):
        if len(self.waypoints) < 2:
            raise ValueError("A route needs at least 2 waypoints")

    def __len__(self) -> int:
        return len(self.waypoints)

    @property
    def origin(self) -> Waypoint:
        return self.waypoints[0]

    @property
    def destination(self) -> Waypoint:
        return self.waypoints[-1]


def haversine_meters(a: Waypoint, b: Waypoint) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Returns:
        Distance in meters
    """
    lat1_rad = math.radians(a.lat)
    lat2_rad = math.radians(b.lat)
    dlat = lat2_rad - lat1_rad
    dlon = math.radians(b.lng - a.lng)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))

    return EARTH_RADIUS_METERS * c


def _lerp(a: float, b: float, t: float) -> float:
    if t == 0:
        return a
    if t == 1:
        return b
    return a + (b - a) * t


def interpolate(origin: Waypoint, destination: Waypoint, n: int) -> List[Waypoint]:
    """
    Evenly spaced points between origin and destination.

    Latitude and longitude are interpolated independently (not along the
    great circle). The first point is exactly origin and the last exactly
    destination.
    """
    if n < 2:
        raise ValueError("n must be >= 2")
    last = n - 1
    return [
        Waypoint(_lerp(origin.lat, destination.lat, i / last), _lerp(origin.lng, destination.lng, i / last))
        for i in range(n)
    ]


def downsample(points: Sequence[Waypoint], n: int) -> List[Waypoint]:
    """
    Reduce (or densify) a provider path to exactly ``n`` points.

    Long paths are sampled at indices spread evenly over the whole path
    (i * (len - 1) // (n - 1)), so sample i sits at the same fraction of
    the path as waypoint i of the route and the last sample is the true
    final point. Paths shorter than n are densified by interpolating
    along the fractional index so both ends are kept.
    """
    if n < 2:
        raise ValueError("n must be >= 2")
    if len(points) < 2:
        raise ValueError("path needs at least 2 points")

    size = len(points)
    if size >= n:
        return [points[i * (size - 1) // (n - 1)] for i in range(n)]

    out = []
    scale = (size - 1) / (n - 1)
    for i in range(n):
        pos = i * scale
        lo = min(int(pos), size - 2)
        t = pos - lo
        a, b = points[lo], points[lo + 1]
        out.append(Waypoint(_lerp(a.lat, b.lat, t), _lerp(a.lng, b.lng, t)))
    out[-1] = points[-1]
    return out


# Persistence codec: ordered [{"lat": .., "lng": ..}, ...]

def waypoints_to_json(waypoints: Sequence[Waypoint]) -> str:
    return json.dumps([{"lat": p.lat, "lng": p.lng} for p in waypoints])


def waypoints_from_json(raw: str) -> List[Waypoint]:
    return [Waypoint(float(p["lat"]), float(p["lng"])) for p in json.loads(raw)]
