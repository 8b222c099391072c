"""
Redis cache for reverse-geocoded location labels.

Routes are fixed once built, so the same waypoint is looked up again every
time another parcel on a similar path reaches it. Caching by rounded
coordinates keeps Nominatim traffic down. Cache errors degrade to a miss.
"""

import logging
from typing import Optional

from redis.exceptions import RedisError

logger = logging.getLogger("courier.cache")

KEY_PREFIX = "courier:label"


class LocationLabelCache:

    def __init__(self, redis_client, ttl_seconds: int = 7 * 24 * 3600, precision: int = 4):
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds
        self.precision = precision

    def key(self, lat: float, lng: float) -> str:
        return f"{KEY_PREFIX}:{lat:.{self.precision}f}:{lng:.{self.precision}f}"

    async def get(self, lat: float, lng: float) -> Optional[str]:
        try:
            value = await self.redis.get(self.key(lat, lng))
        except RedisError as e:
            logger.warning("Label cache read failed: %s", e)
            return None
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value or None

    async def set(self, lat: float, lng: float, label: str) -> None:
        try:
            await self.redis.set(self.key(lat, lng), label, ex=self.ttl_seconds)
        except RedisError as e:
            logger.warning("Label cache write failed: %s", e)
