"""
Redis Cache Service.
TTL-based caching of third-party lookups (BobGo locker searches).
"""
import json
from typing import Optional, Any, List, Dict
from redis.asyncio import Redis

from rebooked.app.core.settings import get_settings


class CacheService:
    """Service for caching operations using Redis."""

    _redis: Optional[Redis] = None

    TTL_DEFAULT = 300

    # Bounding box rounded to ~100m so nearby searches share an entry
    KEY_LOCKERS = "lockers:{min_lat:.3f}:{max_lat:.3f}:{min_lng:.3f}:{max_lng:.3f}"

    @classmethod
    async def get_redis(cls) -> Redis:
        """Get or create Redis connection."""
        if cls._redis is None:
            settings = get_settings()
            cls._redis = Redis(
                host=settings.REDIS_HOST,
                port=settings.REDIS_PORT,
                db=settings.REDIS_DB,
                decode_responses=True
            )
        return cls._redis

    @classmethod
    async def close(cls):
        """Close Redis connection."""
        if cls._redis:
            await cls._redis.aclose()
            cls._redis = None

    def __init__(self, redis: Redis):
        self.redis = redis

    async def get(self, key: str) -> Optional[Any]:
        data = await self.redis.get(key)
        if data:
            return json.loads(data)
        return None

    async def set(self, key: str, value: Any, ttl: int = TTL_DEFAULT):
        await self.redis.set(key, json.dumps(value, ensure_ascii=False, default=str), ex=ttl)

    async def delete(self, key: str):
        await self.redis.delete(key)

    # ----- Lockers -----

    def locker_key(self, bounds: Dict[str, float]) -> str:
        return self.KEY_LOCKERS.format(**bounds)

    async def get_lockers(self, bounds: Dict[str, float]) -> Optional[List[dict]]:
        return await self.get(self.locker_key(bounds))

    async def set_lockers(self, bounds: Dict[str, float], lockers: List[dict], ttl: int = TTL_DEFAULT):
        await self.set(self.locker_key(bounds), lockers, ttl)
