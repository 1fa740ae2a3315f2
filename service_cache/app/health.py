"""
Health reporting for the Cache Service.

An unreachable Redis makes the service degraded, not failed: the service keeps
answering requests as if the cache were empty, so every probe stays HTTP 200
and reports the store connectivity truthfully.
"""

from typing import Any, Dict

from .cache.redis_cache import RedisCache
from .store.redis_client import RedisStoreClient


STATUS_OK = "ok"
STATUS_DEGRADED = "degraded"


class HealthReporter:
    """Liveness and readiness derived from store connectivity."""

    def __init__(self, store: RedisStoreClient, cache: RedisCache):
        self.store = store
        self.cache = cache

    def liveness(self) -> Dict[str, str]:
        return {"status": STATUS_OK}

    async def readiness(self) -> Dict[str, Any]:
        stats = await self.cache.stats()
        status = STATUS_OK if stats.connected else STATUS_DEGRADED

        return {
            "status": status,
            "redis": {
                "status": status,
                "state": self.store.state.value,
                **stats.model_dump(),
            },
        }

    async def dependency_status(self) -> Dict[str, str]:
        connected = await self.store.ping()
        return {"redis": STATUS_OK if connected else STATUS_DEGRADED}
