"""
Cache service: HTTP façade over the Redis cache and the opening explorer cache.
"""

from typing import Any, Dict, List, Optional

import redis.asyncio as redis
from fastapi import Query

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import ValidationError
from shared.retry import RetryConfig

from .cache.explorer_cache import OpeningExplorerCache
from .cache.keys import is_key_safe_position
from .cache.redis_cache import RedisCache
from .health import HealthReporter
from .models import ExplorerDatabase, ExplorerResponse, ExplorerSetRequest, SetCacheRequest
from .store.redis_client import RedisStoreClient


def _require_key_safe_fen(fen: str) -> str:
    if not is_key_safe_position(fen):
        raise ValidationError(
            "FEN must be non-empty and must not contain '_' or '.'",
            {"fen": fen[:30]}
        )
    return fen


def _explorer_payload(data: Optional[ExplorerResponse]) -> Optional[Dict[str, Any]]:
    if data is None:
        return None
    return data.model_dump(mode="json", by_alias=True, exclude_none=True)


class CacheService(BaseService):
    """Cache service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        redis_client: Optional[redis.Redis] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        super().__init__("cache", config)

        self.store = RedisStoreClient(
            self.config,
            client=redis_client,
            retry_config=retry_config,
            metrics=self.metrics,
        )
        self.cache = RedisCache(
            self.store,
            key_prefix=self.config.redis_key_prefix,
            default_ttl=self.config.cache_default_ttl,
            metrics=self.metrics,
        )
        self.explorer_cache = OpeningExplorerCache(
            self.cache,
            ttl=self.config.cache_lichess_ttl,
            metrics=self.metrics,
        )
        self.health = HealthReporter(self.store, self.cache)

        self._setup_cache_routes()
        self._setup_explorer_routes()

    def _setup_cache_routes(self):
        """Set up generic cache routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "cache",
                "message": "Redis caching microservice",
                "version": "1.0.0",
                "capabilities": ["cache", "lichess_explorer", "health"]
            }

        @self.app.get("/cache/stats")
        async def get_stats():
            """Get cache statistics."""
            stats = await self.cache.stats()
            return stats.model_dump()

        @self.app.get("/cache/keys/{pattern}")
        async def list_keys(pattern: str) -> List[str]:
            """List keys matching pattern."""
            return await self.cache.keys(pattern)

        @self.app.get("/cache/exists/{key}")
        async def key_exists(key: str):
            """Check if key exists."""
            return {"exists": await self.cache.exists(key)}

        @self.app.get("/cache/{key}")
        async def get_value(key: str):
            """Get cached value by key."""
            data = await self.cache.get(key)
            ttl = await self.cache.get_ttl(key)

            response: Dict[str, Any] = {
                "success": True,
                "hit": data is not None,
                "data": data,
            }
            if ttl > 0:
                response["ttl"] = ttl
            return response

        @self.app.post("/cache", status_code=201)
        async def set_value(request: SetCacheRequest):
            """Set cache value."""
            success = await self.cache.set(request.key, request.value, request.ttl)

            response: Dict[str, Any] = {"success": success}
            if not success:
                response["error"] = "Failed to set cache value"
            return response

        @self.app.delete("/cache/{key}")
        async def delete_value(key: str):
            """Delete cached value by key."""
            return {"success": await self.cache.delete(key)}

        @self.app.delete("/cache")
        async def flush(pattern: Optional[str] = Query(None, description="Glob pattern, default everything")):
            """Flush cache by pattern."""
            deleted = await self.cache.flush(pattern or "*")
            return {"deleted": deleted}

    def _setup_explorer_routes(self):
        """Set up opening explorer routes."""

        @self.app.get("/lichess/explorer")
        async def get_explorer(
            fen: str = Query(..., description="FEN string"),
            database: ExplorerDatabase = Query(ExplorerDatabase.MASTERS, description="Database to query"),
        ):
            """Get cached explorer data for a position."""
            data = await self.explorer_cache.get_opening_moves(_require_key_safe_fen(fen), database)
            return {"hit": data is not None, "data": _explorer_payload(data)}

        @self.app.post("/lichess/explorer", status_code=201)
        async def set_explorer(request: ExplorerSetRequest):
            """Cache explorer data for a position."""
            fen = _require_key_safe_fen(request.fen)
            success = await self.explorer_cache.set_opening_moves(fen, request.database, request.data)
            return {"success": success}

        @self.app.delete("/lichess/explorer/all")
        async def invalidate_all():
            """Invalidate all cached explorer data."""
            return {"deleted": await self.explorer_cache.invalidate_all()}

        @self.app.delete("/lichess/explorer")
        async def invalidate_position(fen: str = Query(..., description="FEN string to invalidate")):
            """Invalidate cached data for a position."""
            invalidated = await self.explorer_cache.invalidate_position(_require_key_safe_fen(fen))
            return {"invalidated": invalidated}

        @self.app.get("/lichess/stats")
        async def get_explorer_stats():
            """Get explorer cache statistics."""
            stats = await self.explorer_cache.get_stats()
            return {
                "count_by_variant": stats.count_by_variant,
                "masters_count": stats.count_by_variant.get(ExplorerDatabase.MASTERS.value, 0),
                "lichess_count": stats.count_by_variant.get(ExplorerDatabase.LICHESS.value, 0),
                "total_count": stats.total_count,
            }

        @self.app.get("/lichess/info")
        async def get_cache_info(
            fen: str = Query(..., description="FEN string"),
            database: ExplorerDatabase = Query(ExplorerDatabase.MASTERS, description="Database to query"),
        ):
            """Get detailed cache info for a position."""
            info = await self.explorer_cache.get_cache_info(_require_key_safe_fen(fen), database)
            return {
                "exists": info.exists,
                "ttl": info.ttl,
                "data": _explorer_payload(info.data),
            }

    async def _check_dependencies(self) -> Dict[str, str]:
        return await self.health.dependency_status()

    def _check_liveness(self) -> Dict[str, Any]:
        return self.health.liveness()

    async def _check_readiness(self) -> Dict[str, Any]:
        return await self.health.readiness()

    async def start(self):
        """Connect to Redis. Never fails startup."""
        await self.store.connect()
        self.logger.info("Cache service started", state=self.store.state.value)

    async def stop(self):
        await self.store.close()
        self.logger.info("Cache service stopped")


def create_app():
    """Create cache service application."""
    service = CacheService()
    return service.app


if __name__ == "__main__":
    service = CacheService()
    service.run()
