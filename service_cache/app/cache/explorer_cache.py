"""
Opening explorer cache.

Explorer data for a position changes far less often than generic API
responses, so entries are stored with their own long TTL.
"""

from typing import Optional, Union

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from .keys import EXPLORER_KEY_PREFIX, explorer_key, variant_key_prefix
from .redis_cache import RedisCache
from ..models import (
    ExplorerCacheInfo,
    ExplorerCacheStats,
    ExplorerDatabase,
    ExplorerResponse,
)


LOG_POSITION_CHARS = 30


def _preview(fen: str) -> str:
    return f"{fen[:LOG_POSITION_CHARS]}..."


class OpeningExplorerCache:
    """Cache for opening explorer lookups keyed by position and database."""

    def __init__(
        self,
        cache: RedisCache,
        ttl: int,
        *,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.cache = cache
        self.ttl = ttl
        self.metrics = metrics
        self.logger = get_logger("cache.explorer")
        self.logger.info("Explorer cache TTL configured", ttl_seconds=ttl, ttl_days=ttl / 86400)

    @staticmethod
    def _database(database: Union[ExplorerDatabase, str]) -> ExplorerDatabase:
        return ExplorerDatabase(database)

    async def get_opening_moves(
        self,
        fen: str,
        database: Union[ExplorerDatabase, str] = ExplorerDatabase.MASTERS,
    ) -> Optional[ExplorerResponse]:
        db = self._database(database)
        cached = await self.cache.get(explorer_key(fen, db.value), model=ExplorerResponse, record_lookup=False)

        if self.metrics is not None:
            self.metrics.record_cache_lookup("explorer", hit=cached is not None)

        if cached is not None:
            self.logger.debug("Cache hit for explorer", database=db.value, position=_preview(fen))
            return cached

        self.logger.debug("Cache miss for explorer", database=db.value, position=_preview(fen))
        return None

    async def set_opening_moves(
        self,
        fen: str,
        database: Union[ExplorerDatabase, str],
        data: ExplorerResponse,
    ) -> bool:
        db = self._database(database)
        success = await self.cache.set(explorer_key(fen, db.value), data, self.ttl)

        if success:
            self.logger.debug("Cached explorer data", database=db.value, position=_preview(fen))

        return success

    async def invalidate_position(self, fen: str) -> bool:
        """Drop a position from both databases, whichever was cached."""
        results = [
            await self.cache.delete(explorer_key(fen, db.value))
            for db in ExplorerDatabase
        ]
        return any(results)

    async def invalidate_all(self) -> int:
        """Flush every explorer entry, leaving other cache entries alone."""
        deleted = await self.cache.flush(f"{EXPLORER_KEY_PREFIX}*")
        self.logger.info("Invalidated explorer cache", deleted=deleted)
        return deleted

    async def get_stats(self) -> ExplorerCacheStats:
        count_by_variant = {}
        for db in ExplorerDatabase:
            keys = await self.cache.keys(f"{variant_key_prefix(db.value)}*")
            count_by_variant[db.value] = len(keys)

        return ExplorerCacheStats(
            count_by_variant=count_by_variant,
            total_count=sum(count_by_variant.values()),
        )

    async def get_cache_info(
        self,
        fen: str,
        database: Union[ExplorerDatabase, str] = ExplorerDatabase.MASTERS,
    ) -> ExplorerCacheInfo:
        db = self._database(database)
        key = explorer_key(fen, db.value)

        exists = await self.cache.exists(key)
        ttl = await self.cache.get_ttl(key)
        data = await self.cache.get(key, model=ExplorerResponse, record_lookup=False) if exists else None

        return ExplorerCacheInfo(exists=exists, ttl=ttl, data=data)
