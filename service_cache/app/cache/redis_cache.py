"""
Redis caching layer for the Cache Service.
"""

import json
import re
from typing import Any, List, Optional, Type

from pydantic import BaseModel
from pydantic import ValidationError as ModelValidationError

from shared.errors import SerializationError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..models import CacheStats
from ..store.redis_client import RedisStoreClient, UNKNOWN_MEMORY_USAGE


_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def escape_glob(value: str) -> str:
    """Escape Redis glob metacharacters so value only matches itself."""
    return _GLOB_SPECIAL.sub(r"\\\1", value)


def encode_value(value: Any) -> bytes:
    """Serialize a value to JSON bytes."""
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json", by_alias=True, exclude_none=True)
    try:
        return json.dumps(value, allow_nan=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Value is not JSON serializable: {e}")


def decode_value(payload: bytes, model: Optional[Type[BaseModel]] = None) -> Any:
    """Deserialize JSON bytes, optionally validating into a model."""
    try:
        data = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Stored value is not valid JSON: {e}")

    if model is None:
        return data

    try:
        return model.model_validate(data)
    except ModelValidationError as e:
        raise SerializationError(f"Stored value does not match {model.__name__}", {"errors": e.error_count()})


class RedisCache:
    """Namespaced JSON cache on top of the Redis store adapter.

    Every physical key is ``key_prefix + key``. Callers only ever see logical
    keys, and pattern operations can never reach keys outside the prefix.
    No method raises: failures come back as None, False, 0 or [].
    """

    def __init__(
        self,
        store: RedisStoreClient,
        key_prefix: str,
        default_ttl: int,
        *,
        metrics: Optional[MetricsCollector] = None,
        cache_type: str = "generic",
    ):
        self.store = store
        self.key_prefix = key_prefix
        self.default_ttl = default_ttl
        self.metrics = metrics
        self.cache_type = cache_type
        self.logger = get_logger("cache.redis")

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def _pattern(self, pattern: Optional[str]) -> str:
        return f"{escape_glob(self.key_prefix)}{pattern or '*'}"

    def _in_namespace(self, physical_key: str) -> bool:
        return physical_key.startswith(self.key_prefix)

    def _strip(self, physical_key: str) -> str:
        return physical_key[len(self.key_prefix):]

    def _record(self, operation: str, success: bool) -> None:
        if self.metrics is not None:
            self.metrics.record_cache_operation(operation, success)

    async def get(
        self,
        key: str,
        model: Optional[Type[BaseModel]] = None,
        *,
        record_lookup: bool = True,
    ) -> Optional[Any]:
        """Get a cached value, or None on miss or unreadable payload.

        Callers that count hits and misses under their own cache type pass
        record_lookup=False.
        """
        payload = await self.store.get(self._key(key))
        if payload is None:
            if record_lookup and self.metrics is not None:
                self.metrics.record_cache_lookup(self.cache_type, hit=False)
            return None

        try:
            value = decode_value(payload, model)
        except SerializationError as e:
            self.logger.error("Error decoding cached value", key=key, error=e.message)
            self._record("get", False)
            return None

        if record_lookup and self.metrics is not None:
            self.metrics.record_cache_lookup(self.cache_type, hit=True)
        return value

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        """Cache a value. ttl_seconds None uses the default; <= 0 never expires."""
        try:
            payload = encode_value(value)
        except SerializationError as e:
            self.logger.error("Error encoding value", key=key, error=e.message)
            self._record("set", False)
            return False

        ttl = self.default_ttl if ttl_seconds is None else ttl_seconds
        success = await self.store.set(self._key(key), payload, ttl)
        if not success:
            self.logger.error("Error setting key", key=key)
        self._record("set", success)
        return success

    async def delete(self, key: str) -> bool:
        success = await self.store.delete(self._key(key))
        self._record("delete", success)
        return success

    async def exists(self, key: str) -> bool:
        return await self.store.exists(self._key(key))

    async def get_ttl(self, key: str) -> int:
        """Seconds left for key: -2 if absent, -1 if it never expires."""
        return await self.store.ttl_remaining(self._key(key))

    async def keys(self, pattern: str = "*") -> List[str]:
        """List logical keys matching pattern within the namespace."""
        physical_keys = await self.store.keys_matching(self._pattern(pattern))
        return [self._strip(k) for k in physical_keys if self._in_namespace(k)]

    async def flush(self, pattern: str = "*") -> int:
        """Delete namespaced keys matching pattern. Returns the deleted count."""
        physical_keys = await self.store.keys_matching(self._pattern(pattern))
        scoped = [k for k in physical_keys if self._in_namespace(k)]
        if not scoped:
            return 0

        deleted = await self.store.delete_many(scoped)
        self.logger.info("Flushed cache keys", pattern=pattern or "*", matched=len(scoped), deleted=deleted)
        self._record("flush", True)
        return deleted

    async def ping(self) -> bool:
        return await self.store.ping()

    async def stats(self) -> CacheStats:
        """Connectivity, namespaced key count and store memory usage."""
        connected = await self.store.ping()
        if not connected:
            return CacheStats(connected=False, key_count=0, memory_usage=UNKNOWN_MEMORY_USAGE)

        keys = await self.keys("*")
        memory_usage = await self.store.memory_usage()
        return CacheStats(connected=True, key_count=len(keys), memory_usage=memory_usage)
