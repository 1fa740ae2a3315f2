"""
Redis store client adapter for the Cache Service.

Holds the single connection to Redis used by every request handler and keeps
the process-wide connection state. A cache is best-effort: every primitive
absorbs store errors and answers with a miss/false/empty sentinel, and an
unreachable store puts the adapter in degraded mode instead of failing the
process.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from shared.config import BaseConfig
from shared.errors import ConfigurationError, TransientStoreError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig, RetryError, calculate_delay, retry_on_exception


# Errors that mean the connection itself is gone
CONNECTION_ERRORS = (RedisConnectionError, RedisTimeoutError, OSError, asyncio.TimeoutError)

SCAN_BATCH_SIZE = 500
DELETE_CHUNK_SIZE = 500
UNKNOWN_MEMORY_USAGE = "unknown"


class ConnectionState(str, Enum):
    """Store connection states."""
    CONNECTING = "connecting"
    READY = "ready"
    DEGRADED = "degraded"


@dataclass
class StoreResult:
    """Outcome of a single store command."""
    ok: bool
    value: Any = None
    error: Optional[TransientStoreError] = None


class RedisStoreClient:
    """Adapter around one redis.asyncio client with degraded-mode handling."""

    def __init__(
        self,
        config: BaseConfig,
        client: Optional[redis.Redis] = None,
        *,
        retry_config: Optional[RetryConfig] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.config = config
        self.logger = get_logger("cache.store.redis")
        self.metrics = metrics
        self.retry_config = retry_config or RetryConfig(
            max_attempts=config.redis_max_reconnect_attempts,
            base_delay=config.redis_reconnect_base_delay,
            max_delay=config.redis_reconnect_max_delay,
            jitter=False,
            backoff_strategy="linear",
        )

        self._client = client
        self._state = ConnectionState.CONNECTING
        self._reconnect_task: Optional[asyncio.Task] = None
        self._reconnect_exhausted = False
        self._reconnect_attempts = 0
        self._last_error: Optional[str] = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def reconnect_exhausted(self) -> bool:
        return self._reconnect_exhausted

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Connect to Redis without ever failing startup."""
        if self._client is None:
            try:
                self._client = self._build_client()
            except ConfigurationError as e:
                self._last_error = e.message
                self._reconnect_exhausted = True
                self._set_state(ConnectionState.DEGRADED)
                self.logger.error(
                    "Invalid Redis configuration, running in degraded mode",
                    error=e.message,
                    details=e.details
                )
                return

        self._set_state(ConnectionState.CONNECTING)

        try:
            await self._probe()
        except CONNECTION_ERRORS as e:
            self.logger.warning(
                "Could not connect to Redis, service will run in degraded mode",
                host=self.config.redis_host,
                port=self.config.redis_port,
                error=str(e)
            )
            self._mark_degraded(str(e))
            return
        except Exception as e:
            self.logger.warning("Failed to initialize Redis client", error=str(e))
            self._mark_degraded(str(e))
            return

        self._set_state(ConnectionState.READY)
        self.logger.info(
            "Connected to Redis",
            host=self.config.redis_host,
            port=self.config.redis_port,
            db=self.config.redis_db
        )

    async def close(self) -> None:
        """Stop reconnecting and close the connection."""
        if self._reconnect_task is not None and not self._reconnect_task.done():
            self._reconnect_task.cancel()
            try:
                await self._reconnect_task
            except asyncio.CancelledError:
                pass
        self._reconnect_task = None

        if self._client is not None:
            await self._close_client()
            self.logger.info("Redis connection closed")

    def _build_client(self) -> redis.Redis:
        """Create the Redis client from configuration."""
        host = (self.config.redis_host or "").strip()
        if not host:
            raise ConfigurationError("Redis host is not configured")
        if not 0 < self.config.redis_port < 65536:
            raise ConfigurationError("Redis port is out of range", {"port": self.config.redis_port})
        if self.config.redis_db < 0:
            raise ConfigurationError("Redis database index must not be negative", {"db": self.config.redis_db})

        try:
            return redis.Redis(
                host=host,
                port=self.config.redis_port,
                password=self.config.redis_password,
                db=self.config.redis_db,
                socket_connect_timeout=self.config.redis_connect_timeout,
                socket_timeout=self.config.redis_socket_timeout,
                health_check_interval=30,
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid Redis connection parameters: {e}")

    async def _probe(self) -> None:
        """Round-trip a PING within the connect timeout."""
        await asyncio.wait_for(self._client.ping(), timeout=self.config.redis_connect_timeout)

    def _mark_degraded(self, error: str) -> None:
        self._last_error = error
        self._set_state(ConnectionState.DEGRADED)
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._reconnect_exhausted or self._client is None:
            return
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect())

    async def _reconnect(self) -> None:
        """Retry the connection with linear backoff until the attempt ceiling."""

        def record_failure(attempt: int, error: Exception) -> None:
            self._reconnect_attempts = attempt
            self._last_error = str(error)

        probe = retry_on_exception(
            CONNECTION_ERRORS,
            self.retry_config,
            on_failure=record_failure,
        )(self._probe)

        await asyncio.sleep(calculate_delay(1, self.retry_config))

        try:
            await probe()
        except RetryError as e:
            self._reconnect_exhausted = True
            self.logger.warning(
                "Max Redis reconnection attempts reached, staying in degraded mode",
                attempts=e.attempts,
                error=str(e.last_exception)
            )
            await self._close_client()
            return
        except Exception as e:
            # Non-connection errors end the reconnect loop
            self._reconnect_exhausted = True
            self._last_error = str(e)
            self.logger.error(
                "Redis rejected the connection, staying in degraded mode",
                error=str(e),
                error_type=type(e).__name__
            )
            await self._close_client()
            return

        self._reconnect_attempts = 0
        self._set_state(ConnectionState.READY)
        self.logger.info("Reconnected to Redis")

    async def _close_client(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        try:
            await client.aclose()
        except Exception as e:
            self.logger.warning("Error closing Redis connection", error=str(e))

    def _set_state(self, state: ConnectionState) -> None:
        if state != self._state:
            self.logger.info("Redis connection state changed", previous=self._state.value, state=state.value)
        self._state = state
        if self.metrics is not None:
            self.metrics.set_connection_state(state.value)

    def get_state(self) -> Dict[str, Any]:
        """Get connection diagnostics."""
        return {
            "state": self._state.value,
            "reconnect_attempts": self._reconnect_attempts,
            "reconnect_exhausted": self._reconnect_exhausted,
            "last_error": self._last_error,
        }

    # ------------------------------------------------------------------
    # Command execution
    # ------------------------------------------------------------------

    async def _execute(
        self,
        operation: str,
        command: Callable[[redis.Redis], Awaitable[Any]],
        **context: Any
    ) -> StoreResult:
        """Run one command, converting every store error into a failed result."""
        client = self._client
        if client is None:
            return StoreResult(ok=False, error=TransientStoreError(operation, "Store client not available"))

        try:
            value = await command(client)
        except CONNECTION_ERRORS as e:
            self.logger.warning("Redis connection error", operation=operation, error=str(e), **context)
            self._mark_degraded(str(e))
            return StoreResult(ok=False, error=TransientStoreError(operation, str(e)))
        except Exception as e:
            self.logger.error("Redis command failed", operation=operation, error=str(e), **context)
            return StoreResult(ok=False, error=TransientStoreError(operation, str(e)))

        return StoreResult(ok=True, value=value)

    @staticmethod
    def _decode_key(key: Any) -> str:
        if isinstance(key, bytes):
            return key.decode("utf-8", errors="replace")
        return str(key)

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Optional[bytes]:
        """Get raw bytes for a physical key."""
        result = await self._execute("get", lambda c: c.get(key), key=key)
        if not result.ok:
            return None
        return result.value

    async def set(self, key: str, payload: bytes, ttl_seconds: Optional[int] = None) -> bool:
        """Store raw bytes, expiring after ttl_seconds when positive."""
        if ttl_seconds is not None and ttl_seconds > 0:
            result = await self._execute("set", lambda c: c.set(key, payload, ex=int(ttl_seconds)), key=key)
        else:
            result = await self._execute("set", lambda c: c.set(key, payload), key=key)
        return result.ok and bool(result.value)

    async def delete(self, key: str) -> bool:
        """Delete a physical key. True when the command succeeded."""
        result = await self._execute("delete", lambda c: c.delete(key), key=key)
        return result.ok

    async def exists(self, key: str) -> bool:
        result = await self._execute("exists", lambda c: c.exists(key), key=key)
        return result.ok and bool(result.value)

    async def ttl_remaining(self, key: str) -> int:
        """Seconds left: -2 if absent (or unknown), -1 if no expiry."""
        result = await self._execute("ttl", lambda c: c.ttl(key), key=key)
        if not result.ok or result.value is None:
            return -2
        return int(result.value)

    async def keys_matching(self, pattern: str) -> List[str]:
        """Glob-match physical keys with SCAN."""

        async def scan(client: redis.Redis) -> List[str]:
            return [
                self._decode_key(key)
                async for key in client.scan_iter(match=pattern, count=SCAN_BATCH_SIZE)
            ]

        result = await self._execute("scan", scan, pattern=pattern)
        if not result.ok:
            return []
        return result.value

    async def delete_many(self, keys: List[str]) -> int:
        """Best-effort bulk delete. Returns the number of keys removed."""
        deleted = 0
        for start in range(0, len(keys), DELETE_CHUNK_SIZE):
            chunk = keys[start:start + DELETE_CHUNK_SIZE]
            result = await self._execute("delete_many", lambda c, chunk=chunk: c.delete(*chunk), count=len(chunk))
            if result.ok:
                deleted += int(result.value or 0)
        return deleted

    async def ping(self) -> bool:
        """Live round-trip to the store."""
        result = await self._execute("ping", lambda c: c.ping())
        if result.ok and result.value:
            if self._state != ConnectionState.READY:
                self._set_state(ConnectionState.READY)
            return True
        return False

    async def memory_usage(self) -> str:
        """Human-readable memory usage reported by the store."""
        result = await self._execute("info", lambda c: c.info("memory"))
        if not result.ok or not isinstance(result.value, dict):
            return UNKNOWN_MEMORY_USAGE
        used = result.value.get("used_memory_human")
        return str(used) if used is not None else UNKNOWN_MEMORY_USAGE
