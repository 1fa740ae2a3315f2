"""
Integration tests for the cache service request flow.

The service runs in-process behind httpx's ASGI transport, backed by the
in-memory Redis double, so store outages can be switched on and off.
"""

import asyncio

import httpx
import pytest

from service_cache.app.main import CacheService
from service_cache.app.store.redis_client import ConnectionState
from shared.retry import RetryConfig
from shared.test_helpers import STARTING_FEN, ExplorerDataFactory, InMemoryRedis, make_test_config


def patient_retry_config() -> RetryConfig:
    """Enough short attempts to outlast a brief outage."""
    return RetryConfig(
        max_attempts=200,
        base_delay=0.005,
        max_delay=0.005,
        jitter=False,
        backoff_strategy="linear",
    )


async def wait_for_state(service: CacheService, state: ConnectionState, timeout: float = 2.0) -> None:
    async def poll():
        while service.store.state != state:
            await asyncio.sleep(0.005)

    await asyncio.wait_for(poll(), timeout=timeout)


class TestCacheFlow:
    """Integration tests for cache service flows."""

    @pytest.fixture
    def fake_redis(self):
        return InMemoryRedis()

    @pytest.fixture
    def service(self, fake_redis):
        return CacheService(make_test_config(), redis_client=fake_redis, retry_config=patient_retry_config())

    @pytest.mark.asyncio
    async def test_degraded_startup_then_recovery(self, service, fake_redis):
        """The service serves misses while Redis is down and recovers on its own."""
        fake_redis.unavailable = True
        await service.start()

        transport = httpx.ASGITransport(app=service.app)
        try:
            async with httpx.AsyncClient(transport=transport, base_url="http://cache") as client:
                health = await client.get("/health")
                assert health.status_code == 200
                assert health.json()["status"] == "degraded"

                response = await client.post("/cache", json={"key": "a", "value": {"x": 1}})
                assert response.json()["success"] is False

                response = await client.get("/cache/a")
                assert response.json()["hit"] is False

                # Redis comes back
                fake_redis.unavailable = False
                await wait_for_state(service, ConnectionState.READY)

                health = await client.get("/health")
                assert health.json()["status"] == "ok"

                response = await client.post("/cache", json={"key": "a", "value": {"x": 1}})
                assert response.json()["success"] is True

                response = await client.get("/cache/a")
                assert response.json()["data"] == {"x": 1}
        finally:
            await service.stop()

        assert fake_redis.closed is True

    @pytest.mark.asyncio
    async def test_outage_during_operation(self, service, fake_redis):
        """A mid-flight outage degrades the service and reconnect restores it."""
        await service.start()
        assert service.store.state == ConnectionState.READY

        transport = httpx.ASGITransport(app=service.app)
        try:
            async with httpx.AsyncClient(transport=transport, base_url="http://cache") as client:
                payload = ExplorerDataFactory.create_explorer_response()
                response = await client.post(
                    "/lichess/explorer",
                    json={"fen": STARTING_FEN, "database": "lichess", "data": payload},
                )
                assert response.json() == {"success": True}

                fake_redis.unavailable = True
                response = await client.get("/lichess/explorer", params={"fen": STARTING_FEN, "database": "lichess"})
                assert response.status_code == 200
                assert response.json() == {"hit": False, "data": None}
                assert service.store.state == ConnectionState.DEGRADED

                ready = await client.get("/health/ready")
                assert ready.status_code == 200
                assert ready.json()["status"] == "degraded"

                fake_redis.unavailable = False
                await wait_for_state(service, ConnectionState.READY)

                response = await client.get("/lichess/explorer", params={"fen": STARTING_FEN, "database": "lichess"})
                assert response.json()["hit"] is True
                assert response.json()["data"] == payload

                stats = await client.get("/lichess/stats")
                assert stats.json()["lichess_count"] == 1
        finally:
            await service.stop()

    @pytest.mark.asyncio
    async def test_shared_namespace_between_instances(self, fake_redis):
        """Two service instances with different prefixes never see each other's keys."""
        first = CacheService(make_test_config(redis_key_prefix="one:"), redis_client=fake_redis)
        second = CacheService(make_test_config(redis_key_prefix="two:"), redis_client=fake_redis)
        await first.start()
        await second.start()

        try:
            await first.cache.set("shared", {"owner": "one"})
            await second.cache.set("shared", {"owner": "two"})

            assert await first.cache.flush() == 1
            assert await first.cache.get("shared") is None
            assert await second.cache.get("shared") == {"owner": "two"}
        finally:
            await first.store.close()
            await second.store.close()
