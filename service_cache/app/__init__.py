"""
Cache Service package.

This package fronts a Redis instance shared with other tenants. It provides:

- app.main: HTTP API for generic cache entries, explorer lookups and health.
- app.store: The Redis client adapter and its degraded-mode handling.
- app.cache: Namespaced JSON cache and the opening explorer cache.
- app.health: Liveness/readiness reporting from store connectivity.

Guidelines:
- The cache is best-effort; cache operations never raise to callers.
- Every key stays inside the configured prefix, including flushes.
- Objects are wired explicitly by CacheService; there are no module singletons.
"""
