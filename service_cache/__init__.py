"""Cache service for the Redis caching microservice."""
