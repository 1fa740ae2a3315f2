"""
Cache package for the Cache Service.

Provides the namespaced JSON cache over the Redis store adapter and the
opening explorer cache derived from board positions.
"""
