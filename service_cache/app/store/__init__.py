"""
Store package for the Cache Service.

Wraps the single Redis connection and tracks whether it is usable.
"""
