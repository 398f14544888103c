"""Caching Service Implementation.

Provides the concrete ``TimedCache`` implementing the ReadThroughCache
interface: an in-memory table with sliding TTL guarded by an upgradeable
reader/writer lock.
"""
