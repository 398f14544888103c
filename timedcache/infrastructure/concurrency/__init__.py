"""Locking primitives used by the cache."""
