"""Error hierarchy for the cache and its collaborators."""

from typing import Optional


class CacheError(Exception):
    """Base class for every error raised by timedcache."""


class SourceFetchError(CacheError):
    """A Source could not produce a value for a key.

    Raised by the shipped sources; the cache propagates it (and any other
    exception a Source raises) to the caller unchanged.
    """

    def __init__(self, kind: str, key: str, reason: Optional[str] = None):
        self.kind = kind
        self.key = key
        self.reason = reason
        message = f"Failed to fetch {kind} '{key}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class LockRecursionError(CacheError, RuntimeError):
    """A thread requested a lock mode it may not escalate to from its current one."""


class ConfigurationError(CacheError, ValueError):
    """A configuration value is out of range."""
