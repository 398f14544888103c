"""timedcache: a sliding-TTL read-through cache for slow data sources."""

__version__ = "1.0.0"
