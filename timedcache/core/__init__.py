"""Core application layer: the cached repository facade and command orchestration."""
