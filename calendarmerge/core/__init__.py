"""Core infrastructure: TTL cache, calendar registry, configuration and HTTP client."""
