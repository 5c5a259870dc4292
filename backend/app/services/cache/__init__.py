from typing import Optional
from app.config import settings

from .stats_cache import StatsCache


def create_stats_cache(ttl_seconds: Optional[int] = None) -> StatsCache:
    """Factory: statistics cache with the configured TTL unless one is given."""
    return StatsCache(ttl_seconds=ttl_seconds if ttl_seconds is not None else settings.stats_cache_ttl_seconds)

__all__ = ["create_stats_cache", "StatsCache"]
