from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Union

from app.models import InstitutionStatistics
from app.utils.logging import logger
from app.utils.metrics import STATS_CACHE_LOOKUPS


class StatsCache:
    """
    In-memory cache of per-institution statistics keyed by institution id.

    One instance is created by the API dependencies and injected where it is
    needed; the export pipeline itself never reads it.
    """

    def __init__(self, ttl_seconds: int = 300, clock: Callable[[], datetime] = datetime.now):
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._entries: Dict[str, tuple] = {}

    def _is_fresh(self, cached_at: datetime) -> bool:
        return self._clock() - cached_at < self.ttl

    def get(self, institution_id: str) -> Optional[InstitutionStatistics]:
        """Return cached stats, or None if absent or expired (expired entries are dropped)."""
        entry = self._entries.get(institution_id)
        if entry is None:
            STATS_CACHE_LOOKUPS.labels(result="miss").inc()
            return None

        stats, cached_at = entry
        if not self._is_fresh(cached_at):
            del self._entries[institution_id]
            STATS_CACHE_LOOKUPS.labels(result="expired").inc()
            return None

        STATS_CACHE_LOOKUPS.labels(result="hit").inc()
        return stats

    def get_many(self, institution_ids: Iterable[str]) -> Dict[str, InstitutionStatistics]:
        found = {}
        for institution_id in institution_ids:
            stats = self.get(institution_id)
            if stats is not None:
                found[institution_id] = stats
        return found

    def set(self, institution_id: str, stats: Union[InstitutionStatistics, dict]):
        if not isinstance(stats, InstitutionStatistics):
            stats = InstitutionStatistics.model_validate(stats)
        self._entries[institution_id] = (stats, self._clock())

    def set_many(self, stats_by_id: Dict[str, Union[InstitutionStatistics, dict]]):
        for institution_id, stats in stats_by_id.items():
            self.set(institution_id, stats)

    def invalidate(self, institution_id: Optional[str] = None) -> int:
        """Drop one institution's entry, or everything when no id is given."""
        if institution_id is None:
            count = len(self._entries)
            self._entries.clear()
            logger.info(f"Stats cache cleared ({count} entries)")
            return count
        return 1 if self._entries.pop(institution_id, None) is not None else 0

    def clear_expired(self) -> int:
        """Remove all expired entries"""
        expired = [key for key, (_, cached_at) in self._entries.items() if not self._is_fresh(cached_at)]
        for key in expired:
            del self._entries[key]

        if expired:
            logger.info(f"Cleared {len(expired)} expired stats cache entries")
        return len(expired)

    def list_entries(self) -> List[dict]:
        now = self._clock()
        return [
            {
                "institution_id": key,
                "cached_at": cached_at.isoformat(),
                "expires_in_seconds": max((cached_at + self.ttl - now).total_seconds(), 0),
            }
            for key, (_, cached_at) in self._entries.items()
        ]

    def __len__(self) -> int:
        return len(self._entries)
