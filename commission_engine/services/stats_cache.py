from __future__ import annotations

import hashlib
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, FrozenSet, Iterable, Optional, Tuple

from commission_engine.schemas.commission import CommissionStats

CacheKey = Tuple[str, str]


def scope_hash(station_ids: Iterable[str]) -> str:
    digest = hashlib.sha256(",".join(sorted(set(station_ids))).encode("utf-8"))
    return digest.hexdigest()[:16]


@dataclass
class _Entry:
    stats: CommissionStats
    station_ids: FrozenSet[str]
    expires_at: float


class StatsCache:
    """Read-through cache for commission stats keyed by (scope hash, period).

    A TTL of zero disables caching entirely.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[CacheKey, _Entry] = {}
        self._lock = Lock()

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0

    def get_or_compute(
        self,
        station_ids: FrozenSet[str],
        period: str,
        compute: Callable[[], CommissionStats],
    ) -> CommissionStats:
        if not self.enabled:
            return compute()
        key = (scope_hash(station_ids), period)
        cached = self._get(key)
        if cached is not None:
            return cached
        stats = compute()
        with self._lock:
            self._entries[key] = _Entry(
                stats=stats.model_copy(deep=True),
                station_ids=station_ids,
                expires_at=self._clock() + self.ttl_seconds,
            )
        return stats

    def _get(self, key: CacheKey) -> Optional[CommissionStats]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expires_at <= self._clock():
                del self._entries[key]
                return None
            return entry.stats.model_copy(deep=True)

    def invalidate(self, station_ids: Iterable[str]) -> int:
        """Drop every entry whose scope contains any of ``station_ids``."""
        touched = set(station_ids)
        with self._lock:
            stale = [key for key, entry in self._entries.items() if entry.station_ids & touched]
            for key in stale:
                del self._entries[key]
        return len(stale)
