"""In-process forecast cache with fresh / stale / negative tiers.

A positive entry is *fresh* until ``expires_at`` and *stale* until
``stale_until``; after that it is dead and ignored. Negative entries record
a failed fetch and use the same TTL pair, but live in their own tier so a
failure never evicts a usable stale value for the same key.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional


@dataclass(frozen=True)
class CacheEntry:
    value: Optional[float]
    condition: Optional[str]
    temp_c: Optional[float]
    timezone: Optional[str]
    fetched_at: float
    expires_at: float
    stale_until: float
    is_negative: bool = False
    status_code: Optional[int] = None

    def __post_init__(self) -> None:
        if not (self.fetched_at <= self.expires_at <= self.stale_until):
            raise ValueError(
                "CacheEntry requires fetched_at <= expires_at <= stale_until "
                f"(got {self.fetched_at}, {self.expires_at}, {self.stale_until})"
            )

    @classmethod
    def success(
        cls,
        *,
        value: Optional[float],
        condition: Optional[str],
        temp_c: Optional[float],
        timezone: Optional[str],
        fetched_at: float,
        ttl_minutes: float,
        stale_hours: float,
        status_code: Optional[int] = 200,
    ) -> "CacheEntry":
        expires_at = fetched_at + ttl_minutes * 60.0
        return cls(
            value=value,
            condition=condition,
            temp_c=temp_c,
            timezone=timezone,
            fetched_at=fetched_at,
            expires_at=expires_at,
            stale_until=max(expires_at, fetched_at + stale_hours * 3600.0),
            status_code=status_code,
        )

    @classmethod
    def failure(
        cls,
        *,
        status_code: Optional[int],
        fetched_at: float,
        ttl_minutes: float,
        stale_hours: float,
    ) -> "CacheEntry":
        # TODO: negative entries reuse the fresh/stale pair; confirm with product
        # whether failures should get a shorter dedicated TTL.
        expires_at = fetched_at + ttl_minutes * 60.0
        return cls(
            value=None,
            condition=None,
            temp_c=None,
            timezone=None,
            fetched_at=fetched_at,
            expires_at=expires_at,
            stale_until=max(expires_at, fetched_at + stale_hours * 3600.0),
            is_negative=True,
            status_code=status_code,
        )


class ForecastCacheStore:
    """Key -> entry store owned by the forecast service."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._negative: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[CacheEntry]:
        """Positive entry for ``key`` while it is fresh or stale, else ``None``."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() > entry.stale_until:
            self._entries.pop(key, None)
            return None
        return entry

    def get_negative(self, key: str) -> Optional[CacheEntry]:
        entry = self._negative.get(key)
        if entry is None:
            return None
        if self._clock() > entry.stale_until:
            self._negative.pop(key, None)
            return None
        return entry

    def put(self, key: str, entry: CacheEntry) -> None:
        if entry.is_negative:
            self._negative[key] = entry
            return
        self._entries[key] = entry
        self._negative.pop(key, None)

    def is_fresh(self, entry: CacheEntry, now: Optional[float] = None) -> bool:
        now = self._clock() if now is None else now
        return now <= entry.expires_at

    def is_stale(self, entry: CacheEntry, now: Optional[float] = None) -> bool:
        now = self._clock() if now is None else now
        return entry.expires_at < now <= entry.stale_until

    def age_minutes(self, entry: CacheEntry, now: Optional[float] = None) -> float:
        now = self._clock() if now is None else now
        return max(0.0, (now - entry.fetched_at) / 60.0)

    def purge_expired(self) -> int:
        """Drop entries past ``stale_until``; returns how many were removed."""
        now = self._clock()
        removed = 0
        for tier in (self._entries, self._negative):
            dead = [key for key, entry in tier.items() if now > entry.stale_until]
            for key in dead:
                del tier[key]
            removed += len(dead)
        return removed

    def clear(self) -> None:
        self._entries.clear()
        self._negative.clear()

    def __len__(self) -> int:
        return len(self._entries) + len(self._negative)
