"""Per-provider embargo after throttling responses."""

from __future__ import annotations

import time
from typing import Callable, Dict, Optional

from utils.clock import epoch_to_iso
from utils.logger import get_logger

logger = get_logger("weather.cooldown")


class CooldownTracker:
    """Tracks, per provider, the timestamp after which outbound calls may resume.

    Resume times only move forward: a shorter embargo reported later never
    shortens one already in force.
    """

    def __init__(
        self,
        cap_seconds: float = 120.0,
        default_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._cap_seconds = max(0.0, float(cap_seconds))
        self._default_seconds = max(0.0, float(default_seconds))
        self._clock = clock
        self._resume_at: Dict[str, float] = {}

    def register_throttle(self, provider: str, retry_after_sec: Optional[float] = None) -> float:
        """Raise ``provider``'s cooldown after a 429; returns the effective resume time."""
        hint = self._default_seconds if retry_after_sec is None else max(0.0, float(retry_after_sec))
        candidate = self._clock() + min(hint, self._cap_seconds)
        current = self._resume_at.get(provider)
        resume_at = candidate if current is None else max(current, candidate)
        self._resume_at[provider] = resume_at
        logger.warning(
            "Provider throttled, cooling down",
            provider=provider,
            retry_after_sec=retry_after_sec,
            cooldown_until=epoch_to_iso(resume_at),
        )
        return resume_at

    def resume_at(self, provider: str) -> Optional[float]:
        return self._resume_at.get(provider)

    def in_cooldown(self, provider: str) -> bool:
        resume_at = self._resume_at.get(provider)
        return resume_at is not None and self._clock() < resume_at

    def remaining(self, provider: str) -> float:
        resume_at = self._resume_at.get(provider)
        if resume_at is None:
            return 0.0
        return max(0.0, resume_at - self._clock())

    def clear(self, provider: Optional[str] = None) -> None:
        if provider is None:
            self._resume_at.clear()
        else:
            self._resume_at.pop(provider, None)
