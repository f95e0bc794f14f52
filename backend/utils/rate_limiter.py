import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict

from utils.logger import get_logger

logger = get_logger("rate_limiter")


@dataclass
class SlidingWindowConfig:
    """Admission limit for one trailing window"""

    limit: int
    window_seconds: float


@dataclass
class SlidingWindow:
    """Append-and-prune log of accepted call timestamps"""

    config: SlidingWindowConfig
    calls: Deque[float] = field(default_factory=deque)

    def prune(self, now: float) -> None:
        """Drop timestamps that have left the trailing window"""
        horizon = now - self.config.window_seconds
        while self.calls and self.calls[0] <= horizon:
            self.calls.popleft()

    def is_full(self) -> bool:
        return len(self.calls) >= self.config.limit

    def wait_time(self, now: float) -> float:
        """Seconds until the oldest recorded call leaves the window"""
        if not self.is_full() or not self.calls:
            return 0.0
        return max(0.0, self.calls[0] + self.config.window_seconds - now)


class SlidingWindowRateLimiter:
    """Local admission control over total outbound forecast calls.

    Two independent windows (a short one and a per-minute one) are checked
    together; a call is admitted only when both have room, and an admitted
    call is recorded in both. The limiter is shared by every cache key and
    every provider. Rejection is immediate: callers never wait here, they
    fall back to stale data or a ``rate_limited`` outcome instead.

    ``try_acquire`` contains no ``await`` so concurrent tasks on one event
    loop cannot interleave inside a check-and-record.
    """

    def __init__(
        self,
        per_short_window: int = 1,
        per_minute: int = 10,
        short_window_seconds: float = 5.0,
        clock: Callable[[], float] = time.time,
    ):
        self._clock = clock
        self._windows: Dict[str, SlidingWindow] = {
            "short": SlidingWindow(SlidingWindowConfig(max(0, int(per_short_window)), short_window_seconds)),
            "minute": SlidingWindow(SlidingWindowConfig(max(0, int(per_minute)), 60.0)),
        }

    def try_acquire(self) -> bool:
        """Admit and record one outbound call, or reject it without side effects"""
        now = self._clock()
        for window in self._windows.values():
            window.prune(now)

        for name, window in self._windows.items():
            if window.is_full():
                logger.debug(
                    "Outbound call rejected locally",
                    window=name,
                    limit=window.config.limit,
                    window_seconds=window.config.window_seconds,
                )
                return False

        for window in self._windows.values():
            window.calls.append(now)
        return True

    def retry_in(self) -> float:
        """Seconds until ``try_acquire`` could next succeed"""
        now = self._clock()
        waits = []
        for window in self._windows.values():
            window.prune(now)
            waits.append(window.wait_time(now))
        return max(waits) if waits else 0.0

    def get_status(self) -> Dict[str, dict]:
        """Get current usage for both windows"""
        now = self._clock()
        status = {}
        for name, window in self._windows.items():
            window.prune(now)
            status[name] = {
                "used": len(window.calls),
                "limit": window.config.limit,
                "window_seconds": window.config.window_seconds,
            }
        return status

    def reset(self) -> None:
        for window in self._windows.values():
            window.calls.clear()
