"""Single-flight coordination for outbound forecast fetches."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Dict, Generic, Tuple, TypeVar

T = TypeVar("T")


class InFlightRegistry(Generic[T]):
    """Shares one pending fetch between all concurrent callers of a key.

    The first caller for a key starts the fetch as a task and becomes its
    owner; callers arriving while it runs join the same task. Everyone awaits
    through ``asyncio.shield``, so a caller that gives up does not cancel the
    fetch other waiters still depend on. The owner task drops the registry
    entry before its result is published, so a caller arriving after
    completion starts a new fetch instead of reading a finished one.
    """

    def __init__(self) -> None:
        self._pending: Dict[str, asyncio.Task] = {}

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> Tuple[T, bool]:
        """Return ``(result, joined)``; ``joined`` is True for non-owner callers."""
        task = self._pending.get(key)
        if task is not None:
            return await asyncio.shield(task), True

        task = asyncio.ensure_future(self._run_owner(key, factory))
        self._pending[key] = task
        return await asyncio.shield(task), False

    async def _run_owner(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        try:
            return await factory()
        finally:
            self._pending.pop(key, None)

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    def __len__(self) -> int:
        return len(self._pending)
