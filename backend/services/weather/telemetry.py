"""Structured outcome records for every forecast lookup."""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING, Any, Optional

from utils.logger import ContextLogger, forecast_logger

if TYPE_CHECKING:
    from .forecast_service import ForecastResult


def outcome_label(result: "ForecastResult", network_call: bool) -> str:
    if result.cache_state == "fresh" and result.ok:
        return "cache_hit"
    if result.is_stale:
        return "stale_serve"
    if result.rate_limited_locally:
        return "rate_limited_local"
    if result.ok:
        return "outbound_success" if network_call or result.joined_in_flight else "cache_hit"
    return "failure"


class ForecastTelemetry:
    """Write-only: emitting never alters or aborts the request path."""

    def __init__(self, logger: Optional[ContextLogger] = None) -> None:
        self._logger = logger or forecast_logger
        self._counts: Counter[str] = Counter()

    def emit(
        self,
        result: "ForecastResult",
        latency_ms: float,
        network_call: bool,
        superseded: bool = False,
    ) -> None:
        """Log one lookup.

        ``superseded`` marks a provider result the caller discarded in favour
        of the other provider's; it is logged but counted apart from outcomes.
        """
        try:
            label = outcome_label(result, network_call)
            self._counts["superseded" if superseded else label] += 1
            record: dict[str, Any] = {
                "outcome": label,
                "key": result.key,
                "provider": result.provider,
                "cache_state": result.cache_state,
                "cache_hit": result.cache_state == "fresh" and result.ok,
                "network_call": network_call,
                "joined_in_flight": result.joined_in_flight,
                "status_code": result.status_code,
                "latency_ms": round(float(latency_ms), 1),
                "attempts": result.attempts,
                "retry_after_sec": result.retry_after_sec,
                "is_stale": result.is_stale,
                "rate_limited_locally": result.rate_limited_locally,
                "reason": result.reason,
                "cooldown_until": result.cooldown_until,
                "superseded": superseded,
            }
            if result.ok or superseded:
                self._logger.info("Forecast outcome", **record)
            else:
                self._logger.warning("Forecast outcome", **record)
        except Exception:  # noqa: BLE001 - telemetry must not break lookups
            pass

    def snapshot(self) -> dict[str, int]:
        return dict(self._counts)

    def reset(self) -> None:
        self._counts.clear()
