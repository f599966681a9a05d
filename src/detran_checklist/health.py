"""Backend health monitoring utilities."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Dict, List


@dataclass
class RequestRecord:
    """Represents a single backend request."""

    duration_ms: float
    success: bool
    timestamp: float
    backend: str
    operation: str
    cache_hit: bool = False
    error_message: str | None = None


class BackendHealthMonitor:
    """Collects lightweight health metrics for catalog backend calls."""

    def __init__(self, max_records: int = 1000) -> None:
        self._max_records = max_records
        self._records: List[RequestRecord] = []
        self._cache_hits = 0
        self._cache_misses = 0

    def record_request(
        self,
        *,
        backend: str,
        operation: str,
        duration_ms: float,
        success: bool,
        cache_hit: bool = False,
        error_message: str | None = None,
    ) -> None:
        record = RequestRecord(
            backend=backend,
            operation=operation,
            duration_ms=duration_ms,
            success=success,
            cache_hit=cache_hit,
            error_message=error_message,
            timestamp=time.time(),
        )
        self._records.append(record)
        if cache_hit:
            self._cache_hits += 1
        else:
            self._cache_misses += 1

        if len(self._records) > self._max_records:
            excess = len(self._records) - self._max_records
            dropped = self._records[:excess]
            self._records = self._records[excess:]
            for item in dropped:
                if item.cache_hit:
                    self._cache_hits -= 1
                else:
                    self._cache_misses -= 1

    def cache_hit_ratio(self) -> float:
        total = self._cache_hits + self._cache_misses
        if total == 0:
            return 0.0
        return self._cache_hits / total

    def summary(self) -> Dict[str, object]:
        if not self._records:
            return {
                "recent_requests": 0,
                "avg_duration_ms": 0.0,
                "success_rate": 1.0,
                "cache_hit_ratio": self.cache_hit_ratio(),
            }

        durations = [record.duration_ms for record in self._records]
        successes = sum(1 for record in self._records if record.success)
        errors = [record.error_message for record in self._records if record.error_message]
        by_operation: Dict[str, int] = {}
        by_backend: Dict[str, int] = {}
        failures: Dict[str, int] = {}
        for record in self._records:
            by_operation[record.operation] = by_operation.get(record.operation, 0) + 1
            by_backend[record.backend] = by_backend.get(record.backend, 0) + 1
            if not record.success:
                failures[record.operation] = failures.get(record.operation, 0) + 1
        last_failure = next(
            (record for record in reversed(self._records) if not record.success), None
        )

        return {
            "recent_requests": len(self._records),
            "avg_duration_ms": sum(durations) / len(durations),
            "success_rate": successes / len(self._records),
            "cache_hit_ratio": self.cache_hit_ratio(),
            "recent_errors": errors[-5:],
            "requests_by_operation": by_operation,
            "requests_by_backend": by_backend,
            "failures_by_operation": failures,
            "last_failure_at": last_failure.timestamp if last_failure else None,
        }
