"""Timing and execution metrics for hook operations.

MetricsRecorder keeps running statistics per operation name
(<contentCategory>.<hookKind>) for the lifetime of the recorder. It is
meant to be constructed once per process and passed to every HookExecutor
that should share counters.
"""

import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


class Timer:
    """Wall-clock timer for one named operation."""

    def __init__(self, name: str):
        self.name = name
        self._start: float | None = None
        self._end: float | None = None

    def start(self) -> "Timer":
        self._start = time.perf_counter()
        self._end = None
        return self

    def stop(self) -> float:
        """Stop the timer and return the elapsed time in milliseconds."""
        self._end = time.perf_counter()
        return self.elapsed_ms

    @property
    def elapsed_ms(self) -> float:
        if self._start is None:
            return 0.0
        end = self._end if self._end is not None else time.perf_counter()
        return max(0.0, (end - self._start) * 1000.0)


@dataclass(frozen=True)
class OperationMetrics:
    """Snapshot of the statistics for one operation name."""

    execution_count: int = 0
    average_execution_time_ms: float = 0.0
    total_errors: int = 0
    error_rate: float = 0.0
    last_execution: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "executionCount": self.execution_count,
            "averageExecutionTimeMs": self.average_execution_time_ms,
            "totalErrors": self.total_errors,
            "errorRate": self.error_rate,
            "lastExecution": self.last_execution.isoformat() if self.last_execution else None,
        }


@dataclass(frozen=True)
class SlowOperation:
    name: str
    average_execution_time_ms: float


class MetricsRecorder:
    """Aggregates execution statistics per operation name.

    Updates happen under a lock, so concurrent invocations for the same
    operation name never lose an update to the running average.
    """

    def __init__(self) -> None:
        self._metrics: dict[str, OperationMetrics] = {}
        self._lock = threading.Lock()

    def start_timer(self, name: str) -> Timer:
        return Timer(name).start()

    def record_execution(self, name: str, duration_ms: float, success: bool) -> OperationMetrics:
        """Fold one execution into the statistics for `name`."""
        with self._lock:
            current = self._metrics.get(name, OperationMetrics())
            count = current.execution_count + 1
            average = (current.average_execution_time_ms * current.execution_count + duration_ms) / count
            errors = current.total_errors + (0 if success else 1)
            updated = OperationMetrics(
                execution_count=count,
                average_execution_time_ms=average,
                total_errors=errors,
                error_rate=errors / count,
                last_execution=datetime.now(timezone.utc),
            )
            self._metrics[name] = updated
            return updated

    def get_metrics(self, name: str) -> OperationMetrics:
        """Get the statistics for an operation (zeroed if never executed)."""
        with self._lock:
            return self._metrics.get(name, OperationMetrics())

    def get_all_metrics(self) -> dict[str, OperationMetrics]:
        with self._lock:
            return dict(sorted(self._metrics.items()))

    def get_slow_operations(self, threshold_ms: float) -> list[SlowOperation]:
        """Operations whose average time exceeds the threshold, slowest first."""
        with self._lock:
            slow = [
                SlowOperation(name=name, average_execution_time_ms=m.average_execution_time_ms)
                for name, m in self._metrics.items()
                if m.average_execution_time_ms > threshold_ms
            ]
        return sorted(slow, key=lambda s: s.average_execution_time_ms, reverse=True)
