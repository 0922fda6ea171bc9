"""
Performance metrics collection and reporting.
Tracks row throughput and per-operation timings.
"""
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Optional
from threading import Lock


@dataclass
class TimerMetric:
    """Tracks timing for an operation."""
    start_time: Optional[float] = None
    total_time: float = 0.0
    count: int = 0

    def start(self):
        self.start_time = time.perf_counter()

    def stop(self) -> float:
        """Stop timing and record duration."""
        if self.start_time is None:
            return 0.0
        duration = time.perf_counter() - self.start_time
        self.total_time += duration
        self.count += 1
        self.start_time = None
        return duration

    def average(self) -> float:
        return self.total_time / self.count if self.count > 0 else 0.0


@dataclass
class CounterMetric:
    """Tracks counts and rates."""
    count: int = 0
    start_time: float = field(default_factory=time.perf_counter)

    def increment(self, amount: int = 1):
        self.count += amount

    def rate(self) -> float:
        """Items per second since the counter was created."""
        elapsed = time.perf_counter() - self.start_time
        return self.count / elapsed if elapsed > 0 else 0.0


class MetricsCollector:
    """
    Collects and reports performance metrics.
    Thread-safe for concurrent operations.
    """

    def __init__(self):
        self._timers: Dict[str, TimerMetric] = {}
        self._counters: Dict[str, CounterMetric] = {}
        self._lock = Lock()
        self._start_time = time.perf_counter()

    def start_timer(self, name: str):
        with self._lock:
            self._timers.setdefault(name, TimerMetric()).start()

    def stop_timer(self, name: str) -> float:
        """Stop a named timer and return duration."""
        with self._lock:
            if name in self._timers:
                return self._timers[name].stop()
        return 0.0

    @contextmanager
    def timer(self, name: str):
        """Time the enclosed block, stopping the timer on error too."""
        self.start_timer(name)
        try:
            yield
        finally:
            self.stop_timer(name)

    def record_count(self, name: str, amount: int = 1):
        with self._lock:
            self._counters.setdefault(name, CounterMetric()).increment(amount)

    def get_count(self, name: str) -> int:
        with self._lock:
            counter = self._counters.get(name)
            return counter.count if counter else 0

    def get_timer_stats(self, name: str) -> Dict[str, float]:
        with self._lock:
            timer = self._timers.get(name)
            if timer:
                return {
                    "total": timer.total_time,
                    "count": timer.count,
                    "average": timer.average(),
                }
        return {"total": 0.0, "count": 0, "average": 0.0}

    def snapshot(self) -> Dict[str, Dict]:
        """Plain-dict copy of all counters and timers."""
        with self._lock:
            return {
                "counters": {name: c.count for name, c in self._counters.items()},
                "timers": {
                    name: {"total": t.total_time, "count": t.count}
                    for name, t in self._timers.items()
                },
            }

    def elapsed_time(self) -> float:
        return time.perf_counter() - self._start_time

    def format_summary(self) -> str:
        """Format complete metrics summary."""
        with self._lock:
            lines = ["", "Performance Metrics:", "=" * 50]
            lines.append(f"Total execution time: {format_duration(self.elapsed_time())}")
            lines.append("")

            if self._counters:
                lines.append("Throughput:")
                for name, counter in sorted(self._counters.items()):
                    lines.append(f"  {name}: {counter.count:,} ({counter.rate():.1f}/s)")
                lines.append("")

            if self._timers:
                lines.append("Operation timings:")
                for name, timer in sorted(self._timers.items()):
                    if timer.count > 0:
                        lines.append(
                            f"  {name}: {timer.count} ops, "
                            f"avg {timer.average():.3f}s, total {timer.total_time:.2f}s"
                        )
                lines.append("")

            lines.append("=" * 50)
            return "\n".join(lines)


def format_duration(seconds: float) -> str:
    """Format duration in human-readable format."""
    if seconds < 60:
        return f"{seconds:.2f}s"
    elif seconds < 3600:
        return f"{seconds / 60:.1f}m"
    return f"{seconds / 3600:.1f}h"


def format_bytes(size: int) -> str:
    """Format a byte count as B/KB/MB/GB."""
    value = float(size)
    for unit in ("B", "KB", "MB"):
        if value < 1024:
            return f"{value:.0f}{unit}" if unit == "B" else f"{value:.1f}{unit}"
        value /= 1024
    return f"{value:.1f}GB"
