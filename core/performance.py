import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from core.logger import get_logger
from core.utils import get_now

logger = get_logger(__name__)


@dataclass
class Sample:
    duration: float
    success: bool
    context: Dict = field(default_factory=dict)
    at: datetime = field(default_factory=get_now)


class PerformanceMonitor:
    """Keeps per-operation timings of collection runs and summarises them."""

    def __init__(self):
        self.samples: Dict[str, List[Sample]] = defaultdict(list)

    @contextmanager
    def measure(self, operation_name: str, context: Optional[Dict] = None):
        """
        Time the enclosed block.

            with monitor.measure("collect", {"platform": "evg"}):
                await collector._collect(...)

        Cancellation counts as a failure and is re-raised.
        """
        context = context or {}
        started = time.monotonic()
        try:
            yield
        except BaseException as e:
            elapsed = time.monotonic() - started
            self.samples[operation_name].append(Sample(elapsed, False, context))
            logger.error(f"[PERF] {operation_name} failed: {type(e).__name__}", duration=elapsed, context=context)
            raise
        elapsed = time.monotonic() - started
        self.samples[operation_name].append(Sample(elapsed, True, context))
        logger.info(f"[PERF] {operation_name} completed", duration_ms=elapsed * 1000, context=context)

    def get_stats(self, operation_name: str) -> Dict:
        samples = self.samples.get(operation_name) or []
        if not samples:
            return {}

        durations = [s.duration for s in samples]
        successes = sum(1 for s in samples if s.success)
        return {
            "operation": operation_name,
            "count": len(samples),
            "success_count": successes,
            "failure_count": len(samples) - successes,
            "success_rate": successes / len(samples) * 100,
            "avg_duration_ms": sum(durations) * 1000 / len(durations),
            "max_duration_ms": max(durations) * 1000,
        }

    def log_summary(self):
        if not self.samples:
            logger.info("[PERF] Nothing measured yet")
            return

        for name in self.samples:
            stats = self.get_stats(name)
            logger.info(
                f"[PERF] {name}: {stats['count']} runs, "
                f"{stats['success_rate']:.1f}% success, "
                f"avg {stats['avg_duration_ms']:.0f}ms (max {stats['max_duration_ms']:.0f}ms)"
            )


_monitor: Optional[PerformanceMonitor] = None


def get_performance_monitor() -> PerformanceMonitor:
    global _monitor
    if _monitor is None:
        _monitor = PerformanceMonitor()
    return _monitor
