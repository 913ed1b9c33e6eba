"""Performance and resource accounting utilities."""

import time
import threading
import numpy as np
from collections import deque
from typing import Deque, Dict, Any, Optional, List
from contextlib import contextmanager
from dataclasses import dataclass, field
import logging

logger = logging.getLogger(__name__)

# Samples kept per operation for the median; totals cover every call.
MAX_TIMING_SAMPLES = 1000


@dataclass
class MemoryUsage:
    """Memory held by one component, as reported by ``memory_usage()``."""
    name: str
    nbytes: int
    blocks: int = 1

    @property
    def megabytes(self) -> float:
        """Size in MB."""
        return self.nbytes / 1024 / 1024

    def __str__(self) -> str:
        return f"{self.name}: {self.megabytes:.3f} MB in {self.blocks} block(s)"


def total_memory(usages: List[MemoryUsage]) -> int:
    """Sum of bytes over a memory report."""
    return sum(usage.nbytes for usage in usages)


@dataclass
class TimingResult:
    """Container for timing results with a bounded window of recent samples."""
    name: str
    total_time: float
    call_count: int
    average_time: float = field(init=False)
    min_time: float = field(default=float('inf'))
    max_time: float = field(default=0.0)
    times: Deque[float] = field(default_factory=lambda: deque(maxlen=MAX_TIMING_SAMPLES))

    def __post_init__(self):
        """Calculate average time."""
        self.average_time = self.total_time / max(1, self.call_count)

    def add_time(self, elapsed_time: float) -> None:
        """Add a new timing measurement."""
        self.total_time += elapsed_time
        self.call_count += 1
        self.min_time = min(self.min_time, elapsed_time)
        self.max_time = max(self.max_time, elapsed_time)
        self.times.append(elapsed_time)
        self.average_time = self.total_time / self.call_count

    def get_statistics(self) -> Dict[str, float]:
        """Get timing statistics."""
        if not self.times:
            return {'count': 0}

        times_array = np.array(self.times)
        return {
            'count': self.call_count,
            'total': self.total_time,
            'average': self.average_time,
            'min': self.min_time,
            'max': self.max_time,
            'median': float(np.median(times_array)),
        }


class Timer:
    """Simple timer for measuring elapsed time."""

    def __init__(self, name: str = "Timer"):
        """Initialize timer."""
        self.name = name
        self.start_time = None
        self.end_time = None
        self.elapsed_time = None

    def start(self) -> 'Timer':
        """Start the timer."""
        self.start_time = time.perf_counter()
        self.end_time = None
        self.elapsed_time = None
        return self

    def stop(self) -> float:
        """Stop the timer and return elapsed time."""
        if self.start_time is None:
            raise RuntimeError("Timer not started")

        self.end_time = time.perf_counter()
        self.elapsed_time = self.end_time - self.start_time
        return self.elapsed_time

    def __enter__(self) -> 'Timer':
        """Enter context manager."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager."""
        self.stop()
        logger.debug(f"{self.name}: {self.elapsed_time:.6f}s")


class PerformanceProfiler:
    """
    Profiler accumulating named operation timings.

    Recording is guarded by a lock so a single profiler can be shared by
    concurrent preconditioner applications.
    """

    def __init__(self):
        """Initialize performance profiler."""
        self.timings: Dict[str, TimingResult] = {}
        self._lock = threading.Lock()

    def record(self, operation_name: str, elapsed_time: float) -> None:
        """Record one measurement for an operation."""
        with self._lock:
            if operation_name not in self.timings:
                self.timings[operation_name] = TimingResult(
                    name=operation_name,
                    total_time=0.0,
                    call_count=0
                )

            self.timings[operation_name].add_time(elapsed_time)

    @contextmanager
    def time_operation(self, operation_name: str):
        """Context manager for timing operations."""
        timer = Timer(operation_name).start()
        try:
            yield timer
        finally:
            self.record(operation_name, timer.stop())

    def get_timing_summary(self) -> Dict[str, Dict[str, float]]:
        """Get summary statistics of all recorded operations."""
        with self._lock:
            return {name: result.get_statistics() for name, result in self.timings.items()}

    def call_count(self, operation_name: str) -> int:
        """Number of recorded calls of an operation."""
        with self._lock:
            result = self.timings.get(operation_name)
            return result.call_count if result else 0

    def log_summary(self, top_n: int = 10) -> None:
        """Log the slowest operations by total time."""
        summary = self.get_timing_summary()
        if not summary:
            logger.info("No timing data recorded")
            return

        ranked = sorted(summary.items(), key=lambda item: item[1].get('total', 0.0), reverse=True)
        logger.info("Performance summary:")
        for name, stats in ranked[:top_n]:
            logger.info(f"  {name}: {stats['count']} calls, total {stats['total']:.4f}s, "
                        f"avg {stats['average']:.6f}s")

    def reset(self) -> None:
        """Reset all profiling data."""
        with self._lock:
            self.timings.clear()

    def export_data(self) -> Dict[str, Any]:
        """Export profiling data as a dictionary."""
        return {'timings': self.get_timing_summary()}
