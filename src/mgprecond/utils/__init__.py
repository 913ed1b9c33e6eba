"""Utility functions for multilevel preconditioners."""

from .logging_utils import setup_logging, debug_logging, LoggingContext
from .performance import MemoryUsage, PerformanceProfiler, Timer, total_memory

__all__ = [
    "setup_logging",
    "debug_logging",
    "LoggingContext",
    "MemoryUsage",
    "PerformanceProfiler",
    "Timer",
    "total_memory",
]
