"""Monotonic time source and unit conversions for timing measurements."""

import time
from collections.abc import Callable

Clock = Callable[[], int]
"""A zero-argument callable returning a monotonic timestamp in integer nanoseconds."""

NANOSECONDS_IN_MILLISECOND = 1_000_000
NANOSECONDS_IN_MICROSECOND = 1_000

now_ns: Clock = time.perf_counter_ns


def ms_to_ns(ms: int | float) -> int:
    """Convert a duration in milliseconds to integer nanoseconds."""
    return int(ms * NANOSECONDS_IN_MILLISECOND)


def ns_to_ms(ns: int) -> float:
    return ns / NANOSECONDS_IN_MILLISECOND


def ns_to_us(ns: int | float) -> float:
    return ns / NANOSECONDS_IN_MICROSECOND
