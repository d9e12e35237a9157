"""A bounded-memory latency histogram with percentile queries."""

import math

_PRECISION_BITS = 7
_SUB_BUCKETS = 1 << _PRECISION_BITS
# values below this threshold are stored in exact, single-value buckets.
_LINEAR_LIMIT = 2 * _SUB_BUCKETS


def bucket_index(value: int) -> int:
    """
    Map a non-negative integer to its log-linear bucket index.

    Values below 256 map onto themselves. Larger values keep their eight most
    significant bits, so every bucket spans at most 1/128 of its lower bound.
    Bucket indices are monotonically non-decreasing in ``value``.
    """
    if value < _LINEAR_LIMIT:
        return value
    shift = value.bit_length() - _PRECISION_BITS - 1
    return shift * _SUB_BUCKETS + (value >> shift)


def bucket_bounds(index: int) -> tuple[int, int]:
    """Return the lowest and highest value (both inclusive) mapping onto bucket ``index``."""
    if index < _LINEAR_LIMIT:
        return index, index
    shift = index // _SUB_BUCKETS - 1
    mantissa = index - shift * _SUB_BUCKETS
    return mantissa << shift, ((mantissa + 1) << shift) - 1


class Histogram:
    """
    Online summary of a stream of non-negative integer durations (in nanoseconds).

    Samples are counted in sparse log-linear buckets, so memory stays bounded no matter
    how many samples are recorded. Minimum, maximum, count, sum and sum of squares are
    kept exactly, which makes ``min``, ``max``, ``mean`` and ``stddev`` free of any
    bucketing error. Percentiles are resolved to bucket precision (< 0.8% relative error).

    Reads on an empty histogram return zero instead of failing, since a task that
    never ran should still be reportable. Only ``percentile()`` refuses to answer.
    """

    def __init__(self):
        self._buckets: dict[int, int] = {}
        self._count = 0
        self._min = 0
        self._max = 0
        self._sum = 0
        self._sumsq = 0

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(count={self._count}, min={self._min}, max={self._max})"

    def record(self, value: int) -> None:
        """
        Add a single duration sample to the histogram.

        Parameters
        ----------
        value: int
            The sample, in integer nanoseconds.

        Raises
        ------
        TypeError
            If the sample is not an integer.
        ValueError
            If the sample is negative.
        """
        if not isinstance(value, int) or isinstance(value, bool):
            raise TypeError(f"expected an integer duration, got {type(value).__name__}")
        if value < 0:
            raise ValueError(f"durations must be non-negative, got {value}")

        idx = bucket_index(value)
        self._buckets[idx] = self._buckets.get(idx, 0) + 1
        if self._count == 0:
            self._min = self._max = value
        else:
            self._min = min(self._min, value)
            self._max = max(self._max, value)
        self._count += 1
        self._sum += value
        self._sumsq += value * value

    def reset(self) -> None:
        """Return the histogram to its empty state."""
        self._buckets.clear()
        self._count = 0
        self._min = 0
        self._max = 0
        self._sum = 0
        self._sumsq = 0

    @property
    def count(self) -> int:
        return self._count

    @property
    def min(self) -> int:
        return self._min

    @property
    def max(self) -> int:
        return self._max

    @property
    def total(self) -> int:
        """Exact sum of all recorded samples."""
        return self._sum

    @property
    def mean(self) -> float:
        if self._count == 0:
            return 0.0
        return self._sum / self._count

    @property
    def stddev(self) -> float:
        """Population standard deviation of the recorded samples."""
        if self._count == 0:
            return 0.0
        # n * sum(x^2) - sum(x)^2 is computed on exact integers, never negative.
        numerator = self._count * self._sumsq - self._sum * self._sum
        return math.sqrt(numerator) / self._count

    def percentile(self, p: float) -> int:
        """
        Estimate the duration at percentile ``p``.

        Uses the nearest-rank rule over the histogram buckets, returning the highest value
        equivalent to the selected bucket, clamped to the exact observed range.

        Parameters
        ----------
        p: float
            The percentile as a fraction, e.g. ``0.99`` for the 99th percentile.

        Returns
        -------
        int
            The estimated duration in nanoseconds. ``percentile(0.0)`` is always the
            minimum, ``percentile(1.0)`` always the maximum.

        Raises
        ------
        ValueError
            If ``p`` is outside of ``[0, 1]``, or if the histogram is empty.
        """
        if not 0.0 <= p <= 1.0:
            raise ValueError(f"percentile must be in [0, 1], got {p}")
        if self._count == 0:
            raise ValueError("cannot compute a percentile of an empty histogram")
        if p == 0.0:
            return self._min
        if p == 1.0:
            return self._max

        rank = max(1, math.ceil(p * self._count))
        seen = 0
        for idx in sorted(self._buckets):
            seen += self._buckets[idx]
            if seen >= rank:
                _, hi = bucket_bounds(idx)
                return min(max(hi, self._min), self._max)
        return self._max
