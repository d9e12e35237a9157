import math
import random

import pytest

from microbench.histogram import Histogram, bucket_bounds, bucket_index

SEQUENCES = [
    [0],
    [7, 7, 7],
    [1, 2, 3, 4, 5],
    [1_000_000, 3, 250, 99_999, 17],
    [random.Random(0).randrange(0, 10**9) for _ in range(1000)],
]


@pytest.mark.parametrize("values", SEQUENCES)
def test_count_and_median_bounds(values: list[int]) -> None:
    h = Histogram()
    for i, v in enumerate(values, start=1):
        h.record(v)
        assert h.count == i

    assert h.min == min(values)
    assert h.max == max(values)
    assert h.min <= h.percentile(0.5) <= h.max


@pytest.mark.parametrize("values", SEQUENCES)
def test_percentile_boundaries(values: list[int]) -> None:
    h = Histogram()
    for v in values:
        h.record(v)

    assert h.percentile(0.0) == h.min
    assert h.percentile(1.0) == h.max


def test_percentiles_are_monotonic() -> None:
    rng = random.Random(42)
    h = Histogram()
    for _ in range(5000):
        h.record(int(rng.expovariate(1 / 50_000)))

    ps = [i / 100 for i in range(101)]
    values = [h.percentile(p) for p in ps]
    assert values == sorted(values)


def test_exact_percentiles_for_small_values() -> None:
    h = Histogram()
    for v in range(1, 101):
        h.record(v)

    assert h.percentile(0.5) == 50
    assert h.percentile(0.99) == 99


def test_percentile_relative_error() -> None:
    h = Histogram()
    for v in range(1, 100_001):
        h.record(v * 1000)

    for p in (0.25, 0.5, 0.9, 0.99):
        expected = p * 100_000 * 1000
        assert h.percentile(p) == pytest.approx(expected, rel=0.01)


def test_mean_and_stddev_are_exact() -> None:
    h = Histogram()
    for v in (1, 2, 3, 4):
        h.record(v)

    assert h.mean == 2.5
    assert h.stddev == pytest.approx(math.sqrt(1.25))
    assert h.total == 10


def test_empty_histogram_reads() -> None:
    h = Histogram()
    assert h.count == 0
    assert h.min == 0
    assert h.max == 0
    assert h.mean == 0.0
    assert h.stddev == 0.0
    with pytest.raises(ValueError, match="empty histogram"):
        h.percentile(0.5)


def test_reset() -> None:
    h = Histogram()
    for v in (10, 20, 30_000):
        h.record(v)
    h.reset()

    for _ in range(3):
        assert h.count == 0
        assert h.max == 0
        assert h.mean == 0.0

    h.record(5)
    assert h.min == h.max == 5


@pytest.mark.parametrize("p", [-0.1, 1.01, float("nan")])
def test_invalid_percentile(p: float) -> None:
    h = Histogram()
    h.record(1)
    with pytest.raises(ValueError, match="percentile must be in"):
        h.percentile(p)


def test_invalid_samples() -> None:
    h = Histogram()
    with pytest.raises(ValueError, match="non-negative"):
        h.record(-1)
    with pytest.raises(TypeError):
        h.record(1.5)  # type: ignore[arg-type]
    assert h.count == 0


def test_bucket_bounds_contain_values() -> None:
    values = list(range(0, 2048)) + [2**k + d for k in range(11, 63) for d in (-1, 0, 1)]
    prev = -1
    for v in values:
        idx = bucket_index(v)
        lo, hi = bucket_bounds(idx)
        assert lo <= v <= hi
        assert idx >= prev
        if v >= 256:
            assert hi - lo + 1 <= lo / 128
        prev = idx
