"""Contains machinery to compare the results of multiple tasks side by side."""

import math
from collections.abc import Iterable
from typing import Any

from microbench.types import NOT_APPLICABLE, ComparisonRow, TaskResult

P99_KEY = "99th (µs)"
STDDEV_KEY = "+/- (µs)"
OPS_KEY = "Op/s"


def throughput_ratio(ops: float, other_ops: float) -> float:
    """
    Compute the throughput ratio ``ops / other_ops``.

    A ratio above 1 means the first task is faster. If the other throughput is zero or
    ``nan`` (i.e. the task accumulated no time), the ratio is ``nan``.
    """
    if math.isnan(other_ops) or other_ops == 0:
        return math.nan
    return ops / other_ops


def comparison_table(results: Iterable[TaskResult]) -> dict[str, ComparisonRow]:
    """
    Build the pairwise throughput comparison matrix of a set of task results.

    Parameters
    ----------
    results: Iterable[TaskResult]
        The task results to compare. The rows of the resulting table keep this order.

    Returns
    -------
    dict[str, ComparisonRow]
        A mapping from task label to its comparison row. Each row holds the throughput
        ratio against every task, and the ``NOT_APPLICABLE`` marker for itself.
    """
    results = list(results)
    table: dict[str, ComparisonRow] = {}
    for result in results:
        ratios: dict[str, float | str] = {}
        for other in results:
            if other.label == result.label:
                ratios[other.label] = NOT_APPLICABLE
            else:
                ratios[other.label] = throughput_ratio(
                    result.performance.ops, other.performance.ops
                )
        table[result.label] = ComparisonRow(
            label=result.label, performance=result.performance, ratios=ratios
        )
    return table


def format_value(val: Any, precision: int = 2) -> str:
    if isinstance(val, str):
        return val
    return f"{val:.{precision}f}"


def format_table(table: dict[str, ComparisonRow]) -> dict[str, dict[str, str]]:
    """
    Render a comparison table into display strings, one dictionary per row.

    Each row contains the 99th percentile latency and standard deviation in microseconds
    with three decimals, the throughput with two decimals, and one column per task with
    the throughput ratio (or the self-comparison marker).
    """
    formatted: dict[str, dict[str, str]] = {}
    for label, row in table.items():
        cells = {
            P99_KEY: format_value(row.p99, 3),
            STDDEV_KEY: format_value(row.stddev, 3),
            OPS_KEY: format_value(row.ops, 2),
        }
        for other, ratio in row.ratios.items():
            cells[other] = format_value(ratio, 2)
        formatted[label] = cells
    return formatted
