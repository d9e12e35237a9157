"""Types for benchmark tasks and the results of a run."""

import math
import os
import sys
from dataclasses import asdict, dataclass
from typing import Any, Protocol

if sys.version_info >= (3, 11):
    from typing import Self
else:
    from typing_extensions import Self

NOT_APPLICABLE = "-"
"""Marker occupying the self-comparison cell of a comparison row."""


@dataclass(frozen=True)
class LatencySummary:
    """Per-iteration latency statistics of a task, all given in microseconds."""

    max: float
    min: float
    mean: float
    stddev: float
    p99: float


@dataclass(frozen=True)
class PerfResult:
    """
    Throughput and latency figures of a single task, projected from its timing state.

    If a task accumulated no workload time (e.g. because it never ran), ``ops`` is ``nan``.
    """

    iterations: int
    """Number of measured workload invocations."""
    total_time: float
    """Total elapsed workload time in milliseconds, excluding setup time."""
    ops: float
    """Throughput in operations per second."""
    setup_time: float
    """Total elapsed setup time in milliseconds."""
    latency: LatencySummary

    @classmethod
    def from_json(cls, struct: dict[str, Any]) -> Self:
        latency = LatencySummary(**struct["latency"])
        return cls(
            iterations=struct["iterations"],
            total_time=struct["total_time"],
            ops=struct["ops"],
            setup_time=struct.get("setup_time", 0.0),
            latency=latency,
        )


@dataclass(frozen=True)
class TaskResult:
    """The final performance figures of a task, keyed by the task's label."""

    label: str
    performance: PerfResult
    index: int = 0
    """Position of the task in registration order, used to break throughput ties."""


@dataclass(frozen=True)
class TaskSnapshot:
    """The running state of a task in the middle of a measurement window."""

    label: str
    iterations: int
    elapsed_ns: int
    """Accumulated workload time in nanoseconds."""
    setup_ns: int
    """Accumulated setup time in nanoseconds."""
    result: PerfResult


@dataclass(frozen=True)
class ComparisonRow:
    """
    A row of the comparison matrix for a single task.

    ``ratios`` maps every task label of the run to the throughput ratio
    ``self.ops / other.ops``. A ratio above 1 means this task is faster. The cell of the
    task itself holds the ``NOT_APPLICABLE`` marker.
    """

    label: str
    performance: PerfResult
    ratios: dict[str, float | str]

    @property
    def ops(self) -> float:
        return self.performance.ops

    @property
    def p99(self) -> float:
        return self.performance.latency.p99

    @property
    def stddev(self) -> float:
        return self.performance.latency.stddev


def _throughput_key(res: TaskResult) -> tuple[bool, float, int]:
    ops = res.performance.ops
    # nan throughput (tasks without elapsed time) sorts last.
    return math.isnan(ops), -ops if not math.isnan(ops) else 0.0, res.index


@dataclass(frozen=True)
class ResultSet:
    """
    A snapshot of the results of a benchmark run, i.e. the return value of ``Benchmark.result()``.

    Results are kept in the order in which the tasks finished.
    """

    run: str
    """A name describing the run."""
    context: dict[str, Any]
    """A map of key-value pairs describing context information around the benchmark run."""
    results: tuple[TaskResult, ...] = ()
    """The results of all tasks that finished their measurement window."""
    timestamp: int = 0
    """A Unix timestamp indicating when the run was started."""
    complete: bool = True
    """Whether every registered task finished. False if a workload raised during the run."""

    def __len__(self) -> int:
        return len(self.results)

    def labels(self) -> list[str]:
        return [r.label for r in self.results]

    def ranked(self) -> list[TaskResult]:
        """Task results by descending throughput. Ties are ordered by registration."""
        return sorted(self.results, key=_throughput_key)

    def table(self) -> dict[str, ComparisonRow]:
        """
        Compute the pairwise comparison matrix of this result set.

        The matrix is recomputed on every call. Rows are ordered by descending throughput.
        """
        from microbench.compare import comparison_table

        return comparison_table(self.ranked())

    def to_json(self) -> dict[str, Any]:
        """
        Export a result set to JSON.

        Returns
        -------
        dict[str, Any]
            A JSON representation of the result set.
        """
        d = asdict(self)
        d["results"] = list(d["results"])
        return d

    def to_records(self) -> list[dict[str, Any]]:
        """
        Export a result set to a list of individual task results,
        each with the run name, context, timestamp, and completion flag inlined.
        """
        data = {
            "run": self.run,
            "context": self.context,
            "timestamp": self.timestamp,
            "complete": self.complete,
        }
        return [{**data, **asdict(r)} for r in self.results]

    @classmethod
    def from_json(cls, struct: dict[str, Any]) -> Self:
        """
        Load a result set from its JSON representation.

        Parameters
        ----------
        struct: dict[str, Any]
            The JSON object containing the result data.

        Returns
        -------
        Self
            A ResultSet instance containing the run information.
        """
        results = tuple(
            TaskResult(
                label=r["label"],
                performance=PerfResult.from_json(r["performance"]),
                index=r.get("index", i),
            )
            for i, r in enumerate(struct.get("results", []))
        )
        return cls(
            run=struct.get("run", ""),
            context=struct.get("context", {}),
            results=results,
            timestamp=struct.get("timestamp", 0),
            complete=struct.get("complete", True),
        )

    @classmethod
    def from_records(cls, records: list[dict[str, Any]]) -> list[Self]:
        """
        Regroup a list of flat task records (as written by ``to_records()``) into result sets,
        one per distinct run name.
        """
        runs: dict[str, dict[str, Any]] = {}
        for r in records:
            run = r.get("run", "")
            if run not in runs:
                runs[run] = {
                    "run": run,
                    "context": r.get("context", {}),
                    "timestamp": r.get("timestamp", 0),
                    "complete": r.get("complete", True),
                    "results": [],
                }
            result = {"label": r["label"], "performance": r["performance"]}
            if "index" in r:
                result["index"] = r["index"]
            runs[run]["results"].append(result)
        return [cls.from_json(struct) for struct in runs.values()]


class BenchmarkReporter(Protocol):
    def read(self, fp: str | os.PathLike[str], **kwargs: Any) -> list[ResultSet]: ...

    def write(self, result: ResultSet, fp: str | os.PathLike[str], **kwargs: Any) -> None: ...
