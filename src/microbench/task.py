"""A single labeled workload together with its accumulated timing state."""

import inspect
import math
from collections.abc import Callable
from typing import Any

from microbench.clock import Clock, ms_to_ns, now_ns, ns_to_ms, ns_to_us
from microbench.histogram import Histogram
from microbench.types import LatencySummary, PerfResult, TaskSnapshot

Workload = Callable[..., Any]
Setup = Callable[[], Any]


def _check_duration(ms: int | float) -> None:
    if ms < 0:
        raise ValueError(f"target duration must be non-negative, got {ms} ms")


class Task:
    """
    A labeled workload under measurement.

    Each iteration first calls the optional ``setup`` callable under its own timer, then
    calls the workload with the setup's return value (or without arguments, if no setup
    was given) under a separate timer. Only the workload time is recorded into the
    task's histogram and counts towards its measurement window.

    Parameters
    ----------
    label: str
        A display name identifying the task in results and comparisons.
    fn: Callable[..., Any]
        The workload to measure.
    setup: Callable[[], Any] | None
        A callable invoked before every iteration. Its return value is passed to ``fn``.
    tags: tuple[str, ...]
        Additional tags to attach for selective filtering during collection.
    clock: Clock
        The time source, returning monotonic integer nanoseconds.
    """

    def __init__(
        self,
        label: str,
        fn: Workload,
        setup: Setup | None = None,
        tags: tuple[str, ...] = (),
        clock: Clock = now_ns,
    ):
        if not callable(fn):
            raise TypeError(f"workload of task {label!r} must be callable, got {type(fn)}")
        if setup is not None and not callable(setup):
            raise TypeError(f"setup of task {label!r} must be callable, got {type(setup)}")
        self.label = label
        self.fn = fn
        self.setup = setup
        self.tags = tuple(tags)
        self.clock = clock
        self.histogram = Histogram()
        self.elapsed_ns = 0
        self.setup_ns = 0

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(label={self.label!r}, iterations={self.iterations})"

    @property
    def iterations(self) -> int:
        return self.histogram.count

    def _record(self, delta: int) -> int:
        self.histogram.record(delta)
        self.elapsed_ns += delta
        return self.elapsed_ns

    def measure_once(self) -> int:
        """
        Run and time exactly one iteration of a synchronous workload.

        Returns
        -------
        int
            The accumulated workload time in nanoseconds, including this iteration.

        Raises
        ------
        TypeError
            If the workload returned an awaitable, which can only be timed by
            ``ameasure_once()``.
        """
        if self.setup is not None:
            start = self.clock()
            data = self.setup()
            self.setup_ns += self.clock() - start
            start = self.clock()
            ret = self.fn(data)
        else:
            start = self.clock()
            ret = self.fn()
        delta = self.clock() - start

        if inspect.isawaitable(ret):
            if inspect.iscoroutine(ret):
                ret.close()
            raise TypeError(
                f"workload of task {self.label!r} returned an awaitable, "
                f"run the benchmark with asynchronous=True to measure it"
            )
        return self._record(delta)

    async def ameasure_once(self) -> int:
        """
        Run and time exactly one iteration of a possibly asynchronous workload.

        If the workload (or setup) returns an awaitable, it is awaited, and the timer spans
        the full suspension, i.e. wall-clock time including time spent waiting.

        Returns
        -------
        int
            The accumulated workload time in nanoseconds, including this iteration.
        """
        data = None
        if self.setup is not None:
            start = self.clock()
            data = self.setup()
            if inspect.isawaitable(data):
                data = await data
            self.setup_ns += self.clock() - start

        start = self.clock()
        ret = self.fn(data) if self.setup is not None else self.fn()
        if inspect.isawaitable(ret):
            await ret
        delta = self.clock() - start
        return self._record(delta)

    def run_for(self, ms: int | float) -> int:
        """
        Measure iterations until the accumulated workload time reaches ``ms`` milliseconds.

        The target is a lower bound: the last iteration always runs to completion, and at
        least one iteration is run even for a zero target.

        Returns
        -------
        int
            The accumulated workload time in nanoseconds.
        """
        _check_duration(ms)
        target_ns = ms_to_ns(ms)
        elapsed = self.measure_once()
        while elapsed < target_ns:
            elapsed = self.measure_once()
        return elapsed

    async def arun_for(self, ms: int | float) -> int:
        """Asynchronous counterpart of ``run_for()``, awaiting awaitable workloads."""
        _check_duration(ms)
        target_ns = ms_to_ns(ms)
        elapsed = await self.ameasure_once()
        while elapsed < target_ns:
            elapsed = await self.ameasure_once()
        return elapsed

    def reset(self) -> None:
        """Clear all timing state, keeping label and callables."""
        self.histogram.reset()
        self.elapsed_ns = 0
        self.setup_ns = 0

    def result(self) -> PerfResult:
        """
        Project the current timing state into a ``PerfResult``.

        If no workload time has been accumulated yet, throughput is reported as ``nan``.
        """
        h = self.histogram
        if self.elapsed_ns > 0:
            ops = h.count / (self.elapsed_ns / 1e9)
        else:
            ops = math.nan
        p99 = h.percentile(0.99) if h.count else 0
        return PerfResult(
            iterations=h.count,
            total_time=ns_to_ms(self.elapsed_ns),
            ops=ops,
            setup_time=ns_to_ms(self.setup_ns),
            latency=LatencySummary(
                max=ns_to_us(h.max),
                min=ns_to_us(h.min),
                mean=ns_to_us(h.mean),
                stddev=ns_to_us(h.stddev),
                p99=ns_to_us(p99),
            ),
        )

    def snapshot(self) -> TaskSnapshot:
        return TaskSnapshot(
            label=self.label,
            iterations=self.iterations,
            elapsed_ns=self.elapsed_ns,
            setup_ns=self.setup_ns,
            result=self.result(),
        )
