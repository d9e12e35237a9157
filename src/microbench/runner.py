"""The benchmark runner, registering tasks and driving them through a scheduling policy."""

import asyncio
import importlib
import logging
import os
import platform
import sys
import time
import uuid
import warnings
from collections.abc import Callable, Iterable
from typing import Any

from microbench.clock import Clock, now_ns
from microbench.config import MODES
from microbench.context import Context, assemble
from microbench.events import EventEmitter, Listener
from microbench.scheduler import RoundRobinScheduler, Scheduler, SequentialScheduler
from microbench.task import Setup, Task, Workload
from microbench.types import ComparisonRow, ResultSet, TaskResult
from microbench.util import is_importable, load_module, python_files

logger = logging.getLogger("microbench.runner")


def collect(path_or_module: str | os.PathLike[str], tags: tuple[str, ...] = ()) -> list[Task]:
    """
    Discover tasks in a module or source file.

    Parameters
    ----------
    path_or_module: str | os.PathLike[str]
        Name or path of the module to discover tasks in. Can also be a directory,
        in which case tasks are collected from the Python files therein.
    tags: tuple[str, ...]
        Tags to filter for when collecting tasks. Only tasks containing either of
        these tags are collected.

    Raises
    ------
    ValueError
        If the given path is not a Python file, directory, or module name.
    """
    tasks: list[Task] = []
    if os.path.isdir(path_or_module):
        for py in python_files(path_or_module):
            tasks.extend(collect(py, tags))
        return tasks
    elif os.path.isfile(path_or_module):
        logger.debug(f"Collecting tasks from file {path_or_module}.")
        module = load_module(path_or_module)
    elif is_importable(path_or_module):
        module = importlib.import_module(str(path_or_module))
    else:
        raise ValueError(
            f"expected a module name, Python file, or directory, got {str(path_or_module)!r}"
        )

    def _matches(t: Task) -> bool:
        return not tags or bool(set(tags) & set(t.tags))

    # iterate through the module dict members to register
    for k, v in module.__dict__.items():
        if k.startswith("__") and k.endswith("__"):
            # dunder names are ignored.
            continue
        elif isinstance(v, Task):
            if _matches(v):
                tasks.append(v)
        elif isinstance(v, list | tuple | set | frozenset):
            for t in v:
                if isinstance(t, Task) and _matches(t):
                    tasks.append(t)
    return tasks


def _in_event_loop() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


class Benchmark:
    """
    A set of tasks measured and compared against each other in one run.

    Parameters
    ----------
    time_ms: int | float
        Measurement window per task in milliseconds of accumulated workload time.
    asynchronous: bool
        Whether workloads may return awaitables, which are then awaited and timed until
        completion. Synchronous runs reject workloads returning awaitables.
    warmup_ms: int | float | None
        Discarded warmup window per task in milliseconds. Defaults to 10% of ``time_ms``,
        ``0`` disables warmup.
    tasks: Iterable[Task]
        Tasks to register right away.
    clock: Clock
        Time source for all registered tasks, returning monotonic integer nanoseconds.
    name: str | None
        A name for the run. If None, a name will be automatically generated.
    context: Mapping[str, Any] | Iterable[ContextProvider]
        Additional context to record with the results, either as a dictionary or
        as a collection of context providers called at the start of every run.

    Raises
    ------
    ValueError
        If the measurement window is not positive, or the warmup window is negative.
    """

    def __init__(
        self,
        time_ms: int | float = 5000,
        asynchronous: bool = False,
        warmup_ms: int | float | None = None,
        tasks: Iterable[Task] = (),
        clock: Clock = now_ns,
        name: str | None = None,
        context: Context = (),
    ):
        if time_ms <= 0:
            raise ValueError(f"measurement window must be positive, got {time_ms} ms")
        if warmup_ms is not None and warmup_ms < 0:
            raise ValueError(f"warmup window must be non-negative, got {warmup_ms} ms")

        self.time_ms = time_ms
        self.warmup_ms = warmup_ms
        self.asynchronous = asynchronous
        self.clock = clock
        self.name = name
        self.context = context
        self.emitter = EventEmitter()

        self._tasks: list[Task] = []
        self._result = ResultSet(run=name or "", context={}, complete=False)
        self._running = False
        self.extend(tasks)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(time_ms={self.time_ms}, tasks={self.size()})"

    @property
    def tasks(self) -> tuple[Task, ...]:
        return tuple(self._tasks)

    def size(self) -> int:
        return len(self._tasks)

    def add(self, label: str, fn: Workload, setup: Setup | None = None) -> Task:
        """
        Register a new task.

        Parameters
        ----------
        label: str
            A display name for the task. Should be unique within the benchmark.
        fn: Callable[..., Any]
            The workload to measure.
        setup: Callable[[], Any] | None
            A callable run before every iteration, whose return value is passed to ``fn``.

        Returns
        -------
        Task
            The registered task.
        """
        t = Task(label, fn, setup=setup, clock=self.clock)
        self.extend([t])
        return t

    def extend(self, tasks: Iterable[Task]) -> None:
        """Register prebuilt tasks, e.g. from ``@microbench.task`` or ``@microbench.parametrize``."""
        labels = {t.label for t in self._tasks}
        for t in tasks:
            if not isinstance(t, Task):
                raise TypeError(f"expected a Task, got {type(t)}")
            if t.label in labels:
                warnings.warn(
                    f"Got duplicate task label {t.label!r}, "
                    f"comparisons between tasks of the same label are ambiguous."
                )
            labels.add(t.label)
            t.clock = self.clock
            self._tasks.append(t)

    def on(self, event: str, listener: Listener) -> "Benchmark":
        """
        Register a listener for a lifecycle event.

        See ``microbench.events.EVENTS`` for the available events and their arguments.
        """
        self.emitter.on(event, listener)
        return self

    def off(self, event: str, listener: Listener) -> "Benchmark":
        self.emitter.off(event, listener)
        return self

    def _scheduler(self, mode: str) -> Scheduler:
        if mode == "sequential":
            klass: type[Scheduler] = SequentialScheduler
        elif mode == "round-robin":
            klass = RoundRobinScheduler
        else:
            raise ValueError(f"unknown scheduling mode {mode!r}, expected one of {MODES}")
        return klass(self.time_ms, warmup_ms=self.warmup_ms, emitter=self.emitter, clock=self.clock)

    def _begin(self, mode: str) -> Scheduler:
        if self._running:
            raise RuntimeError("cannot start a benchmark run while another one is in progress")
        scheduler = self._scheduler(mode)
        run = self.name or "microbench-" + platform.node() + "-" + uuid.uuid1().hex[:8]
        ctx = assemble(self.context)
        self._running = True
        self._result = ResultSet(run=run, context=ctx, timestamp=int(time.time()), complete=False)
        logger.debug(f"starting {mode} run {run!r} with {self.size()} task(s)")
        return scheduler

    def _end(self, scheduler: Scheduler, complete: bool) -> ResultSet:
        self._running = False
        self._result = ResultSet(
            run=self._result.run,
            context=self._result.context,
            results=tuple(scheduler.results),
            timestamp=self._result.timestamp,
            complete=complete,
        )
        if complete:
            self.emitter.emit("done", self._result)
        else:
            logger.debug(
                f"run {self._result.run!r} aborted after {len(scheduler.results)} "
                f"of {self.size()} task(s)"
            )
        return self._result

    def run(self, mode: str = "sequential") -> ResultSet:
        """
        Measure all registered tasks, blocking until every task is done.

        If the benchmark is asynchronous, the tasks are measured in a new event loop.
        Inside a running event loop, use ``arun()`` instead.

        Parameters
        ----------
        mode: str
            The scheduling mode, either ``"sequential"`` or ``"round-robin"``.

        Returns
        -------
        ResultSet
            The results of the run.

        Raises
        ------
        RuntimeError
            If the benchmark is asynchronous and an event loop is already running.
        """
        if self.asynchronous:
            if _in_event_loop():
                raise RuntimeError(
                    "cannot run an asynchronous benchmark inside a running event loop, "
                    "await Benchmark.arun() instead"
                )
            return asyncio.run(self.arun(mode))

        scheduler = self._begin(mode)
        complete = False
        try:
            scheduler.run(self._tasks)
            complete = True
        finally:
            result = self._end(scheduler, complete)
        return result

    async def arun(self, mode: str = "sequential") -> ResultSet:
        """Measure all registered tasks, awaiting workloads that return awaitables."""
        scheduler = self._begin(mode)
        complete = False
        try:
            await scheduler.arun(self._tasks)
            complete = True
        finally:
            result = self._end(scheduler, complete)
        return result

    def run_sequential(self) -> ResultSet:
        return self.run("sequential")

    def run_round_robin(self) -> ResultSet:
        return self.run("round-robin")

    async def arun_sequential(self) -> ResultSet:
        return await self.arun("sequential")

    async def arun_round_robin(self) -> ResultSet:
        return await self.arun("round-robin")

    @property
    def complete(self) -> bool:
        """Whether the last run measured every registered task."""
        return self._result.complete

    @property
    def results(self) -> list[TaskResult]:
        """Results of the last run, in order of completion. Partial if the run was aborted."""
        return list(self._result.results)

    def result(self) -> ResultSet:
        return self._result

    def table(self) -> dict[str, ComparisonRow]:
        """
        Compute the comparison matrix of the last run.

        Returns an empty table if no task has finished yet.
        """
        return self._result.table()


def run_benchmark(
    tasks: Iterable[Task] | Iterable[tuple[str, Callable[..., Any]]],
    mode: str = "round-robin",
    **kwargs: Any,
) -> ResultSet:
    """
    Measure the given tasks and print a comparison table to the console.

    Parameters
    ----------
    tasks: Iterable[Task] | Iterable[tuple[str, Callable[..., Any]]]
        The tasks to measure, either as ``Task`` objects or as ``(label, fn)`` pairs.
    mode: str
        The scheduling mode, either ``"sequential"`` or ``"round-robin"``.
    **kwargs: Any
        Keyword arguments forwarded to the ``Benchmark`` constructor.

    Returns
    -------
    ResultSet
        The results of the run.
    """
    from microbench.reporter.console import ConsoleReporter

    bench = Benchmark(**kwargs)
    for t in tasks:
        if isinstance(t, Task):
            bench.extend([t])
        else:
            label, fn = t
            bench.add(label, fn)

    reporter = ConsoleReporter()
    bench.on("task-start", reporter.task_started)
    result = bench.run(mode)
    reporter.write(result, sys.stdout)
    return result
