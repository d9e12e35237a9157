"""Scheduling policies driving a set of tasks through their measurement windows."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Generator, Iterable

from microbench.clock import Clock, ms_to_ns, now_ns
from microbench.events import EventEmitter
from microbench.task import Task
from microbench.types import TaskResult

logger = logging.getLogger("microbench.scheduler")

WARMUP_RATIO = 0.1
"""Default length of the warmup window, as a fraction of the measurement window."""

MIN_PROGRESS_INTERVAL_MS = 500

# Receives the accumulated workload time of the last measured task, yields the next task.
Schedule = Generator[Task, int, None]


class Scheduler(ABC):
    """
    Base class of a scheduling policy.

    A scheduler owns no tasks. It measures the tasks handed to ``run()`` (or ``arun()``)
    in a single thread of control, one workload invocation at a time, and keeps the results
    of all tasks that finished their measurement window in ``results``. If a workload raises,
    the exception propagates out of ``run()`` and ``results`` holds everything that finished
    before the failure.

    Parameters
    ----------
    time_ms: int | float
        Length of the measurement window per task in milliseconds, measured in
        accumulated workload time.
    warmup_ms: int | float | None
        Length of the discarded warmup window per task in milliseconds. Defaults to
        10% of ``time_ms``, ``0`` disables warmup.
    emitter: EventEmitter | None
        Receiver of lifecycle events. If not given, events are dispatched to nowhere.
    clock: Clock
        Time source used to rate-limit progress events.
    """

    def __init__(
        self,
        time_ms: int | float,
        warmup_ms: int | float | None = None,
        emitter: EventEmitter | None = None,
        clock: Clock = now_ns,
    ):
        if time_ms <= 0:
            raise ValueError(f"measurement window must be positive, got {time_ms} ms")
        if warmup_ms is None:
            warmup_ms = time_ms * WARMUP_RATIO
        elif warmup_ms < 0:
            raise ValueError(f"warmup window must be non-negative, got {warmup_ms} ms")

        self.time_ms = time_ms
        self.warmup_ms = warmup_ms
        self.emitter = emitter or EventEmitter()
        self.clock = clock
        self.results: list[TaskResult] = []
        self._positions: dict[int, int] = {}

    def _register(self, tasks: Iterable[Task]) -> list[Task]:
        self.results = []
        tasks = list(tasks)
        self._positions = {id(t): i for i, t in enumerate(tasks)}
        return tasks

    def _finish(self, task: Task) -> TaskResult:
        result = TaskResult(
            label=task.label, performance=task.result(), index=self._positions.get(id(task), 0)
        )
        self.results.append(result)
        logger.debug(
            f"task {task.label!r} finished after {task.iterations} iterations "
            f"({result.performance.ops:.2f} op/s)"
        )
        self.emitter.emit("task-done", task, result)
        return result

    def _start(self, task: Task) -> None:
        logger.debug(f"starting measurement of task {task.label!r}")
        self.emitter.emit("task-start", task)

    @abstractmethod
    def run(self, tasks: Iterable[Task]) -> list[TaskResult]:
        """Measure the given tasks, calling synchronous workloads."""

    @abstractmethod
    async def arun(self, tasks: Iterable[Task]) -> list[TaskResult]:
        """Measure the given tasks, awaiting workloads that return awaitables."""


class SequentialScheduler(Scheduler):
    """
    Measures tasks one after another, in registration order.

    Each task gets a warmup window, is reset, and then runs through its full measurement
    window before the next task starts. Measurement windows never overlap.
    """

    def run(self, tasks: Iterable[Task]) -> list[TaskResult]:
        tasks = self._register(tasks)
        for task in tasks:
            if self.warmup_ms:
                logger.debug(f"warming up task {task.label!r} for {self.warmup_ms} ms")
                task.run_for(self.warmup_ms)
            task.reset()
            self._start(task)
            task.run_for(self.time_ms)
            self._finish(task)
        return self.results

    async def arun(self, tasks: Iterable[Task]) -> list[TaskResult]:
        tasks = self._register(tasks)
        for task in tasks:
            if self.warmup_ms:
                logger.debug(f"warming up task {task.label!r} for {self.warmup_ms} ms")
                await task.arun_for(self.warmup_ms)
            task.reset()
            self._start(task)
            await task.arun_for(self.time_ms)
            self._finish(task)
        return self.results


class RoundRobinScheduler(Scheduler):
    """
    Interleaves all tasks, running one iteration per task and turn.

    All tasks start in an active set, which is iterated in a stable order. A task leaves
    the active set once its accumulated workload time reaches the measurement window, and
    the run ends when the active set is empty. Transient system load is thereby spread
    evenly across all tasks instead of hitting whichever task happens to run at the time.

    Warmup is a shorter interleaved pass over all tasks, after which all tasks are reset.

    While tasks are active, a ``"progress"`` event with snapshots of all active tasks fires
    at most once per ``max(500 ms, time_ms / 10)``, provided that a listener is registered.
    """

    def __init__(
        self,
        time_ms: int | float,
        warmup_ms: int | float | None = None,
        emitter: EventEmitter | None = None,
        clock: Clock = now_ns,
    ):
        super().__init__(time_ms, warmup_ms=warmup_ms, emitter=emitter, clock=clock)
        self.progress_interval_ns = ms_to_ns(max(MIN_PROGRESS_INTERVAL_MS, time_ms / 10))
        self._last_progress = 0

    def _interleave(self, tasks: list[Task], target_ns: int, measuring: bool) -> Schedule:
        active = list(tasks)
        if measuring and self.emitter.has_listeners("progress"):
            self._last_progress = self.clock()
        while active:
            for task in tuple(active):
                elapsed = yield task
                if elapsed >= target_ns:
                    active.remove(task)
                    if measuring:
                        self._finish(task)
            if measuring and active:
                self._progress(active)

    def _progress(self, active: list[Task]) -> None:
        if not self.emitter.has_listeners("progress"):
            return
        now = self.clock()
        if now - self._last_progress < self.progress_interval_ns:
            return
        self._last_progress = now
        self.emitter.emit("progress", tuple(t.snapshot() for t in active))

    def _prepare(self, tasks: list[Task]) -> None:
        for task in tasks:
            task.reset()
        for task in tasks:
            self._start(task)

    def run(self, tasks: Iterable[Task]) -> list[TaskResult]:
        tasks = self._register(tasks)
        if self.warmup_ms and tasks:
            logger.debug(f"warming up {len(tasks)} task(s) for {self.warmup_ms} ms")
            self._drive(self._interleave(tasks, ms_to_ns(self.warmup_ms), measuring=False))
        self._prepare(tasks)
        self._drive(self._interleave(tasks, ms_to_ns(self.time_ms), measuring=True))
        return self.results

    async def arun(self, tasks: Iterable[Task]) -> list[TaskResult]:
        tasks = self._register(tasks)
        if self.warmup_ms and tasks:
            logger.debug(f"warming up {len(tasks)} task(s) for {self.warmup_ms} ms")
            await self._adrive(self._interleave(tasks, ms_to_ns(self.warmup_ms), measuring=False))
        self._prepare(tasks)
        await self._adrive(self._interleave(tasks, ms_to_ns(self.time_ms), measuring=True))
        return self.results

    @staticmethod
    def _drive(schedule: Schedule) -> None:
        try:
            task = next(schedule)
            while True:
                task = schedule.send(task.measure_once())
        except StopIteration:
            pass
        finally:
            schedule.close()

    @staticmethod
    async def _adrive(schedule: Schedule) -> None:
        try:
            task = next(schedule)
            while True:
                task = schedule.send(await task.ameasure_once())
        except StopIteration:
            pass
        finally:
            schedule.close()
