import math
import os
from typing import IO, Any

from rich.console import Console
from rich.table import Table

from microbench.clock import ns_to_ms
from microbench.compare import OPS_KEY, P99_KEY, STDDEV_KEY, format_table
from microbench.task import Task
from microbench.types import ResultSet, TaskSnapshot

_STDOUT = "-"


class ConsoleReporter:
    """
    Displays benchmark results and progress in the console.

    Wraps a ``rich.Console()`` to display values in rich-text tables. The ``task_started()``
    and ``progress()`` methods can be registered as listeners on a ``Benchmark`` directly.
    """

    def __init__(self, budget_ms: float | None = None, **kwargs: Any):
        """
        Initialize a console reporter.

        Parameters
        ----------
        budget_ms: float | None
            The total measurement time of all tasks in milliseconds, shown next to
            the time spent so far in progress displays.
        **kwargs: Any
            Keyword arguments, forwarded directly to ``rich.Console()``.
        """
        self.budget_ms = budget_ms
        self.console = Console(**kwargs)

    def read(self, path: str | os.PathLike[str], **kwargs: Any) -> list[ResultSet]:
        raise NotImplementedError

    def write(
        self,
        result: ResultSet,
        path: str | os.PathLike[str] | IO = _STDOUT,
        **options: Any,
    ) -> None:
        """
        Display a result set in the console as a comparison table.

        Rows are sorted by descending throughput. Besides latency and throughput figures,
        each row holds the throughput ratio against every other task.

        Parameters
        ----------
        result: ResultSet
            The result set to display.
        path: str | os.PathLike[str] | IO
            For compatibility with the `BenchmarkReporter` protocol, unused.
        options: Any
            Display options, forwarded to ``rich.Console.print()``.
        """
        del path
        formatted = format_table(result.table())

        t = Table(title=result.run or None)
        columns = ["Task", P99_KEY, STDDEV_KEY, OPS_KEY] + list(formatted)
        for column in columns:
            justify = "left" if column == "Task" else "right"
            t.add_column(column, justify=justify)
        for label, cells in formatted.items():
            t.add_row(label, *(cells[c] for c in columns[1:]))

        if not result.complete:
            self.console.print("[red]warning: run incomplete, showing partial results[/red]")
        self.console.print(t, **options)

    def task_started(self, task: Task) -> None:
        self.console.print(f"Benchmarking {task.label!r}...")

    def progress(self, snapshots: tuple[TaskSnapshot, ...]) -> None:
        """Display the running state of all active tasks of a round-robin run."""
        executed = round(ns_to_ms(sum(s.elapsed_ns for s in snapshots)))
        header = f"Time spent in task execution: {executed} ms"
        if self.budget_ms is not None:
            header += f" / {round(self.budget_ms)} ms"
        self.console.print(header)

        t = Table()
        for column in ("Task", "Op/s", "Task time (ms)", "Setup time (ms)"):
            t.add_column(column)
        for s in snapshots:
            t.add_row(
                s.label,
                "nan" if math.isnan(s.result.ops) else str(round(s.result.ops)),
                f"{ns_to_ms(s.elapsed_ns):.3f}",
                f"{ns_to_ms(s.setup_ns):.3f}",
            )
        self.console.print(t)
