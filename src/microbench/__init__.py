"""A harness for measuring and comparing the throughput and latency of Python callables."""

from .core import parametrize, product, task
from .histogram import Histogram
from .runner import Benchmark, collect, run_benchmark
from .task import Task
from .types import NOT_APPLICABLE, ComparisonRow, PerfResult, ResultSet, TaskResult

__version__ = "0.1.0"
