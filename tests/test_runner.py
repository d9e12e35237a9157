import asyncio
import math
import os
import time

import pytest

import microbench
from microbench import Benchmark


def test_runner_collection(testfolder: str) -> None:
    tasks = microbench.collect(os.path.join(testfolder, "standard.py"), tags=("runner-collect",))
    assert len(tasks) == 1

    tasks = microbench.collect(testfolder, tags=("non-existing-tag",))
    assert len(tasks) == 0

    tasks = microbench.collect(testfolder, tags=("runner-collect",))
    assert len(tasks) == 1

    # task families are collected from lists.
    tasks = microbench.collect(testfolder, tags=("family",))
    assert [t.label for t in tasks] == ["build_list_n=10", "build_list_n=100"]


def test_tag_selection(testfolder: str) -> None:
    PATH = os.path.join(testfolder, "tags.py")

    assert len(microbench.collect(PATH)) == 3
    assert len(microbench.collect(PATH, tags=("tag1",))) == 2
    assert len(microbench.collect(PATH, tags=("tag2",))) == 1


def test_collect_invalid_target() -> None:
    with pytest.raises(ValueError, match="expected a module name"):
        microbench.collect("this-does-not-exist")


def test_collected_tasks_run(testfolder: str) -> None:
    tasks = microbench.collect(testfolder, tags=("standard",))
    bench = Benchmark(time_ms=1, tasks=tasks)
    result = bench.run_sequential()

    assert result.complete
    assert sorted(result.labels()) == ["sorted-copy", "total"]
    assert all(r.performance.iterations >= 1 for r in result.results)


def test_add_uses_benchmark_clock(clock) -> None:
    bench = Benchmark(time_ms=0.01, warmup_ms=0, clock=clock)
    t = bench.add("fixed", clock.workload(1000))

    assert t.clock is clock
    assert bench.tasks == (t,)
    assert bench.size() == 1

    bench.run()
    assert bench.results[0].performance.iterations == 10


def test_table_before_run() -> None:
    bench = Benchmark(time_ms=10)
    bench.add("noop", lambda: None)
    assert bench.table() == {}
    assert bench.results == []


@pytest.mark.parametrize("mode", ["sequential", "round-robin"])
def test_run_table(clock, mode: str) -> None:
    bench = Benchmark(time_ms=1, warmup_ms=0, clock=clock)
    bench.add("fast", clock.workload(1000))
    bench.add("slow", clock.workload(4000))
    bench.run(mode)

    table = bench.table()
    assert list(table) == ["fast", "slow"]
    assert table["fast"].ops == pytest.approx(1_000_000)
    assert table["slow"].ops == pytest.approx(250_000)
    assert table["fast"].ratios["slow"] == pytest.approx(4.0)
    assert table["slow"].ratios["fast"] == pytest.approx(0.25)
    assert table["fast"].ratios["fast"] == microbench.NOT_APPLICABLE


def test_round_robin_ties_keep_registration_order(clock) -> None:
    durations = iter([100, 1900])

    def uneven() -> None:
        clock.advance(next(durations))

    bench = Benchmark(time_ms=0.001, warmup_ms=0, clock=clock)
    bench.add("A", uneven)
    bench.add("B", clock.workload(1000))
    result = bench.run_round_robin()

    # B finishes first, but both tasks reach the same throughput.
    assert result.labels() == ["B", "A"]
    table = bench.table()
    assert table["A"].ops == table["B"].ops
    assert list(table) == ["A", "B"]
    assert [r.index for r in result.ranked()] == [0, 1]


def test_zero_tasks_emit_done(clock) -> None:
    done = []
    bench = Benchmark(time_ms=10, clock=clock).on("done", done.append)
    result = bench.run_round_robin()

    assert done == [result]
    assert result.complete
    assert len(result) == 0
    assert bench.table() == {}


def test_failure_keeps_partial_results(clock) -> None:
    def fail() -> None:
        raise RuntimeError("workload failed")

    done = []
    bench = Benchmark(time_ms=0.01, warmup_ms=0, clock=clock).on("done", done.append)
    bench.add("ok", clock.workload(1000))
    bench.add("failing", fail)

    with pytest.raises(RuntimeError, match="workload failed"):
        bench.run_sequential()

    assert not bench.complete
    assert done == []
    assert list(bench.table()) == ["ok"]
    assert not bench.result().complete


def test_reentrant_run_is_rejected(clock) -> None:
    bench = Benchmark(time_ms=0.01, warmup_ms=0, clock=clock)
    bench.add("fixed", clock.workload(1000))

    def rerun(task) -> None:
        bench.run()

    bench.on("task-start", rerun)
    with pytest.raises(RuntimeError, match="in progress"):
        bench.run()

    # the failed run leaves the benchmark usable.
    bench.off("task-start", rerun)
    assert bench.run().complete


def test_duplicate_labels_warn() -> None:
    bench = Benchmark(time_ms=10)
    bench.add("same", lambda: None)
    with pytest.warns(UserWarning, match="duplicate task label"):
        bench.add("same", lambda: None)
    assert bench.size() == 2


def test_extend_rejects_non_tasks() -> None:
    bench = Benchmark(time_ms=10)
    with pytest.raises(TypeError, match="expected a Task"):
        bench.extend([lambda: None])  # type: ignore[list-item]


def test_invalid_arguments() -> None:
    with pytest.raises(ValueError, match="must be positive"):
        Benchmark(time_ms=0)
    with pytest.raises(ValueError, match="must be non-negative"):
        Benchmark(time_ms=10, warmup_ms=-5)
    with pytest.raises(ValueError, match="unknown scheduling mode"):
        Benchmark(time_ms=10).run("parallel")


def test_run_name_and_context(clock) -> None:
    bench = Benchmark(time_ms=10, clock=clock, name="my-run", context=[lambda: {"foo": "bar"}])
    result = bench.run()
    assert result.run == "my-run"
    assert result.context == {"foo": "bar"}
    assert result.timestamp > 0

    result = Benchmark(time_ms=10, clock=clock, context={"a": 1}).run()
    assert result.run.startswith("microbench-")
    assert result.context == {"a": 1}


def test_error_on_duplicate_context_keys(clock) -> None:
    def duplicate_provider() -> dict[str, str]:
        return {"foo": "baz"}

    bench = Benchmark(time_ms=10, clock=clock, context=[lambda: {"foo": "bar"}, duplicate_provider])
    with pytest.raises(ValueError, match="got multiple values for context key 'foo'"):
        bench.run()


@pytest.mark.parametrize("mode", ["sequential", "round-robin"])
def test_asynchronous_benchmark(clock, mode: str) -> None:
    async def fn() -> None:
        clock.advance(2000)
        await asyncio.sleep(0)

    bench = Benchmark(time_ms=0.01, warmup_ms=0, asynchronous=True, clock=clock)
    bench.add("async", fn)
    bench.add("sync", clock.workload(1000))
    result = bench.run(mode)

    perf = {r.label: r.performance for r in result.results}
    assert perf["async"].iterations == 5
    assert perf["sync"].iterations == 10


def test_asynchronous_run_inside_event_loop(clock) -> None:
    bench = Benchmark(time_ms=0.01, warmup_ms=0, asynchronous=True, clock=clock)
    bench.add("sync", clock.workload(1000))

    async def main():
        with pytest.raises(RuntimeError, match="running event loop"):
            bench.run()
        return await bench.arun()

    result = asyncio.run(main())
    assert result.complete
    assert result.results[0].performance.iterations == 10


def test_arun_inside_event_loop(clock) -> None:
    async def fn() -> None:
        clock.advance(1000)
        await asyncio.sleep(0)

    bench = Benchmark(time_ms=0.01, warmup_ms=0, clock=clock)
    bench.add("async", fn)

    async def main():
        return await bench.arun_round_robin()

    result = asyncio.run(main())
    assert result.results[0].performance.iterations == 10


def test_run_benchmark_prints_table(capsys: pytest.CaptureFixture) -> None:
    tasks = [("noop", lambda: None), ("sum", lambda: sum(range(10)))]
    result = microbench.run_benchmark(tasks, time_ms=1)

    out = capsys.readouterr().out
    assert "Benchmarking 'noop'..." in out
    assert "Benchmarking 'sum'..." in out
    assert sorted(result.labels()) == ["noop", "sum"]


@pytest.mark.slow
def test_noop_throughput() -> None:
    bench = Benchmark(time_ms=100)
    bench.add("noop", lambda: None)
    (res,) = bench.run_sequential().results

    # the window overshoots by at most the last iteration.
    assert 100 <= res.performance.total_time <= 100 + res.performance.latency.max / 1000
    assert res.performance.iterations > 1000
    assert math.isfinite(res.performance.ops)


@pytest.mark.slow
def test_sleep_throughput_ratios() -> None:
    bench = Benchmark(time_ms=50)
    for ms in (1, 2, 4):
        bench.add(f"sleep-{ms}ms", lambda ms=ms: time.sleep(ms / 1000))
    bench.run_round_robin()

    table = bench.table()
    assert list(table) == ["sleep-1ms", "sleep-2ms", "sleep-4ms"]
    assert table["sleep-1ms"].ops == pytest.approx(1000, rel=0.2)
    assert table["sleep-4ms"].ops == pytest.approx(250, rel=0.2)
    assert table["sleep-1ms"].ratios["sleep-4ms"] == pytest.approx(4, rel=0.25)
