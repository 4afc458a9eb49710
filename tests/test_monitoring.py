"""Tests for the request metrics worker and the metrics sink."""

from __future__ import annotations

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from fruits.errors import SinkPushError
from fruits.lib.metrics import MetricsServer, parse_report, render_report
from fruits.monitoring import MetricsAggregator


class FixedSize:
    def __init__(self, size: int) -> None:
        self.size = size

    def count(self) -> int:
        return self.size


class RecordingSink:
    def __init__(self) -> None:
        self.reports: list[str] = []
        self._pushed = asyncio.Event()

    def push(self, report: str) -> None:
        self.reports.append(report)
        self._pushed.set()

    async def wait_for_reports(self, expected: int, timeout: float = 2.0) -> None:
        async def _wait() -> None:
            while len(self.reports) < expected:
                self._pushed.clear()
                await self._pushed.wait()

        await asyncio.wait_for(_wait(), timeout=timeout)


class FlakySink(RecordingSink):
    """Fail the first push, then record."""

    def __init__(self, error: Exception) -> None:
        super().__init__()
        self.error = error
        self.attempts = 0

    def push(self, report: str) -> None:
        self.attempts += 1
        if self.attempts == 1:
            raise self.error
        super().push(report)


async def _stop(monitor: MetricsAggregator, task: asyncio.Task[None]) -> None:
    monitor.shutdown()
    await asyncio.wait_for(task, timeout=2.0)


@pytest.mark.asyncio
async def test_forced_flush_renders_report() -> None:
    sink = RecordingSink()
    monitor = MetricsAggregator(60, size_provider=FixedSize(1), sink=sink)
    task = asyncio.create_task(monitor.run())

    monitor.count_request()
    monitor.count_success()
    monitor.count_request()
    monitor.count_error()
    monitor.request_flush()

    await sink.wait_for_reports(1)
    await _stop(monitor, task)

    assert sink.reports[0] == "requests=2\nsuccess=1\nerror=1\navailability=50\nnum_fruits=1"


@pytest.mark.asyncio
async def test_counters_posted_from_many_threads() -> None:
    sink = RecordingSink()
    monitor = MetricsAggregator(60, size_provider=FixedSize(2), sink=sink)
    task = asyncio.create_task(monitor.run())
    await asyncio.sleep(0)

    def first() -> None:
        monitor.count_request()
        monitor.count_success()

    def second() -> None:
        monitor.count_request()
        monitor.count_error()
        monitor.count_request()
        monitor.count_success()

    def third() -> None:
        monitor.count_request()
        monitor.count_error()

    await asyncio.gather(asyncio.to_thread(first), asyncio.to_thread(second), asyncio.to_thread(third))
    monitor.request_flush()

    await sink.wait_for_reports(1)
    await _stop(monitor, task)

    assert sink.reports[0] == "requests=4\nsuccess=2\nerror=2\navailability=50\nnum_fruits=2"


@pytest.mark.asyncio
async def test_timer_tick_flushes_report() -> None:
    sink = RecordingSink()
    monitor = MetricsAggregator(0.05, size_provider=FixedSize(3), sink=sink)

    monitor.count_request()
    monitor.count_success()
    task = asyncio.create_task(monitor.run())

    await sink.wait_for_reports(1)
    await _stop(monitor, task)

    assert sink.reports[0] == "requests=1\nsuccess=1\nerror=0\navailability=100\nnum_fruits=3"


@pytest.mark.asyncio
async def test_counters_reset_after_flush() -> None:
    sink = RecordingSink()
    size = FixedSize(5)
    monitor = MetricsAggregator(60, size_provider=size, sink=sink)
    task = asyncio.create_task(monitor.run())

    monitor.count_request()
    monitor.count_success()
    monitor.request_flush()
    await sink.wait_for_reports(1)

    size.size = 6
    monitor.request_flush()
    await sink.wait_for_reports(2)
    await _stop(monitor, task)

    assert sink.reports[1] == "requests=0\nsuccess=0\nerror=0\navailability=0\nnum_fruits=6"
    assert monitor.report() == {
        "requests": 0,
        "success": 0,
        "error": 0,
        "availability": 0,
        "num_fruits": 0,
    }


@pytest.mark.asyncio
async def test_availability_is_truncated() -> None:
    sink = RecordingSink()
    monitor = MetricsAggregator(60, size_provider=FixedSize(0), sink=sink)
    task = asyncio.create_task(monitor.run())

    for _ in range(3):
        monitor.count_request()
    monitor.count_success()
    monitor.count_success()
    monitor.count_error()
    monitor.request_flush()

    await sink.wait_for_reports(1)
    await _stop(monitor, task)

    assert parse_report(sink.reports[0])["availability"] == 66


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [SinkPushError("rejected"), RuntimeError("backend down")])
async def test_sink_failure_does_not_stop_worker(error: Exception) -> None:
    sink = FlakySink(error)
    monitor = MetricsAggregator(60, size_provider=FixedSize(1), sink=sink)
    task = asyncio.create_task(monitor.run())

    monitor.count_request()
    monitor.count_success()
    monitor.request_flush()
    monitor.count_request()
    monitor.count_error()
    monitor.request_flush()

    await sink.wait_for_reports(1)
    assert not task.done()
    await _stop(monitor, task)

    assert sink.attempts == 2
    # The failed window was reset after the push attempt.
    assert sink.reports == ["requests=1\nsuccess=0\nerror=1\navailability=0\nnum_fruits=1"]


@pytest.mark.asyncio
async def test_shutdown_is_idempotent_and_drops_late_events() -> None:
    sink = RecordingSink()
    monitor = MetricsAggregator(60, size_provider=FixedSize(0), sink=sink)
    task = asyncio.create_task(monitor.run())
    await asyncio.sleep(0)
    assert monitor.running

    monitor.shutdown()
    monitor.shutdown()
    await asyncio.wait_for(task, timeout=2.0)

    monitor.count_request()
    monitor.request_flush()

    assert monitor.closed
    assert not monitor.running
    assert monitor.report()["requests"] == 0
    assert sink.reports == []


@pytest.mark.asyncio
async def test_shutdown_racing_with_counting_threads() -> None:
    sink = RecordingSink()
    monitor = MetricsAggregator(60, size_provider=FixedSize(0), sink=sink)
    task = asyncio.create_task(monitor.run())
    await asyncio.sleep(0)

    start = threading.Barrier(9)
    errors: list[BaseException] = []

    def hammer() -> None:
        start.wait()
        try:
            for _ in range(500):
                monitor.count_request()
                monitor.count_success()
        except BaseException as exc:  # pragma: no cover - failure path
            errors.append(exc)

    def stop() -> None:
        start.wait()
        monitor.shutdown()

    loop = asyncio.get_running_loop()
    with ThreadPoolExecutor(max_workers=9) as pool:
        futures = [loop.run_in_executor(pool, hammer) for _ in range(8)]
        futures.append(loop.run_in_executor(pool, stop))
        await asyncio.gather(*futures)

    await asyncio.wait_for(task, timeout=2.0)

    assert errors == []
    assert task.exception() is None
    counted = monitor.report()
    assert counted["requests"] <= 8 * 500
    assert counted["requests"] == counted["success"] or abs(counted["requests"] - counted["success"]) <= 8


@pytest.mark.asyncio
async def test_cancellation_stops_worker_without_flushing() -> None:
    sink = RecordingSink()
    monitor = MetricsAggregator(0.05, size_provider=FixedSize(0), sink=sink)
    task = asyncio.create_task(monitor.run())
    await asyncio.sleep(0)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    await asyncio.sleep(0.1)
    assert sink.reports == []
    assert not monitor.running


def test_flush_outside_run_loop_pushes_zero_report() -> None:
    sink = MetricsServer()
    monitor = MetricsAggregator(60, size_provider=FixedSize(4), sink=sink)

    rendered = monitor.flush()

    assert rendered == "requests=0\nsuccess=0\nerror=0\navailability=0\nnum_fruits=4"
    assert sink.snapshot()["num_fruits"] == 4
    assert sink.pushes == 1


def test_report_frequency_must_be_positive() -> None:
    with pytest.raises(ValueError):
        MetricsAggregator(0, size_provider=FixedSize(0), sink=MetricsServer())


def test_render_report_uses_fixed_field_order() -> None:
    rendered = render_report({"num_fruits": 9, "error": 1, "requests": 3, "success": 2, "availability": 66})

    assert rendered == "requests=3\nsuccess=2\nerror=1\navailability=66\nnum_fruits=9"


def test_metrics_server_keeps_last_report() -> None:
    server = MetricsServer()

    server.push("requests=2\nsuccess=1\nerror=1\navailability=50\nnum_fruits=1")
    server.push("requests=0\nsuccess=0\nerror=0\navailability=0\nnum_fruits=1")

    assert server.pushes == 2
    assert server.snapshot() == {
        "requests": 0,
        "success": 0,
        "error": 0,
        "availability": 0,
        "num_fruits": 1,
    }


@pytest.mark.parametrize("report", ["requests", "requests=abc", "=3"])
def test_metrics_server_rejects_malformed_report(report: str) -> None:
    server = MetricsServer()

    with pytest.raises(SinkPushError):
        server.push(report)
    assert server.snapshot() == {}


class BrokenSize:
    """Raise on the first lookup, then report a fixed size."""

    def __init__(self) -> None:
        self.calls = 0

    def count(self) -> int:
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("repository unavailable")
        return 7


@pytest.mark.asyncio
async def test_run_returns_at_once_after_shutdown() -> None:
    sink = RecordingSink()
    monitor = MetricsAggregator(60, size_provider=FixedSize(0), sink=sink)
    task = asyncio.create_task(monitor.run())
    await _stop(monitor, task)

    await asyncio.wait_for(monitor.run(), timeout=1.0)
    monitor.shutdown()

    assert not monitor.running
    assert sink.reports == []


@pytest.mark.asyncio
async def test_events_after_cancellation_are_dropped() -> None:
    sink = RecordingSink()
    monitor = MetricsAggregator(60, size_provider=FixedSize(0), sink=sink)
    task = asyncio.create_task(monitor.run())
    await asyncio.sleep(0)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    monitor.count_request()
    await asyncio.to_thread(monitor.count_error)

    assert monitor.closed
    assert monitor.flush() == "requests=0\nsuccess=0\nerror=0\navailability=0\nnum_fruits=0"


@pytest.mark.asyncio
async def test_size_provider_failure_does_not_stop_worker() -> None:
    sink = RecordingSink()
    monitor = MetricsAggregator(60, size_provider=BrokenSize(), sink=sink)
    task = asyncio.create_task(monitor.run())

    monitor.count_request()
    monitor.count_success()
    monitor.request_flush()
    monitor.request_flush()

    await sink.wait_for_reports(2)
    assert not task.done()
    await _stop(monitor, task)

    assert sink.reports == [
        "requests=1\nsuccess=1\nerror=0\navailability=100\nnum_fruits=0",
        "requests=0\nsuccess=0\nerror=0\navailability=0\nnum_fruits=7",
    ]
