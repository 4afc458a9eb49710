"""Background worker aggregating request counters into periodic reports.

All counter mutations happen inside :meth:`MetricsAggregator.run`, the only
consumer of the event queue, so the report itself needs no lock. Callers on
any thread post named events; the worker drains them and flushes a rendered
report to the sink on every tick.

An event posted while a tick fires may land in the current or the next
report window.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Protocol

from fruits.errors import SinkPushError
from fruits.lib.logger import get_logger
from fruits.lib.metrics import (
    AVAILABILITY,
    ERROR,
    NUM_FRUITS,
    REPORT_FIELDS,
    REQUESTS,
    SUCCESS,
    MetricsSink,
    render_report,
)

logger = get_logger(__name__)

_FLUSH = object()
_CLOSED = object()


class SizeProvider(Protocol):
    def count(self) -> int:
        """Return the current number of stored fruits."""


def _new_report() -> dict[str, int]:
    return dict.fromkeys(REPORT_FIELDS, 0)


class MetricsAggregator:
    """Count request outcomes and push a report every ``report_frequency`` seconds."""

    def __init__(self, report_frequency: float, size_provider: SizeProvider, sink: MetricsSink) -> None:
        if report_frequency <= 0:
            raise ValueError("report_frequency must be positive")
        self._report_frequency = report_frequency
        self._size_provider = size_provider
        self._sink = sink
        self._report = _new_report()
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._post_lock = threading.Lock()
        self._closed = False
        self._running = False

    # ---- Counters ----

    def count_request(self) -> None:
        self._post(REQUESTS)

    def count_success(self) -> None:
        self._post(SUCCESS)

    def count_error(self) -> None:
        self._post(ERROR)

    def request_flush(self) -> None:
        """Ask the run loop to flush after every event posted so far."""

        self._post(_FLUSH)

    # ---- Lifecycle ----

    async def run(self) -> None:
        """Consume events and flush on every tick until shut down or cancelled."""

        loop = asyncio.get_running_loop()
        with self._post_lock:
            if self._closed:
                logger.warning("monitor_already_closed")
                return
            self._loop = loop
            self._running = True
        next_tick = loop.time() + self._report_frequency
        logger.info("monitor_started", extra={"report_frequency": self._report_frequency})
        try:
            while True:
                remaining = next_tick - loop.time()
                if remaining <= 0:
                    self.flush()
                    next_tick = loop.time() + self._report_frequency
                    continue
                try:
                    event = await asyncio.wait_for(self._queue.get(), timeout=remaining)
                except asyncio.TimeoutError:
                    continue

                if event is _CLOSED:
                    logger.info("monitor_stopped")
                    return
                if event is _FLUSH:
                    self.flush()
                    continue
                self._report[event] += 1  # type: ignore[index]
        except asyncio.CancelledError:
            logger.info("monitor_cancelled")
            raise
        finally:
            # Nothing drains the queue once the loop has exited.
            with self._post_lock:
                self._closed = True
                self._loop = None
                self._running = False

    def shutdown(self) -> None:
        """Stop accepting events and let the run loop exit. Safe to call twice.

        A closed aggregator cannot be restarted; :meth:`run` returns at once.
        """

        with self._post_lock:
            if self._closed:
                return
            self._enqueue(_CLOSED)
            self._closed = True
        logger.info("monitor_shutdown")

    def flush(self) -> str:
        """Render the current report, push it to the sink, and reset counters.

        Must not run concurrently with :meth:`run`; callers outside the run
        loop should use :meth:`request_flush` while the worker is active.
        """

        report = self._report
        if report[REQUESTS] > 0:
            report[AVAILABILITY] = 100 * report[SUCCESS] // report[REQUESTS]
        try:
            report[NUM_FRUITS] = self._size_provider.count()
        except Exception:
            logger.exception("metrics_size_failed")
        rendered = render_report(report)
        try:
            self._sink.push(rendered)
        except SinkPushError as exc:
            logger.warning("metrics_push_rejected", extra={"error": str(exc)})
        except Exception:
            logger.exception("metrics_push_failed")
        self._report = _new_report()
        return rendered

    # ---- Introspection ----

    @property
    def running(self) -> bool:
        return self._running

    @property
    def closed(self) -> bool:
        with self._post_lock:
            return self._closed

    def report(self) -> dict[str, int]:
        """Return a copy of the in-progress counters."""

        return dict(self._report)

    # ---- Internals ----

    def _post(self, event: object) -> None:
        with self._post_lock:
            if self._closed:
                logger.debug("monitor_event_dropped", extra={"event": str(event)})
                return
            self._enqueue(event)

    def _enqueue(self, event: object) -> None:
        loop = self._loop
        if loop is None or _running_loop() is loop:
            self._queue.put_nowait(event)
            return
        if loop.is_closed():
            logger.debug("monitor_loop_closed", extra={"event": str(event)})
            return
        loop.call_soon_threadsafe(self._queue.put_nowait, event)


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None
