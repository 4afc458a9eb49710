"""Metrics report format and the default log-backed metrics sink."""

from __future__ import annotations

import threading
from typing import Dict, Mapping, Protocol

from fruits.errors import SinkPushError
from fruits.lib.logger import get_logger

REQUESTS = "requests"
SUCCESS = "success"
ERROR = "error"
AVAILABILITY = "availability"
NUM_FRUITS = "num_fruits"

# Rendering order is part of the report format.
REPORT_FIELDS: tuple[str, ...] = (REQUESTS, SUCCESS, ERROR, AVAILABILITY, NUM_FRUITS)


class MetricsSink(Protocol):
    def push(self, report: str) -> None:
        """Deliver a rendered report, raising ``SinkPushError`` on failure."""


def render_report(values: Mapping[str, int]) -> str:
    """Render counters as ``name=value`` lines in the fixed field order."""

    return "\n".join(f"{name}={int(values.get(name, 0))}" for name in REPORT_FIELDS)


def parse_report(report: str) -> Dict[str, int]:
    """Parse a rendered report back into counters."""

    values: Dict[str, int] = {}
    for line in report.splitlines():
        name, sep, raw = line.partition("=")
        if not sep or not name:
            raise SinkPushError(f"malformed report line {line!r}")
        try:
            values[name] = int(raw)
        except ValueError as exc:
            raise SinkPushError(f"non-integer value in report line {line!r}") from exc
    return values


class MetricsServer:
    """Write pushed reports to the metrics log and keep the latest one."""

    def __init__(self, logger_name: str = "fruits.metrics") -> None:
        self._lock = threading.Lock()
        self._logger = get_logger(logger_name)
        self._last: Dict[str, int] = {}
        self._pushes = 0

    def push(self, report: str) -> None:
        values = parse_report(report)
        self._logger.info("metrics_report", extra={"report": values})
        with self._lock:
            self._last = values
            self._pushes += 1

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._last)

    @property
    def pushes(self) -> int:
        with self._lock:
            return self._pushes

    def reset(self) -> None:
        with self._lock:
            self._last = {}
            self._pushes = 0
