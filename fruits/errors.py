"""Exception hierarchy shared by the fruits service layers.

Explicit types let callers tell invalid input apart from missing records,
storage failures, and metrics delivery problems.
"""

from __future__ import annotations


class FruitsError(Exception):
    """Base class for all fruits service errors."""


class ValidationError(FruitsError):
    """Raised when a caller supplies an invalid or unset key."""


class NotFoundError(FruitsError):
    """Raised when an operation targets a record that does not exist."""


class SinkPushError(FruitsError):
    """Raised by a metrics sink that rejected or failed to deliver a report."""


class DatasetError(FruitsError):
    """Raised when a dataset import cannot be completed."""


class DataAccessError(FruitsError):
    """Raised by the domain service when its repository fails."""


__all__ = [
    "FruitsError",
    "ValidationError",
    "NotFoundError",
    "SinkPushError",
    "DatasetError",
    "DataAccessError",
]
