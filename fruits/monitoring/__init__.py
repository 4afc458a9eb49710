"""Monitoring package providing the request metrics worker."""

from fruits.monitoring.worker import MetricsAggregator, SizeProvider

__all__ = ["MetricsAggregator", "SizeProvider"]
