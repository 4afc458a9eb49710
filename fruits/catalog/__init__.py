"""Fruit catalog domain: schemas, repository, service, and routes."""

from fruits.catalog.middleware import MonitoredFruitService
from fruits.catalog.publisher import LogPublisher, Publisher
from fruits.catalog.repository import FruitMemoryRepository
from fruits.catalog.routes import router
from fruits.catalog.service import FruitService, Repository

__all__ = [
    "FruitMemoryRepository",
    "FruitService",
    "LogPublisher",
    "MonitoredFruitService",
    "Publisher",
    "Repository",
    "router",
]
