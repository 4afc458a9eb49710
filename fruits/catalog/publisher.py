"""Publishers announcing newly created fruits."""

from __future__ import annotations

from typing import Protocol

from fruits.catalog.schemas import NewFruitEvent
from fruits.lib.logger import get_logger

logger = get_logger(__name__)


class Publisher(Protocol):
    async def publish(self, event: NewFruitEvent) -> None:
        """Deliver a new-fruit event."""


class LogPublisher:
    """Publish new-fruit events to the application log."""

    async def publish(self, event: NewFruitEvent) -> None:
        logger.info("fruit_published", extra={"event": event.model_dump(mode="json")})
