"""Fruit catalog service orchestrating repository and publisher calls."""

from __future__ import annotations

import asyncio
from typing import Protocol

from fruits.catalog.publisher import Publisher
from fruits.catalog.repository import FruitDatasetStatus
from fruits.catalog.schemas import (
    DatasetStatus,
    FindFruitsResult,
    Fruit,
    NewFruit,
    NewFruitEvent,
    SearchFruitFilter,
    SearchFruitsResult,
)
from fruits.errors import DataAccessError
from fruits.lib.logger import get_logger

logger = get_logger(__name__)

_REPOSITORY_UNAVAILABLE = "fruit repository is not available"


class Repository(Protocol):
    def find_by_id(self, fruit_id: int) -> Fruit | None: ...

    def save(self, new_fruit: NewFruit) -> int: ...

    def search_with_filters(self, search: SearchFruitFilter) -> FindFruitsResult: ...

    def dataset_status(self) -> FruitDatasetStatus: ...


class FruitService:
    """Business logic for reading, creating, and searching fruits."""

    def __init__(self, repository: Repository, publisher: Publisher) -> None:
        self._repository = repository
        self._publisher = publisher
        self._publish_tasks: set[asyncio.Task[None]] = set()

    async def get_fruit_with_id(self, fruit_id: int) -> Fruit | None:
        try:
            return self._repository.find_by_id(fruit_id)
        except Exception as exc:
            logger.exception("fruit_read_failed", extra={"fruit_id": fruit_id})
            raise DataAccessError("something went wrong accessing db") from exc

    async def create(self, new_fruit: NewFruit) -> int:
        try:
            fruit_id = self._repository.save(new_fruit)
        except Exception as exc:
            logger.exception("fruit_create_failed", extra={"fruit": new_fruit.model_dump(mode="json")})
            raise DataAccessError("something went wrong accessing db") from exc

        logger.info("fruit_created", extra={"fruit_id": fruit_id})
        self._notify_new_fruit(fruit_id, new_fruit)
        return fruit_id

    async def search_fruits(self, search: SearchFruitFilter) -> SearchFruitsResult:
        try:
            result = self._repository.search_with_filters(search)
        except Exception as exc:
            logger.exception("fruit_search_failed", extra={"filter": search.model_dump()})
            raise DataAccessError("something went wrong accessing db") from exc
        return SearchFruitsResult.from_repository(result)

    async def dataset_status(self) -> DatasetStatus:
        try:
            current = self._repository.dataset_status()
        except Exception:
            logger.exception("dataset_status_failed")
            return DatasetStatus(status="error", message=_REPOSITORY_UNAVAILABLE)
        return DatasetStatus(status="ok" if current.ok else "error", message=current.message)

    async def wait_for_publications(self) -> None:
        """Wait for in-flight publish tasks (used on shutdown and in tests)."""

        if self._publish_tasks:
            await asyncio.gather(*self._publish_tasks, return_exceptions=True)

    def _notify_new_fruit(self, fruit_id: int, new_fruit: NewFruit) -> None:
        event = NewFruitEvent(
            source_id=fruit_id,
            name=new_fruit.name,
            variety=new_fruit.variety,
            price=new_fruit.price,
        )
        task = asyncio.create_task(self._publish(event))
        self._publish_tasks.add(task)
        task.add_done_callback(self._publish_tasks.discard)

    async def _publish(self, event: NewFruitEvent) -> None:
        try:
            await self._publisher.publish(event)
        except Exception:
            logger.exception("fruit_publish_failed", extra={"event": event.model_dump(mode="json")})
