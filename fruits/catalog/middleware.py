"""Service wrapper recording request outcomes on the metrics worker."""

from __future__ import annotations

from typing import Protocol

from fruits.catalog.schemas import DatasetStatus, Fruit, NewFruit, SearchFruitFilter, SearchFruitsResult
from fruits.catalog.service import FruitService


class MonitorCounter(Protocol):
    def count_request(self) -> None: ...

    def count_success(self) -> None: ...

    def count_error(self) -> None: ...


class MonitoredFruitService:
    """Count every call as a request and its outcome as a success or an error."""

    def __init__(self, service: FruitService, counter: MonitorCounter) -> None:
        self._next = service
        self._counter = counter

    async def get_fruit_with_id(self, fruit_id: int) -> Fruit | None:
        self._counter.count_request()
        try:
            fruit = await self._next.get_fruit_with_id(fruit_id)
        except Exception:
            self._counter.count_error()
            raise
        self._counter.count_success()
        return fruit

    async def create(self, new_fruit: NewFruit) -> int:
        self._counter.count_request()
        try:
            fruit_id = await self._next.create(new_fruit)
        except Exception:
            self._counter.count_error()
            raise
        self._counter.count_success()
        return fruit_id

    async def search_fruits(self, search: SearchFruitFilter) -> SearchFruitsResult:
        self._counter.count_request()
        try:
            result = await self._next.search_fruits(search)
        except Exception:
            self._counter.count_error()
            raise
        self._counter.count_success()
        return result

    async def dataset_status(self) -> DatasetStatus:
        # Status lookups degrade to an error payload instead of raising.
        self._counter.count_request()
        status = await self._next.dataset_status()
        self._counter.count_success()
        return status
