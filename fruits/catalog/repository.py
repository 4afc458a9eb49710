"""In-memory fruit repository backed by the keyed store."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from pydantic import ValidationError as SchemaValidationError

from fruits.errors import DatasetError
from fruits.catalog.schemas import FindFruitsResult, Fruit, NewFruit, SearchFruitFilter
from fruits.lib.logger import get_logger
from fruits.storage.memory import KeyedStore

logger = get_logger(__name__)


@dataclass
class FruitDatasetStatus:
    ok: bool = True
    message: str = ""


class FruitMemoryRepository:
    """Persist fruits in process memory and track the dataset import outcome."""

    def __init__(self, store: KeyedStore[Fruit] | None = None) -> None:
        self._store: KeyedStore[Fruit] = store if store is not None else KeyedStore()
        self._dataset_status = FruitDatasetStatus()

    def save(self, new_fruit: NewFruit) -> int:
        fruit_id = self._store.new_id()
        self._store.save(fruit_id, new_fruit.to_fruit(fruit_id))
        logger.debug("fruit_saved", extra={"fruit_id": fruit_id})
        return fruit_id

    def update(self, fruit: Fruit) -> None:
        self._store.update(fruit.id, fruit)

    def find_by_id(self, fruit_id: int) -> Fruit | None:
        return self._store.find_by_id(fruit_id)

    def search_with_filters(self, search: SearchFruitFilter) -> FindFruitsResult:
        page = self._store.find_all(search.start, search.count)
        return FindFruitsResult(
            fruits=page,
            total=self._store.count(),
            start=search.start,
            count=search.count,
        )

    def dataset_status(self) -> FruitDatasetStatus:
        return self._dataset_status

    def count(self) -> int:
        return self._store.count()

    def load_dataset(self, records: Iterable[dict[str, Any]]) -> int:
        """Import fruits that carry their own ids, keeping the id sequence ahead of them."""

        loaded = 0
        for line, record in enumerate(records, start=1):
            try:
                fruit = Fruit.model_validate(record)
            except SchemaValidationError as exc:
                logger.error(
                    "dataset_record_invalid",
                    extra={"line": line, "error": str(exc)},
                )
                message = f"loading fruit dataset, but record {line} is not valid"
                self._mark_failed(message)
                raise DatasetError(message) from exc
            self._store.save(fruit.id, fruit)
            self._store.update_sequence_watermark(fruit.id)
            loaded += 1

        logger.info("dataset_loaded", extra={"records": loaded})
        return loaded

    def load_dataset_file(self, path: Path) -> int:
        """Import a JSON array of fruit objects from ``path``."""

        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("dataset_file_unreadable", extra={"path": str(path), "error": str(exc)})
            self._mark_failed(f"could not open file: {path}")
            raise DatasetError("could not open file") from exc

        if not isinstance(raw, list):
            message = f"dataset file must contain a list of fruits: {path}"
            self._mark_failed(message)
            raise DatasetError(message)

        return self.load_dataset(raw)

    def reset(self) -> None:
        """Clear stored fruits and dataset status (testing utility)."""

        self._store.reset()
        self._dataset_status = FruitDatasetStatus()

    def _mark_failed(self, message: str) -> None:
        self._dataset_status = FruitDatasetStatus(ok=False, message=message)
