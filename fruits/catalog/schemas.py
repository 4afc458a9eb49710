"""Pydantic schemas for the fruits catalog."""

from __future__ import annotations

import time
from typing import Literal

from pydantic import BaseModel, Field, model_validator

_MANDATORY_FIELDS: tuple[str, ...] = ("name", "classification", "country", "vault")

DEFAULT_START = 1
DEFAULT_COUNT = 10


class FruitFields(BaseModel):
    """Descriptive fields shared by new and stored fruits."""

    name: str = ""
    variety: str = ""
    vault: str = ""
    year: int = 0
    price: float | None = Field(default=None, ge=0)
    country: str = ""
    province: str = ""
    region: str = ""
    finca: str = ""
    description: str = ""
    classification: str = ""
    local_name: str = ""
    wiki_page: str = ""


class NewFruit(FruitFields):
    """Input payload for creating a fruit."""

    @model_validator(mode="after")
    def check_mandatory_fields(self) -> "NewFruit":
        missing = [field for field in _MANDATORY_FIELDS if not getattr(self, field).strip()]
        if missing:
            raise ValueError(f"these fields are mandatory: {', '.join(missing)}.")
        return self

    def to_fruit(self, fruit_id: int) -> "Fruit":
        return Fruit(id=fruit_id, **self.model_dump())


class Fruit(FruitFields):
    """A stored fruit record."""

    id: int = Field(..., ge=1)


class FruitItem(BaseModel):
    """Reference data for a fruit listed in search results."""

    id: int
    name: str

    @classmethod
    def from_fruit(cls, fruit: Fruit) -> "FruitItem":
        return cls(id=fruit.id, name=fruit.name)


class SearchFruitFilter(BaseModel):
    """Pagination window for fruit searches (1-based start)."""

    start: int = Field(default=DEFAULT_START, ge=1)
    count: int = Field(default=DEFAULT_COUNT, ge=0)


class FindFruitsResult(BaseModel):
    """Repository search page."""

    fruits: list[Fruit] = Field(default_factory=list)
    total: int = 0
    start: int = DEFAULT_START
    count: int = DEFAULT_COUNT


class SearchFruitsResult(BaseModel):
    """Service search page returned to clients."""

    fruits: list[FruitItem] = Field(default_factory=list)
    total: int = 0
    start: int = DEFAULT_START
    count: int = DEFAULT_COUNT

    @classmethod
    def from_repository(cls, result: FindFruitsResult) -> "SearchFruitsResult":
        return cls(
            fruits=[FruitItem.from_fruit(fruit) for fruit in result.fruits],
            total=result.total,
            start=result.start,
            count=result.count,
        )


class DatasetStatus(BaseModel):
    """Outcome of the dataset import as reported by the status endpoint."""

    status: Literal["ok", "error"]
    message: str = ""
    timestamp: int = Field(default_factory=lambda: int(time.time()))


class NewFruitEvent(BaseModel):
    """Event published after a fruit has been created."""

    source_id: int
    name: str
    variety: str
    price: float | None = None
