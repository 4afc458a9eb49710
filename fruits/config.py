"""Application configuration loading via Pydantic settings."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

_DEFAULT_DATASET_PATH = Path("/opt/fruits/fruits-dataset.json")


class Settings(BaseSettings):
    """Runtime configuration sourced from environment variables."""

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    application_host: str = Field(default="0.0.0.0", alias="APPLICATION_HOST")
    application_port: int = Field(default=8080, alias="APPLICATION_PORT")
    metrics_interval_millis: int = Field(default=60000, gt=0, alias="METRICS_INTERVAL_MILLIS")
    dataset_path: Path = Field(default=_DEFAULT_DATASET_PATH, alias="DATASET_PATH")
    load_dataset: bool = Field(default=True, alias="LOAD_DATASET")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def metrics_interval_seconds(self) -> float:
        return self.metrics_interval_millis / 1000


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()  # type: ignore[call-arg]
