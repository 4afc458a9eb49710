"""Pytest fixtures for fruits service tests."""

from collections.abc import AsyncIterator, Iterator
import os

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

os.environ.setdefault("LOAD_DATASET", "false")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("METRICS_INTERVAL_MILLIS", "60000")

from fruits.catalog.schemas import NewFruit
from fruits.main import app as fastapi_app
from fruits.main import lifespan


@pytest.fixture(scope="session")
def app() -> FastAPI:
    """Return the FastAPI application instance."""
    return fastapi_app


@pytest_asyncio.fixture()
async def async_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Provide an `httpx.AsyncClient` wired to the app through ASGI.

    `ASGITransport` does not send lifespan events, so the lifespan is entered
    here to run the metrics worker behind the routes.
    """
    async with lifespan(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client


@pytest.fixture(autouse=True)
def reset_runtime(app: FastAPI) -> Iterator[None]:
    """Clear stored fruits and the last metrics report around each test."""

    app.state.fruit_repository.reset()
    app.state.metrics.reset()
    yield
    app.state.fruit_repository.reset()
    app.state.metrics.reset()


@pytest.fixture()
def new_fruit() -> NewFruit:
    return NewFruit(
        name="Nicosia 2013 Vulka Bianco  (Etna)",
        variety="White Blend",
        vault="Nicosia",
        year=87,
        country="Italy",
        province="Sicily & Sardinia",
        region="Etna",
        description="brisk acidity",
        classification="Vulka Bianco",
        local_name="Kerin O'Keefe",
        wiki_page="@kerinokeefe",
    )
