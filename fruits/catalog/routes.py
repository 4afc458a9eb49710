"""API routes for reading, creating, and searching fruits."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from fruits.catalog.middleware import MonitoredFruitService
from fruits.catalog.schemas import DEFAULT_COUNT, DEFAULT_START, NewFruit, SearchFruitFilter
from fruits.errors import DataAccessError

router = APIRouter()

MAX_PAGE_SIZE = 100


def get_fruit_service(request: Request) -> MonitoredFruitService:
    service: MonitoredFruitService | None = getattr(request.app.state, "fruit_service", None)
    if service is None:
        raise RuntimeError("Fruit service not configured on application state")
    return service


@router.get("/fruits/{fruit_id}")
async def get_fruit(fruit_id: int, service: MonitoredFruitService = Depends(get_fruit_service)) -> JSONResponse:
    try:
        fruit = await service.get_fruit_with_id(fruit_id)
    except DataAccessError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    if fruit is None:
        raise HTTPException(status_code=404, detail="Fruit not found")
    return JSONResponse({"ok": True, "data": fruit.model_dump(mode="json")})


@router.put("/fruits")
async def create_fruit(payload: NewFruit, service: MonitoredFruitService = Depends(get_fruit_service)) -> JSONResponse:
    """Create a fruit and return its assigned id."""

    try:
        fruit_id = await service.create(payload)
    except DataAccessError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return JSONResponse({"ok": True, "data": {"id": fruit_id}})


@router.get("/fruits")
async def search_fruits(
    start: int = Query(default=DEFAULT_START, ge=1),
    count: int = Query(default=DEFAULT_COUNT, ge=0, le=MAX_PAGE_SIZE),
    service: MonitoredFruitService = Depends(get_fruit_service),
) -> JSONResponse:
    """Return one page of fruits in insertion order."""

    try:
        result = await service.search_fruits(SearchFruitFilter(start=start, count=count))
    except DataAccessError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return JSONResponse({"ok": True, "data": result.model_dump(mode="json")})


@router.get("/status")
async def dataset_status(service: MonitoredFruitService = Depends(get_fruit_service)) -> JSONResponse:
    status = await service.dataset_status()
    return JSONResponse(status.model_dump(mode="json"))
