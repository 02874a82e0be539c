"""Entry point for the FastAPI-powered release radar."""

from __future__ import annotations

import json
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .config import settings
from .database import Database
from .errors import PersistenceError
from .models import RadarItem
from .services.calendar import CalendarService
from .services.curation import CuratedSelector
from .services.document_store import DocumentStore
from .services.fetch_queue import FetchQueue
from .services.openrouter import build_oracle
from .services.radar_refresh import RadarRefreshService
from .services.radar_store import RadarStore
from .services.staleness import StalenessClock
from .services.taste import load_taste_profile
from .services.tmdb import TMDBClient

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    tmdb_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.tmdb_api_url),
            timeout=httpx.Timeout(15.0, connect=5.0),
        )
    )
    openrouter_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.openrouter_api_url),
            timeout=httpx.Timeout(60.0, connect=10.0),
        )
    )
    database = Database(settings.database_url)
    await database.create_all()
    store = DocumentStore(database.session_factory)

    queue = FetchQueue(settings.fetch_delay_seconds)
    tmdb = TMDBClient(settings, tmdb_http_client, queue)
    selector = CuratedSelector(
        build_oracle(settings, openrouter_client),
        timeout_seconds=settings.oracle_timeout_seconds,
        limit=settings.curated_selection_size,
    )

    async def taste_loader():
        return await load_taste_profile(store)

    radar_service = RadarRefreshService(
        settings,
        tmdb,
        selector,
        RadarStore(store),
        StalenessClock(store, settings),
        taste_loader,
    )

    fastapi_app.state.radar_service = radar_service
    fastapi_app.state.calendar_service = CalendarService(store)
    fastapi_app.state.database = database
    await radar_service.start()

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await radar_service.stop()
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Upcoming and trending releases, refreshed on a schedule",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_radar_service(app: FastAPI) -> RadarRefreshService:
    service = getattr(app.state, "radar_service", None)
    if service is None:
        raise RuntimeError("Radar service not initialised")
    return service


def get_calendar_service(app: FastAPI) -> CalendarService:
    service = getattr(app.state, "calendar_service", None)
    if service is None:
        raise RuntimeError("Calendar service not initialised")
    return service


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/radar")
    async def radar() -> JSONResponse:
        service = get_radar_service(fastapi_app)
        try:
            view = await service.ensure_radar()
        except PersistenceError as exc:
            logger.exception("Radar snapshot could not be read")
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return JSONResponse(view.to_payload())

    @fastapi_app.post("/radar/refresh")
    async def refresh_radar(force: bool = False) -> JSONResponse:
        service = get_radar_service(fastapi_app)
        try:
            report = await service.refresh(force=force)
        except PersistenceError as exc:
            logger.exception("Manual radar refresh could not be persisted")
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return JSONResponse(report.to_payload())

    @fastapi_app.get("/calendar")
    async def list_calendar() -> JSONResponse:
        service = get_calendar_service(fastapi_app)
        try:
            items = await service.list_items()
        except PersistenceError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return JSONResponse({"items": [item.to_payload() for item in items]})

    @fastapi_app.post("/calendar", status_code=201)
    async def add_to_calendar(request: Request) -> JSONResponse:
        service = get_calendar_service(fastapi_app)
        try:
            payload = await request.json()
        except json.JSONDecodeError:
            payload = None
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Invalid payload")
        try:
            item = RadarItem.model_validate(payload)
        except ValidationError as exc:
            raise HTTPException(
                status_code=422, detail=json.loads(exc.json())
            ) from exc
        try:
            saved = await service.add(item)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except PersistenceError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return JSONResponse(saved.to_payload(), status_code=201)

    @fastapi_app.delete("/calendar/{external_id}")
    async def remove_from_calendar(external_id: int) -> dict[str, Any]:
        service = get_calendar_service(fastapi_app)
        try:
            removed = await service.remove(external_id)
        except PersistenceError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        if not removed:
            raise HTTPException(status_code=404, detail="Item is not in the calendar")
        return {"status": "removed", "externalId": external_id}


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
