from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.schemas import Coordinates, LocateRequest, SearchRequest, SessionView, TabRequest
from app.services.classifiers import THEME_GRADIENTS, classify_aqi, classify_condition
from app.services.locale import SUPPORTED_LOCALES, get_translations, resolve_locale, translate
from app.services.session import (
    DeviceLocator,
    ErrorKind,
    FetchOrchestrator,
    GeolocationError,
    SessionController,
)
from app.services.weather_client import WeatherClient


logger = logging.getLogger(__name__)

settings = get_settings()
weather_client = WeatherClient(settings=settings)
session = SessionController(
    FetchOrchestrator(
        fetch_weather=weather_client.fetch_weather,
        fetch_air_quality=weather_client.fetch_air_quality,
    ),
    locale=resolve_locale(settings.locale_hint),
    debug_unlock_threshold=settings.debug_unlock_threshold,
)

app = FastAPI(title=settings.app_name, version=settings.app_version)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.frontend_origins),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event() -> None:
    logger.info("Session locale resolved to %s from hint %r", session.state.locale, settings.locale_hint)
    if settings.search_on_startup:
        await session.search(settings.initial_query)


@app.on_event("shutdown")
async def shutdown_event() -> None:
    await weather_client.close()


@app.get("/api/health")
async def health() -> dict:
    return {
        "status": "ok",
        "service": settings.app_name,
        "timestamp_utc": datetime.now(tz=timezone.utc).isoformat(),
    }


@app.get("/api/session")
async def session_view() -> SessionView:
    return session.view()


@app.post("/api/session/search")
async def search(payload: SearchRequest) -> SessionView:
    return await session.search(payload.query)


@app.post("/api/session/locate")
async def locate(payload: LocateRequest) -> SessionView:
    return await session.locate(_device_locator(payload))


@app.put("/api/session/tab")
async def set_active_tab(payload: TabRequest) -> SessionView:
    return session.set_active_tab(payload.tab)


@app.post("/api/session/chart-interaction")
async def register_chart_interaction() -> SessionView:
    return session.register_chart_interaction()


@app.get("/api/translations/{locale}")
async def translations(locale: str) -> dict:
    resolved = resolve_locale(locale)
    return {
        "locale": resolved,
        "available_locales": list(SUPPORTED_LOCALES),
        "strings": get_translations(resolved),
    }


@app.get("/api/classify/condition")
async def classify_condition_route(text: str = Query(default="", max_length=120)) -> dict:
    theme = classify_condition(text)
    return {"text": text, "theme": theme.value, "gradient": THEME_GRADIENTS[theme]}


@app.get("/api/classify/aqi")
async def classify_aqi_route(value: float = Query(ge=0)) -> dict:
    status = classify_aqi(value)
    return {
        "value": value,
        "band": status.band.value,
        "label_key": status.label_key,
        "label": translate(session.state.locale, status.label_key),
        "color": status.color,
    }


def _device_locator(payload: LocateRequest) -> DeviceLocator | None:
    if not payload.supported:
        return None

    async def locate_device() -> Coordinates:
        if payload.denied:
            raise GeolocationError(ErrorKind.PERMISSION_DENIED)
        return Coordinates(lat=payload.latitude, lon=payload.longitude)

    return locate_device
