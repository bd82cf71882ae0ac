from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    app_name: str = "WeatherNow API"
    app_version: str = "1.0.0"
    open_meteo_base_url: str = "https://api.open-meteo.com/v1"
    open_meteo_geo_url: str = "https://geocoding-api.open-meteo.com/v1/search"
    open_meteo_reverse_geo_url: str = "https://geocoding-api.open-meteo.com/v1/reverse"
    open_meteo_air_quality_url: str = "https://air-quality-api.open-meteo.com/v1/air-quality"
    api_cache_ttl_seconds: int = 600
    api_retry_attempts: int = 2
    request_timeout_seconds: float = 12.0
    locale_hint: str = "en"
    initial_query: str = "New York"
    search_on_startup: bool = True
    debug_unlock_threshold: int = 10
    frontend_origins: tuple[str, ...] = ("http://localhost:5173", "http://127.0.0.1:5173")


def get_settings() -> Settings:
    origins_raw = os.getenv("FRONTEND_ORIGINS", "").strip()
    cache_ttl_raw = os.getenv("API_CACHE_TTL_SECONDS", "").strip()
    retry_attempts_raw = os.getenv("API_RETRY_ATTEMPTS", "").strip()
    timeout_raw = os.getenv("REQUEST_TIMEOUT_SECONDS", "").strip()
    locale_hint_raw = os.getenv("WEATHERNOW_LANG", "").strip() or os.getenv("LANG", "").strip()
    initial_query_raw = os.getenv("INITIAL_QUERY", "").strip()
    startup_raw = os.getenv("SEARCH_ON_STARTUP", "").strip().lower()
    threshold_raw = os.getenv("DEBUG_UNLOCK_THRESHOLD", "").strip()

    parsed_origins = tuple(item.strip() for item in origins_raw.split(",") if item.strip())

    try:
        cache_ttl_seconds = int(cache_ttl_raw) if cache_ttl_raw else 600
    except ValueError:
        cache_ttl_seconds = 600

    try:
        retry_attempts = int(retry_attempts_raw) if retry_attempts_raw else 2
    except ValueError:
        retry_attempts = 2

    try:
        request_timeout_seconds = float(timeout_raw) if timeout_raw else 12.0
    except ValueError:
        request_timeout_seconds = 12.0

    try:
        debug_unlock_threshold = int(threshold_raw) if threshold_raw else 10
    except ValueError:
        debug_unlock_threshold = 10

    search_on_startup = startup_raw not in {"0", "false", "no", "off"}

    return Settings(
        frontend_origins=parsed_origins or Settings.frontend_origins,
        api_cache_ttl_seconds=max(60, cache_ttl_seconds),
        api_retry_attempts=max(0, retry_attempts),
        request_timeout_seconds=max(1.0, request_timeout_seconds),
        locale_hint=locale_hint_raw or Settings.locale_hint,
        initial_query=initial_query_raw or Settings.initial_query,
        search_on_startup=search_on_startup,
        debug_unlock_threshold=max(1, debug_unlock_threshold),
    )
