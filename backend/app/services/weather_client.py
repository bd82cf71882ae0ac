from __future__ import annotations

import asyncio
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from time import monotonic
from typing import Any

import httpx

from app.config import Settings
from app.schemas import (
    AirQualitySnapshot,
    Coordinates,
    CurrentWeather,
    DailyForecast,
    HourlyAirQuality,
    HourlyForecast,
    PollutantReadings,
    WeatherSnapshot,
)
from app.services.locale import DEFAULT_LOCALE


logger = logging.getLogger(__name__)

WEATHER_CODE_LABELS = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    56: "Freezing drizzle",
    57: "Dense freezing drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    66: "Freezing rain",
    67: "Heavy freezing rain",
    71: "Slight snow",
    73: "Moderate snow",
    75: "Heavy snow",
    77: "Snow grains",
    80: "Rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    85: "Snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with hail",
    99: "Heavy thunderstorm with hail",
}

CONDITION_LABELS = {
    "en": {},
    "es": {
        "Clear sky": "Cielo despejado",
        "Mainly clear": "Mayormente despejado",
        "Partly cloudy": "Parcialmente nublado",
        "Overcast": "Nublado",
        "Fog": "Niebla",
        "Depositing rime fog": "Niebla con escarcha",
        "Light drizzle": "Llovizna ligera",
        "Moderate drizzle": "Llovizna moderada",
        "Dense drizzle": "Llovizna intensa",
        "Freezing drizzle": "Llovizna helada",
        "Dense freezing drizzle": "Llovizna helada intensa",
        "Slight rain": "Lluvia ligera",
        "Moderate rain": "Lluvia moderada",
        "Heavy rain": "Lluvia intensa",
        "Freezing rain": "Lluvia helada",
        "Heavy freezing rain": "Lluvia helada intensa",
        "Slight snow": "Nevada ligera",
        "Moderate snow": "Nevada moderada",
        "Heavy snow": "Nevada intensa",
        "Snow grains": "Nevada granulada",
        "Rain showers": "Chubascos de lluvia",
        "Moderate rain showers": "Chubascos de lluvia moderados",
        "Violent rain showers": "Chubascos de lluvia fuertes",
        "Snow showers": "Chubascos de nevada",
        "Heavy snow showers": "Chubascos de nevada fuertes",
        "Thunderstorm": "Tormenta",
        "Thunderstorm with hail": "Tormenta con granizo",
        "Heavy thunderstorm with hail": "Tormenta fuerte con granizo",
        "Unknown": "Condición desconocida",
    },
    "fr": {
        "Clear sky": "Ciel dégagé",
        "Mainly clear": "Plutôt dégagé",
        "Partly cloudy": "Partiellement nuageux",
        "Overcast": "Couvert",
        "Fog": "Brouillard",
        "Depositing rime fog": "Brouillard givrant",
        "Light drizzle": "Bruine faible",
        "Moderate drizzle": "Bruine modérée",
        "Dense drizzle": "Bruine dense",
        "Freezing drizzle": "Bruine verglaçante",
        "Dense freezing drizzle": "Forte bruine verglaçante",
        "Slight rain": "Pluie faible",
        "Moderate rain": "Pluie modérée",
        "Heavy rain": "Forte pluie",
        "Freezing rain": "Pluie verglaçante",
        "Heavy freezing rain": "Forte pluie verglaçante",
        "Slight snow": "Neige faible",
        "Moderate snow": "Neige modérée",
        "Heavy snow": "Forte neige",
        "Snow grains": "Neige en grains",
        "Rain showers": "Averses de pluie",
        "Moderate rain showers": "Averses de pluie modérées",
        "Violent rain showers": "Fortes averses de pluie",
        "Snow showers": "Averses de neige",
        "Heavy snow showers": "Fortes averses de neige",
        "Thunderstorm": "Orage",
        "Thunderstorm with hail": "Orage avec grêle",
        "Heavy thunderstorm with hail": "Fort orage avec grêle",
        "Unknown": "Condition inconnue",
    },
    "de": {
        "Clear sky": "Klarer Himmel",
        "Mainly clear": "Überwiegend klar",
        "Partly cloudy": "Teilweise bewölkt",
        "Overcast": "Bedeckt",
        "Fog": "Nebel",
        "Depositing rime fog": "Nebel mit Reifbildung",
        "Light drizzle": "Leichter Sprühregen",
        "Moderate drizzle": "Mäßiger Sprühregen",
        "Dense drizzle": "Starker Sprühregen",
        "Freezing drizzle": "Gefrierender Sprühregen",
        "Dense freezing drizzle": "Starker gefrierender Sprühregen",
        "Slight rain": "Leichter Regen",
        "Moderate rain": "Mäßiger Regen",
        "Heavy rain": "Starker Regen",
        "Freezing rain": "Gefrierender Regen",
        "Heavy freezing rain": "Starker gefrierender Regen",
        "Slight snow": "Leichter Schneefall",
        "Moderate snow": "Mäßiger Schneefall",
        "Heavy snow": "Starker Schneefall",
        "Snow grains": "Schneegriesel",
        "Rain showers": "Regenschauer",
        "Moderate rain showers": "Mäßige Regenschauer",
        "Violent rain showers": "Heftige Regenschauer",
        "Snow showers": "Schneeschauer",
        "Heavy snow showers": "Starke Schneeschauer",
        "Thunderstorm": "Gewitter",
        "Thunderstorm with hail": "Gewitter mit Hagel",
        "Heavy thunderstorm with hail": "Schweres Gewitter mit Hagel",
        "Unknown": "Unbekannt",
    },
}

WEEKDAY_LABELS = {
    "en": ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"),
    "es": ("lun", "mar", "mié", "jue", "vie", "sáb", "dom"),
    "fr": ("lun.", "mar.", "mer.", "jeu.", "ven.", "sam.", "dim."),
    "de": ("Mo", "Di", "Mi", "Do", "Fr", "Sa", "So"),
}

SUMMARY_TEMPLATES = {
    "en": ("{condition} in {location} with {temp}°C right now.", " Today ranges from {low}°C to {high}°C."),
    "es": ("{condition} en {location} con {temp}°C en este momento.", " Hoy entre {low}°C y {high}°C."),
    "fr": ("{condition} à {location} avec {temp}°C en ce moment.", " Aujourd'hui entre {low}°C et {high}°C."),
    "de": ("{condition} in {location} bei aktuell {temp}°C.", " Heute zwischen {low}°C und {high}°C."),
}

RETRYABLE_HTTP_STATUS = {408, 429, 500, 502, 503, 504}
NOMINATIM_GEOCODE_URL = "https://nominatim.openstreetmap.org/search"
NOMINATIM_REVERSE_URL = "https://nominatim.openstreetmap.org/reverse"

_COORDINATE_QUERY = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*,\s*(-?\d+(?:\.\d+)?)\s*$")
HOURLY_POINTS = 24


@dataclass
class WeatherClient:
    settings: Settings
    _cache: dict[str, tuple[float, Any]] = field(default_factory=dict, init=False)
    _client: httpx.AsyncClient = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._client = httpx.AsyncClient(timeout=self.settings.request_timeout_seconds)

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch_weather(self, query: str, locale: str = DEFAULT_LOCALE) -> WeatherSnapshot | None:
        """
        Resolve ``query`` (place name or "lat,lon") and build a localized weather snapshot.
        Returns None when the place cannot be found or the provider sent no current conditions.
        """
        query = query.strip()
        if not query:
            return None

        coordinates = parse_coordinate_query(query)
        if coordinates is not None:
            latitude, longitude = coordinates
            place = await self.reverse_geocode(latitude, longitude, locale=locale)
            location_name = (place or {}).get("name") or f"{latitude:.2f}, {longitude:.2f}"
        else:
            results = await self.geocode(query, locale=locale)
            if not results:
                logger.info("No geocoding match for %r", query)
                return None
            first = results[0]
            latitude = _as_float(first.get("latitude"))
            longitude = _as_float(first.get("longitude"))
            if latitude is None or longitude is None:
                return None
            location_name = _format_place(first) or query

        payload = await self._fetch_forecast(latitude=latitude, longitude=longitude)
        return build_weather_snapshot(
            payload,
            location=location_name,
            latitude=latitude,
            longitude=longitude,
            locale=locale,
        )

    async def fetch_air_quality(self, latitude: float, longitude: float) -> AirQualitySnapshot:
        payload = await self._get_json(
            url=self.settings.open_meteo_air_quality_url,
            params={
                "latitude": latitude,
                "longitude": longitude,
                "timezone": "auto",
                "current": "us_aqi,european_aqi,pm2_5,pm10,nitrogen_dioxide,ozone,sulphur_dioxide,carbon_monoxide",
                "hourly": "us_aqi",
                "forecast_days": 2,
            },
            cache_key=f"aqi:{round(latitude, 4)}:{round(longitude, 4)}",
            cache_ttl_seconds=self.settings.api_cache_ttl_seconds,
        )
        return build_air_quality_snapshot(payload)

    async def geocode(self, query: str, locale: str = DEFAULT_LOCALE) -> list[dict]:
        query = query.strip()
        if not query:
            return []

        payload = await self._get_json(
            url=self.settings.open_meteo_geo_url,
            params={"name": query, "count": 5, "language": locale, "format": "json"},
            cache_key=f"geo:{locale}:{query.lower()}",
            cache_ttl_seconds=3600,
        )
        results = payload.get("results", [])
        if results:
            return results
        return await self._geocode_fallback(query)

    async def reverse_geocode(self, latitude: float, longitude: float, locale: str = DEFAULT_LOCALE) -> dict | None:
        try:
            payload = await self._get_json(
                url=self.settings.open_meteo_reverse_geo_url,
                params={
                    "latitude": round(latitude, 6),
                    "longitude": round(longitude, 6),
                    "count": 1,
                    "language": locale,
                    "format": "json",
                },
                cache_key=f"reverse-geo:{locale}:{round(latitude, 5)}:{round(longitude, 5)}",
                cache_ttl_seconds=3600,
                retry_attempts=1,
            )
            results = payload.get("results", [])
            if results:
                first = results[0]
                return {
                    "name": _format_place(first),
                    "latitude": _as_float(first.get("latitude")) or latitude,
                    "longitude": _as_float(first.get("longitude")) or longitude,
                }
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Reverse geocoding failed, trying fallback: %s", exc)

        return await self._reverse_geocode_fallback(latitude=latitude, longitude=longitude)

    async def _fetch_forecast(self, *, latitude: float, longitude: float) -> dict:
        params: dict[str, Any] = {
            "latitude": latitude,
            "longitude": longitude,
            "timezone": "auto",
            "current": "temperature_2m,relative_humidity_2m,apparent_temperature,weather_code,wind_speed_10m,uv_index",
            "hourly": "temperature_2m",
            "daily": "weather_code,temperature_2m_max,temperature_2m_min",
            "forecast_days": 7,
        }
        return await self._get_json(
            url=f"{self.settings.open_meteo_base_url}/forecast",
            params=params,
            cache_key=f"forecast:{round(latitude, 4)}:{round(longitude, 4)}",
            cache_ttl_seconds=self.settings.api_cache_ttl_seconds,
        )

    async def _geocode_fallback(self, query: str) -> list[dict]:
        try:
            payload = await self._get_json(
                url=NOMINATIM_GEOCODE_URL,
                params={"q": query, "format": "jsonv2", "limit": 5, "addressdetails": 1},
                headers={"User-Agent": f"{self.settings.app_name}/{self.settings.app_version}"},
                cache_key=f"geo-fallback:{query.lower()}",
                cache_ttl_seconds=3600,
                retry_attempts=1,
            )
        except (httpx.HTTPError, ValueError):
            return []

        if not isinstance(payload, list):
            return []

        mapped_results: list[dict] = []
        for item in payload:
            if not isinstance(item, dict):
                continue

            address = item.get("address", {}) if isinstance(item.get("address"), dict) else {}
            latitude = _as_float(item.get("lat"))
            longitude = _as_float(item.get("lon"))
            if latitude is None or longitude is None:
                continue

            mapped_results.append(
                {
                    "name": item.get("name") or address.get("city") or address.get("town") or item.get("display_name"),
                    "country": address.get("country"),
                    "latitude": latitude,
                    "longitude": longitude,
                }
            )
        return mapped_results

    async def _reverse_geocode_fallback(self, *, latitude: float, longitude: float) -> dict | None:
        try:
            payload = await self._get_json(
                url=NOMINATIM_REVERSE_URL,
                params={
                    "lat": round(latitude, 6),
                    "lon": round(longitude, 6),
                    "format": "jsonv2",
                    "addressdetails": 1,
                },
                headers={"User-Agent": f"{self.settings.app_name}/{self.settings.app_version}"},
                cache_key=f"reverse-geo-fallback:{round(latitude, 5)}:{round(longitude, 5)}",
                cache_ttl_seconds=3600,
                retry_attempts=1,
            )
        except (httpx.HTTPError, ValueError):
            return None

        if not isinstance(payload, dict):
            return None

        address = payload.get("address", {}) if isinstance(payload.get("address"), dict) else {}
        name = (
            address.get("city")
            or address.get("town")
            or address.get("village")
            or payload.get("name")
            or address.get("state")
        )
        if not name:
            return None
        return {"name": name, "latitude": latitude, "longitude": longitude}

    async def _get_json(
        self,
        *,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        cache_key: str | None = None,
        cache_ttl_seconds: int = 0,
        retry_attempts: int | None = None,
    ) -> Any:
        if cache_key and cache_ttl_seconds > 0:
            cached = self._cache_get(cache_key)
            if cached is not None:
                logger.debug("Cache hit for %s", cache_key)
                return cached

        attempts = self.settings.api_retry_attempts if retry_attempts is None else max(0, retry_attempts)
        for attempt in range(attempts + 1):
            try:
                response = await self._client.get(url, params=params, headers=headers)
                response.raise_for_status()
                payload = response.json()
                if cache_key and cache_ttl_seconds > 0:
                    self._cache_set(cache_key, payload, ttl_seconds=cache_ttl_seconds)
                return payload
            except httpx.HTTPStatusError as exc:
                status_code = exc.response.status_code
                if status_code not in RETRYABLE_HTTP_STATUS or attempt >= attempts:
                    raise
                logger.warning("Upstream %s returned %s (attempt %d)", url, status_code, attempt + 1)
            except httpx.RequestError as exc:
                if attempt >= attempts:
                    raise
                logger.warning("Request to %s failed (attempt %d): %s", url, attempt + 1, exc)
            await asyncio.sleep(0.35 * (attempt + 1))

        raise RuntimeError("Failed to fetch upstream JSON payload.")

    def _cache_get(self, key: str) -> Any | None:
        entry = self._cache.get(key)
        if entry is None:
            return None
        expires_at, payload = entry
        if monotonic() >= expires_at:
            self._cache.pop(key, None)
            return None
        return payload

    def _cache_set(self, key: str, payload: Any, *, ttl_seconds: int) -> None:
        self._cache[key] = (monotonic() + max(1, ttl_seconds), payload)


def parse_coordinate_query(query: str) -> tuple[float, float] | None:
    match = _COORDINATE_QUERY.match(query)
    if match is None:
        return None
    latitude, longitude = float(match.group(1)), float(match.group(2))
    if not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
        return None
    return latitude, longitude


def weather_code_to_label(code: int | None, locale: str = DEFAULT_LOCALE) -> str:
    label = "Unknown" if code is None else WEATHER_CODE_LABELS.get(code, "Unknown")
    return CONDITION_LABELS.get(locale, {}).get(label, label)


def build_weather_snapshot(
    payload: dict,
    *,
    location: str,
    latitude: float,
    longitude: float,
    locale: str = DEFAULT_LOCALE,
) -> WeatherSnapshot | None:
    current = payload.get("current") or {}
    temp_c = _as_float(current.get("temperature_2m"))
    if temp_c is None:
        return None

    condition = weather_code_to_label(_as_int(current.get("weather_code")), locale)
    current_weather = CurrentWeather(
        temp_c=temp_c,
        condition=condition,
        humidity=f"{_fmt_number(_as_float(current.get('relative_humidity_2m')))}%",
        wind=f"{_fmt_number(_as_float(current.get('wind_speed_10m')))} km/h",
        feels_like=_round_or_none(_as_float(current.get("apparent_temperature")), 1),
        uv_index=_round_or_none(_as_float(current.get("uv_index")), 1),
    )

    hourly = payload.get("hourly", {})
    hourly_points: list[HourlyForecast] = []
    stamps = hourly.get("time", [])
    temps = hourly.get("temperature_2m", [])
    start_idx = _first_index_at_or_after(stamps, current.get("time"))
    for idx in range(start_idx, min(len(stamps), len(temps))):
        value = _as_float(temps[idx])
        if value is None:
            continue
        hourly_points.append(HourlyForecast(time=_hour_label(stamps[idx]), temp_c=value))
        if len(hourly_points) >= HOURLY_POINTS:
            break

    daily = payload.get("daily", {})
    daily_points: list[DailyForecast] = []
    for idx, stamp in enumerate(daily.get("time", [])):
        low = _as_float(_value_at(daily.get("temperature_2m_min", []), idx))
        high = _as_float(_value_at(daily.get("temperature_2m_max", []), idx))
        if low is None or high is None:
            continue
        daily_points.append(
            DailyForecast(
                day=_day_label(stamp, locale),
                min_temp=low,
                max_temp=high,
                condition=weather_code_to_label(_as_int(_value_at(daily.get("weather_code", []), idx)), locale),
            )
        )

    return WeatherSnapshot(
        location=location,
        coordinates=Coordinates(lat=latitude, lon=longitude),
        current=current_weather,
        hourly=tuple(hourly_points),
        daily=tuple(daily_points),
        summary=build_summary(location, current_weather, daily_points, locale),
    )


def build_air_quality_snapshot(payload: dict) -> AirQualitySnapshot:
    current = payload.get("current") or {}
    readings = PollutantReadings(
        us_aqi=_non_negative(current.get("us_aqi")),
        european_aqi=_non_negative(current.get("european_aqi")),
        pm2_5=_non_negative(current.get("pm2_5")),
        pm10=_non_negative(current.get("pm10")),
        no2=_non_negative(current.get("nitrogen_dioxide")),
        o3=_non_negative(current.get("ozone")),
        so2=_non_negative(current.get("sulphur_dioxide")),
        co=_non_negative(current.get("carbon_monoxide")),
    )

    hourly = payload.get("hourly", {})
    stamps = hourly.get("time", [])
    values = hourly.get("us_aqi", [])
    points: list[HourlyAirQuality] = []
    for idx in range(_first_index_at_or_after(stamps, current.get("time")), min(len(stamps), len(values))):
        value = _as_float(values[idx])
        if value is None:
            continue
        points.append(HourlyAirQuality(time=_hour_label(stamps[idx]), us_aqi=max(0.0, value)))
        if len(points) >= HOURLY_POINTS:
            break

    return AirQualitySnapshot(current=readings, hourly=tuple(points))


def build_summary(
    location: str,
    current: CurrentWeather,
    daily: list[DailyForecast],
    locale: str = DEFAULT_LOCALE,
) -> str:
    now_template, range_template = SUMMARY_TEMPLATES.get(locale, SUMMARY_TEMPLATES[DEFAULT_LOCALE])
    summary = now_template.format(condition=current.condition, location=location, temp=_fmt_number(current.temp_c))
    if daily:
        today = daily[0]
        summary += range_template.format(low=_fmt_number(today.min_temp), high=_fmt_number(today.max_temp))
    return summary


def _format_place(item: dict) -> str | None:
    name = item.get("name")
    country = item.get("country")
    if name and country:
        return f"{name}, {country}"
    return name


def _first_index_at_or_after(stamps: list, reference: object) -> int:
    if not isinstance(reference, str):
        return 0
    # Open-Meteo reports current time on 15-minute steps; floor it to the hour.
    hour_reference = reference[:13]
    for idx, stamp in enumerate(stamps):
        if isinstance(stamp, str) and stamp[:13] >= hour_reference:
            return idx
    return 0


def _hour_label(stamp: str) -> str:
    try:
        return datetime.fromisoformat(stamp).strftime("%H:%M")
    except ValueError:
        return stamp[-5:]


def _day_label(value: str, locale: str) -> str:
    try:
        weekday = date.fromisoformat(str(value)[:10]).weekday()
    except ValueError:
        return str(value)[:10]
    return WEEKDAY_LABELS.get(locale, WEEKDAY_LABELS[DEFAULT_LOCALE])[weekday]


def _value_at(values: list | tuple, idx: int) -> object:
    if idx >= len(values):
        return None
    return values[idx]


def _fmt_number(value: float | None, fallback: str = "N/A") -> str:
    if value is None or not math.isfinite(value):
        return fallback
    if abs(value - int(value)) < 0.05:
        return str(int(round(value)))
    return f"{value:.1f}"


def _non_negative(value: object) -> float:
    parsed = _as_float(value)
    if parsed is None:
        return 0.0
    return max(0.0, parsed)


def _round_or_none(value: float | None, digits: int) -> float | None:
    if value is None:
        return None
    return round(value, digits)


def _as_float(value: object) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_int(value: object) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
