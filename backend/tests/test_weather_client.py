import asyncio
import json

import httpx
import pytest

from app.config import Settings
from app.services.weather_client import (
    WeatherClient,
    build_air_quality_snapshot,
    build_weather_snapshot,
    parse_coordinate_query,
)


FORECAST_PAYLOAD = {
    "timezone": "America/New_York",
    "current": {
        "time": "2026-02-19T09:15",
        "temperature_2m": 24.0,
        "relative_humidity_2m": 64,
        "apparent_temperature": 25.34,
        "weather_code": 61,
        "wind_speed_10m": 12.0,
        "uv_index": 3.27,
    },
    "hourly": {
        "time": [
            "2026-02-19T07:00",
            "2026-02-19T08:00",
            "2026-02-19T09:00",
            "2026-02-19T10:00",
            "2026-02-19T11:00",
        ],
        "temperature_2m": [21.0, 22.5, 24.0, None, 26.0],
    },
    "daily": {
        "time": ["2026-02-19", "2026-02-20"],
        "weather_code": [61, 0],
        "temperature_2m_max": [28.0, 30.0],
        "temperature_2m_min": [21.0, 19.5],
    },
}

AIR_QUALITY_PAYLOAD = {
    "current": {
        "time": "2026-02-19T09:00",
        "us_aqi": 57,
        "european_aqi": 31,
        "pm2_5": 12.4,
        "pm10": 20.1,
        "nitrogen_dioxide": 18.0,
        "ozone": 64.0,
        "sulphur_dioxide": -0.2,
        "carbon_monoxide": None,
    },
    "hourly": {
        "time": ["2026-02-19T08:00", "2026-02-19T09:00", "2026-02-19T10:00"],
        "us_aqi": [50, 57, 61],
    },
}


def test_parse_coordinate_query() -> None:
    assert parse_coordinate_query("40.7128,-74.006") == (40.7128, -74.006)
    assert parse_coordinate_query(" 52.5 , 13.4 ") == (52.5, 13.4)
    assert parse_coordinate_query("New York") is None
    assert parse_coordinate_query("95,10") is None


def test_build_weather_snapshot_maps_and_localizes() -> None:
    snapshot = build_weather_snapshot(
        FORECAST_PAYLOAD, location="New York, United States", latitude=40.71, longitude=-74.01, locale="es"
    )

    assert snapshot is not None
    assert snapshot.coordinates.lat == 40.71
    assert snapshot.current.condition == "Lluvia ligera"
    assert snapshot.current.humidity == "64%"
    assert snapshot.current.wind == "12 km/h"
    assert snapshot.current.feels_like == 25.3
    assert snapshot.current.uv_index == 3.3
    assert [point.time for point in snapshot.hourly] == ["09:00", "11:00"]
    assert [day.day for day in snapshot.daily] == ["jue", "vie"]
    assert snapshot.daily[1].condition == "Cielo despejado"
    assert snapshot.summary == "Lluvia ligera en New York, United States con 24°C en este momento. Hoy entre 21°C y 28°C."


def test_build_weather_snapshot_without_current_conditions() -> None:
    assert build_weather_snapshot({"hourly": {}}, location="Nowhere", latitude=0, longitude=0) is None


def test_build_air_quality_snapshot_clamps_readings() -> None:
    snapshot = build_air_quality_snapshot(AIR_QUALITY_PAYLOAD)

    assert snapshot.current.us_aqi == 57
    assert snapshot.current.no2 == 18.0
    assert snapshot.current.so2 == 0.0
    assert snapshot.current.co == 0.0
    assert [(point.time, point.us_aqi) for point in snapshot.hourly] == [("09:00", 57), ("10:00", 61)]


def test_fetch_weather_geocodes_place_names(monkeypatch) -> None:
    client = WeatherClient(settings=Settings())
    requested: list[tuple[str, dict]] = []

    async def fake_get_json(*, url, params=None, **kwargs):  # noqa: ANN001, ANN003
        requested.append((url, params))
        if url == client.settings.open_meteo_geo_url:
            return {"results": [{"name": "Paris", "country": "France", "latitude": 48.85, "longitude": 2.35}]}
        return FORECAST_PAYLOAD

    monkeypatch.setattr(client, "_get_json", fake_get_json)
    snapshot = asyncio.run(client.fetch_weather("Paris", "fr"))

    assert snapshot is not None
    assert snapshot.location == "Paris, France"
    assert snapshot.current.condition == "Pluie faible"
    assert requested[0][1]["language"] == "fr"
    assert requested[1][1]["latitude"] == 48.85


def test_fetch_weather_returns_none_for_unknown_place(monkeypatch) -> None:
    client = WeatherClient(settings=Settings())

    async def fake_get_json(*, url, params=None, **kwargs):  # noqa: ANN001, ANN003
        if url == client.settings.open_meteo_geo_url:
            return {}
        return []

    monkeypatch.setattr(client, "_get_json", fake_get_json)

    assert asyncio.run(client.fetch_weather("Atlantis", "en")) is None
    assert asyncio.run(client.fetch_weather("   ", "en")) is None


def test_fetch_weather_for_coordinates_falls_back_to_formatted_name(monkeypatch) -> None:
    client = WeatherClient(settings=Settings())

    async def fake_get_json(*, url, params=None, **kwargs):  # noqa: ANN001, ANN003
        if url.endswith("/forecast"):
            return FORECAST_PAYLOAD
        raise httpx.ConnectError("geocoder offline")

    monkeypatch.setattr(client, "_get_json", fake_get_json)
    snapshot = asyncio.run(client.fetch_weather("40.7128,-74.006", "en"))

    assert snapshot is not None
    assert snapshot.location == "40.71, -74.01"
    assert snapshot.coordinates.lon == -74.006


def test_get_json_retries_retryable_status_and_caches() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        if len(calls) == 1:
            return httpx.Response(503)
        return httpx.Response(200, json={"ok": True})

    client = WeatherClient(settings=Settings(api_retry_attempts=2))
    client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

    async def scenario():
        first = await client._get_json(url="https://example.test/a", cache_key="a", cache_ttl_seconds=60)
        second = await client._get_json(url="https://example.test/a", cache_key="a", cache_ttl_seconds=60)
        await client.close()
        return first, second

    first, second = asyncio.run(scenario())

    assert first == second == {"ok": True}
    assert len(calls) == 2


def test_get_json_does_not_retry_client_errors() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        return httpx.Response(404)

    client = WeatherClient(settings=Settings(api_retry_attempts=2))
    client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(client._get_json(url="https://example.test/missing"))
    assert len(calls) == 1


def test_fetch_weather_for_coordinates_survives_malformed_geocoder_body(monkeypatch) -> None:
    client = WeatherClient(settings=Settings())

    async def fake_get_json(*, url, params=None, **kwargs):  # noqa: ANN001, ANN003
        if url.endswith("/forecast"):
            return FORECAST_PAYLOAD
        raise json.JSONDecodeError("Expecting value", "<html>", 0)

    monkeypatch.setattr(client, "_get_json", fake_get_json)
    snapshot = asyncio.run(client.fetch_weather("48.8566,2.3522", "en"))

    assert snapshot is not None
    assert snapshot.location == "48.86, 2.35"


def test_build_weather_snapshot_tolerates_non_finite_readings() -> None:
    payload = {
        **FORECAST_PAYLOAD,
        "current": {
            **FORECAST_PAYLOAD["current"],
            "relative_humidity_2m": float("nan"),
            "wind_speed_10m": float("inf"),
        },
    }

    snapshot = build_weather_snapshot(payload, location="Reykjavik", latitude=64.1, longitude=-21.9)

    assert snapshot is not None
    assert snapshot.current.humidity == "N/A%"
    assert snapshot.current.wind == "N/A km/h"
    assert snapshot.summary.startswith("Slight rain in Reykjavik with 24°C")
