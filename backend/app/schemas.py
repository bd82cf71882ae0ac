from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


LocaleCode = Literal["en", "es", "fr", "de"]
ViewTab = Literal["weather", "air"]


class _Snapshot(BaseModel):
    model_config = ConfigDict(frozen=True)


class Coordinates(_Snapshot):
    lat: float
    lon: float


class CurrentWeather(_Snapshot):
    temp_c: float
    condition: str
    humidity: str
    wind: str
    feels_like: float | None = None
    uv_index: float | None = None


class HourlyForecast(_Snapshot):
    time: str
    temp_c: float


class DailyForecast(_Snapshot):
    day: str
    min_temp: float
    max_temp: float
    condition: str


class WeatherSnapshot(_Snapshot):
    location: str
    coordinates: Coordinates
    current: CurrentWeather
    hourly: tuple[HourlyForecast, ...] = ()
    daily: tuple[DailyForecast, ...] = ()
    summary: str = ""


class PollutantReadings(_Snapshot):
    us_aqi: float = Field(ge=0)
    european_aqi: float = Field(ge=0)
    pm2_5: float = Field(ge=0)
    pm10: float = Field(ge=0)
    no2: float = Field(ge=0)
    o3: float = Field(ge=0)
    so2: float = Field(ge=0)
    co: float = Field(ge=0)


class HourlyAirQuality(_Snapshot):
    time: str
    us_aqi: float = Field(ge=0)


class AirQualitySnapshot(_Snapshot):
    current: PollutantReadings
    hourly: tuple[HourlyAirQuality, ...] = ()


class DebugView(BaseModel):
    interactions: int
    unlocked: bool


class AqiStatusView(BaseModel):
    band: str
    label_key: str
    label: str
    color: str


class SessionView(BaseModel):
    """Read-only projection of a session handed to the rendering layer."""

    locale: LocaleCode
    weather: WeatherSnapshot | None = None
    air_quality: AirQualitySnapshot | None = None
    loading: bool = False
    error: str | None = None
    error_message: str | None = None
    elapsed_seconds: float | None = None
    request_took: str | None = None
    active_tab: ViewTab = "weather"
    debug: DebugView
    theme: str
    theme_gradient: str
    aqi_status: AqiStatusView | None = None


class SearchRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    query: str = Field(min_length=1, max_length=80, description="City name or 'latitude,longitude' pair.")


class LocateRequest(BaseModel):
    """Outcome of the browser geolocation prompt, posted by the front end."""

    model_config = ConfigDict(extra="ignore")

    supported: bool = True
    denied: bool = False
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)

    @model_validator(mode="after")
    def validate_position(self) -> "LocateRequest":
        if self.supported and not self.denied and (self.latitude is None or self.longitude is None):
            raise ValueError("Provide latitude and longitude, or flag the request as denied or unsupported.")
        return self


class TabRequest(BaseModel):
    tab: ViewTab
