from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from time import perf_counter

from app.schemas import (
    AirQualitySnapshot,
    AqiStatusView,
    Coordinates,
    DebugView,
    LocaleCode,
    SessionView,
    ViewTab,
    WeatherSnapshot,
)
from app.services.classifiers import THEME_GRADIENTS, ThemeCategory, classify_aqi, classify_condition
from app.services.locale import DEFAULT_LOCALE, translate


logger = logging.getLogger(__name__)

WeatherFetcher = Callable[[str, str], Awaitable[WeatherSnapshot | None]]
AirQualityFetcher = Callable[[float, float], Awaitable[AirQualitySnapshot]]
DeviceLocator = Callable[[], Awaitable[Coordinates]]


class ErrorKind(str, Enum):
    FETCH_FAILED = "FetchFailed"
    NETWORK_OR_PROVIDER = "NetworkOrProviderError"
    PERMISSION_DENIED = "PermissionDenied"
    UNSUPPORTED = "Unsupported"

    @property
    def message_key(self) -> str:
        return ERROR_MESSAGE_KEYS[self]


ERROR_MESSAGE_KEYS = {
    ErrorKind.FETCH_FAILED: "errors.fetch",
    ErrorKind.NETWORK_OR_PROVIDER: "errors.general",
    ErrorKind.PERMISSION_DENIED: "errors.denied",
    ErrorKind.UNSUPPORTED: "errors.noGeo",
}


class GeolocationError(Exception):
    """Raised by a device locator when the position cannot be obtained."""

    def __init__(self, kind: ErrorKind, message: str = "") -> None:
        super().__init__(message or kind.value)
        self.kind = kind


@dataclass
class DebugUnlockLatch:
    threshold: int = 10
    interactions: int = 0
    unlocked: bool = False

    def register_interaction(self) -> bool:
        if self.unlocked:
            return True
        self.interactions += 1
        if self.interactions >= self.threshold:
            self.unlocked = True
            logger.info("Debug mode unlocked after %d interactions", self.interactions)
        return self.unlocked


@dataclass(frozen=True)
class SearchOutcome:
    weather: WeatherSnapshot | None = None
    air_quality: AirQualitySnapshot | None = None
    error: ErrorKind | None = None
    elapsed_seconds: float | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class FetchOrchestrator:
    fetch_weather: WeatherFetcher
    fetch_air_quality: AirQualityFetcher

    async def search(self, query: str, locale: str) -> SearchOutcome:
        """
        Fetch weather for ``query`` and then air quality for the coordinates it reports.

        Never raises. A weather failure yields an error outcome with nothing to commit;
        an air-quality failure after a weather success still returns the weather snapshot.
        """
        started = perf_counter()
        try:
            weather = await self.fetch_weather(query, locale)
        except Exception as exc:
            logger.warning("Weather lookup for %r failed: %s", query, exc, exc_info=True)
            return SearchOutcome(error=ErrorKind.NETWORK_OR_PROVIDER)

        if weather is None:
            elapsed = perf_counter() - started
            logger.info("No weather data for %r (%.2fs)", query, elapsed)
            return SearchOutcome(error=ErrorKind.FETCH_FAILED, elapsed_seconds=elapsed)

        air_quality: AirQualitySnapshot | None = None
        try:
            air_quality = await self.fetch_air_quality(weather.coordinates.lat, weather.coordinates.lon)
        except Exception as exc:
            logger.warning("Air quality lookup for %s failed: %s", weather.location, exc, exc_info=True)

        elapsed = perf_counter() - started
        logger.info("Search for %r resolved to %s in %.2fs", query, weather.location, elapsed)
        return SearchOutcome(weather=weather, air_quality=air_quality, elapsed_seconds=elapsed)

    async def locate(self, get_device_location: DeviceLocator | None) -> str:
        """Resolve the device position into a "lat,lon" query or raise GeolocationError."""
        if get_device_location is None:
            raise GeolocationError(ErrorKind.UNSUPPORTED)
        try:
            position = await get_device_location()
        except GeolocationError:
            raise
        except Exception as exc:
            # Any other position failure is reported to the user as a refusal.
            raise GeolocationError(ErrorKind.PERMISSION_DENIED, str(exc)) from exc
        # Fixed precision: repr() switches to exponent form below 1e-4.
        return f"{position.lat:.6f},{position.lon:.6f}"


@dataclass
class SessionState:
    locale: LocaleCode = DEFAULT_LOCALE
    weather: WeatherSnapshot | None = None
    air_quality: AirQualitySnapshot | None = None
    loading: bool = False
    error: ErrorKind | None = None
    elapsed_seconds: float | None = None
    active_tab: ViewTab = "weather"
    debug: DebugUnlockLatch = field(default_factory=DebugUnlockLatch)


class SessionController:
    """Owns one session's state; the rendering layer only sees ``view()`` projections."""

    def __init__(
        self,
        orchestrator: FetchOrchestrator,
        *,
        locale: LocaleCode = DEFAULT_LOCALE,
        debug_unlock_threshold: int = 10,
    ) -> None:
        self._orchestrator = orchestrator
        self._state = SessionState(locale=locale, debug=DebugUnlockLatch(threshold=debug_unlock_threshold))
        self._sequence = 0

    @property
    def state(self) -> SessionState:
        return self._state

    async def search(self, query: str) -> SessionView:
        return await self._search(query, self._next_ticket())

    async def locate(self, get_device_location: DeviceLocator | None) -> SessionView:
        # The ticket is taken before the position resolves so earlier searches cannot commit meanwhile.
        ticket = self._next_ticket()
        try:
            query = await self._orchestrator.locate(get_device_location)
        except GeolocationError as exc:
            if ticket != self._sequence:
                logger.info("Dropping stale geolocation failure (request %d, latest %d)", ticket, self._sequence)
                return self.view()
            logger.info("Geolocation unavailable: %s", exc.kind.value)
            self._state.error = exc.kind
            self._state.loading = False
            return self.view()

        if ticket != self._sequence:
            logger.info("Dropping stale position %s (request %d, latest %d)", query, ticket, self._sequence)
            return self.view()
        return await self._search(query, ticket)

    def set_active_tab(self, tab: ViewTab) -> SessionView:
        self._state.active_tab = tab
        return self.view()

    def register_chart_interaction(self) -> SessionView:
        self._state.debug.register_interaction()
        return self.view()

    def view(self) -> SessionView:
        state = self._state
        theme = ThemeCategory.NEUTRAL
        if state.weather is not None:
            theme = classify_condition(state.weather.current.condition)

        aqi_status = None
        if state.air_quality is not None:
            status = classify_aqi(state.air_quality.current.us_aqi)
            aqi_status = AqiStatusView(
                band=status.band.value,
                label_key=status.label_key,
                label=translate(state.locale, status.label_key),
                color=status.color,
            )

        request_took = None
        if state.elapsed_seconds is not None and not state.loading and state.debug.unlocked:
            request_took = f"{translate(state.locale, 'requestTook')} {state.elapsed_seconds:.2f}s"

        return SessionView(
            locale=state.locale,
            weather=state.weather,
            air_quality=state.air_quality,
            loading=state.loading,
            error=state.error.value if state.error else None,
            error_message=translate(state.locale, state.error.message_key) if state.error else None,
            elapsed_seconds=state.elapsed_seconds,
            request_took=request_took,
            active_tab=state.active_tab,
            debug=DebugView(interactions=state.debug.interactions, unlocked=state.debug.unlocked),
            theme=theme.value,
            theme_gradient=THEME_GRADIENTS[theme],
            aqi_status=aqi_status,
        )

    def _next_ticket(self) -> int:
        self._sequence += 1
        self._begin_loading()
        return self._sequence

    async def _search(self, query: str, ticket: int) -> SessionView:
        outcome = await self._orchestrator.search(query, self._state.locale)
        if ticket != self._sequence:
            logger.info("Dropping stale result for %r (request %d, latest %d)", query, ticket, self._sequence)
            return self.view()

        self._apply(outcome)
        return self.view()

    def _begin_loading(self) -> None:
        self._state.loading = True
        self._state.error = None
        self._state.elapsed_seconds = None

    def _apply(self, outcome: SearchOutcome) -> None:
        state = self._state
        if outcome.weather is not None:
            state.weather = outcome.weather
            state.air_quality = outcome.air_quality
        state.error = outcome.error
        state.elapsed_seconds = outcome.elapsed_seconds
        state.loading = False
