from __future__ import annotations

import re
from typing import Any

from app.schemas import LocaleCode


DEFAULT_LOCALE: LocaleCode = "en"
SUPPORTED_LOCALES: tuple[LocaleCode, ...] = ("en", "es", "fr", "de")

# Region/encoding separators in BCP-47 tags ("es-MX") and POSIX locales ("es_MX.UTF-8").
_SUBTAG_SEPARATORS = re.compile(r"[-_.@]")

TRANSLATIONS: dict[str, dict[str, Any]] = {
    "en": {
        "weather": "Weather",
        "airQuality": "Air Quality",
        "humidity": "Humidity",
        "wind": "Wind",
        "feelsLike": "Feels Like",
        "summaryTitle": "Weather Summary",
        "hourly": "Hourly Forecast",
        "daily": "7-Day Forecast",
        "loading": "Retrieving data...",
        "searchPlaceholder": "Search city...",
        "requestTook": "Request took",
        "usAqi": "US AQI Index",
        "euroAqi": "European AQI",
        "aqiLabels": {
            "good": "Good",
            "moderate": "Moderate",
            "unhealthySens": "Unhealthy for Sensitive Groups",
            "unhealthy": "Unhealthy",
            "veryUnhealthy": "Very Unhealthy",
            "hazardous": "Hazardous",
        },
        "errors": {
            "fetch": "Could not retrieve weather data. Please try again.",
            "general": "Failed to fetch data. Please check your connection or city name.",
            "denied": "Location access denied. Please search manually.",
            "noGeo": "Geolocation is not supported by your browser.",
        },
    },
    "es": {
        "weather": "Clima",
        "airQuality": "Calidad del Aire",
        "humidity": "Humedad",
        "wind": "Viento",
        "feelsLike": "Sensación",
        "summaryTitle": "Resumen del tiempo",
        "hourly": "Pronóstico por hora",
        "daily": "Pronóstico 7 días",
        "loading": "Obteniendo datos...",
        "searchPlaceholder": "Buscar ciudad...",
        "requestTook": "La petición tomó",
        "usAqi": "Índice AQI (EE.UU.)",
        "euroAqi": "AQI Europeo",
        "aqiLabels": {
            "good": "Bueno",
            "moderate": "Moderado",
            "unhealthySens": "Insalubre para grupos sensibles",
            "unhealthy": "Insalubre",
            "veryUnhealthy": "Muy insalubre",
            "hazardous": "Peligroso",
        },
        "errors": {
            "fetch": "No se pudieron obtener datos del clima. Inténtalo de nuevo.",
            "general": "Error al obtener datos. Revisa tu conexión o el nombre de la ciudad.",
            "denied": "Acceso a ubicación denegado. Busca manualmente.",
            "noGeo": "Tu navegador no soporta geolocalización.",
        },
    },
    "fr": {
        "weather": "Météo",
        "airQuality": "Qualité de l'air",
        "humidity": "Humidité",
        "wind": "Vent",
        "feelsLike": "Ressenti",
        "summaryTitle": "Résumé météo",
        "hourly": "Prévisions horaires",
        "daily": "Prévisions 7 jours",
        "loading": "Récupération des données...",
        "searchPlaceholder": "Rechercher une ville...",
        "requestTook": "Durée de la requête",
        "usAqi": "Indice AQI (US)",
        "euroAqi": "AQI Européen",
        "aqiLabels": {
            "good": "Bon",
            "moderate": "Modéré",
            "unhealthySens": "Malsain pour les groupes sensibles",
            "unhealthy": "Malsain",
            "veryUnhealthy": "Très malsain",
            "hazardous": "Dangereux",
        },
        "errors": {
            "fetch": "Impossible de récupérer les données météo. Veuillez réessayer.",
            "general": "Échec de la récupération des données. Vérifiez votre connexion.",
            "denied": "Accès à la localisation refusé. Veuillez chercher manuellement.",
            "noGeo": "La géolocalisation n'est pas supportée par votre navigateur.",
        },
    },
    "de": {
        "weather": "Wetter",
        "airQuality": "Luftqualität",
        "humidity": "Feuchtigkeit",
        "wind": "Wind",
        "feelsLike": "Gefühlt",
        "summaryTitle": "Wetterbericht",
        "hourly": "Stündliche Vorhersage",
        "daily": "7-Tage-Vorhersage",
        "loading": "Daten werden geladen...",
        "searchPlaceholder": "Stadt suchen...",
        "requestTook": "Anfrage dauerte",
        "usAqi": "US AQI Index",
        "euroAqi": "Europäischer AQI",
        "aqiLabels": {
            "good": "Gut",
            "moderate": "Mäßig",
            "unhealthySens": "Ungesund für empfindliche Gruppen",
            "unhealthy": "Ungesund",
            "veryUnhealthy": "Sehr ungesund",
            "hazardous": "Gefährlich",
        },
        "errors": {
            "fetch": "Wetterdaten konnten nicht abgerufen werden. Bitte versuchen Sie es erneut.",
            "general": "Fehler beim Abrufen der Daten. Bitte prüfen Sie Ihre Verbindung.",
            "denied": "Standortzugriff verweigert. Bitte suchen Sie manuell.",
            "noGeo": "Geolokalisierung wird von Ihrem Browser nicht unterstützt.",
        },
    },
}


def resolve_locale(hint: str | None) -> LocaleCode:
    """Primary language subtag of ``hint`` when supported, otherwise ``en``."""
    primary = _SUBTAG_SEPARATORS.split(str(hint or "").strip(), maxsplit=1)[0].lower()
    if primary in SUPPORTED_LOCALES:
        return primary  # type: ignore[return-value]
    return DEFAULT_LOCALE


def get_translations(locale: str) -> dict[str, Any]:
    return TRANSLATIONS.get(locale, TRANSLATIONS[DEFAULT_LOCALE])


def translate(locale: str, key: str) -> str:
    value: Any = get_translations(locale)
    for part in key.split("."):
        if not isinstance(value, dict) or part not in value:
            return key
        value = value[part]
    return value if isinstance(value, str) else key
