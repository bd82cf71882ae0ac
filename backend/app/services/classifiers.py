from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ThemeCategory(str, Enum):
    RAINY = "Rainy"
    CLOUDY = "Cloudy"
    SNOWY = "Snowy"
    CLEAR = "Clear"
    NEUTRAL = "Neutral"


class SeverityBand(str, Enum):
    GOOD = "Good"
    MODERATE = "Moderate"
    UNHEALTHY_SENSITIVE = "UnhealthySensitive"
    UNHEALTHY = "Unhealthy"
    VERY_UNHEALTHY = "VeryUnhealthy"
    HAZARDOUS = "Hazardous"


# Order matters: condition texts overlap ("Teilweise bewölkt" contains "eis").
CONDITION_KEYWORDS: tuple[tuple[ThemeCategory, tuple[str, ...]], ...] = (
    (
        ThemeCategory.RAINY,
        ("rain", "storm", "drizzle", "lluvia", "tormenta", "llovizna", "pluie", "orage", "bruine", "regen", "gewitter", "sprüh"),
    ),
    (
        ThemeCategory.CLOUDY,
        ("cloud", "overcast", "fog", "nublado", "niebla", "nuage", "couvert", "brouillard", "bewölkt", "bedeckt", "nebel"),
    ),
    (
        ThemeCategory.SNOWY,
        ("snow", "ice", "nevada", "hielo", "neige", "schnee", "eis"),
    ),
    (
        ThemeCategory.CLEAR,
        ("clear", "sun", "despejado", "sol", "dégagé", "clair", "sonne", "klar"),
    ),
)

THEME_GRADIENTS = {
    ThemeCategory.RAINY: "from-slate-900 via-slate-800 to-blue-900",
    ThemeCategory.CLOUDY: "from-slate-800 via-slate-700 to-gray-800",
    ThemeCategory.SNOWY: "from-slate-900 via-blue-900 to-indigo-900",
    ThemeCategory.CLEAR: "from-slate-900 via-blue-950 to-slate-900",
    ThemeCategory.NEUTRAL: "from-slate-900 via-slate-900 to-slate-800",
}


@dataclass(frozen=True)
class AqiStatus:
    band: SeverityBand
    label_key: str
    color: str


# (inclusive upper bound, status); anything above the last bound is hazardous.
AQI_BANDS: tuple[tuple[float, AqiStatus], ...] = (
    (50, AqiStatus(SeverityBand.GOOD, "aqiLabels.good", "green")),
    (100, AqiStatus(SeverityBand.MODERATE, "aqiLabels.moderate", "yellow")),
    (150, AqiStatus(SeverityBand.UNHEALTHY_SENSITIVE, "aqiLabels.unhealthySens", "orange")),
    (200, AqiStatus(SeverityBand.UNHEALTHY, "aqiLabels.unhealthy", "red")),
    (300, AqiStatus(SeverityBand.VERY_UNHEALTHY, "aqiLabels.veryUnhealthy", "purple")),
)
HAZARDOUS_STATUS = AqiStatus(SeverityBand.HAZARDOUS, "aqiLabels.hazardous", "rose")


def classify_condition(condition: str | None) -> ThemeCategory:
    text = str(condition or "").casefold()
    for category, keywords in CONDITION_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return category
    return ThemeCategory.NEUTRAL


def classify_aqi(us_aqi: float) -> AqiStatus:
    for upper_bound, status in AQI_BANDS:
        if us_aqi <= upper_bound:
            return status
    return HAZARDOUS_STATUS
