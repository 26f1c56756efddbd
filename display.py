"""
Display helpers — background video per condition, and the weather card.

Condition keys are the lower-cased `weather[0].main` groups that
OpenWeatherMap reports.
"""

from types import MappingProxyType
from typing import Optional

from models import WeatherResult

DEFAULT_VIDEO_KEY = "default"

_MISTY = "https://cdn.pixabay.com/video/2025/04/10/271161_large.mp4"

VIDEO_SOURCES = MappingProxyType({
    # 2xx
    "thunderstorm": "https://cdn.pixabay.com/video/2015/08/11/305-135918495_large.mp4",
    # 3xx
    "drizzle": _MISTY,
    # 5xx
    "rain": "https://cdn.pixabay.com/video/2019/10/24/28236-368501609_large.mp4",
    # 6xx
    "snow": _MISTY,
    # 7xx atmosphere
    "mist": _MISTY,
    "smoke": _MISTY,
    "haze": _MISTY,
    "dust": _MISTY,
    "fog": _MISTY,
    "sand": _MISTY,
    "ash": _MISTY,
    "squall": _MISTY,
    "tornado": _MISTY,
    # 800
    "clear": "https://static.videezy.com/system/resources/previews/000/044/533/original/sky-timelapse-2.mp4",
    # 80x
    "clouds": "https://cdn.pixabay.com/video/2019/02/11/21285-316701418_large.mp4",
    DEFAULT_VIDEO_KEY: _MISTY,
})


def video_for(condition: Optional[str]) -> str:
    if not condition:
        return VIDEO_SOURCES[DEFAULT_VIDEO_KEY]
    return VIDEO_SOURCES.get(condition.lower(), VIDEO_SOURCES[DEFAULT_VIDEO_KEY])


def icon_url(icon: str) -> str:
    return f"http://openweathermap.org/img/w/{icon}.png"


def format_weather_card(result: WeatherResult) -> str:
    """Weather card as plain text (Telegram message / page fallback)."""
    return (
        f"{result.name}, {result.country}\n"
        f"{round(result.temp)}°C — {result.description.title()}\n"
        f"Humidity: {result.humidity}%\n"
        f"Wind: {result.wind_speed} m/s\n"
        f"Pressure: {result.pressure} hPa\n"
        f"Feels like: {round(result.feels_like)}°C"
    )
