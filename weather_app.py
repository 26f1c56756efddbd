"""
WeatherApp — owns the weather result, error message and background video.

One instance per user surface (Telegram chat, dashboard). The
autocomplete hands it normalized queries through fetch_weather; every
collaborator failure ends here as a user-facing message.
"""

from __future__ import annotations
import asyncio
import logging
from typing import Callable, Optional

from abilities import weather
from abilities.geolocation import GeolocationError, Locator
from display import video_for, format_weather_card, icon_url, VIDEO_SOURCES, DEFAULT_VIDEO_KEY
from models import CoordsQuery, WeatherQuery, WeatherResult

log = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "City not found. Check city and try again."
GENERIC_MESSAGE = "An error occurred. Please try again later."
CONFIG_MESSAGE = "Weather API key is not configured."


class WeatherApp:
    def __init__(
        self,
        get_weather: Callable[[WeatherQuery], WeatherResult] = weather.get_weather,
        on_change: Optional[Callable[[WeatherApp], None]] = None,
    ):
        self._get_weather = get_weather
        self.on_change = on_change
        self.weather: Optional[WeatherResult] = None
        self.loading = False
        self.error = ""
        self.current_video = VIDEO_SOURCES[DEFAULT_VIDEO_KEY]

    async def fetch_weather(self, query: WeatherQuery):
        self.loading = True
        self.error = ""
        self._changed()
        try:
            result = await asyncio.to_thread(self._get_weather, query)
        except weather.WeatherError as e:
            self._fail(e)
        except ValueError as e:
            # Neither a city nor coordinates
            log.warning(f"Rejected weather query {query!r}: {e}")
            self._fail(e)
        else:
            log.info(f"Weather for {query}: {result.condition} {result.temp}°C")
            self.weather = result
            self.current_video = video_for(result.condition)
        finally:
            self.loading = False
            self._changed()

    async def locate_on_start(self, locator: Optional[Locator]):
        """Best-effort lookup by position when the surface first opens."""
        if locator is None:
            return
        self.loading = True
        self._changed()
        try:
            position = await locator()
        except GeolocationError as e:
            log.info(f"No startup location ({e.reason}); waiting for a city")
            self.loading = False
            self._changed()
            return
        await self.fetch_weather(CoordsQuery(position.latitude, position.longitude))

    def view(self) -> dict:
        return {
            "weather": self.weather.to_dict() if self.weather else None,
            "loading": self.loading,
            "error": self.error,
            "video": self.current_video,
            "icon": icon_url(self.weather.icon) if self.weather else None,
            "card": format_weather_card(self.weather) if self.weather else "",
        }

    def _fail(self, exc: Exception):
        if isinstance(exc, weather.NotFoundError):
            self.error = NOT_FOUND_MESSAGE
        elif isinstance(exc, weather.ConfigurationError):
            self.error = CONFIG_MESSAGE
        else:
            log.error(f"Weather lookup failed: {exc}")
            self.error = GENERIC_MESSAGE
        self.weather = None
        self.current_video = VIDEO_SOURCES[DEFAULT_VIDEO_KEY]

    def _changed(self):
        if self.on_change:
            self.on_change(self)
