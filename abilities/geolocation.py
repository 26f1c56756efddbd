"""
Geolocation ability — turns whatever the client shares into a Position.

A locator is a zero-argument coroutine function that returns a
Position or raises GeolocationError. Telegram clients hand us the
location directly, so the locator just unwraps it.
"""

from typing import Awaitable, Callable

from models import Position

Locator = Callable[[], Awaitable[Position]]

DENIED = "denied"
UNAVAILABLE = "unavailable"


class GeolocationError(Exception):
    def __init__(self, reason: str):
        super().__init__(f"Geolocation {reason}")
        self.reason = reason


def from_location(location) -> Locator:
    """Locator for a telegram.Location (or anything with latitude/longitude)."""
    async def locate() -> Position:
        if location is None:
            raise GeolocationError(UNAVAILABLE)
        return Position(latitude=location.latitude, longitude=location.longitude)
    return locate


def denied() -> Locator:
    async def locate() -> Position:
        raise GeolocationError(DENIED)
    return locate


def from_coordinates(latitude, longitude) -> Locator:
    """Locator for a fixed position, e.g. HOME_LATITUDE/HOME_LONGITUDE from .env."""
    async def locate() -> Position:
        if latitude is None or longitude is None:
            raise GeolocationError(UNAVAILABLE)
        try:
            return Position(latitude=float(latitude), longitude=float(longitude))
        except (TypeError, ValueError):
            raise GeolocationError(UNAVAILABLE)
    return locate
