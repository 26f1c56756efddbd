"""
Weather ability — OpenWeatherMap geocoding + current weather.

Needs OPENWEATHER_API_KEY. Both calls check the key before touching
the network so a missing key is reported as its own error.
"""

import logging
from typing import Optional

import requests

import config
from models import CityQuery, CoordsQuery, Place, WeatherQuery, WeatherResult

log = logging.getLogger(__name__)

PLACEHOLDER_KEYS = {"your_api_key", "your_api_key_here", "changeme", "<api_key>"}


class WeatherError(Exception):
    """Base class for weather collaborator failures."""


class ConfigurationError(WeatherError):
    pass


class NotFoundError(WeatherError):
    pass


class ServiceError(WeatherError):
    pass


def credential_missing(key: Optional[str]) -> bool:
    return not key or not key.strip() or key.strip().lower() in PLACEHOLDER_KEYS


def _api_key(api_key: Optional[str]) -> str:
    key = config.OPENWEATHER_API_KEY if api_key is None else api_key
    if credential_missing(key):
        raise ConfigurationError("OPENWEATHER_API_KEY is not configured")
    return key


def _get(url: str, params: dict):
    try:
        resp = requests.get(url, params=params, timeout=config.HTTP_TIMEOUT)
        resp.raise_for_status()
        return resp.json()
    except requests.HTTPError as e:
        status = e.response.status_code if e.response is not None else None
        if status == 404:
            raise NotFoundError(f"Not found: {url}") from e
        raise ServiceError(f"HTTP {status} from {url}") from e
    except (requests.RequestException, ValueError) as e:
        raise ServiceError(f"Request to {url} failed: {e}") from e


def geocode(query: str, limit: int = 5, api_key: Optional[str] = None) -> list[Place]:
    """Resolve free text to at most `limit` place candidates."""
    key = _api_key(api_key)
    rows = _get(config.OPENWEATHER_GEO_URL, {"q": query, "limit": limit, "appid": key})
    if not isinstance(rows, list):
        raise ServiceError("Geocoding response is not a list")
    try:
        return [Place.from_api(row) for row in rows[:limit]]
    except (KeyError, TypeError) as e:
        raise ServiceError(f"Malformed geocoding result: {e}") from e


def get_weather(query: WeatherQuery, api_key: Optional[str] = None) -> WeatherResult:
    """Current conditions for a city name or a coordinate pair."""
    if not isinstance(query, (CityQuery, CoordsQuery)):
        raise ValueError(f"Invalid query: {query!r}")
    key = _api_key(api_key)
    params = {**query.params(), "units": "metric", "appid": key}
    data = _get(config.OPENWEATHER_API_URL, params)
    log.debug(f"Weather payload for {query}: {data}")
    try:
        return WeatherResult.from_api(data)
    except (AttributeError, KeyError, TypeError, IndexError) as e:
        raise ServiceError(f"Malformed weather payload: {e}") from e
