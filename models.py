"""
Data models for weather queries, geocoding candidates and weather results.
"""

from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Optional, Union


@dataclass(frozen=True)
class CityQuery:
    city_name: str

    def params(self) -> dict:
        return {"q": self.city_name}


@dataclass(frozen=True)
class CoordsQuery:
    latitude: float
    longitude: float

    def params(self) -> dict:
        return {"lat": self.latitude, "lon": self.longitude}


WeatherQuery = Union[CityQuery, CoordsQuery]


@dataclass(frozen=True)
class Position:
    latitude: float
    longitude: float


@dataclass
class Place:
    name: str
    lat: float = 0.0
    lon: float = 0.0
    state: Optional[str] = None
    country: Optional[str] = None

    @classmethod
    def from_api(cls, row: dict) -> Place:
        return cls(
            name=row["name"],
            lat=row.get("lat", 0.0),
            lon=row.get("lon", 0.0),
            state=row.get("state") or None,
            country=row.get("country") or None,
        )

    @property
    def label(self) -> str:
        """'name[, state][, country]' — optional parts left out when absent."""
        parts = [self.name]
        if self.state:
            parts.append(self.state)
        if self.country:
            parts.append(self.country)
        return ", ".join(parts)


@dataclass
class WeatherResult:
    name: str = ""
    country: str = ""
    condition: str = ""  # weather[0].main, e.g. "Rain"
    description: str = ""
    icon: str = ""
    temp: float = 0.0
    feels_like: float = 0.0
    humidity: int = 0
    pressure: int = 0
    wind_speed: float = 0.0
    raw: dict = field(default_factory=dict, repr=False)

    @classmethod
    def from_api(cls, data: dict) -> WeatherResult:
        conditions = data.get("weather") or [{}]
        first = conditions[0]
        main = data.get("main", {})
        return cls(
            name=data.get("name", ""),
            country=data.get("sys", {}).get("country", ""),
            condition=first.get("main", ""),
            description=first.get("description", ""),
            icon=first.get("icon", ""),
            temp=main.get("temp", 0.0),
            feels_like=main.get("feels_like", 0.0),
            humidity=main.get("humidity", 0),
            pressure=main.get("pressure", 0),
            wind_speed=data.get("wind", {}).get("speed", 0.0),
            raw=data,
        )

    def to_dict(self) -> dict:
        d = asdict(self)
        d.pop("raw")
        return d
