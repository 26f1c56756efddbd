import pytest

from display import (
    DEFAULT_VIDEO_KEY,
    VIDEO_SOURCES,
    format_weather_card,
    icon_url,
    video_for,
)
from models import WeatherResult


def test_rain_picks_rain_video():
    assert video_for("Rain") == VIDEO_SOURCES["rain"]


@pytest.mark.parametrize("condition", ["Blizzard", "", None])
def test_unmapped_condition_falls_back_to_default(condition):
    assert video_for(condition) == VIDEO_SOURCES[DEFAULT_VIDEO_KEY]


def test_video_table_is_read_only():
    with pytest.raises(TypeError):
        VIDEO_SOURCES["rain"] = "elsewhere.mp4"


def test_icon_url():
    assert icon_url("10d") == "http://openweathermap.org/img/w/10d.png"


def test_weather_card_rounds_temperatures():
    result = WeatherResult(
        name="Paris", country="FR", condition="Rain", description="light rain",
        temp=12.6, feels_like=11.2, humidity=81, pressure=1012, wind_speed=4.1,
    )

    card = format_weather_card(result)

    assert card.splitlines()[0] == "Paris, FR"
    assert "13°C" in card
    assert "Light Rain" in card
    assert "Humidity: 81%" in card
    assert "Wind: 4.1 m/s" in card
    assert "Pressure: 1012 hPa" in card
    assert "Feels like: 11°C" in card
