import asyncio
import threading

import pytest

from abilities import weather
from abilities.geolocation import GeolocationError, denied, from_coordinates
from autocomplete import (
    CityAutocomplete,
    UIState,
    derive_state,
    suggestions_visible,
    CONFIG_ERROR,
    LOCATION_ERROR,
    LOCATION_UNSUPPORTED,
    SUGGESTION_ERROR,
)
from models import CityQuery, CoordsQuery, Place
from surface import Element, PointerEvent, Surface


class FakeGeocoder:
    def __init__(self, places=None, error=None):
        self.places = places if places is not None else [Place("Paris", country="FR")]
        self.error = error
        self.calls = []

    def __call__(self, query, limit):
        self.calls.append((query, limit))
        if self.error:
            raise self.error
        return self.places


def make_widget(geocode=None, **kwargs):
    fetched = []

    async def fetch_weather(query):
        fetched.append(query)

    kwargs.setdefault("api_key", "test-key")
    kwargs.setdefault("delay", 0.01)
    kwargs.setdefault("notice_seconds", 0.05)
    widget = CityAutocomplete(fetch_weather, geocode=geocode or FakeGeocoder(), **kwargs)
    widget.mount(Surface())
    return widget, fetched


async def settle(widget):
    await asyncio.sleep(widget.delay * 5)
    await widget.wait_for_pending()


async def eventually(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


# ── Derived state ───────────────────────────────────────────────

def test_visibility_needs_two_trimmed_characters():
    assert not suggestions_visible(" a ", ["Paris, FR"], False, "")
    assert suggestions_visible("Pa", ["Paris, FR"], False, "")


def test_visibility_needs_content_loading_or_error():
    assert not suggestions_visible("Paris", [], False, "")
    assert suggestions_visible("Paris", [], True, "")
    assert suggestions_visible("Paris", [], False, "boom")


def test_derive_state():
    assert derive_state("P", ["x"], True, "") == UIState.IDLE
    assert derive_state("Paris", ["x"], True, "") == UIState.LOADING
    assert derive_state("Paris", [], False, "boom") == UIState.SHOWING_ERROR
    assert derive_state("Paris", ["x"], False, "") == UIState.SHOWING_SUGGESTIONS
    assert derive_state("Paris", [], False, "") == UIState.IDLE


# ── Debounced fetch ─────────────────────────────────────────────

@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", " ", "P", "  x  "])
async def test_short_input_never_fetches(text):
    geocoder = FakeGeocoder()
    widget, _ = make_widget(geocoder)

    widget.on_input(text)
    await settle(widget)

    assert geocoder.calls == []
    assert not widget.fetch_pending
    assert not widget.panel_visible
    assert widget.text == text


@pytest.mark.asyncio
async def test_rapid_typing_issues_one_fetch_with_final_text():
    geocoder = FakeGeocoder()
    widget, _ = make_widget(geocoder)

    for text in ["Pa", "Par", "Pari", "Paris "]:
        widget.on_input(text)
    assert widget.text == "Paris "
    await settle(widget)

    assert geocoder.calls == [("Paris", 5)]
    assert widget.suggestions == ["Paris, FR"]
    assert widget.panel_visible
    assert widget.state == UIState.SHOWING_SUGGESTIONS


@pytest.mark.asyncio
async def test_labels_include_optional_state_and_country():
    places = [
        Place.from_api({"name": "Paris", "country": "FR", "lat": 48.85, "lon": 2.35}),
        Place.from_api({"name": "Paris", "state": "TX", "country": "US", "lat": 33.6, "lon": -95.5}),
    ]
    widget, _ = make_widget(FakeGeocoder(places))

    widget.on_input("Paris")
    await settle(widget)

    assert widget.suggestions == ["Paris, FR", "Paris, TX, US"]


@pytest.mark.asyncio
async def test_suggestions_capped_at_limit():
    places = [Place(f"Town{i}") for i in range(8)]
    widget, _ = make_widget(FakeGeocoder(places))

    widget.on_input("Town")
    await settle(widget)

    assert len(widget.suggestions) == 5


@pytest.mark.asyncio
async def test_fetch_failure_shows_error_and_clears_loading():
    widget, _ = make_widget(FakeGeocoder(error=weather.ServiceError("HTTP 500")))
    widget.suggestions = ["Old, XX"]

    widget.on_input("Paris")
    await settle(widget)

    assert widget.suggestions == []
    assert widget.error == SUGGESTION_ERROR
    assert widget.loading is False
    assert widget.panel_visible
    assert widget.state == UIState.SHOWING_ERROR


@pytest.mark.asyncio
async def test_missing_key_short_circuits_without_debounce():
    geocoder = FakeGeocoder()
    widget, _ = make_widget(geocoder, api_key="")

    widget.on_input("Paris")

    assert not widget.fetch_pending
    assert widget.error == CONFIG_ERROR
    assert widget.panel_visible
    await settle(widget)
    assert geocoder.calls == []


@pytest.mark.asyncio
async def test_stale_response_is_discarded():
    release = threading.Event()

    def geocode(query, limit):
        if query == "Par":
            release.wait(2)
            return [Place("Parma", country="IT")]
        return [Place("Paris", country="FR")]

    widget, _ = make_widget(geocode)

    widget.on_input("Par")
    await eventually(lambda: widget.loading)
    widget.on_input("Paris")
    await eventually(lambda: widget.suggestions == ["Paris, FR"])

    release.set()
    await widget.wait_for_pending()

    assert widget.suggestions == ["Paris, FR"]
    assert widget.loading is False


@pytest.mark.asyncio
async def test_clearing_input_drops_in_flight_response():
    release = threading.Event()

    def geocode(query, limit):
        release.wait(2)
        return [Place("Paris", country="FR")]

    widget, _ = make_widget(geocode)
    widget.on_input("Paris")
    await eventually(lambda: widget.loading)

    widget.on_input("")
    release.set()
    await widget.wait_for_pending()

    assert widget.suggestions == []
    assert not widget.panel_visible


# ── Committing actions ──────────────────────────────────────────

@pytest.mark.asyncio
async def test_submit_forwards_trimmed_city_and_resets():
    widget, fetched = make_widget()
    widget.on_input("Paris")
    await settle(widget)
    widget.on_input("  Lyon  ")

    assert await widget.submit()

    assert fetched == [CityQuery("Lyon")]
    assert widget.text == ""
    assert widget.suggestions == []
    assert not widget.panel_visible
    assert not widget.fetch_pending


@pytest.mark.asyncio
async def test_whitespace_submit_is_ignored():
    widget, fetched = make_widget()
    widget.on_input("   ")

    assert not await widget.submit()
    assert fetched == []


@pytest.mark.asyncio
async def test_double_submit_fetches_once():
    widget, fetched = make_widget()
    widget.on_input("Lyon")

    await widget.submit()
    await widget.submit()

    assert fetched == [CityQuery("Lyon")]


@pytest.mark.asyncio
async def test_select_uses_label_verbatim_and_resets():
    places = [Place("Paris", state="TX", country="US")]
    widget, fetched = make_widget(FakeGeocoder(places))
    widget.on_input("Paris")
    await settle(widget)

    assert await widget.select("Paris, TX, US")

    assert fetched == [CityQuery("Paris, TX, US")]
    assert widget.text == ""
    assert widget.suggestions == []
    assert not widget.panel_visible
    # Second tap on the same (now stale) button is a no-op
    assert not await widget.select("Paris, TX, US")
    assert len(fetched) == 1


@pytest.mark.asyncio
async def test_commit_while_fetch_in_flight_keeps_panel_hidden():
    release = threading.Event()

    def geocode(query, limit):
        release.wait(2)
        return [Place("Paris", country="FR")]

    widget, fetched = make_widget(geocode)
    widget.on_input("Paris")
    await eventually(lambda: widget.loading)

    await widget.submit()
    release.set()
    await widget.wait_for_pending()

    assert fetched == [CityQuery("Paris")]
    assert widget.suggestions == []
    assert not widget.panel_visible


@pytest.mark.asyncio
async def test_locate_fetches_by_coordinates_and_keeps_text():
    widget, fetched = make_widget()
    widget.on_input("Par")
    await settle(widget)

    assert await widget.locate(from_coordinates(48.85, 2.35))

    assert fetched == [CoordsQuery(48.85, 2.35)]
    assert widget.text == "Par"
    assert widget.suggestions == []
    assert not widget.panel_visible


@pytest.mark.asyncio
async def test_locate_failure_shows_transient_notice():
    notices = []
    widget, fetched = make_widget(on_notice=notices.append)

    assert not await widget.locate(denied())

    assert fetched == []
    assert widget.notice == LOCATION_ERROR
    assert notices == [LOCATION_ERROR]
    await eventually(lambda: widget.notice == "")


@pytest.mark.asyncio
async def test_locate_without_capability():
    widget, fetched = make_widget()

    assert not await widget.locate(None)

    assert fetched == []
    assert widget.notice == LOCATION_UNSUPPORTED


@pytest.mark.asyncio
async def test_locate_ignores_second_call_while_pending():
    gate = asyncio.Event()

    async def locator():
        await gate.wait()
        raise GeolocationError("unavailable")

    widget, _ = make_widget()
    first = asyncio.ensure_future(widget.locate(locator))
    await asyncio.sleep(0)

    assert not await widget.locate(locator)

    gate.set()
    assert not await first


# ── Outside click / lifecycle ───────────────────────────────────

@pytest.mark.asyncio
async def test_outside_pointer_down_hides_panel_only():
    surface = Surface()
    widget, _ = make_widget()
    widget.unmount()
    widget.mount(surface)
    widget.on_input("Paris")
    await settle(widget)
    assert widget.panel_visible

    surface.dispatch("pointerdown", PointerEvent(target=Element("page")))

    assert not widget.panel_visible
    assert widget.suggestions == ["Paris, FR"]
    assert widget.text == "Paris"

    widget.focus()
    assert widget.panel_visible


@pytest.mark.asyncio
async def test_pointer_down_inside_search_bar_keeps_panel():
    surface = Surface()
    widget, _ = make_widget()
    widget.unmount()
    widget.mount(surface)
    widget.on_input("Paris")
    await settle(widget)

    inside = widget.search_bar.child("suggestion-0")
    surface.dispatch("pointerdown", PointerEvent(target=inside))

    assert widget.panel_visible


@pytest.mark.asyncio
async def test_unmount_cancels_pending_fetch_and_listener():
    surface = Surface()
    geocoder = FakeGeocoder()
    widget, _ = make_widget(geocoder)
    widget.unmount()
    widget.mount(surface)
    assert surface.listener_count("pointerdown") == 1

    widget.on_input("Paris")
    widget.unmount()
    await settle(widget)

    assert geocoder.calls == []
    assert surface.listener_count("pointerdown") == 0


@pytest.mark.asyncio
async def test_fetch_finishing_after_unmount_changes_nothing():
    release = threading.Event()
    changes = []

    def geocode(query, limit):
        release.wait(2)
        return [Place("Paris", country="FR")]

    widget, _ = make_widget(geocode, on_change=changes.append)
    widget.on_input("Paris")
    await eventually(lambda: widget.loading)

    widget.unmount()
    seen = len(changes)
    release.set()
    await widget.wait_for_pending()

    assert not widget.panel_visible
    assert widget.suggestions == []
    assert widget.loading is False
    assert len(changes) == seen


def test_mount_twice_raises():
    widget = CityAutocomplete(lambda q: None, api_key="k")
    widget.mount(Surface())
    with pytest.raises(RuntimeError):
        widget.mount(Surface())
