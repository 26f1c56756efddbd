"""
City autocomplete — the search bar's state machine.

Keystrokes are debounced into geocoding lookups, responses are raced
against further typing, and the three committing actions (submit,
suggestion pick, geolocation) all funnel into the caller's
fetch_weather coroutine with a normalized WeatherQuery.

Lifecycle:
  widget = CityAutocomplete(fetch_weather)
  widget.mount(surface)     # registers the outside-click listener
  widget.on_input("Par")    # call on every text change
  await widget.submit()
  widget.unmount()          # drops listener + pending timers together

Every response is tagged with the generation it was dispatched for.
Anything that finishes after a newer fetch, a commit, or a cleared
input is dropped.
"""

from __future__ import annotations
import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

import config
from abilities import weather
from abilities.geolocation import GeolocationError, Locator, UNAVAILABLE
from models import CityQuery, CoordsQuery, WeatherQuery
from surface import Element, PointerEvent, Surface

log = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2

SUGGESTION_ERROR = "Could not load suggestions."
CONFIG_ERROR = "Weather API key is not configured."
LOCATION_ERROR = "Unable to retrieve your location. Please enter a city manually."
LOCATION_UNSUPPORTED = "Geolocation is not supported on this device."


class UIState(str, Enum):
    IDLE = "idle"
    LOADING = "loading-suggestions"
    SHOWING_SUGGESTIONS = "showing-suggestions"
    SHOWING_ERROR = "showing-error"


def suggestions_visible(text: str, suggestions: list[str], loading: bool, error: str) -> bool:
    return len(text.strip()) >= MIN_QUERY_LENGTH and bool(suggestions or loading or error)


def derive_state(text: str, suggestions: list[str], loading: bool, error: str) -> UIState:
    if not suggestions_visible(text, suggestions, loading, error):
        return UIState.IDLE
    if loading:
        return UIState.LOADING
    if error:
        return UIState.SHOWING_ERROR
    return UIState.SHOWING_SUGGESTIONS


class CityAutocomplete:
    def __init__(
        self,
        fetch_weather: Callable[[WeatherQuery], Awaitable[None]],
        geocode: Callable = weather.geocode,
        api_key: Optional[str] = None,
        delay: Optional[float] = None,
        limit: Optional[int] = None,
        notice_seconds: Optional[float] = None,
        on_change: Optional[Callable[[CityAutocomplete], None]] = None,
        on_notice: Optional[Callable[[str], None]] = None,
    ):
        self.fetch_weather = fetch_weather
        self.on_change = on_change
        self.on_notice = on_notice
        self._geocode = geocode
        self._api_key = api_key
        self.delay = config.SUGGEST_DEBOUNCE_SECONDS if delay is None else delay
        self.limit = config.SUGGEST_LIMIT if limit is None else limit
        self.notice_seconds = config.NOTICE_SECONDS if notice_seconds is None else notice_seconds

        self.search_bar = Element("search-bar")
        self.text = ""
        self.suggestions: list[str] = []
        self.loading = False
        self.error = ""
        self.notice = ""
        self.generation = 0

        self._panel_open = False
        self._timer: Optional[asyncio.TimerHandle] = None
        self._notice_timer: Optional[asyncio.TimerHandle] = None
        self._surface: Optional[Surface] = None
        self._tasks: set[asyncio.Task] = set()
        self._locating = False
        self._closed = False

    # ── Derived state ───────────────────────────────────────────

    @property
    def state(self) -> UIState:
        return derive_state(self.text, self.suggestions, self.loading, self.error)

    @property
    def panel_visible(self) -> bool:
        return self._panel_open and suggestions_visible(
            self.text, self.suggestions, self.loading, self.error
        )

    @property
    def mounted(self) -> bool:
        return self._surface is not None

    @property
    def fetch_pending(self) -> bool:
        return self._timer is not None

    # ── Lifecycle ───────────────────────────────────────────────

    def mount(self, surface: Surface):
        if self._surface is not None:
            raise RuntimeError("CityAutocomplete is already mounted")
        surface.add_listener("pointerdown", self._on_pointer_down)
        self._surface = surface
        self._closed = False

    def unmount(self):
        """Cancel the debounce + notice timers and drop the click listener."""
        self._cancel_timer()
        self._closed = True
        self.generation += 1  # fetches already on the wire land as stale
        self.loading = False
        self._panel_open = False
        if self._notice_timer is not None:
            self._notice_timer.cancel()
            self._notice_timer = None
        if self._surface is not None:
            self._surface.remove_listener("pointerdown", self._on_pointer_down)
            self._surface = None

    async def wait_for_pending(self):
        """Wait for suggestion fetches that are already on the wire."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ── Input ───────────────────────────────────────────────────

    def on_input(self, text: str):
        self.text = text
        self._cancel_timer()

        if len(text.strip()) < MIN_QUERY_LENGTH:
            self.generation += 1  # late answers for the old text must not reopen the panel
            self.suggestions = []
            self.error = ""
            self.loading = False
            self._panel_open = False
            self._changed()
            return

        if weather.credential_missing(self._credential()):
            self.generation += 1
            self.suggestions = []
            self.error = CONFIG_ERROR
            self._panel_open = True
            self._changed()
            return

        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.delay, self._dispatch, text)
        self._changed()

    def focus(self):
        """Reopen the panel with whatever was fetched last."""
        if not self._panel_open:
            self._panel_open = True
            self._changed()

    def _on_pointer_down(self, event: PointerEvent):
        if self.search_bar.contains(event.target):
            return
        if self._panel_open:
            self._panel_open = False
            self._changed()

    # ── Suggestion fetch ────────────────────────────────────────

    def _dispatch(self, text: str):
        self._timer = None
        self.generation += 1
        task = asyncio.ensure_future(self._fetch_suggestions(text, self.generation))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _fetch_suggestions(self, text: str, generation: int):
        query = text.strip()
        self.loading = True
        self._changed()
        try:
            places = await asyncio.to_thread(self._geocode, query, self.limit)
        except weather.ConfigurationError:
            if generation == self.generation:
                self.suggestions = []
                self.error = CONFIG_ERROR
                self._panel_open = True
        except weather.WeatherError as e:
            log.warning(f"Suggestion lookup failed for {query!r}: {e}")
            if generation == self.generation:
                self.suggestions = []
                self.error = SUGGESTION_ERROR
                self._panel_open = True
        else:
            if generation == self.generation:
                self.suggestions = [p.label for p in places][: self.limit]
                self.error = ""
                self._panel_open = True
            else:
                log.debug(f"Discarding stale suggestions for {query!r}")
        finally:
            if generation == self.generation:
                self.loading = False
            self._changed()

    # ── Committing actions ──────────────────────────────────────

    async def submit(self) -> bool:
        query = self.text.strip()
        if not query:
            return False
        self._reset(clear_text=True)
        await self.fetch_weather(CityQuery(query))
        return True

    async def select(self, label: str) -> bool:
        if label not in self.suggestions:
            log.debug(f"Ignoring selection of {label!r}: not offered")
            return False
        self._reset(clear_text=True)
        await self.fetch_weather(CityQuery(label))
        return True

    async def locate(self, locator: Optional[Locator]) -> bool:
        if self._locating:
            return False
        self._locating = True
        self._reset(clear_text=False)
        try:
            if locator is None:
                raise GeolocationError(UNAVAILABLE)
            position = await locator()
        except GeolocationError as e:
            log.warning(f"Geolocation failed: {e.reason}")
            self._show_notice(LOCATION_UNSUPPORTED if locator is None else LOCATION_ERROR)
            return False
        finally:
            self._locating = False
        await self.fetch_weather(CoordsQuery(position.latitude, position.longitude))
        return True

    # ── Helpers ─────────────────────────────────────────────────

    def _credential(self) -> Optional[str]:
        return config.OPENWEATHER_API_KEY if self._api_key is None else self._api_key

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _reset(self, clear_text: bool):
        self._cancel_timer()
        self.generation += 1
        if clear_text:
            self.text = ""
        self.suggestions = []
        self.error = ""
        self.loading = False
        self._panel_open = False
        self._changed()

    def _show_notice(self, message: str):
        if self._notice_timer is not None:
            self._notice_timer.cancel()
        self.notice = message
        loop = asyncio.get_running_loop()
        self._notice_timer = loop.call_later(self.notice_seconds, self._clear_notice)
        if self.on_notice:
            self.on_notice(message)
        self._changed()

    def _clear_notice(self):
        self._notice_timer = None
        self.notice = ""
        self._changed()

    def _changed(self):
        if self._closed:
            return
        if self.on_change:
            self.on_change(self)
