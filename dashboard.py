"""
Weather Dashboard — Flask page with the background video and weather card.

Provides:
  - The weather page (video picked from the last result)
  - Form action: look up a city, then back to the page
  - REST API: weather lookup by city or coordinates, city suggestions

Runs in a background thread alongside the Telegram bot. Suggestions
here are a plain lookup; debouncing is the caller's job.
"""

import asyncio
import logging
import threading

from flask import Flask, render_template_string, request, jsonify, redirect, url_for

from config import SUGGEST_LIMIT
from abilities import weather
from autocomplete import MIN_QUERY_LENGTH, SUGGESTION_ERROR, CONFIG_ERROR
from models import CityQuery, CoordsQuery

log = logging.getLogger(__name__)

PAGE = """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>WeatherEd</title>
  <style>
    body { margin: 0; min-height: 100vh; display: flex; align-items: center; justify-content: center; font-family: sans-serif; }
    video { position: fixed; inset: 0; width: 100%; height: 100%; object-fit: cover; z-index: -1; }
    .card { background: rgba(0, 0, 0, .7); color: #fff; padding: 2rem; border-radius: .5rem; max-width: 28rem; width: 100%; }
    .error { color: #f87171; }
    pre { font-family: inherit; white-space: pre-wrap; }
  </style>
</head>
<body>
  <video autoplay loop muted src="{{ view.video }}"></video>
  <div class="card">
    <h1>WeatherEd ☀</h1>
    <form action="{{ url_for('action_weather') }}" method="post">
      <input type="text" name="city" placeholder="Enter City Name">
      <button type="submit">Search</button>
    </form>
    {% if view.loading %}<p>Loading...</p>{% endif %}
    {% if view.error %}<p class="error">{{ view.error }}</p>{% endif %}
    {% if view.weather %}
      <img src="{{ view.icon }}" alt="{{ view.weather.description }}">
      <pre>{{ view.card }}</pre>
    {% endif %}
  </div>
</body>
</html>
"""

_weather_app = None  # set via create_app()
# Flask serves requests on several threads; a fetch and the view it
# produced must not interleave with another request's fetch.
_lock = threading.Lock()


def _fetch(query) -> dict:
    with _lock:
        loop = asyncio.new_event_loop()
        try:
            loop.run_until_complete(_weather_app.fetch_weather(query))
        finally:
            loop.close()
        return _weather_app.view()


def _view() -> dict:
    with _lock:
        return _weather_app.view()


def create_app(weather_app, geocode=None):
    global _weather_app
    _weather_app = weather_app
    lookup = geocode or weather.geocode

    app = Flask(__name__)

    # ── Pages ───────────────────────────────────────────────

    @app.route("/")
    def index():
        return render_template_string(PAGE, view=_view())

    # ── Form actions (from the page) ────────────────────────

    @app.route("/action/weather", methods=["POST"])
    def action_weather():
        city = request.form.get("city", "").strip()
        if city:
            _fetch(CityQuery(city))
        return redirect(url_for("index"))

    # ── API endpoints ───────────────────────────────────────

    @app.route("/api/view", methods=["GET"])
    def api_view():
        return jsonify(_view())

    @app.route("/api/weather", methods=["GET"])
    def api_weather():
        city = request.args.get("city", "").strip()
        lat = request.args.get("lat", type=float)
        lon = request.args.get("lon", type=float)
        if city:
            query = CityQuery(city)
        elif lat is not None and lon is not None:
            query = CoordsQuery(lat, lon)
        else:
            return jsonify({"error": "city or lat/lon is required"}), 400
        return jsonify(_fetch(query))

    @app.route("/api/suggest", methods=["GET"])
    def api_suggest():
        text = request.args.get("q", "").strip()
        if len(text) < MIN_QUERY_LENGTH:
            return jsonify([])
        try:
            places = lookup(text, SUGGEST_LIMIT)
        except weather.ConfigurationError:
            return jsonify({"error": CONFIG_ERROR}), 503
        except weather.WeatherError as e:
            log.warning(f"Suggestion lookup failed for {text!r}: {e}")
            return jsonify({"error": SUGGESTION_ERROR}), 502
        return jsonify([p.label for p in places][:SUGGEST_LIMIT])

    return app
