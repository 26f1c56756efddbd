"""
Configuration — loads from .env, provides defaults.
"""

import os
from dotenv import load_dotenv

load_dotenv()

# OpenWeatherMap
OPENWEATHER_API_KEY = os.getenv("OPENWEATHER_API_KEY", "")
OPENWEATHER_API_URL = os.getenv(
    "OPENWEATHER_API_URL", "https://api.openweathermap.org/data/2.5/weather"
)
OPENWEATHER_GEO_URL = os.getenv(
    "OPENWEATHER_GEO_URL", "https://api.openweathermap.org/geo/1.0/direct"
)
HTTP_TIMEOUT = int(os.getenv("HTTP_TIMEOUT", "10"))  # seconds

# Telegram
TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN", "")
OWNER_CHAT_ID = int(os.environ.get("OWNER_CHAT_ID", "0"))

# Dashboard
DASHBOARD_HOST = os.getenv("DASHBOARD_HOST", "127.0.0.1")
DASHBOARD_PORT = int(os.getenv("DASHBOARD_PORT", "8080"))

# Autocomplete
SUGGEST_DEBOUNCE_SECONDS = float(os.getenv("SUGGEST_DEBOUNCE_SECONDS", "0.5"))
SUGGEST_LIMIT = int(os.getenv("SUGGEST_LIMIT", "5"))
NOTICE_SECONDS = float(os.getenv("NOTICE_SECONDS", "3.0"))

# Startup location (optional), used instead of asking the device
HOME_LATITUDE = os.getenv("HOME_LATITUDE") or None
HOME_LONGITUDE = os.getenv("HOME_LONGITUDE") or None
