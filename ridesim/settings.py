"""
Configuration for the simulation engine.

Values come from the environment (a .env file is honoured) with the defaults
below. Import constants from here instead of calling os.getenv elsewhere.
"""
from __future__ import annotations

import os
from typing import Dict, Final, Optional

from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def read_key(path: str = "key.txt") -> Optional[str]:
    """Mapbox token from the environment, else from a local key file."""
    token = os.getenv("MAPBOX_ACCESS_TOKEN")
    if token:
        return token.strip()
    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            return f.read().strip() or None
    return None


# --- external services ---
MAPBOX_ACCESS_TOKEN: Final[Optional[str]] = read_key()
MAPBOX_BASE_URL: Final[str] = os.getenv("MAPBOX_BASE_URL", "https://api.mapbox.com")
OSRM_URL: Final[str] = os.getenv("OSRM_URL", "http://localhost:5000")
DIRECTIONS_PROVIDER: Final[str] = os.getenv("DIRECTIONS_PROVIDER", "mapbox")
GEOCODING_COUNTRY: Final[str] = os.getenv("GEOCODING_COUNTRY", "IN")
HTTP_TIMEOUT_S: Final[float] = _float_env("HTTP_TIMEOUT_S", 10.0)
SUGGESTION_LIMIT: Final[int] = 5

# --- animation ---
TICK_MS: Final[int] = _int_env("TICK_MS", 100)

# --- trip stages ---
SEARCHING_DELAY_MS: Final[int] = _int_env("SEARCHING_DELAY_MS", 1500)
DRIVER_FOUND_DELAY_MS: Final[int] = _int_env("DRIVER_FOUND_DELAY_MS", 1500)
DRIVER_TO_PICKUP_MS: Final[int] = _int_env("DRIVER_TO_PICKUP_MS", 50_000)
PICKUP_TO_DESTINATION_MS: Final[int] = _int_env("PICKUP_TO_DESTINATION_MS", 50_000)

# synthetic driver start, roughly 1 km from pickup
DRIVER_OFFSET_LAT: Final[float] = 0.009
DRIVER_OFFSET_LNG: Final[float] = 0.012

# --- request overlay (ms since the request was made) ---
OVERLAY_FOUND_AT_MS: Final[int] = 5000
OVERLAY_ARRIVING_AT_MS: Final[int] = 5500
OVERLAY_ARRIVED_AT_MS: Final[int] = 15_000
OVERLAY_POSITION_STEP: Final[float] = 2.0
OVERLAY_POSITION_CAP: Final[float] = 85.0

# --- realtime runner ---
RUNNER_HOST: Final[str] = os.getenv("RUNNER_HOST", "127.0.0.1")
RUNNER_PORT: Final[int] = _int_env("RUNNER_PORT", 8000)
LOG_LEVEL: Final[str] = os.getenv("LOG_LEVEL", "INFO")

DEFAULT_RIDE_ID: Final[str] = "auto"
DEFAULT_ICON: Final[str] = "\U0001F697"

# icon and per-stage durations by ride id
RIDE_PROFILES: Final[Dict[str, Dict[str, object]]] = {
    "auto": {"icon": "\U0001F6FA"},
    "moto": {"icon": "\U0001F3CD️", "driver_to_pickup_ms": 30_000},
    "go": {"icon": "\U0001F697"},
    "courier": {"icon": "\U0001F4E6", "pickup_to_destination_ms": 40_000},
}
