# ABOUTME: Upstream data clients for marine, weather and tide conditions
# ABOUTME: Open-Meteo (marine + weather) and NOAA CO-OPS tides, combined into one snapshot

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import requests

from surflab.config import Config
from surflab.debug import debug_log
from surflab.errors import ConditionFetchFailed
from surflab.locations import Location
from surflab.scoring.calculator import (
    SurfabilityCalculator, TideEvent, calculate_tide_state, split_tide_events,
)
from surflab.weather.models import ConditionSnapshot

log = logging.getLogger(__name__)

METERS_TO_FEET = 3.28084

WEATHER_DESCRIPTIONS = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    95: "Thunderstorm",
    96: "Thunderstorm with slight hail",
    99: "Thunderstorm with heavy hail",
}


def c_to_f(celsius: float) -> float:
    return celsius * 9 / 5 + 32


class ConditionFetcher:
    """
    Fetches current ocean conditions for a location.

    Every upstream call has a bounded timeout. Any failure (HTTP error,
    timeout, missing field, out-of-range value) raises ConditionFetchFailed;
    there are no made-up fallback numbers.
    """

    MARINE_URL = "https://marine-api.open-meteo.com/v1/marine"
    WEATHER_URL = "https://api.open-meteo.com/v1/forecast"
    TIDES_URL = "https://api.tidesandcurrents.noaa.gov/api/prod/datagetter"

    HEADERS = {"User-Agent": "SurfLab/2.0 (surf report generator)"}

    def __init__(self, timeout_seconds: Optional[float] = None):
        self.timeout = timeout_seconds if timeout_seconds is not None else Config.CONDITIONS_TIMEOUT_SECONDS
        self.calculator = SurfabilityCalculator()

    def fetch(self, location: Location, now: Optional[datetime] = None) -> ConditionSnapshot:
        """
        Fetch marine, weather and tide data and combine them into a snapshot.

        Raises:
            ConditionFetchFailed: any upstream source failed
        """
        now = now or datetime.now(timezone.utc)
        try:
            return self._fetch(location, now)
        except ConditionFetchFailed:
            raise
        except Exception as e:
            log.exception(f"Unexpected error fetching conditions for {location.name}")
            raise ConditionFetchFailed(f"Unexpected upstream data for {location.name}: {e}") from e

    def _fetch(self, location: Location, now: datetime) -> ConditionSnapshot:
        started = time.monotonic()

        marine = self._fetch_marine(location, now)
        weather = self._fetch_weather(location)
        tide_height, tide_state = self._fetch_tides(location, now)

        score = self.calculator.calculate_score(
            wave_height_ft=marine["wave_height_ft"],
            wave_period_sec=marine["wave_period_sec"],
            swell_direction_deg=marine["swell_direction_deg"],
            wind_speed_kts=weather["wind_speed_kts"],
            wind_direction_deg=weather["wind_direction_deg"],
            tide_state=tide_state,
            tide_height_ft=tide_height,
        )

        snapshot = ConditionSnapshot(
            wave_height_ft=round(marine["wave_height_ft"], 1),
            wave_period_sec=round(marine["wave_period_sec"], 1),
            swell_direction_deg=round(marine["swell_direction_deg"]),
            wind_speed_kts=round(weather["wind_speed_kts"], 1),
            wind_direction_deg=round(weather["wind_direction_deg"]),
            tide_state=tide_state,
            tide_height_ft=round(tide_height, 1),
            weather_description=weather["weather_description"],
            surfability_score=score,
            air_temp_f=round(weather["air_temp_f"], 1),
            water_temp_f=round(c_to_f(marine["water_temp_c"]), 1),
        )

        elapsed_ms = (time.monotonic() - started) * 1000
        log.info(f"Conditions for {location.name}: {snapshot} ({elapsed_ms:.0f}ms)")
        return snapshot

    # ==================== Marine ====================

    def _fetch_marine(self, location: Location, now: datetime) -> dict[str, float]:
        data = self._get_json(self.MARINE_URL, {
            "latitude": location.lat,
            "longitude": location.lon,
            "hourly": "wave_height,wave_period,swell_wave_direction,sea_surface_temperature",
            "timezone": "GMT",
        }, source="marine")

        try:
            hourly = data["hourly"]
            times = [_parse_utc(t) for t in hourly["time"]]
            if not times:
                raise ValueError("no hourly marine data")

            # Closest hour to now
            index = min(range(len(times)), key=lambda i: abs(times[i] - now))
            debug_log(f"Using marine hour {times[index].isoformat()} (index {index})", "CONDITIONS")

            wave_height_m = _require_number(hourly["wave_height"][index], "wave height")
            wave_period = _require_number(hourly["wave_period"][index], "wave period")
            swell_direction = _require_number(hourly["swell_wave_direction"][index], "swell direction")
            water_temp_c = _require_number(hourly["sea_surface_temperature"][index], "water temperature")
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
            raise ConditionFetchFailed(f"Invalid marine data: {e}") from e

        _require_range(wave_height_m, 0, 30, "Wave height (m)")
        _require_range(wave_period, 2, 25, "Wave period (s)")
        _require_range(swell_direction, 0, 360, "Swell direction")
        _require_range(water_temp_c, -5, 40, "Water temperature (C)")

        return {
            "wave_height_ft": wave_height_m * METERS_TO_FEET,
            "wave_period_sec": wave_period,
            "swell_direction_deg": swell_direction,
            "water_temp_c": water_temp_c,
        }

    # ==================== Weather ====================

    def _fetch_weather(self, location: Location) -> dict[str, Any]:
        data = self._get_json(self.WEATHER_URL, {
            "latitude": location.lat,
            "longitude": location.lon,
            "current": "temperature_2m,weather_code,wind_speed_10m,wind_direction_10m",
            "wind_speed_unit": "kn",
            "timezone": "GMT",
            "forecast_days": 1,
        }, source="weather")

        try:
            current = data["current"]
            code = int(current["weather_code"])
            return {
                "air_temp_f": c_to_f(_require_number(current["temperature_2m"], "air temperature")),
                "wind_speed_kts": _require_number(current["wind_speed_10m"], "wind speed"),
                "wind_direction_deg": _require_number(current["wind_direction_10m"], "wind direction"),
                "weather_description": WEATHER_DESCRIPTIONS.get(code, "Unknown conditions"),
            }
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ConditionFetchFailed(f"Invalid weather data: {e}") from e

    # ==================== Tides ====================

    def _fetch_tides(self, location: Location, now: datetime) -> tuple[float, str]:
        """Returns (current height in ft, tide state description)."""
        common = {
            "station": location.tide_station,
            "datum": "MLLW",
            "time_zone": "gmt",
            "units": "english",
            "application": "SurfLab",
            "format": "json",
        }
        latest = self._get_json(self.TIDES_URL, {
            **common, "date": "latest", "product": "water_level",
        }, source="tide level")
        predictions = self._get_json(self.TIDES_URL, {
            **common,
            "product": "predictions",
            "interval": "hilo",
            "begin_date": (now - timedelta(days=1)).strftime("%Y%m%d"),
            "end_date": (now + timedelta(days=1)).strftime("%Y%m%d"),
        }, source="tide predictions")

        try:
            if "error" in latest:
                error = latest["error"]
                raise ValueError(error.get("message", "NOAA error") if isinstance(error, dict) else str(error))
            current_height = float(latest["data"][0]["v"])

            events = [
                TideEvent(time=_parse_utc(p["t"]), height_ft=float(p["v"]), kind=p["type"])
                for p in predictions.get("predictions", [])
            ]
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
            raise ConditionFetchFailed(f"Invalid tide data: {e}") from e

        state = calculate_tide_state(current_height, now, **split_tide_events(events, now))
        return current_height, state

    # ==================== HTTP ====================

    def _get_json(self, url: str, params: dict, source: str) -> dict:
        started = time.monotonic()
        try:
            response = requests.get(url, params=params, headers=self.HEADERS, timeout=self.timeout)
        except requests.RequestException as e:
            log.error(f"{source} request failed: {e}")
            raise ConditionFetchFailed(f"{source} request failed: {e}") from e

        elapsed_ms = (time.monotonic() - started) * 1000
        debug_log(f"{source}: HTTP {response.status_code} ({elapsed_ms:.0f}ms)", "CONDITIONS")

        if response.status_code != 200:
            log.error(f"{source} HTTP error: {response.status_code}")
            raise ConditionFetchFailed(f"{source} returned HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise ConditionFetchFailed(f"{source} returned invalid JSON: {e}") from e


def _parse_utc(value: str) -> datetime:
    """Parse '2024-03-01T10:00' or '2024-03-01 10:00' as UTC."""
    parsed = datetime.fromisoformat(value.replace(" ", "T"))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _require_number(value: Any, name: str) -> float:
    if value is None:
        raise ValueError(f"missing {name}")
    number = float(value)
    if number != number:  # NaN
        raise ValueError(f"{name} is NaN")
    return number


def _require_range(value: float, low: float, high: float, name: str) -> None:
    if not low <= value <= high:
        raise ConditionFetchFailed(f"{name} {value} outside reasonable bounds ({low}-{high})")
