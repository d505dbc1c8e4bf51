# ABOUTME: Surfability scoring and tide-state derivation from raw conditions
# ABOUTME: Converts wave, wind and tide data into a 0-100 score and a rating label

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

log = logging.getLogger(__name__)

# Shoreline faces east, so offshore wind blows from the west
OFFSHORE_WIND_MIN_DEG = 225
OFFSHORE_WIND_MAX_DEG = 315


@dataclass(frozen=True)
class TideEvent:
    """A predicted high or low tide"""
    time: datetime
    height_ft: float
    kind: str  # "H" or "L"


class SurfabilityCalculator:
    """Calculates a 0-100 surfability score for an east-facing beach break"""

    def calculate_score(
        self,
        wave_height_ft: float,
        wave_period_sec: float,
        swell_direction_deg: float,
        wind_speed_kts: float,
        wind_direction_deg: float,
        tide_state: str,
        tide_height_ft: Optional[float] = None,
    ) -> int:
        """
        Score current conditions.

        Waves (height + period) are worth up to 50, swell direction 20,
        wind 20, tide 15.

        Returns:
            Score from 0-100
        """
        score = 0

        # Wave height
        if 2 <= wave_height_ft <= 8:
            score += 25
        elif 1.5 <= wave_height_ft < 2:
            score += 15

        # Wave period
        if wave_period_sec >= 10:
            score += 25
        elif wave_period_sec >= 7:
            score += 20
        elif wave_period_sec >= 5:
            score += 10

        # Swell direction - east-ish swells reach the beach
        if 45 <= swell_direction_deg <= 135:
            score += 20
        elif 30 <= swell_direction_deg <= 150:
            score += 10

        # Wind
        if wind_speed_kts < 5:
            score += 15  # Glassy
        elif OFFSHORE_WIND_MIN_DEG <= wind_direction_deg <= OFFSHORE_WIND_MAX_DEG:
            score += 20 if wind_speed_kts <= 15 else 10
        elif wind_speed_kts < 10:
            score += 10

        # Tide
        if any(word in tide_state for word in ("Mid", "Rising", "Falling")):
            score += 10
        if tide_height_ft is not None and 0.5 <= tide_height_ft <= 2.5:
            score += 5

        return max(0, min(100, score))

    def rating_label(self, score: int) -> str:
        if score >= 80:
            return "Excellent"
        if score >= 65:
            return "Good"
        if score >= 45:
            return "Marginal"
        return "Poor"


def calculate_tide_state(
    current_height_ft: float,
    now: datetime,
    next_high: Optional[TideEvent],
    next_low: Optional[TideEvent],
    previous_high: Optional[TideEvent],
    previous_low: Optional[TideEvent],
) -> str:
    """
    Describe the tide as e.g. "Mid Rising" or "High Falling".

    Rising when the next high tide comes before the next low tide. The
    Low/Mid/High qualifier compares the current height with the mid-point
    between the surrounding extremes (within 25% of the range is Mid).
    """
    if next_high and next_low:
        if next_high.time < next_low.time:
            range_ft = abs(next_high.height_ft - previous_low.height_ft) if previous_low else 3.0
            mid = (next_high.height_ft + previous_low.height_ft) / 2 if previous_low else current_height_ft
            if abs(current_height_ft - mid) < range_ft * 0.25:
                return "Mid Rising"
            return "Low Rising" if current_height_ft < mid else "High Rising"

        range_ft = abs(previous_high.height_ft - next_low.height_ft) if previous_high else 3.0
        mid = (previous_high.height_ft + next_low.height_ft) / 2 if previous_high else current_height_ft
        if abs(current_height_ft - mid) < range_ft * 0.25:
            return "Mid Falling"
        return "High Falling" if current_height_ft > mid else "Low Falling"

    # Only one side of the cycle is known
    six_hours = timedelta(hours=6)
    if next_high and next_high.time - now < six_hours:
        return "High Rising" if current_height_ft > 1.5 else "Rising"
    if next_low and next_low.time - now < six_hours:
        return "Low Falling" if current_height_ft < 1.0 else "Falling"

    if current_height_ft > 2.0:
        return "High"
    if current_height_ft < 1.0:
        return "Low"
    return "Mid"


def split_tide_events(events: list[TideEvent], now: datetime) -> dict[str, Optional[TideEvent]]:
    """Find the nearest high/low tide on either side of now."""
    past = sorted((e for e in events if e.time <= now), key=lambda e: e.time, reverse=True)
    future = sorted((e for e in events if e.time > now), key=lambda e: e.time)
    return {
        "previous_high": next((e for e in past if e.kind == "H"), None),
        "previous_low": next((e for e in past if e.kind == "L"), None),
        "next_high": next((e for e in future if e.kind == "H"), None),
        "next_low": next((e for e in future if e.kind == "L"), None),
    }
