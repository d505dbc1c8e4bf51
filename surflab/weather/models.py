# ABOUTME: Data models for ocean, tide and weather conditions
# ABOUTME: ConditionSnapshot is the frozen input to narration and scoring

from dataclasses import asdict, dataclass, fields
from typing import Any, Optional

NUMERIC_FIELDS = (
    "wave_height_ft", "wave_period_sec", "swell_direction_deg",
    "wind_speed_kts", "wind_direction_deg", "tide_height_ft",
)
OPTIONAL_NUMERIC_FIELDS = ("air_temp_f", "water_temp_f")
TEXT_FIELDS = ("tide_state", "weather_description")


@dataclass(frozen=True)
class ConditionSnapshot:
    """Current conditions at a location, as used to produce a report"""
    wave_height_ft: float
    wave_period_sec: float
    swell_direction_deg: float
    wind_speed_kts: float
    wind_direction_deg: float
    tide_state: str
    tide_height_ft: float
    weather_description: str
    surfability_score: int  # 0-100
    # Optional fields - not every upstream response has them
    air_temp_f: Optional[float] = None
    water_temp_f: Optional[float] = None

    def __str__(self) -> str:
        return (
            f"Waves: {self.wave_height_ft}ft @ {self.wave_period_sec}s, "
            f"Wind: {self.wind_speed_kts}kts from {self.wind_direction_deg:.0f}°, "
            f"Tide: {self.tide_state}, Score: {self.surfability_score}/100"
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConditionSnapshot":
        """
        Build from a dict, ignoring keys this model doesn't know about.

        Raises:
            TypeError: a required field is missing
            ValueError: a field is not a number or text where one is needed, or the score is outside 0-100
        """
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}

        for name in NUMERIC_FIELDS:
            if name in values:
                values[name] = _as_number(values[name], name)
        for name in OPTIONAL_NUMERIC_FIELDS:
            if values.get(name) is not None:
                values[name] = _as_number(values[name], name)
        for name in TEXT_FIELDS:
            if name in values and not isinstance(values[name], str):
                raise ValueError(f"{name} must be text, got {values[name]!r}")

        if "surfability_score" in values:
            score = _as_number(values["surfability_score"], "surfability_score")
            if not score.is_integer() or not 0 <= score <= 100:
                raise ValueError(f"surfability_score must be a whole number 0-100, got {values['surfability_score']!r}")
            values["surfability_score"] = int(score)

        return cls(**values)


def _as_number(value: Any, name: str) -> float:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number, got {value!r}") from None
    if number != number or number in (float("inf"), float("-inf")):
        raise ValueError(f"{name} must be finite, got {value!r}")
    return number
