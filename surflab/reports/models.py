# ABOUTME: Data models for generated surf reports and their recommendations
# ABOUTME: Reports are immutable; refreshing always means creating a new one

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from surflab.weather.models import ConditionSnapshot


class SkillLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


@dataclass(frozen=True)
class Recommendations:
    """Gear and timing advice that goes with a report"""
    board_type: str
    skill_level: SkillLevel
    wetsuit_thickness: Optional[str] = None
    best_spots: Optional[tuple[str, ...]] = None
    timing_advice: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "board_type": self.board_type,
            "skill_level": self.skill_level.value,
        }
        if self.wetsuit_thickness is not None:
            data["wetsuit_thickness"] = self.wetsuit_thickness
        if self.best_spots is not None:
            data["best_spots"] = list(self.best_spots)
        if self.timing_advice is not None:
            data["timing_advice"] = self.timing_advice
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Recommendations":
        """
        Build from a dict (LLM output or stored JSON).

        Raises:
            ValueError: if board_type is missing or skill_level is not a known level
        """
        board_type = data.get("board_type")
        if not board_type:
            raise ValueError("recommendations.board_type is required")

        spots = data.get("best_spots")
        if isinstance(spots, str):
            spots = [spots]
        return cls(
            board_type=str(board_type),
            skill_level=SkillLevel(str(data.get("skill_level", "")).lower()),
            wetsuit_thickness=data.get("wetsuit_thickness") or None,
            best_spots=tuple(str(s) for s in spots) if spots else None,
            timing_advice=data.get("timing_advice") or None,
        )


def generate_report_id(now: Optional[datetime] = None) -> str:
    """Timestamp plus random suffix, e.g. report_1709301600000_a1b2c3d4"""
    now = now or datetime.now(timezone.utc)
    return f"report_{int(now.timestamp() * 1000)}_{secrets.token_hex(4)}"


@dataclass(frozen=True)
class Report:
    """An AI-narrated surf report for one location at one point in time"""
    id: str
    timestamp: datetime
    location: str
    narrative: str
    conditions: ConditionSnapshot
    recommendations: Recommendations
    cached_until: datetime
    # Set when the narrative came from the template instead of the model
    templated: bool = field(default=False, compare=False)

    def __post_init__(self):
        if self.timestamp.tzinfo is None or self.cached_until.tzinfo is None:
            raise ValueError("Report timestamps must be timezone-aware")
        if self.cached_until <= self.timestamp:
            raise ValueError(
                f"cached_until ({self.cached_until.isoformat()}) must be after "
                f"timestamp ({self.timestamp.isoformat()})"
            )

    def age_seconds(self, now: datetime) -> float:
        return (now - self.timestamp).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "location": self.location,
            "narrative": self.narrative,
            "conditions": self.conditions.to_dict(),
            "recommendations": self.recommendations.to_dict(),
            "cached_until": self.cached_until.isoformat(),
            "templated": self.templated,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Report":
        """
        Parse a report from its JSON form.

        Raises:
            KeyError: a required field is missing
            ValueError: a field has the wrong shape
        """
        return cls(
            id=data["id"],
            timestamp=parse_instant(data["timestamp"]),
            location=data["location"],
            narrative=data["narrative"],
            conditions=ConditionSnapshot.from_dict(data["conditions"]),
            recommendations=Recommendations.from_dict(data["recommendations"]),
            cached_until=parse_instant(data["cached_until"]),
            templated=bool(data.get("templated", False)),
        )


def parse_instant(value: Any) -> datetime:
    """ISO-8601 string (or datetime) to an aware UTC datetime. Naive means UTC."""
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
