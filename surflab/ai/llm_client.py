# ABOUTME: LLM API client that narrates ocean conditions as a surf report
# ABOUTME: Google Gemini with structured JSON output (narrative + recommendations)

import json
import logging
import time
from dataclasses import dataclass
from typing import Optional

import google.generativeai as genai

from surflab.config import Config
from surflab.debug import debug_log
from surflab.errors import NarrationFailed
from surflab.reports.models import Recommendations, SkillLevel
from surflab.weather.models import ConditionSnapshot

log = logging.getLogger(__name__)

REPORT_SCHEMA = {
    "type": "object",
    "properties": {
        "report": {"type": "string"},
        "recommendations": {
            "type": "object",
            "properties": {
                "board_type": {"type": "string"},
                "wetsuit_thickness": {"type": "string"},
                "skill_level": {
                    "type": "string",
                    "enum": [level.value for level in SkillLevel],
                },
                "best_spots": {"type": "array", "items": {"type": "string"}},
                "timing_advice": {"type": "string"},
            },
            "required": ["board_type", "skill_level"],
        },
    },
    "required": ["report", "recommendations"],
}


@dataclass(frozen=True)
class Narration:
    """What the model gives back for one set of conditions"""
    narrative: str
    recommendations: Recommendations


def build_prompt(conditions: ConditionSnapshot, location_name: str) -> str:
    water = f"{conditions.water_temp_f}°F" if conditions.water_temp_f is not None else "unknown"
    air = f"{conditions.air_temp_f}°F" if conditions.air_temp_f is not None else "unknown"

    return f"""You are a laid-back but honest local surf reporter in {location_name}.

CURRENT CONDITIONS:
- Waves: {conditions.wave_height_ft}ft at {conditions.wave_period_sec}s, swell from {conditions.swell_direction_deg:.0f}°
- Wind: {conditions.wind_speed_kts}kts from {conditions.wind_direction_deg:.0f}°
- Tide: {conditions.tide_state} ({conditions.tide_height_ft}ft)
- Weather: {conditions.weather_description}, air {air}, water {water}
- Surfability score: {conditions.surfability_score}/100

Write a 2-3 paragraph surf report for today. Say plainly whether it is worth paddling out.
Then recommend a board type, a wetsuit thickness for the water temperature, the skill level
these conditions suit (beginner, intermediate or advanced), a few nearby spots, and the best
time window to go.

Return JSON with a "report" string and a "recommendations" object."""


class LLMClient:
    """Client for narrating conditions via the Gemini API"""

    def __init__(self, api_key: str, model_name: Optional[str] = None, timeout_seconds: Optional[float] = None):
        genai.configure(api_key=api_key)
        self.model = genai.GenerativeModel(model_name or Config.GEMINI_MODEL)
        self.timeout = timeout_seconds if timeout_seconds is not None else Config.NARRATION_TIMEOUT_SECONDS

    def narrate(self, conditions: ConditionSnapshot, location_name: str) -> Narration:
        """
        Generate a surf report narrative and recommendations.

        Raises:
            NarrationFailed: API error, timeout, or unusable response
        """
        prompt = build_prompt(conditions, location_name)
        debug_log(f"Prompt length: {len(prompt)} chars", "LLM")

        started = time.monotonic()
        try:
            response = self.model.generate_content(
                prompt,
                generation_config=genai.GenerationConfig(
                    response_mime_type="application/json",
                    response_schema=REPORT_SCHEMA,
                ),
                request_options={"timeout": self.timeout},
            )
            text = response.text
        except Exception as e:
            log.error(f"LLM API error: {e}")
            raise NarrationFailed(f"LLM API error: {e}") from e

        elapsed_ms = (time.monotonic() - started) * 1000
        debug_log(f"Response length: {len(text)} chars ({elapsed_ms:.0f}ms)", "LLM")

        return parse_narration(text)


def parse_narration(response_text: str) -> Narration:
    """
    Parse the model's JSON response.

    Raises:
        NarrationFailed: invalid JSON, empty report, or bad recommendations
    """
    try:
        data = json.loads(response_text)
        narrative = str(data["report"]).strip()
        recommendations = Recommendations.from_dict(data["recommendations"])
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        debug_log(f"Unparseable response: {response_text[:500]}", "LLM")
        raise NarrationFailed(f"Invalid narration response: {e}") from e

    if not narrative:
        raise NarrationFailed("Narration response had an empty report")

    return Narration(narrative=narrative, recommendations=recommendations)
