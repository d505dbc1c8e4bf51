# ABOUTME: Deterministic templated surf report used when the LLM is unavailable
# ABOUTME: Built straight from the numbers so a failed narration still yields a useful report

from surflab.ai.llm_client import Narration
from surflab.reports.models import Recommendations, SkillLevel
from surflab.scoring.calculator import SurfabilityCalculator
from surflab.weather.models import ConditionSnapshot

COMPASS_POINTS = [
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
]


def degrees_to_compass(degrees: float) -> str:
    return COMPASS_POINTS[int((degrees % 360) / 22.5 + 0.5) % 16]


def recommend_board(wave_height_ft: float) -> str:
    if wave_height_ft < 2:
        return "Longboard"
    if wave_height_ft < 4:
        return "Funboard or mid-length"
    return "Shortboard"


def recommend_wetsuit(water_temp_f) -> str:
    if water_temp_f is None:
        return "Check the water temp"
    if water_temp_f >= 75:
        return "Boardshorts or a rash guard"
    if water_temp_f >= 68:
        return "2mm spring suit"
    if water_temp_f >= 62:
        return "3/2mm full suit"
    return "4/3mm full suit"


def recommend_skill_level(conditions: ConditionSnapshot) -> SkillLevel:
    if conditions.wave_height_ft >= 6 or conditions.wind_speed_kts >= 20:
        return SkillLevel.ADVANCED
    if conditions.wave_height_ft >= 3:
        return SkillLevel.INTERMEDIATE
    return SkillLevel.BEGINNER


def templated_narration(conditions: ConditionSnapshot, location_name: str) -> Narration:
    """Plain-language report and recommendations from the raw snapshot."""
    rating = SurfabilityCalculator().rating_label(conditions.surfability_score)
    swell_from = degrees_to_compass(conditions.swell_direction_deg)
    wind_from = degrees_to_compass(conditions.wind_direction_deg)

    lines = [
        f"{location_name} surf report: {rating} ({conditions.surfability_score}/100).",
        (
            f"Waves are running {conditions.wave_height_ft}ft at {conditions.wave_period_sec} seconds "
            f"with swell out of the {swell_from}."
        ),
        (
            f"Wind is {conditions.wind_speed_kts}kts from the {wind_from}. "
            f"Tide is {conditions.tide_state.lower()} at {conditions.tide_height_ft}ft."
        ),
        f"Weather: {conditions.weather_description}.",
    ]
    if conditions.water_temp_f is not None:
        lines.append(f"Water temperature is {conditions.water_temp_f}°F.")

    recommendations = Recommendations(
        board_type=recommend_board(conditions.wave_height_ft),
        skill_level=recommend_skill_level(conditions),
        wetsuit_thickness=recommend_wetsuit(conditions.water_temp_f),
    )
    return Narration(narrative=" ".join(lines), recommendations=recommendations)
