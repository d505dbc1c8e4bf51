# ABOUTME: Tests for the condition snapshot model
# ABOUTME: Validates dict conversion and display formatting

import pytest

from surflab.weather.models import ConditionSnapshot
from tests.factories import make_conditions


def test_str_summarizes_conditions():
    text = str(make_conditions())

    assert "3.3ft @ 9.0s" in text
    assert "4.0kts from 270°" in text
    assert "Mid Rising" in text
    assert "90/100" in text


def test_from_dict_ignores_unknown_keys():
    data = make_conditions().to_dict()
    data["wind_gust_kts"] = 12.0

    assert ConditionSnapshot.from_dict(data) == make_conditions()


def test_from_dict_optional_temps():
    data = make_conditions().to_dict()
    del data["air_temp_f"]
    del data["water_temp_f"]

    snapshot = ConditionSnapshot.from_dict(data)

    assert snapshot.air_temp_f is None
    assert snapshot.water_temp_f is None


def test_from_dict_missing_required_field():
    data = make_conditions().to_dict()
    del data["tide_state"]

    with pytest.raises(TypeError):
        ConditionSnapshot.from_dict(data)


def test_snapshot_is_immutable():
    snapshot = make_conditions()

    with pytest.raises(AttributeError):
        snapshot.wave_height_ft = 10.0


@pytest.mark.parametrize("field,value", [
    ("surfability_score", 999),
    ("surfability_score", -1),
    ("surfability_score", 72.5),
    ("wind_direction_deg", "westish"),
    ("wave_height_ft", None),
    ("wave_height_ft", float("nan")),
    ("water_temp_f", "cold"),
    ("tide_state", 3),
])
def test_from_dict_rejects_bad_values(field, value):
    data = {**make_conditions().to_dict(), field: value}

    with pytest.raises(ValueError, match=field):
        ConditionSnapshot.from_dict(data)


def test_from_dict_converts_numeric_strings():
    data = {**make_conditions().to_dict(), "wave_height_ft": "3.3", "surfability_score": 90.0}

    snapshot = ConditionSnapshot.from_dict(data)

    assert snapshot.wave_height_ft == 3.3
    assert snapshot.surfability_score == 90
    assert isinstance(snapshot.surfability_score, int)
