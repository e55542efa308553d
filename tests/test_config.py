import math
from datetime import datetime, timedelta

import pytest

from stimengine.concentration import get_concentration_at_time
from stimengine.config import DEFAULT_REGISTRY, Registry, config, government_limits
from stimengine.errors import InvalidArgumentError
from stimengine.helpers import as_record, format_mg, format_time, resolve_dose_mg
from stimengine.types import DoseLog, ThresholdCrossing


def test_default_table_values():
    assert config("CAFFEINE").half_life_hours == 5.0
    assert config("NICOTINE").absorption_hours == 0.08
    assert DEFAULT_REGISTRY.mode_params("ADDERALL", "health").max_doses_per_day == 1
    assert government_limits()["CAFFEINE"] == {"max_doses_per_day": 6, "max_mg_per_day": 400.0}


def test_unknown_substance_and_mode():
    with pytest.raises(InvalidArgumentError):
        config("COCOA")
    with pytest.raises(InvalidArgumentError):
        DEFAULT_REGISTRY.mode_params("CAFFEINE", "turbo")


def test_presets_must_stay_inside_absolute_limits():
    with pytest.raises(InvalidArgumentError):
        DEFAULT_REGISTRY.replace_mode("CAFFEINE", "health", max_mg_per_day=500.0)
    with pytest.raises(InvalidArgumentError):
        DEFAULT_REGISTRY.replace_mode("ADDERALL", "productivity", spacing_hours=1.0)
    with pytest.raises(InvalidArgumentError):
        DEFAULT_REGISTRY.replace("NICOTINE", half_life_hours=0.0)


def test_registry_must_cover_every_substance():
    table = dict(DEFAULT_REGISTRY.substances)
    del table["NICOTINE"]
    with pytest.raises(InvalidArgumentError):
        Registry(substances=table)


def test_registry_table_is_read_only():
    """The shared default table cannot be edited in place, nor through the dict it was built from."""
    with pytest.raises(TypeError):
        DEFAULT_REGISTRY.substances["CAFFEINE"] = config("NICOTINE")

    table = dict(DEFAULT_REGISTRY.substances)
    reg = Registry(substances=table)
    table["CAFFEINE"] = config("NICOTINE")
    assert reg.config("CAFFEINE").label == "Caffeine"


def test_replaced_registry_flows_into_the_model():
    """A slower half-life in a custom registry leaves more caffeine active; the default is untouched."""
    reg = DEFAULT_REGISTRY.replace("CAFFEINE", half_life_hours=10.0)
    t0 = datetime(2024, 3, 15, 8, 0)
    logs = [DoseLog("CAFFEINE", 100, t0)]
    target = t0 + timedelta(hours=10, minutes=45)
    assert get_concentration_at_time(logs, "CAFFEINE", target, registry=reg) == pytest.approx(50.0, rel=0.01)
    assert config("CAFFEINE").half_life_hours == 5.0


def test_resolve_dose_mg_fallbacks():
    t = datetime(2024, 3, 15, 8, 0)
    assert resolve_dose_mg(DoseLog("CAFFEINE", None, t), 95) == 95.0
    assert resolve_dose_mg(DoseLog("CAFFEINE", -5, t), 95) == 95.0
    assert resolve_dose_mg(DoseLog("CAFFEINE", math.nan, t), 95) == 95.0
    assert resolve_dose_mg(DoseLog("CAFFEINE", 200, t), 95) == 200.0


def test_formatting_helpers():
    assert format_time(datetime(2024, 3, 15, 14, 0)) == "2:00 PM"
    assert format_time(datetime(2024, 3, 15, 0, 5)) == "12:05 AM"
    assert format_mg(20.0) == "20"
    assert format_mg(0.3) == "0.3"


def test_as_record_is_json_safe():
    at = datetime(2024, 3, 15, 17, 30)
    assert as_record(ThresholdCrossing(status="clears_at", at=at)) == {
        "status": "clears_at",
        "at": "2024-03-15T17:30:00",
    }
