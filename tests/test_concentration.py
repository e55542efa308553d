from datetime import datetime, timedelta

import numpy as np
import pytest

from stimengine.concentration import (
    get_concentration_at_time,
    get_concentration_curve,
    get_sleep_readiness_time,
    get_time_until_below,
)
from stimengine.errors import InvalidArgumentError
from stimengine.models.absorption_decay import absorption_decay, single_dose_concentration
from stimengine.types import DoseLog

T0 = datetime(2024, 3, 15, 8, 0)


def caffeine(mg, at=T0):
    return DoseLog(substance="CAFFEINE", amount_mg=mg, logged_at=at)


def test_caffeine_ramp_and_one_half_life_after_absorption():
    """
    100 mg caffeine at 08:00 (t1/2 5h, absorption 0.75h):
      08:22 is inside the ramp -> 100 * 22/45 ~= 48.89
      13:45 is absorption + one half-life -> ~50
    """
    logs = [caffeine(100)]
    assert get_concentration_at_time(logs, "CAFFEINE", T0 + timedelta(minutes=22)) == pytest.approx(48.89, abs=0.01)
    assert get_concentration_at_time(logs, "CAFFEINE", T0 + timedelta(hours=5, minutes=45)) == pytest.approx(50.0, rel=0.01)


def test_zero_before_dose_and_no_logs():
    assert get_concentration_at_time([caffeine(100)], "CAFFEINE", T0 - timedelta(minutes=1)) == 0.0
    assert get_concentration_at_time([], "NICOTINE", T0) == 0.0


def test_model_is_monotonic_after_absorption():
    t = np.linspace(0.75, 30.0, 200)
    mg = absorption_decay(t, 100.0, 5.0, 0.75)
    assert np.all(np.diff(mg) < 0)
    assert np.isclose(mg[0], 100.0)


def test_model_peaks_at_full_dose_at_end_of_absorption():
    """
    The curve peaks at the full dose when absorption ends (1.5h for Adderall),
    not at the 2h `peak_hours` used in messages. Both notions are kept.
    """
    t = np.linspace(-1.0, 10.0, 1101)
    mg = absorption_decay(t, 20.0, 11.0, 1.5)
    assert np.isclose(mg.max(), 20.0)
    assert np.isclose(t[np.argmax(mg)], 1.5)
    assert np.all(mg[t < 0] == 0.0)


def test_single_dose_helper_matches_vectorised_model():
    target = T0 + timedelta(hours=3)
    single = single_dose_concentration(100.0, T0, target, 5.0, 0.75)
    assert np.isclose(single, float(absorption_decay(3.0, 100.0, 5.0, 0.75)))
    assert single_dose_concentration(100.0, T0, T0 - timedelta(hours=1), 5.0, 0.75) == 0.0


def test_superposition_of_two_doses():
    """Active mg from two doses equals the sum of each one alone (up to rounding)."""
    second = T0 + timedelta(hours=3)
    target = T0 + timedelta(hours=5)
    both = get_concentration_at_time([caffeine(100), caffeine(50, second)], "CAFFEINE", target)
    a = get_concentration_at_time([caffeine(100)], "CAFFEINE", target)
    b = get_concentration_at_time([caffeine(50, second)], "CAFFEINE", target)
    assert both == pytest.approx(a + b, abs=0.02)


def test_missing_amount_uses_default_dose():
    target = T0 + timedelta(hours=2)
    assert get_concentration_at_time([caffeine(None)], "CAFFEINE", target) == \
        get_concentration_at_time([caffeine(95)], "CAFFEINE", target)


def test_half_life_override_slows_decay():
    target = T0 + timedelta(hours=6)
    base = get_concentration_at_time([caffeine(100)], "CAFFEINE", target)
    slow = get_concentration_at_time([caffeine(100)], "CAFFEINE", target, half_life_hours=15.0)
    assert slow > base


def test_curve_is_inclusive_and_stateless():
    logs = [caffeine(100)]
    end = T0 + timedelta(hours=2)
    curve = get_concentration_curve(logs, "CAFFEINE", T0, end, step_minutes=10)
    assert len(curve) == 13
    assert curve[0].time == T0 and curve[-1].time == end
    assert curve[0].mg_active == 0.0
    assert curve == get_concentration_curve(logs, "CAFFEINE", T0, end, step_minutes=10)


def test_curve_rejects_reversed_interval():
    with pytest.raises(InvalidArgumentError):
        get_concentration_curve([], "CAFFEINE", T0, T0 - timedelta(hours=1))


def test_unknown_substance_rejected():
    with pytest.raises(InvalidArgumentError):
        get_concentration_at_time([], "MODAFINIL", T0)


def test_time_until_below_three_outcomes():
    logs = [caffeine(100)]
    now = T0 + timedelta(hours=2)

    below = get_time_until_below(logs, "CAFFEINE", now, 200.0)
    assert below.status == "already_below" and below.at is None and not below.needs_wait

    # 100 * exp(-ln2/5 * (t - 0.75)) <= 30 at t ~= 9.43h -> first 5-minute sample is 17:30
    crossing = get_time_until_below(logs, "CAFFEINE", now, 30.0)
    assert crossing.status == "clears_at"
    assert crossing.at == datetime(2024, 3, 15, 17, 30)
    assert get_concentration_at_time(logs, "CAFFEINE", crossing.at) <= 30.0
    assert get_concentration_at_time(logs, "CAFFEINE", crossing.at - timedelta(minutes=5)) > 30.0

    stuck = get_time_until_below(logs, "CAFFEINE", now, 0.0001, half_life_hours=100.0)
    assert stuck.status == "not_within_horizon" and stuck.at is None


def test_sleep_readiness_time():
    assert get_sleep_readiness_time([], T0).status == "already_below"

    logs = [caffeine(100), DoseLog("NICOTINE", 1.0, T0)]
    ready = get_sleep_readiness_time(logs, T0 + timedelta(hours=2))
    # caffeine reaches 50mg one half-life after absorption, at ~13:45; nicotine clears earlier
    assert ready.status == "clears_at"
    assert datetime(2024, 3, 15, 13, 45) <= ready.at <= datetime(2024, 3, 15, 13, 50)

    stuck = get_sleep_readiness_time(logs, T0 + timedelta(hours=2), {"CAFFEINE": 500.0})
    assert stuck.status == "not_within_horizon"
