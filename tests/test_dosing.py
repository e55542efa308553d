from datetime import datetime, timedelta

import pytest

from stimengine.dosing import (
    effective_max_mg_per_day,
    effective_spacing_hours,
    falls_during_sleep,
    get_cutoff_times,
    get_dose_for_peak_at,
    get_next_dose_windows,
    get_sleep_readiness,
    resolve_sleep_by,
)
from stimengine.errors import InvalidArgumentError
from stimengine.interactions import get_active_interactions
from stimengine.types import DoseLog, HealthProfile

DAY = datetime(2024, 3, 15)
SLEEP_BY = DAY.replace(hour=22)


def at(h, m=0):
    return DAY.replace(hour=h, minute=m)


def window(logs, now, mode="health", substance="CAFFEINE", **kw):
    (w,) = get_next_dose_windows(logs, now, mode, substances=[substance], **kw)
    return w


def test_cutoff_times_health_mode():
    cutoffs = {c.substance: c for c in get_cutoff_times(SLEEP_BY, "health")}
    assert cutoffs["CAFFEINE"].cutoff_at == at(14)
    assert cutoffs["CAFFEINE"].cutoff_time == "14:00"
    assert cutoffs["CAFFEINE"].message == "No caffeine after 2:00 PM."
    assert cutoffs["ADDERALL"].cutoff_time == "10:00"
    assert cutoffs["NICOTINE"].cutoff_time == "19:00"


def test_cutoff_times_skip_allergies_and_reject_bad_mode():
    cutoffs = get_cutoff_times(SLEEP_BY, "productivity", profile=HealthProfile(allergies="coffee"))
    assert "CAFFEINE" not in [c.substance for c in cutoffs]
    with pytest.raises(InvalidArgumentError):
        get_cutoff_times(SLEEP_BY, "party")


def test_resolve_sleep_by():
    assert resolve_sleep_by(at(9), "22:00") == at(22)
    assert resolve_sleep_by(at(23), "22:00") == at(22) + timedelta(days=1)
    with pytest.raises(InvalidArgumentError):
        resolve_sleep_by(at(9), "25:00")


def test_no_history_window():
    w = window([], at(9))
    assert w.state == "NO_HISTORY"
    assert w.window_start == at(9) and w.window_end == at(11)
    assert w.doses_today == 0 and w.remaining_mg_today == 300.0
    assert w.current_mg_active == 0.0 and w.half_life_hours == 5.0


def test_allergy_short_circuits():
    w = window([], at(9), profile=HealthProfile(allergies="caffeine"))
    assert w.state == "ALLERGIC_SKIP"
    assert w.window_start is None and w.window_end is None


def test_allergy_wins_over_history():
    """Doses already logged today never turn an allergic substance into a recommendation."""
    active = [DoseLog("CAFFEINE", 100, at(8))]
    w = window(active, at(10), profile=HealthProfile(allergies="coffee"))
    assert w.state == "ALLERGIC_SKIP"
    assert w.window_start is None

    at_limit = [DoseLog("ADDERALL", 20, at(7))]
    w = window(at_limit, at(20), substance="ADDERALL", profile=HealthProfile(allergies="amphetamine"))
    assert w.state == "ALLERGIC_SKIP"


def test_dose_limit_reached():
    logs = [DoseLog("ADDERALL", 20, at(7))]
    w = window(logs, at(20), substance="ADDERALL")
    assert w.state == "AT_LIMIT"
    assert w.window_start is None
    assert "1/1 doses" in w.message

    # mg limit alone also blocks: 2 x 150mg caffeine hits the 300mg health ceiling
    logs = [DoseLog("CAFFEINE", 150, at(6)), DoseLog("CAFFEINE", 150, at(7))]
    assert window(logs, at(20)).state == "AT_LIMIT"


def test_dose_limit_holds_for_the_rest_of_the_day():
    logs = [DoseLog("ADDERALL", 20, at(7))]
    for now in (at(12), at(23, 59)):
        assert window(logs, now, substance="ADDERALL").state == "AT_LIMIT"

    tomorrow = window(logs, at(9) + timedelta(days=1), substance="ADDERALL")
    assert tomorrow.state == "NO_HISTORY"
    assert tomorrow.doses_today == 0


def test_yesterdays_doses_do_not_count_against_today():
    logs = [DoseLog("ADDERALL", 20, at(7) - timedelta(days=1))]
    w = window(logs, at(9), substance="ADDERALL", pharmacokinetics=False)
    assert w.state == "NO_HISTORY"


def test_spacing_wait_and_ready():
    logs = [DoseLog("CAFFEINE", 95, at(8))]
    w = window(logs, at(10), pharmacokinetics=False)
    assert w.state == "SPACING_WAIT"
    assert w.window_start == at(12) and w.window_end == at(13)
    assert w.current_mg_active is None

    w = window(logs, at(12, 30), pharmacokinetics=False)
    assert w.state == "READY"
    assert w.window_start == at(12, 30)


def test_large_dose_widens_spacing():
    assert effective_spacing_hours("CAFFEINE", 4.0, 95) == 4.0
    assert effective_spacing_hours("CAFFEINE", 4.0, 200) == 5.0
    assert effective_spacing_hours("CAFFEINE", 4.0, 500) == 6.0
    assert effective_spacing_hours("ADDERALL", 6.0, 25) == 7.0
    assert effective_spacing_hours("DEXEDRINE", 6.0, 35) == 8.0

    logs = [DoseLog("CAFFEINE", 200, at(8))]
    assert window(logs, at(12, 30), pharmacokinetics=False).window_start == at(13)


def test_concentration_override_beats_spacing():
    logs = [DoseLog("CAFFEINE", 100, at(8))]
    w = window(logs, at(10))
    assert w.state == "CONCENTRATION_OVERRIDE"
    assert w.current_mg_active > 30.0
    assert w.window_start == at(17, 30)
    assert w.window_end == at(18, 30)


def test_override_without_horizon_crossing():
    logs = [DoseLog("CAFFEINE", 100, at(8))]
    w = window(logs, at(10), half_lives={"CAFFEINE": 100.0})
    assert w.state == "CONCENTRATION_OVERRIDE"
    assert w.window_start is None
    assert "within 48h" in w.message


def test_sleep_guard_flags_but_keeps_window():
    logs = [DoseLog("CAFFEINE", 95, at(20))]
    w = window(logs, at(21), mode="productivity", sleep_by=SLEEP_BY, pharmacokinetics=False)
    assert w.state == "SPACING_WAIT"
    assert w.window_start == at(23)
    assert w.during_sleep
    assert "falls during sleep hours" in w.message

    assert falls_during_sleep(at(23), SLEEP_BY)
    assert falls_during_sleep(DAY + timedelta(days=1, hours=5), SLEEP_BY)
    assert not falls_during_sleep(DAY + timedelta(days=1, hours=5, minutes=5), SLEEP_BY)


def test_effective_max_mg_per_day():
    active = get_active_interactions(["CAFFEINE", "ADDERALL"], None)
    assert effective_max_mg_per_day("CAFFEINE", "health", None, active) == 150.0
    assert effective_max_mg_per_day("CAFFEINE", "productivity", HealthProfile(weight_kg=50)) == 275.0
    assert effective_max_mg_per_day("ADDERALL", "productivity") == 40.0

    w = window([], at(9), interactions=active)
    assert w.max_mg_per_day == 150.0


def test_dose_for_peak_flags_after_cutoff():
    peaks = {s.substance: s for s in get_dose_for_peak_at(at(15), "health", SLEEP_BY)}
    assert peaks["CAFFEINE"].take_by == at(14)
    assert peaks["CAFFEINE"].after_cutoff
    assert "cutoff" in peaks["CAFFEINE"].message
    assert peaks["ADDERALL"].take_by == at(13) and peaks["ADDERALL"].after_cutoff

    early = {s.substance: s for s in get_dose_for_peak_at(at(11), "health", SLEEP_BY)}
    assert not early["CAFFEINE"].after_cutoff
    assert early["NICOTINE"].take_by == at(10, 45)

    allergic = get_dose_for_peak_at(at(11), "health", SLEEP_BY, profile=HealthProfile(allergies="nicotine"))
    assert [s.substance for s in allergic] == ["CAFFEINE", "ADDERALL", "DEXEDRINE"]


def test_sleep_readiness_messages():
    assert get_sleep_readiness([], at(21)).status == "already_below"

    logs = [DoseLog("CAFFEINE", 100, at(8))]
    r = get_sleep_readiness(logs, at(10))
    assert r.status == "clears_at"
    assert at(13, 45) <= r.ready_at <= at(13, 50)

    r = get_sleep_readiness(logs, at(10), {"CAFFEINE": 500.0})
    assert r.status == "not_within_horizon" and r.ready_at is None
