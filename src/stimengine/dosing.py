# src/stimengine/dosing.py
"""
Dose recommendation policy.

Combines the substance table, profile personalisation, interactions and the
concentration model into cutoff times, next-dose windows, dose-for-peak
suggestions and sleep readiness. Each substance is evaluated on its own.

Tolerance (see tolerance.py) is deliberately NOT consulted here: it is shown
to the user, never used to move a limit.

For awareness only; not medical advice.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta
from typing import Iterable, Mapping, Sequence

from .concentration import get_concentration_at_time, get_sleep_readiness_time, get_time_until_below
from .config import DEFAULT_REGISTRY, Registry
from .errors import InvalidArgumentError
from .helpers import (
    format_mg,
    format_time,
    hours_between,
    resolve_dose_mg,
    validate_mode,
    validate_substance,
    validate_substances,
)
from .interactions import AMPHETAMINES, PROFILE_COVERED_RULES, get_interaction_adjustments
from .profile import (
    caffeine_profile_branch,
    is_substance_allergic,
    personalized_half_life,
    weight_based_caffeine_max_mg,
)
from .types import (
    ActiveInteraction,
    CutoffResult,
    DoseForPeakSuggestion,
    DoseLog,
    DoseState,
    HealthProfile,
    NextDoseWindow,
    SleepReadiness,
)

log = logging.getLogger(__name__)

WAKE_HOUR = 5
WINDOW_HOURS = 1.0
FIRST_DOSE_WINDOW_HOURS = 2.0

CAFFEINE_SPACING_STEP_MG = 100.0
CAFFEINE_MAX_EXTRA_SPACING_H = 2.0


def resolve_sleep_by(now: datetime, clock: str = "22:00") -> datetime:
    """
    Next occurrence of a "HH:MM" bedtime: today if it is still ahead of `now`,
    otherwise tomorrow.
    """
    m = re.fullmatch(r"\s*(\d{1,2}):(\d{2})\s*", clock or "")
    if not m or int(m.group(1)) > 23 or int(m.group(2)) > 59:
        raise InvalidArgumentError(f"sleep-by time must look like 'HH:MM' (got {clock!r}).")
    sleep_by = now.replace(hour=int(m.group(1)), minute=int(m.group(2)), second=0, microsecond=0)
    if sleep_by <= now:
        sleep_by += timedelta(days=1)
    return sleep_by


def falls_during_sleep(t: datetime, sleep_by: datetime) -> bool:
    """True if `t` is within [sleep_by, 5:00 the following morning]."""
    wake = sleep_by.replace(hour=WAKE_HOUR, minute=0, second=0, microsecond=0)
    if wake <= sleep_by:
        wake += timedelta(days=1)
    return sleep_by <= t <= wake


def effective_half_life(substance: str, profile: HealthProfile | None,
                        interactions: Iterable[ActiveInteraction] = (), *,
                        now: datetime | None = None,
                        registry: Registry = DEFAULT_REGISTRY) -> float:
    """
    Personalised half-life times the half-life multipliers of the active
    interactions. A medication rule is skipped when the profile branch that
    applies the same factor already fired for `substance`.
    """
    hl = personalized_half_life(substance, profile, now=now, registry=registry)
    covered = set()
    if substance == "CAFFEINE":
        covered = PROFILE_COVERED_RULES.get(caffeine_profile_branch(profile), set())
    rules = [ix for ix in interactions if not (ix.source == "medication" and ix.id in covered)]
    hl *= get_interaction_adjustments(rules, substance)["half_life_multiplier"]
    return round(hl, 2)


def effective_max_mg_per_day(substance: str, mode: str, profile: HealthProfile | None = None,
                             interactions: Iterable[ActiveInteraction] = (), *,
                             registry: Registry = DEFAULT_REGISTRY) -> float:
    """
    Mode ceiling scaled by interaction multipliers, capped by the weight-based
    caffeine maximum and by the absolute limit.
    """
    cfg = registry.config(substance)
    mg = registry.mode_params(substance, mode).max_mg_per_day
    mg *= get_interaction_adjustments(interactions, substance)["max_mg_multiplier"]
    if substance == "CAFFEINE":
        weight_cap = weight_based_caffeine_max_mg(profile)
        if weight_cap is not None:
            mg = min(mg, weight_cap)
    return round(min(mg, cfg.limits.max_mg_per_day), 1)


def effective_spacing_hours(substance: str, base_spacing_hours: float, last_dose_mg: float) -> float:
    """
    Widen the spacing after a large dose: caffeine +1h per 100mg above 100mg
    (at most +2h); amphetamines +1h above 20mg, +2h above 30mg.
    """
    extra = 0.0
    if substance == "CAFFEINE":
        over = max(0.0, last_dose_mg - CAFFEINE_SPACING_STEP_MG)
        extra = min(CAFFEINE_MAX_EXTRA_SPACING_H, over / CAFFEINE_SPACING_STEP_MG)
    elif substance in AMPHETAMINES:
        if last_dose_mg > 30:
            extra = 2.0
        elif last_dose_mg > 20:
            extra = 1.0
    return base_spacing_hours + extra


def get_cutoff_times(sleep_by: datetime, mode: str, substances: Sequence[str] | None = None,
                     profile: HealthProfile | None = None, *,
                     registry: Registry = DEFAULT_REGISTRY) -> list[CutoffResult]:
    """Latest time to take each (non-allergic) substance before `sleep_by`."""
    mode = validate_mode(mode)
    results: list[CutoffResult] = []
    for substance in validate_substances(substances):
        if is_substance_allergic(profile, substance, registry=registry):
            continue
        cfg = registry.config(substance)
        params = registry.mode_params(substance, mode)
        cutoff = sleep_by - timedelta(hours=params.cutoff_hours_before_sleep)
        results.append(CutoffResult(
            substance=substance,
            label=cfg.label,
            cutoff_at=cutoff,
            cutoff_time=cutoff.strftime("%H:%M"),
            message=f"No {cfg.label.lower()} after {format_time(cutoff)}.",
        ))
    return results


def get_next_dose_windows(logs: Iterable[DoseLog], now: datetime, mode: str, *,
                          substances: Sequence[str] | None = None,
                          profile: HealthProfile | None = None,
                          interactions: Sequence[ActiveInteraction] = (),
                          half_lives: Mapping[str, float] | None = None,
                          sleep_by: datetime | None = None,
                          pharmacokinetics: bool = True,
                          registry: Registry = DEFAULT_REGISTRY) -> list[NextDoseWindow]:
    """
    Next-dose recommendation per substance.

    logs             : dose history; "today" is the calendar date of `now`.
                       For the concentration estimate include at least the
                       last 48h. Logs after `now` are ignored.
    half_lives       : per-substance half-life to use; missing entries fall
                       back to `effective_half_life(profile, interactions)`
    sleep_by         : enables the sleep-hours guard on the message
    pharmacokinetics : when False, only the static spacing rules apply and
                       no concentration is reported
    """
    mode = validate_mode(mode)
    history = [d for d in logs if d.logged_at <= now]
    return [
        _next_dose_window(substance, history, now, mode, profile, interactions, half_lives,
                          sleep_by, pharmacokinetics, registry)
        for substance in validate_substances(substances)
    ]


def _next_dose_window(substance, history, now, mode, profile, interactions, half_lives,
                      sleep_by, pharmacokinetics, registry) -> NextDoseWindow:
    cfg = registry.config(substance)
    params = registry.mode_params(substance, mode)
    name = cfg.label.lower()

    today = sorted((d for d in history if d.substance == substance and d.logged_at.date() == now.date()),
                   key=lambda d: d.logged_at)
    total_mg_today = round(sum(resolve_dose_mg(d, cfg.default_dose_mg) for d in today), 2)
    max_mg = effective_max_mg_per_day(substance, mode, profile, interactions, registry=registry)

    hl = current = None
    if pharmacokinetics:
        if half_lives and substance in half_lives:
            hl = float(half_lives[substance])
        else:
            hl = effective_half_life(substance, profile, interactions, now=now, registry=registry)
        current = get_concentration_at_time(history, substance, now, hl, registry=registry)

    def window(state: DoseState, start: datetime | None, length_h: float | None, message: str) -> NextDoseWindow:
        end = start + timedelta(hours=length_h) if start is not None and length_h else None
        during_sleep = False
        if start is not None and sleep_by is not None and falls_during_sleep(start, sleep_by):
            message = f"Next {name} window ({format_time(start)}) falls during sleep hours; wait until after 5am."
            during_sleep = True
        log.debug("%s: %s (start=%s)", substance, state, start)
        return NextDoseWindow(
            substance=substance,
            label=cfg.label,
            state=state,
            window_start=start,
            window_end=end,
            message=message,
            doses_today=len(today),
            total_mg_today=total_mg_today,
            max_doses_per_day=params.max_doses_per_day,
            max_mg_per_day=max_mg,
            remaining_mg_today=round(max(0.0, max_mg - total_mg_today), 2),
            current_mg_active=current,
            half_life_hours=hl,
            during_sleep=during_sleep,
        )

    if is_substance_allergic(profile, substance, registry=registry):
        return window("ALLERGIC_SKIP", None, None,
                      f"Skipping {name}: your profile lists an allergy to it.")

    if len(today) >= params.max_doses_per_day or total_mg_today >= max_mg:
        return window("AT_LIMIT", None, None,
                      f"Daily {name} limit reached ({len(today)}/{params.max_doses_per_day} doses, "
                      f"{format_mg(total_mg_today)}/{format_mg(max_mg)}mg). Wait until tomorrow.")

    threshold = cfg.redose_threshold_mg
    if current is not None and current > threshold:
        crossing = get_time_until_below(history, substance, now, threshold, hl, registry=registry)
        if crossing.status == "clears_at":
            return window("CONCENTRATION_OVERRIDE", crossing.at, WINDOW_HOURS,
                          f"About {format_mg(current)}mg {name} still active. Next dose after "
                          f"{format_time(crossing.at)}, once it drops below {format_mg(threshold)}mg.")
        return window("CONCENTRATION_OVERRIDE", None, None,
                      f"About {format_mg(current)}mg {name} still active and not expected to drop "
                      f"below {format_mg(threshold)}mg within 48h. Hold off on further doses.")

    if not today:
        return window("NO_HISTORY", now, FIRST_DOSE_WINDOW_HOURS,
                      f"No {name} logged today. You can take some now; peak in ~{cfg.peak_hours:g}h.")

    last = today[-1]
    spacing = effective_spacing_hours(substance, params.spacing_hours,
                                      resolve_dose_mg(last, cfg.default_dose_mg))
    if hours_between(last.logged_at, now) < spacing:
        start = last.logged_at + timedelta(hours=spacing)
        return window("SPACING_WAIT", start, WINDOW_HOURS,
                      f"Next {name} suggested after {format_time(start)} ({spacing:g}h after last dose).")

    return window("READY", now, WINDOW_HOURS,
                  f"OK to take {name} now; peak in ~{cfg.peak_hours:g}h.")


def get_dose_for_peak_at(peak_at: datetime, mode: str, sleep_by: datetime,
                         profile: HealthProfile | None = None,
                         substances: Sequence[str] | None = None, *,
                         registry: Registry = DEFAULT_REGISTRY) -> list[DoseForPeakSuggestion]:
    """
    When to take each substance so it peaks at `peak_at`, using the static
    `peak_hours` figure. Suggestions at or after the mode's cutoff are
    flagged, not dropped. Allergic substances are skipped.
    """
    mode = validate_mode(mode)
    results: list[DoseForPeakSuggestion] = []
    for substance in validate_substances(substances):
        if is_substance_allergic(profile, substance, registry=registry):
            continue
        cfg = registry.config(substance)
        params = registry.mode_params(substance, mode)
        name = cfg.label.lower()
        take_by = peak_at - timedelta(hours=cfg.peak_hours)
        cutoff = sleep_by - timedelta(hours=params.cutoff_hours_before_sleep)
        after_cutoff = take_by >= cutoff

        message = f"Take {name} by {format_time(take_by)} to peak around {format_time(peak_at)}."
        if after_cutoff:
            message += f" That is past your {name} cutoff ({format_time(cutoff)}) and may affect sleep."
        results.append(DoseForPeakSuggestion(
            substance=substance,
            label=cfg.label,
            take_by=take_by,
            peak_at=peak_at,
            cutoff_at=cutoff,
            after_cutoff=after_cutoff,
            message=message,
        ))
    return results


def get_sleep_readiness(logs: Iterable[DoseLog], now: datetime,
                        half_lives: Mapping[str, float] | None = None, *,
                        registry: Registry = DEFAULT_REGISTRY) -> SleepReadiness:
    """When all stimulants are expected to be below their sleep-safe levels."""
    if half_lives:
        for substance in half_lives:
            validate_substance(substance)
    crossing = get_sleep_readiness_time(logs, now, half_lives, registry=registry)
    if crossing.status == "already_below":
        message = "All stimulants are already below sleep-safe levels."
    elif crossing.status == "clears_at":
        message = f"Stimulants still active; estimated sleep-ready by {format_time(crossing.at)}."
    else:
        message = "Stimulants are estimated to stay above sleep-safe levels for the next 48h."
    return SleepReadiness(status=crossing.status, ready_at=crossing.at, message=message)
