# src/stimengine/concentration.py
"""
Concentration model: linear superposition of single-dose absorption/decay
curves, evaluated lazily at a point, over a sampled interval, or in a forward
search for the moment the total drops to a threshold.

Callers should pre-filter logs to a relevant lookback window; nothing here
filters by recency.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable, Mapping

import numpy as np

from .config import DEFAULT_REGISTRY, Registry
from .errors import InvalidArgumentError
from .helpers import hours_between, resolve_dose_mg, validate_positive, validate_substance
from .models.absorption_decay import absorption_decay
from .types import SUBSTANCES, ConcentrationPoint, DoseLog, ThresholdCrossing

log = logging.getLogger(__name__)

SEARCH_STEP_MINUTES = 5
SEARCH_HORIZON_HOURS = 48


def _dose_schedule(logs: Iterable[DoseLog], substance: str, default_mg: float) -> list[tuple[datetime, float]]:
    """(time, mg) for every log of `substance` with a positive resolved dose."""
    schedule = []
    for d in logs:
        if d.substance != substance:
            continue
        mg = resolve_dose_mg(d, default_mg)
        if mg > 0:
            schedule.append((d.logged_at, mg))
    return schedule


def _active_mg(schedule: list[tuple[datetime, float]], origin: datetime, offsets_h: np.ndarray,
               half_life_hours: float, absorption_hours: float) -> np.ndarray:
    """
    Total active mg at `origin + offsets_h`, summing each dose's contribution.
    """
    total = np.zeros_like(offsets_h, dtype=float)
    for dose_time, dose_mg in schedule:
        dose_offset_h = hours_between(origin, dose_time)
        total += absorption_decay(offsets_h - dose_offset_h, dose_mg, half_life_hours, absorption_hours)
    return total


def _resolve_half_life(substance: str, half_life_hours: float | None, registry: Registry) -> float:
    if half_life_hours is None:
        return registry.config(substance).half_life_hours
    validate_positive("half_life_hours", half_life_hours)
    return float(half_life_hours)


def get_concentration_at_time(logs: Iterable[DoseLog], substance: str, target_time: datetime,
                              half_life_hours: float | None = None, *,
                              registry: Registry = DEFAULT_REGISTRY) -> float:
    """
    Estimated active mg of `substance` at `target_time`, rounded to 2 decimals.

    half_life_hours defaults to the substance's base value; callers normally
    pass the personalised / interaction-adjusted one.
    """
    cfg = registry.config(validate_substance(substance))
    hl = _resolve_half_life(substance, half_life_hours, registry)
    schedule = _dose_schedule(logs, substance, cfg.default_dose_mg)
    total = _active_mg(schedule, target_time, np.zeros(1), hl, cfg.absorption_hours)
    return round(float(total[0]), 2)


def get_concentration_curve(logs: Iterable[DoseLog], substance: str,
                            start_time: datetime, end_time: datetime,
                            half_life_hours: float | None = None, step_minutes: float = 10, *,
                            registry: Registry = DEFAULT_REGISTRY) -> list[ConcentrationPoint]:
    """
    Sample the total active mg every `step_minutes` from `start_time` to
    `end_time` inclusive. Stateless: identical inputs give identical output.
    """
    cfg = registry.config(validate_substance(substance))
    if end_time < start_time:
        raise InvalidArgumentError(f"end_time ({end_time}) is before start_time ({start_time}).")
    validate_positive("step_minutes", step_minutes)
    hl = _resolve_half_life(substance, half_life_hours, registry)

    step = timedelta(minutes=step_minutes)
    n = (end_time - start_time) // step + 1
    offsets_h = np.arange(n, dtype=float) * (step_minutes / 60.0)

    schedule = _dose_schedule(logs, substance, cfg.default_dose_mg)
    mg = np.round(_active_mg(schedule, start_time, offsets_h, hl, cfg.absorption_hours), 2)
    return [ConcentrationPoint(time=start_time + i * step, mg_active=float(v)) for i, v in enumerate(mg)]


def get_time_until_below(logs: Iterable[DoseLog], substance: str, from_time: datetime,
                         threshold_mg: float, half_life_hours: float | None = None, *,
                         registry: Registry = DEFAULT_REGISTRY) -> ThresholdCrossing:
    """
    First time at or after `from_time` when the active mg is <= `threshold_mg`.

    Returns "already_below" when the (rounded) level at `from_time` is already
    at or under the threshold; otherwise searches forward in 5-minute steps up
    to 48 hours and returns "clears_at" with the first qualifying sample, or
    "not_within_horizon" when the level stays above it for the whole horizon.
    """
    logs = list(logs)
    cfg = registry.config(validate_substance(substance))
    hl = _resolve_half_life(substance, half_life_hours, registry)

    current = get_concentration_at_time(logs, substance, from_time, hl, registry=registry)
    if current <= threshold_mg:
        return ThresholdCrossing(status="already_below")

    n_steps = SEARCH_HORIZON_HOURS * 60 // SEARCH_STEP_MINUTES
    offsets_min = np.arange(1, n_steps + 1) * SEARCH_STEP_MINUTES
    schedule = _dose_schedule(logs, substance, cfg.default_dose_mg)
    mg = _active_mg(schedule, from_time, offsets_min / 60.0, hl, cfg.absorption_hours)

    below = np.nonzero(mg <= threshold_mg)[0]
    if below.size == 0:
        log.debug("%s stays above %.2fmg for %dh from %s", substance, threshold_mg,
                  SEARCH_HORIZON_HOURS, from_time)
        return ThresholdCrossing(status="not_within_horizon")
    at = from_time + timedelta(minutes=int(offsets_min[below[0]]))
    return ThresholdCrossing(status="clears_at", at=at)


def get_sleep_readiness_time(logs: Iterable[DoseLog], from_time: datetime,
                             half_life_overrides: Mapping[str, float] | None = None, *,
                             registry: Registry = DEFAULT_REGISTRY) -> ThresholdCrossing:
    """
    When every substance has dropped below its sleep-safe threshold.

    "already_below" only if all four already are; "not_within_horizon" if any
    one stays above for the whole search horizon; otherwise "clears_at" the
    latest of the individual clearing times.
    """
    logs = list(logs)
    overrides = half_life_overrides or {}
    latest: datetime | None = None
    for substance in SUBSTANCES:
        cfg = registry.config(substance)
        crossing = get_time_until_below(logs, substance, from_time, cfg.sleep_safe_mg,
                                        overrides.get(substance), registry=registry)
        if crossing.status == "not_within_horizon":
            return crossing
        if crossing.status == "clears_at" and (latest is None or crossing.at > latest):
            latest = crossing.at
    if latest is None:
        return ThresholdCrossing(status="already_below")
    return ThresholdCrossing(status="clears_at", at=latest)
