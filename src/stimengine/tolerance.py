# src/stimengine/tolerance.py
"""
Tolerance estimation from rolling 14-day usage.

Informational only: the returned multiplier is for display and is never
applied to dose limits by the recommendation policy.

Caffeine tolerance develops after ~3 days of consistent use (Nehlig 2018).
Amphetamine tolerance is slower but cumulative.

For awareness only; not medical advice.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterable

from .config import DEFAULT_REGISTRY, Registry
from .helpers import resolve_dose_mg, validate_substance
from .types import SUBSTANCES, DailyTotal, DoseLog, Substance, ToleranceInfo, ToleranceLevel

TOLERANCE_WINDOW_DAYS = 14

# (upper ratio bound, level, multiplier); checked in order after the "none" gate.
_LEVELS: tuple[tuple[float, ToleranceLevel, float], ...] = (
    (1.0, "low", 1.05),
    (2.0, "moderate", 1.15),
    (float("inf"), "elevated", 1.3),
)


def bucket_daily_totals(logs: Iterable[DoseLog], substance: str, first_day: date, days: int,
                        until: datetime, *, registry: Registry = DEFAULT_REGISTRY) -> list[DailyTotal]:
    """
    Per-calendar-day mg totals and dose counts for `days` consecutive dates
    starting at `first_day`. Logs before midnight of `first_day` or after
    `until` are ignored, as are logs whose date has no bucket.
    """
    default_mg = registry.config(validate_substance(substance)).default_dose_mg
    start = datetime.combine(first_day, time.min, tzinfo=until.tzinfo)

    keys = [(first_day + timedelta(days=d)).isoformat() for d in range(days)]
    totals = dict.fromkeys(keys, 0.0)
    counts = dict.fromkeys(keys, 0)
    for d in logs:
        if d.substance != substance or d.logged_at < start or d.logged_at > until:
            continue
        key = d.logged_at.date().isoformat()
        if key not in totals:
            continue
        totals[key] += resolve_dose_mg(d, default_mg)
        counts[key] += 1
    return [DailyTotal(date=k, total_mg=totals[k], doses=counts[k]) for k in sorted(keys)]


def get_daily_totals(logs: Iterable[DoseLog], substance: str, from_date: datetime, days: int, *,
                     registry: Registry = DEFAULT_REGISTRY) -> list[DailyTotal]:
    """
    Daily totals over the trailing window: `days` buckets starting at the
    calendar date `days` days before `from_date`.
    """
    first_day = (from_date - timedelta(days=days)).date()
    return bucket_daily_totals(logs, substance, first_day, days, from_date, registry=registry)


def get_tolerance_level(logs_14d: Iterable[DoseLog], substance: str, now: datetime, *,
                        registry: Registry = DEFAULT_REGISTRY) -> ToleranceInfo:
    """Classify tolerance for one substance from its 14-day average against a daily baseline."""
    substance = validate_substance(substance)
    totals = get_daily_totals(logs_14d, substance, now, TOLERANCE_WINDOW_DAYS, registry=registry)
    days_used = sum(1 for d in totals if d.total_mg > 0)
    avg_daily_mg = sum(d.total_mg for d in totals) / TOLERANCE_WINDOW_DAYS
    baseline = registry.config(substance).daily_baseline_mg
    ratio = avg_daily_mg / baseline if baseline > 0 else 0.0

    level: ToleranceLevel = "none"
    multiplier = 1.0
    message = None
    if days_used > 2 and ratio >= 0.3:
        for upper, level, multiplier in _LEVELS:
            if ratio < upper:
                break
        if level == "moderate":
            message = (
                f"Your 14-day average is {round(avg_daily_mg)}mg/day. You may have moderate "
                "tolerance. A 2-3 day break can help restore sensitivity."
            )
        elif level == "elevated":
            message = (
                f"Your 14-day average is {round(avg_daily_mg)}mg/day, well above baseline. "
                "Tolerance is likely elevated. Consider a 3-5 day reset for full sensitivity."
            )

    return ToleranceInfo(
        substance=substance,
        level=level,
        multiplier=multiplier,
        avg_daily_mg=round(avg_daily_mg, 1),
        days_used=days_used,
        total_days=TOLERANCE_WINDOW_DAYS,
        message=message,
    )


def get_all_tolerance_levels(logs_14d: Iterable[DoseLog], now: datetime, *,
                             registry: Registry = DEFAULT_REGISTRY) -> dict[Substance, ToleranceInfo]:
    logs_14d = list(logs_14d)
    return {s: get_tolerance_level(logs_14d, s, now, registry=registry) for s in SUBSTANCES}
