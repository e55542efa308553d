# src/stimengine/analytics.py
"""
Usage analytics over the trailing 30 days: averages, dose counts, a 14-day
trend, per-day sparkline totals and the longest stimulant-free streak.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable

from .config import DEFAULT_REGISTRY, Registry
from .helpers import resolve_dose_mg, split_logs_by_substance, validate_substance
from .tolerance import bucket_daily_totals
from .types import SUBSTANCES, DailyTotal, DoseLog, Substance, Trend, UsageSummary

TREND_BAND = 0.15
SPARKLINE_DAYS = 14


def _in_window(logs: Iterable[DoseLog], start: datetime, end: datetime) -> list[DoseLog]:
    return [d for d in logs if start <= d.logged_at <= end]


def _trend(first_avg: float, second_avg: float) -> Trend:
    if second_avg > first_avg * (1 + TREND_BAND):
        return "increasing"
    if second_avg < first_avg * (1 - TREND_BAND):
        return "decreasing"
    return "stable"


def usage_summary(logs: Iterable[DoseLog], substance: str, now: datetime, *,
                  registry: Registry = DEFAULT_REGISTRY) -> UsageSummary:
    """
    7- and 30-day daily averages (mg/day, 1 decimal) and dose counts, plus the
    trend between the two halves of the last 14 days: "increasing" when the
    recent week is more than 15% above the earlier one, "decreasing" when
    more than 15% below, otherwise "stable".
    """
    substance = validate_substance(substance)
    default_mg = registry.config(substance).default_dose_mg
    mine = [d for d in logs if d.substance == substance]

    def mg(ds: list[DoseLog]) -> float:
        return sum(resolve_dose_mg(d, default_mg) for d in ds)

    logs_30d = _in_window(mine, now - timedelta(days=30), now)
    logs_7d = _in_window(logs_30d, now - timedelta(days=7), now)

    start_14d = now - timedelta(days=SPARKLINE_DAYS)
    midpoint = start_14d + timedelta(days=SPARKLINE_DAYS / 2)
    logs_14d = _in_window(logs_30d, start_14d, now)
    first_avg = mg([d for d in logs_14d if d.logged_at < midpoint]) / 7
    second_avg = mg([d for d in logs_14d if d.logged_at >= midpoint]) / 7

    first_day = (now - timedelta(days=SPARKLINE_DAYS - 1)).date()
    sparkline = tuple(
        DailyTotal(date=t.date, total_mg=round(t.total_mg, 1), doses=t.doses)
        for t in bucket_daily_totals(logs_30d, substance, first_day, SPARKLINE_DAYS, now, registry=registry)
    )

    return UsageSummary(
        substance=substance,
        avg_7d=round(mg(logs_7d) / 7, 1),
        avg_30d=round(mg(logs_30d) / 30, 1),
        doses_7d=len(logs_7d),
        doses_30d=len(logs_30d),
        trend=_trend(first_avg, second_avg),
        daily_totals_14d=sparkline,
    )


def usage_summaries(logs: Iterable[DoseLog], now: datetime, *,
                    registry: Registry = DEFAULT_REGISTRY) -> dict[Substance, UsageSummary]:
    """Summaries for the substances that have at least one log in the last 30 days."""
    recent = _in_window(logs, now - timedelta(days=30), now)
    by_substance = split_logs_by_substance(recent)
    return {
        s: usage_summary(by_substance[s], s, now, registry=registry)
        for s in SUBSTANCES
        if by_substance.get(s)
    }


def cleanest_streak(logs: Iterable[DoseLog], now: datetime, days: int = 30) -> int:
    """Longest run of consecutive calendar days, among the last `days`, with no log at all."""
    used = {d.logged_at.date() for d in logs if d.logged_at <= now}
    longest = current = 0
    for back in range(days - 1, -1, -1):
        if (now - timedelta(days=back)).date() in used:
            current = 0
        else:
            current += 1
            longest = max(longest, current)
    return longest


def count_doses_last_24h(logs: Iterable[DoseLog], substance: str, now: datetime) -> int:
    substance = validate_substance(substance)
    return sum(1 for d in _in_window(logs, now - timedelta(hours=24), now) if d.substance == substance)


def sum_mg_last_24h(logs: Iterable[DoseLog], substance: str, now: datetime, *,
                    registry: Registry = DEFAULT_REGISTRY) -> float:
    substance = validate_substance(substance)
    default_mg = registry.config(substance).default_dose_mg
    return round(sum(resolve_dose_mg(d, default_mg)
                     for d in _in_window(logs, now - timedelta(hours=24), now)
                     if d.substance == substance), 2)
