# src/stimengine/helpers.py
from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from typing import Any, Iterable, Sequence

from .errors import InvalidArgumentError
from .types import MODES, SUBSTANCES, DoseLog, Mode, Substance

log = logging.getLogger(__name__)

_HOUR_S = 3600.0


def hours_between(start: datetime, end: datetime) -> float:
    """Signed number of hours from `start` to `end`."""
    return (end - start).total_seconds() / _HOUR_S


def resolve_dose_mg(dose: DoseLog, default_mg: float) -> float:
    """
    Milligrams a log stands for. None, non-finite, zero or negative amounts
    fall back to the substance's default dose.
    """
    amount = dose.amount_mg
    if amount is None:
        return float(default_mg)
    try:
        amount = float(amount)
    except (TypeError, ValueError):
        log.warning("Unreadable amount_mg %r on %s log; using default dose", dose.amount_mg, dose.substance)
        return float(default_mg)
    if not math.isfinite(amount):
        log.warning("Non-finite amount_mg on %s log; using default dose", dose.substance)
        return float(default_mg)
    if amount <= 0:
        return float(default_mg)
    return amount


def split_logs_by_substance(logs: Iterable[DoseLog]) -> dict[str, list[DoseLog]]:
    """
    Group logs by substance, each bucket sorted by time.
    """
    buckets: dict[str, list[DoseLog]] = defaultdict(list)
    for d in logs:
        buckets[d.substance].append(d)
    return {s: sorted(ds, key=lambda x: x.logged_at) for s, ds in buckets.items()}


def logs_for(logs: Iterable[DoseLog], substance: Substance) -> list[DoseLog]:
    return [d for d in logs if d.substance == substance]


def format_time(dt: datetime) -> str:
    """12-hour clock for messages, e.g. "2:00 PM"."""
    h12 = dt.hour % 12 or 12
    suffix = "PM" if dt.hour >= 12 else "AM"
    return f"{h12}:{dt.minute:02d} {suffix}"


def format_mg(mg: float) -> str:
    """Drop a trailing ".0" so messages read "20mg" rather than "20.0mg"."""
    return f"{mg:g}" if mg >= 1 else f"{mg:.2g}"


def as_record(obj: Any) -> Any:
    """
    Convert engine output (dataclasses, lists/tuples/dicts of them) to
    JSON-safe plain data.
    """
    if is_dataclass(obj) and not isinstance(obj, type):
        return as_record(asdict(obj))
    if isinstance(obj, dict):
        return {str(k): as_record(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [as_record(v) for v in obj]
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return obj


# --------------------------
# Small input validators
# --------------------------
def validate_substance(substance: str) -> Substance:
    if substance not in SUBSTANCES:
        raise InvalidArgumentError(f"Unknown substance {substance!r}; expected one of {', '.join(SUBSTANCES)}.")
    return substance  # type: ignore[return-value]

def validate_substances(substances: Sequence[str] | None) -> tuple[Substance, ...]:
    if substances is None:
        return SUBSTANCES
    return tuple(validate_substance(s) for s in substances)

def validate_mode(mode: str) -> Mode:
    if mode not in MODES:
        raise InvalidArgumentError(f"mode must be 'health' or 'productivity' (got {mode!r}).")
    return mode  # type: ignore[return-value]

def validate_positive(name: str, x: float) -> None:
    if not (x > 0) or not math.isfinite(x):
        raise InvalidArgumentError(f"{name} must be a finite number > 0 (got {x}).")
