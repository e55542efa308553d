# src/stimengine/simulate.py
from __future__ import annotations

from datetime import datetime
from typing import Iterable, Mapping, Sequence

from .concentration import get_concentration_curve
from .config import DEFAULT_REGISTRY, Registry
from .dosing import effective_half_life
from .helpers import split_logs_by_substance, validate_substances
from .types import ActiveInteraction, ConcentrationPoint, DoseLog, HealthProfile, Substance


def effective_half_lives(profile: HealthProfile | None, interactions: Iterable[ActiveInteraction] = (), *,
                         substances: Sequence[str] | None = None, now: datetime | None = None,
                         registry: Registry = DEFAULT_REGISTRY) -> dict[Substance, float]:
    """
    Half-life to model each substance with: personalised value times the
    substance-pair interaction multipliers.
    """
    interactions = list(interactions)
    return {
        s: effective_half_life(s, profile, interactions, now=now, registry=registry)
        for s in validate_substances(substances)
    }


def run_curves(logs: Iterable[DoseLog], start: datetime, end: datetime,
               substances: Sequence[str] | None = None,
               half_lives: Mapping[str, float] | None = None, step_minutes: float = 10, *,
               registry: Registry = DEFAULT_REGISTRY) -> dict[Substance, list[ConcentrationPoint]]:
    """
    High-level wrapper for sampling several substances over the same interval.
    half_lives: substance -> half-life (h); missing entries use the base value.
    """
    by_substance = split_logs_by_substance(logs)
    overrides = half_lives or {}
    return {
        s: get_concentration_curve(by_substance.get(s, []), s, start, end,
                                   overrides.get(s), step_minutes, registry=registry)
        for s in validate_substances(substances)
    }
