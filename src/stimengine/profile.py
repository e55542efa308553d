# src/stimengine/profile.py
"""
Health profile helpers for personalised stimulant recommendations.

Everything here is total: a missing profile, or any missing field, means
"no adjustment" and never an error. For awareness only; not medical advice.
"""
from __future__ import annotations

import math
import re
from datetime import datetime

from .config import DEFAULT_REGISTRY, Registry
from .types import SUBSTANCES, HealthProfile, Substance

# Medication text patterns shared with the interaction tables.
CYP1A2_INHIBITOR_PATTERN = (
    r"\b(fluvoxamine|ciprofloxacin|enoxacin|maoi|monoamine oxidase inhibitor"
    r"|phenelzine|tranylcypromine|isocarboxazid|selegiline)\b"
)
CONTRACEPTIVE_PATTERN = r"\b(contraceptive|birth\s*control|oral\s*contraceptive|oc\b)"

SMOKER_STATUSES = frozenset({"current", "smoker", "yes", "daily", "occasional"})
FEMALE_SEXES = frozenset({"female", "f", "woman"})

CAFFEINE_MG_PER_KG = 5.5
CAFFEINE_ABSOLUTE_MAX_MG = 400

SMOKER_HALF_LIFE_FACTOR = 0.6
CYP1A2_INHIBITOR_HALF_LIFE_FACTOR = 3.0
CONTRACEPTIVE_HALF_LIFE_FACTOR = 2.0
ELDERLY_HALF_LIFE_FACTOR = 1.3
ELDERLY_AGE_YEARS = 65

_BRANCH_FACTORS = {
    "smoker": SMOKER_HALF_LIFE_FACTOR,
    "cyp1a2_inhibitor": CYP1A2_INHIBITOR_HALF_LIFE_FACTOR,
    "contraceptive": CONTRACEPTIVE_HALF_LIFE_FACTOR,
}


def parse_allergy_tokens(allergies: str | None) -> list[str]:
    """Split an allergies string on commas/semicolons into lowercase tokens."""
    if not allergies or not isinstance(allergies, str):
        return []
    return [t for t in (s.strip().lower() for s in re.split(r"[,;]", allergies)) if t]


def is_substance_allergic(profile: HealthProfile | None, substance: str, *,
                          registry: Registry = DEFAULT_REGISTRY) -> bool:
    """True if an allergy token contains, or is contained in, one of the substance's keywords."""
    keywords = registry.config(substance).allergy_keywords
    tokens = parse_allergy_tokens(profile.allergies if profile else None)
    return any(kw in t or t in kw for kw in keywords for t in tokens)


def weight_based_caffeine_max_mg(profile: HealthProfile | None) -> int | None:
    """400 mg or ~5.5 mg/kg, whichever is lower. None without a usable weight."""
    weight = profile.weight_kg if profile else None
    if weight is None or not math.isfinite(weight) or weight <= 0:
        return None
    return min(CAFFEINE_ABSOLUTE_MAX_MG, round(weight * CAFFEINE_MG_PER_KG))


def is_smoker(profile: HealthProfile | None) -> bool:
    status = (profile.smoking_status or "") if profile else ""
    return status.strip().lower() in SMOKER_STATUSES


def age_years(profile: HealthProfile | None, now: datetime | None) -> int | None:
    if profile is None or profile.birth_year is None or now is None:
        return None
    return now.year - int(profile.birth_year)


def _medications_match(profile: HealthProfile | None, pattern: str) -> bool:
    meds = (profile.medications or "") if profile else ""
    return bool(meds) and re.search(pattern, meds, re.IGNORECASE) is not None


def caffeine_profile_branch(profile: HealthProfile | None) -> str | None:
    """
    Which mutually exclusive caffeine adjustment the profile selects:
    "smoker", "cyp1a2_inhibitor", "contraceptive", or None.
    """
    if profile is None:
        return None
    sex = (profile.sex or "").strip().lower()
    if is_smoker(profile):
        return "smoker"
    if _medications_match(profile, CYP1A2_INHIBITOR_PATTERN):
        return "cyp1a2_inhibitor"
    if sex in FEMALE_SEXES and _medications_match(profile, CONTRACEPTIVE_PATTERN):
        return "contraceptive"
    return None


def personalized_half_life(substance: str, profile: HealthProfile | None, *,
                           now: datetime | None = None,
                           registry: Registry = DEFAULT_REGISTRY) -> float:
    """
    Half-life adjusted for the user's profile.

    Only caffeine is personalised (CYP1A2 metabolism):
      smoker x0.6; otherwise a CYP1A2 inhibitor / MAOI x3.0; otherwise
      female on oral contraceptives x2.0. Independently x1.3 at age >= 65.
    Age needs `now`, since the engine never reads a clock; without it the age
    factor is skipped. Other substances return their base half-life.
    """
    base = registry.config(substance).half_life_hours
    if substance != "CAFFEINE" or profile is None:
        return base

    hl = base * _BRANCH_FACTORS.get(caffeine_profile_branch(profile), 1.0)

    age = age_years(profile, now)
    if age is not None and age >= ELDERLY_AGE_YEARS:
        hl *= ELDERLY_HALF_LIFE_FACTOR
    return round(hl, 1)


def all_personalized_half_lives(profile: HealthProfile | None, *,
                                now: datetime | None = None,
                                registry: Registry = DEFAULT_REGISTRY) -> dict[Substance, float]:
    return {
        s: personalized_half_life(s, profile, now=now, registry=registry)
        for s in SUBSTANCES
    }
