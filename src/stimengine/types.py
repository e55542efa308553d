# src/stimengine/types.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

# All durations are kept in HOURS internally; timestamps are datetimes
# supplied by the caller (naive or aware, but consistently one of the two).
Substance = Literal["CAFFEINE", "ADDERALL", "DEXEDRINE", "NICOTINE"]
SUBSTANCES: tuple[Substance, ...] = ("CAFFEINE", "ADDERALL", "DEXEDRINE", "NICOTINE")

Mode = Literal["health", "productivity"]
MODES: tuple[Mode, ...] = ("health", "productivity")

Severity = Literal["info", "caution", "warning", "danger"]
ToleranceLevel = Literal["none", "low", "moderate", "elevated"]
Trend = Literal["increasing", "stable", "decreasing"]

CrossingStatus = Literal["already_below", "clears_at", "not_within_horizon"]

DoseState = Literal[
    "ALLERGIC_SKIP",
    "AT_LIMIT",
    "CONCENTRATION_OVERRIDE",
    "NO_HISTORY",
    "SPACING_WAIT",
    "READY",
]


# --------------------------
# Inputs
# --------------------------
@dataclass(frozen=True)
class DoseLog:
    """
    One logged administration.

    substance : substance name as stored by the caller (e.g. "CAFFEINE")
    amount_mg : dose size in milligrams; None (or a non-positive / non-finite
                value) means "use the substance's default dose"
    logged_at : when the dose was taken
    """
    substance: str
    amount_mg: float | None
    logged_at: datetime


@dataclass(frozen=True)
class HealthProfile:
    """
    Optional physiological profile. Every field may be None; a missing field
    simply means no personalisation for whatever depends on it.

    allergies   : free text, comma/semicolon separated ("caffeine; penicillin")
    medications : free text, matched against medication patterns
    """
    weight_kg: float | None = None
    height_cm: float | None = None
    allergies: str | None = None
    medications: str | None = None
    sex: str | None = None
    smoking_status: str | None = None
    birth_year: int | None = None


# --------------------------
# Configuration records
# --------------------------
@dataclass(frozen=True)
class Limits:
    """Absolute ceiling per substance, regardless of mode."""
    max_doses_per_day: int
    max_mg_per_day: float
    min_spacing_hours: float
    min_cutoff_hours_before_sleep: float


@dataclass(frozen=True)
class ModeParams:
    """Per-mode preset; always at least as strict as the substance Limits."""
    cutoff_hours_before_sleep: float
    spacing_hours: float
    max_doses_per_day: int
    max_mg_per_day: float


@dataclass(frozen=True)
class SubstanceConfig:
    """
    Static parameters for one substance.

    half_life_hours  : decay time constant of the concentration model
    peak_hours       : dose-to-peak time used for messaging and peak planning
                       (NOT an input of the concentration model, which peaks
                       at the end of the absorption window)
    absorption_hours : length of the linear ramp-up
    """
    label: str
    half_life_hours: float
    peak_hours: float
    absorption_hours: float
    default_dose_mg: float
    limits: Limits
    health: ModeParams
    productivity: ModeParams
    redose_threshold_mg: float
    sleep_safe_mg: float
    daily_baseline_mg: float
    allergy_keywords: tuple[str, ...]


# --------------------------
# Interactions
# --------------------------
@dataclass(frozen=True)
class InteractionAdjustment:
    substance: Substance
    half_life_multiplier: float | None = None
    max_mg_multiplier: float | None = None


@dataclass(frozen=True)
class Interaction:
    """A substance x substance rule; fires when all substances are in play."""
    id: str
    substances: tuple[Substance, ...]
    severity: Severity
    title: str
    description: str
    adjustment: InteractionAdjustment | None = None


@dataclass(frozen=True)
class MedPattern:
    pattern: str  # regular expression, matched case-insensitively
    label: str


@dataclass(frozen=True)
class MedicationInteraction:
    """A medication x substance rule; fires on a pattern match plus one affected substance."""
    id: str
    med_patterns: tuple[MedPattern, ...]
    affects_substances: tuple[Substance, ...]
    severity: Severity
    title: str
    description: str
    adjustment: InteractionAdjustment | None = None


@dataclass(frozen=True)
class ActiveInteraction:
    id: str
    source: Literal["substance", "medication"]
    substances: tuple[str, ...]
    severity: Severity
    title: str
    description: str
    adjustment: InteractionAdjustment | None = None


# --------------------------
# Outputs
# --------------------------
@dataclass(frozen=True)
class ConcentrationPoint:
    time: datetime
    mg_active: float


@dataclass(frozen=True)
class ThresholdCrossing:
    """
    Result of a forward search for the moment a concentration drops to a
    threshold.

    status : "already_below"      -> nothing to wait for, `at` is None
             "clears_at"          -> `at` is the first sample at/below threshold
             "not_within_horizon" -> still above after the search horizon, `at` is None
    """
    status: CrossingStatus
    at: datetime | None = None

    @property
    def needs_wait(self) -> bool:
        return self.status != "already_below"


@dataclass(frozen=True)
class DailyTotal:
    date: str  # ISO date, e.g. "2024-03-01"
    total_mg: float
    doses: int = 0


@dataclass(frozen=True)
class ToleranceInfo:
    """Informational only; the multiplier is never applied to dose limits."""
    substance: Substance
    level: ToleranceLevel
    multiplier: float
    avg_daily_mg: float
    days_used: int
    total_days: int
    message: str | None = None


@dataclass(frozen=True)
class CutoffResult:
    substance: Substance
    label: str
    cutoff_at: datetime
    cutoff_time: str  # "HH:MM", 24h clock
    message: str


@dataclass(frozen=True)
class NextDoseWindow:
    substance: Substance
    label: str
    state: DoseState
    window_start: datetime | None
    window_end: datetime | None
    message: str
    doses_today: int
    total_mg_today: float
    max_doses_per_day: int
    max_mg_per_day: float
    remaining_mg_today: float
    current_mg_active: float | None = None
    half_life_hours: float | None = None
    during_sleep: bool = False


@dataclass(frozen=True)
class DoseForPeakSuggestion:
    substance: Substance
    label: str
    take_by: datetime
    peak_at: datetime
    cutoff_at: datetime
    after_cutoff: bool
    message: str


@dataclass(frozen=True)
class SleepReadiness:
    status: CrossingStatus
    ready_at: datetime | None
    message: str


@dataclass(frozen=True)
class UsageSummary:
    substance: Substance
    avg_7d: float
    avg_30d: float
    doses_7d: int
    doses_30d: int
    trend: Trend
    daily_totals_14d: tuple[DailyTotal, ...]


@dataclass(frozen=True)
class CurveSummary:
    peak_mg: float
    peak_time: datetime | None
    auc_mg_h: float
    hours_above_threshold: float | None = None
