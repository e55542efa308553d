# src/stimengine/config.py
"""
Substance configuration registry.

Every numeric constant the engine uses lives in one table: half-lives,
absorption windows, peak times, default doses, the two mode presets, the
absolute limits and the redose / sleep-safe / tolerance thresholds.

Half-life and peak references:
  - Caffeine: Nehlig 2018, Fredholm et al. 1999 (t1/2 3-7 h, peak ~45 min)
  - Amphetamine IR / dextroamphetamine: FDA labels (t1/2 10-13 h, peak 2-3 h)
  - Nicotine: t1/2 1-2 h, peak within minutes

The default registry is built once at import. Callers that need different
numbers build a new one with `Registry.replace` / `Registry.replace_mode` and
pass it through the `registry=` keyword of the engine functions.

For awareness only; not medical advice.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace as dc_replace
from types import MappingProxyType
from typing import Any, Mapping

from .errors import InvalidArgumentError
from .helpers import validate_mode, validate_positive, validate_substance
from .types import SUBSTANCES, Limits, Mode, ModeParams, SubstanceConfig


_DEFAULT_TABLE: dict[str, SubstanceConfig] = {
    "CAFFEINE": SubstanceConfig(
        label="Caffeine",
        half_life_hours=5.0,
        peak_hours=1.0,
        absorption_hours=0.75,
        default_dose_mg=95.0,
        limits=Limits(max_doses_per_day=6, max_mg_per_day=400.0,
                      min_spacing_hours=2.0, min_cutoff_hours_before_sleep=6.0),
        health=ModeParams(cutoff_hours_before_sleep=8.0, spacing_hours=4.0,
                          max_doses_per_day=3, max_mg_per_day=300.0),
        productivity=ModeParams(cutoff_hours_before_sleep=6.0, spacing_hours=3.0,
                                max_doses_per_day=5, max_mg_per_day=400.0),
        redose_threshold_mg=30.0,
        sleep_safe_mg=50.0,
        daily_baseline_mg=100.0,
        allergy_keywords=("caffeine", "coffee"),
    ),
    "ADDERALL": SubstanceConfig(
        label="Adderall",
        half_life_hours=11.0,
        peak_hours=2.0,
        absorption_hours=1.5,
        default_dose_mg=20.0,
        limits=Limits(max_doses_per_day=2, max_mg_per_day=40.0,
                      min_spacing_hours=4.0, min_cutoff_hours_before_sleep=8.0),
        health=ModeParams(cutoff_hours_before_sleep=12.0, spacing_hours=6.0,
                          max_doses_per_day=1, max_mg_per_day=20.0),
        productivity=ModeParams(cutoff_hours_before_sleep=10.0, spacing_hours=4.0,
                                max_doses_per_day=2, max_mg_per_day=40.0),
        redose_threshold_mg=6.0,
        sleep_safe_mg=5.0,
        daily_baseline_mg=10.0,
        allergy_keywords=("adderall", "amphetamine", "amphetamines", "mixed amphetamine"),
    ),
    "DEXEDRINE": SubstanceConfig(
        label="Dexedrine",
        half_life_hours=11.0,
        peak_hours=2.0,
        absorption_hours=1.5,
        default_dose_mg=15.0,
        limits=Limits(max_doses_per_day=3, max_mg_per_day=40.0,
                      min_spacing_hours=4.0, min_cutoff_hours_before_sleep=8.0),
        health=ModeParams(cutoff_hours_before_sleep=12.0, spacing_hours=6.0,
                          max_doses_per_day=2, max_mg_per_day=30.0),
        productivity=ModeParams(cutoff_hours_before_sleep=10.0, spacing_hours=4.0,
                                max_doses_per_day=3, max_mg_per_day=40.0),
        redose_threshold_mg=5.0,
        sleep_safe_mg=3.0,
        daily_baseline_mg=7.5,
        allergy_keywords=("dexedrine", "dextroamphetamine"),
    ),
    "NICOTINE": SubstanceConfig(
        label="Nicotine",
        half_life_hours=2.0,
        peak_hours=0.25,
        absorption_hours=0.08,
        default_dose_mg=1.0,
        limits=Limits(max_doses_per_day=20, max_mg_per_day=24.0,
                      min_spacing_hours=0.5, min_cutoff_hours_before_sleep=2.0),
        health=ModeParams(cutoff_hours_before_sleep=3.0, spacing_hours=2.0,
                          max_doses_per_day=8, max_mg_per_day=8.0),
        productivity=ModeParams(cutoff_hours_before_sleep=2.0, spacing_hours=1.0,
                                max_doses_per_day=12, max_mg_per_day=12.0),
        redose_threshold_mg=0.3,
        sleep_safe_mg=0.3,
        daily_baseline_mg=2.0,
        allergy_keywords=("nicotine", "tobacco"),
    ),
}


@dataclass(frozen=True)
class Registry:
    """
    Immutable substance table. Construction validates that it covers every
    substance and that each mode preset stays inside the absolute limits.
    """
    substances: Mapping[str, SubstanceConfig] = field(default_factory=lambda: dict(_DEFAULT_TABLE))

    def __post_init__(self):
        object.__setattr__(self, "substances", MappingProxyType(dict(self.substances)))
        missing = [s for s in SUBSTANCES if s not in self.substances]
        if missing:
            raise InvalidArgumentError(f"Registry is missing substances: {', '.join(missing)}.")
        unknown = [s for s in self.substances if s not in SUBSTANCES]
        if unknown:
            raise InvalidArgumentError(f"Registry has unknown substances: {', '.join(unknown)}.")
        for name, cfg in self.substances.items():
            _validate_config(name, cfg)

    def config(self, substance: str) -> SubstanceConfig:
        return self.substances[validate_substance(substance)]

    def mode_params(self, substance: str, mode: str) -> ModeParams:
        cfg = self.config(substance)
        return cfg.health if validate_mode(mode) == "health" else cfg.productivity

    def government_limits(self) -> dict[str, dict[str, float]]:
        """Absolute per-day ceilings, for red-flagging regardless of mode."""
        return {
            s: {
                "max_doses_per_day": self.substances[s].limits.max_doses_per_day,
                "max_mg_per_day": self.substances[s].limits.max_mg_per_day,
            }
            for s in SUBSTANCES
        }

    def replace(self, substance: str, **changes: Any) -> "Registry":
        """New registry with some fields of one substance's config replaced."""
        substance = validate_substance(substance)
        table = dict(self.substances)
        table[substance] = dc_replace(table[substance], **changes)
        return Registry(substances=table)

    def replace_mode(self, substance: str, mode: Mode, **changes: Any) -> "Registry":
        """New registry with fields of one mode preset replaced."""
        mode = validate_mode(mode)
        params = dc_replace(self.mode_params(substance, mode), **changes)
        return self.replace(substance, **{mode: params})


def _validate_config(name: str, cfg: SubstanceConfig) -> None:
    validate_positive(f"{name}.half_life_hours", cfg.half_life_hours)
    validate_positive(f"{name}.absorption_hours", cfg.absorption_hours)
    validate_positive(f"{name}.default_dose_mg", cfg.default_dose_mg)
    lim = cfg.limits
    for mode_name, p in (("health", cfg.health), ("productivity", cfg.productivity)):
        problems = []
        if p.max_doses_per_day > lim.max_doses_per_day:
            problems.append("max_doses_per_day")
        if p.max_mg_per_day > lim.max_mg_per_day:
            problems.append("max_mg_per_day")
        if p.spacing_hours < lim.min_spacing_hours:
            problems.append("spacing_hours")
        if p.cutoff_hours_before_sleep < lim.min_cutoff_hours_before_sleep:
            problems.append("cutoff_hours_before_sleep")
        if problems:
            raise InvalidArgumentError(
                f"{name} {mode_name} preset exceeds absolute limits: {', '.join(problems)}."
            )


DEFAULT_REGISTRY = Registry()


def config(substance: str, *, registry: Registry = DEFAULT_REGISTRY) -> SubstanceConfig:
    """Static parameters for a substance; unknown substances raise InvalidArgumentError."""
    return registry.config(substance)


def government_limits(*, registry: Registry = DEFAULT_REGISTRY) -> dict[str, dict[str, float]]:
    return registry.government_limits()
