# src/stimengine/interactions.py
"""
Drug interaction engine.

Checks substance x substance and medication x substance interactions and
returns warnings plus half-life / daily-limit multipliers. Severity is
advisory only; it never changes the multipliers.

For awareness only; not medical advice.
"""
from __future__ import annotations

import logging
import re
from typing import Iterable, Sequence

from .helpers import validate_substance, validate_substances
from .profile import CONTRACEPTIVE_PATTERN
from .types import (
    ActiveInteraction,
    HealthProfile,
    Interaction,
    InteractionAdjustment,
    MedicationInteraction,
    MedPattern,
    SUBSTANCES,
    Severity,
)

log = logging.getLogger(__name__)

ALL_STIMULANTS = SUBSTANCES
AMPHETAMINES = ("ADDERALL", "DEXEDRINE")

SEVERITY_RANK: dict[Severity, int] = {"info": 0, "caution": 1, "warning": 2, "danger": 3}


# --------------------------
# Substance x substance rules
# --------------------------
SUBSTANCE_INTERACTIONS: tuple[Interaction, ...] = (
    Interaction(
        id="caffeine-amphetamine",
        substances=("CAFFEINE", "ADDERALL"),
        severity="warning",
        title="Caffeine + Adderall",
        description=(
            "Additive cardiovascular stimulation. Increased heart rate, blood pressure, "
            "and anxiety risk. Consider reducing caffeine by 50% on days you take Adderall."
        ),
        adjustment=InteractionAdjustment(substance="CAFFEINE", max_mg_multiplier=0.5),
    ),
    Interaction(
        id="caffeine-dexedrine",
        substances=("CAFFEINE", "DEXEDRINE"),
        severity="warning",
        title="Caffeine + Dexedrine",
        description=(
            "Additive cardiovascular stimulation similar to Adderall. Consider reducing "
            "caffeine by 50% on days you take Dexedrine."
        ),
        adjustment=InteractionAdjustment(substance="CAFFEINE", max_mg_multiplier=0.5),
    ),
    Interaction(
        id="caffeine-nicotine",
        substances=("CAFFEINE", "NICOTINE"),
        severity="caution",
        title="Caffeine + Nicotine",
        description=(
            "Nicotine induces CYP1A2, increasing caffeine clearance by ~30%. You may "
            "metabolize caffeine faster but should not increase total daily intake."
        ),
        adjustment=InteractionAdjustment(substance="CAFFEINE", half_life_multiplier=0.7),
    ),
    Interaction(
        id="amphetamine-nicotine",
        substances=("ADDERALL", "NICOTINE"),
        severity="caution",
        title="Adderall + Nicotine",
        description=(
            "Both are sympathomimetics with additive cardiovascular load. "
            "Monitor heart rate and blood pressure."
        ),
    ),
    Interaction(
        id="dexedrine-nicotine",
        substances=("DEXEDRINE", "NICOTINE"),
        severity="caution",
        title="Dexedrine + Nicotine",
        description=(
            "Both are sympathomimetics with additive cardiovascular load. "
            "Monitor heart rate and blood pressure."
        ),
    ),
)


# --------------------------
# Medication x substance rules
# --------------------------
MEDICATION_INTERACTIONS: tuple[MedicationInteraction, ...] = (
    MedicationInteraction(
        id="ssri-amphetamine",
        med_patterns=(MedPattern(
            r"\b(fluoxetine|sertraline|paroxetine|citalopram|escitalopram|fluvoxamine|ssri)\b", "SSRI"),),
        affects_substances=AMPHETAMINES,
        severity="danger",
        title="SSRI + Amphetamine",
        description=(
            "Risk of serotonin syndrome. If you take an SSRI alongside amphetamines, "
            "discuss closely with your prescribing physician."
        ),
    ),
    MedicationInteraction(
        id="fluvoxamine-caffeine",
        med_patterns=(MedPattern(r"\bfluvoxamine\b", "Fluvoxamine"),),
        affects_substances=("CAFFEINE",),
        severity="warning",
        title="Fluvoxamine + Caffeine",
        description=(
            "Fluvoxamine inhibits CYP1A2, increasing caffeine half-life 3-5x. You will "
            "clear caffeine much more slowly. Drastically reduce intake."
        ),
        adjustment=InteractionAdjustment(substance="CAFFEINE", half_life_multiplier=3.0,
                                         max_mg_multiplier=0.3),
    ),
    MedicationInteraction(
        id="maoi-stimulants",
        med_patterns=(MedPattern(
            r"\b(maoi|monoamine oxidase inhibitor|phenelzine|tranylcypromine|isocarboxazid|selegiline)\b",
            "MAOI"),),
        affects_substances=ALL_STIMULANTS,
        severity="danger",
        title="MAOI + Stimulants",
        description=(
            "MAOIs combined with stimulants can cause hypertensive crisis. This is a "
            "dangerous interaction; consult your doctor before using any stimulant."
        ),
    ),
    MedicationInteraction(
        id="beta-blocker-stimulants",
        med_patterns=(MedPattern(
            r"\b(beta.?blocker|propranolol|atenolol|metoprolol|carvedilol|bisoprolol)\b", "Beta-blocker"),),
        affects_substances=ALL_STIMULANTS,
        severity="info",
        title="Beta-Blocker + Stimulants",
        description=(
            "Beta-blockers and stimulants have opposing cardiovascular effects. The "
            "stimulant may partially counteract your beta-blocker. Discuss with your doctor."
        ),
    ),
    MedicationInteraction(
        id="oral-contraceptive-caffeine",
        med_patterns=(MedPattern(CONTRACEPTIVE_PATTERN, "Oral contraceptive"),),
        affects_substances=("CAFFEINE",),
        severity="caution",
        title="Oral Contraceptives + Caffeine",
        description=(
            "Oral contraceptives roughly double caffeine half-life (~10h). You may feel "
            "effects much longer than expected."
        ),
        adjustment=InteractionAdjustment(substance="CAFFEINE", half_life_multiplier=2.0),
    ),
    MedicationInteraction(
        id="antacid-amphetamine",
        med_patterns=(MedPattern(
            r"\b(antacid|ppi|omeprazole|pantoprazole|esomeprazole|lansoprazole|tums|calcium carbonate)\b",
            "Antacid / PPI"),),
        affects_substances=AMPHETAMINES,
        severity="info",
        title="Antacids / PPIs + Amphetamines",
        description=(
            "Alkaline stomach environment can increase amphetamine absorption. Effects "
            "may be stronger or last longer than expected."
        ),
    ),
)


# Medication rules whose half-life factor the caffeine profile branch of the
# same name already applies (see profile.caffeine_profile_branch).
PROFILE_COVERED_RULES: dict[str, set[str]] = {
    "cyp1a2_inhibitor": {"fluvoxamine-caffeine"},
    "contraceptive": {"oral-contraceptive-caffeine"},
}


def get_active_interactions(enabled_substances: Sequence[str],
                            profile: HealthProfile | None,
                            today_logged_substances: Iterable[str] = ()) -> list[ActiveInteraction]:
    """
    All interactions in play for a user.

    A substance rule fires when every one of its substances is enabled or was
    logged today. A medication rule fires when the medications text matches
    one of its patterns and at least one affected substance is in play.
    Order: substance rules, then medication rules, each in table order.
    """
    in_play = set(validate_substances(enabled_substances))
    # Logged substances come from stored data; anything unrecognised is ignored.
    in_play.update(s for s in today_logged_substances if s in ALL_STIMULANTS)

    active: list[ActiveInteraction] = []
    for ix in SUBSTANCE_INTERACTIONS:
        if all(s in in_play for s in ix.substances):
            active.append(ActiveInteraction(
                id=ix.id,
                source="substance",
                substances=ix.substances,
                severity=ix.severity,
                title=ix.title,
                description=ix.description,
                adjustment=ix.adjustment,
            ))

    meds = (profile.medications or "") if profile else ""
    if meds:
        for mix in MEDICATION_INTERACTIONS:
            if not any(re.search(p.pattern, meds, re.IGNORECASE) for p in mix.med_patterns):
                continue
            if not any(s in in_play for s in mix.affects_substances):
                continue
            active.append(ActiveInteraction(
                id=mix.id,
                source="medication",
                substances=tuple(p.label for p in mix.med_patterns) + mix.affects_substances,
                severity=mix.severity,
                title=mix.title,
                description=mix.description,
                adjustment=mix.adjustment,
            ))

    if active:
        log.debug("Active interactions: %s", ", ".join(ix.id for ix in active))
    return active


def get_interaction_adjustments(interactions: Iterable[ActiveInteraction],
                                substance: str) -> dict[str, float]:
    """
    Product of every half-life and max-mg multiplier that targets `substance`.
    No matching adjustment leaves both at 1.0.
    """
    substance = validate_substance(substance)
    hl_mul = 1.0
    mg_mul = 1.0
    for ix in interactions:
        adj = ix.adjustment
        if adj is None or adj.substance != substance:
            continue
        if adj.half_life_multiplier is not None:
            hl_mul *= adj.half_life_multiplier
        if adj.max_mg_multiplier is not None:
            mg_mul *= adj.max_mg_multiplier
    return {"half_life_multiplier": hl_mul, "max_mg_multiplier": mg_mul}


def highest_severity(interactions: Iterable[ActiveInteraction]) -> Severity | None:
    """Most severe level among the interactions, or None when there are none."""
    levels = [ix.severity for ix in interactions]
    if not levels:
        return None
    return max(levels, key=SEVERITY_RANK.__getitem__)
