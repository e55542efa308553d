# src/stimengine/metrics.py
from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np

from .types import ConcentrationPoint, CurveSummary


def curve_arrays(points: Sequence[ConcentrationPoint]) -> Tuple[np.ndarray, np.ndarray]:
    """(hours since the first sample, active mg) as numpy arrays."""
    if not points:
        return np.zeros(0), np.zeros(0)
    t0 = points[0].time
    t = np.array([(p.time - t0).total_seconds() / 3600.0 for p in points])
    mg = np.array([p.mg_active for p in points], dtype=float)
    return t, mg


def peak_active(t: np.ndarray, mg: np.ndarray) -> Tuple[float, float]:
    """Return the peak active mg and the hour it occurs at (first one on ties)."""
    idx = np.argmax(mg)
    return float(mg[idx]), float(t[idx])


def area_under_curve(t: np.ndarray, mg: np.ndarray) -> float:
    """Area under the active-mg curve via trapezoidal rule (mg*h)."""
    return float(np.trapezoid(mg, t))


def hours_above(t: np.ndarray, mg: np.ndarray, threshold_mg: float) -> float:
    """
    Hours spent above a threshold, counting each sampling interval whose
    starting sample is above it.
    """
    if t.size < 2:
        return 0.0
    dt = np.diff(t)
    return float(np.sum(dt[mg[:-1] > threshold_mg]))


def summarize_curve(points: Sequence[ConcentrationPoint], threshold_mg: float | None = None) -> CurveSummary:
    """Peak, AUC and (optionally) time above `threshold_mg` for a sampled curve."""
    if not points:
        return CurveSummary(peak_mg=0.0, peak_time=None, auc_mg_h=0.0,
                            hours_above_threshold=0.0 if threshold_mg is not None else None)
    t, mg = curve_arrays(points)
    peak_mg, _ = peak_active(t, mg)
    peak_time = points[int(np.argmax(mg))].time
    above = hours_above(t, mg, threshold_mg) if threshold_mg is not None else None
    return CurveSummary(
        peak_mg=round(peak_mg, 2),
        peak_time=peak_time,
        auc_mg_h=round(area_under_curve(t, mg), 2),
        hours_above_threshold=above,
    )
