# src/stimengine/models/absorption_decay.py
import math
from datetime import datetime

import numpy as np

LN2 = math.log(2.0)


def absorption_decay(elapsed_h, dose_mg, half_life_hours, absorption_hours):
    """
    Active amount of one dose as a function of time since administration.

    Linear ramp from 0 to the full dose over the absorption window, then a
    single exponential decay starting where absorption completed:

      elapsed < 0                 : 0
      0 <= elapsed <= absorption  : dose * elapsed / absorption
      elapsed > absorption        : dose * exp(-ln2 / t_half * (elapsed - absorption))

    This is a heuristic curve, not a compartment model: it peaks at the full
    dose at the END of the absorption window, independently of a substance's
    configured peak time.

    Parameters:
      elapsed_h        : hours since the dose (scalar or array; negative = before the dose)
      dose_mg          : dose size (mg)
      half_life_hours  : decay half-life (h)
      absorption_hours : ramp duration (h)

    Returns an ndarray with the shape of `elapsed_h`.
    """
    t = np.asarray(elapsed_h, dtype=float)
    k = LN2 / half_life_hours

    ramp = dose_mg * (np.clip(t, 0.0, None) / absorption_hours)
    # Clamp the exponent argument so pre-dose samples cannot overflow; they are masked below.
    decay = dose_mg * np.exp(-k * np.maximum(t - absorption_hours, 0.0))

    return np.where(t < 0.0, 0.0, np.where(t <= absorption_hours, ramp, decay))


def single_dose_concentration(dose_mg: float, dose_time: datetime, target_time: datetime,
                              half_life_hours: float, absorption_hours: float) -> float:
    """Active mg at `target_time` from one dose taken at `dose_time`."""
    if target_time < dose_time:
        return 0.0
    elapsed_h = (target_time - dose_time).total_seconds() / 3600.0
    return float(absorption_decay(elapsed_h, dose_mg, half_life_hours, absorption_hours))
