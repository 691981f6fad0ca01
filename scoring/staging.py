# scoring/staging.py
import math
from typing import Tuple

from models.ckd import CKDStage
from scoring.errors import InvalidMeasurement

# Lower bound (inclusive) of each stage, most severe last
STAGE_LOWER_BOUNDS = (
    (CKDStage.STAGE_1, 90.0),
    (CKDStage.STAGE_2, 60.0),
    (CKDStage.STAGE_3A, 45.0),
    (CKDStage.STAGE_3B, 30.0),
    (CKDStage.STAGE_4, 15.0),
    (CKDStage.STAGE_5, 0.0),
)


def check_measurement(value, name: str = "value") -> float:
    """
    Coerce a numeric input to float, rejecting booleans, negatives,
    NaN and infinities.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidMeasurement(f"{name} must be a number, got {value!r}")
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise InvalidMeasurement(f"{name} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise InvalidMeasurement(f"{name} must be finite, got {value}")
    if value < 0:
        raise InvalidMeasurement(f"{name} cannot be negative, got {value}")
    return value


def classify_stage(egfr) -> CKDStage:
    """Return the CKD stage owning an eGFR value (mL/min/1.73m2)"""
    egfr = check_measurement(egfr, "eGFR")
    for stage, lower in STAGE_LOWER_BOUNDS:
        if egfr >= lower:
            return stage
    # unreachable, the last bound is 0
    return CKDStage.STAGE_5


def stage_interval(stage: CKDStage) -> Tuple[float, float]:
    """
    Half-open [lower, upper) eGFR interval owning a stage.
    Stage 1 has no upper bound, so math.inf is returned.
    """
    stage = CKDStage(stage)
    upper = math.inf
    for s, lower in STAGE_LOWER_BOUNDS:
        if s == stage:
            return lower, upper
        upper = lower
    raise ValueError(f"Unknown CKD stage: {stage}")


def needs_clinical_attention(egfr) -> bool:
    """True if eGFR indicates Stage 3A or worse"""
    return classify_stage(egfr) >= CKDStage.STAGE_3A
