# scoring/synthetic.py
"""
Synthetic lab values for demo and seed data.

Every generator samples strictly inside the band that owns the requested
stage or category, so a generated value always classifies back to it.
Pass an explicit ``rng`` (anything with ``uniform(a, b)``, normally a
``random.Random``) for reproducible draws. Without one each call builds
its own generator, so concurrent callers never share state.
"""
import math
import random
from typing import Optional

from models.ckd import CKDStage, ProteinuriaLevel
from scoring.errors import InvalidMeasurement
from scoring.staging import stage_interval

# Kept clear of stage boundaries so rounding never crosses them
EGFR_MARGIN = 0.5
# Stage 1 has no upper bound and Stage 5 runs down to 0; demo values stay plausible
EGFR_CEILING = 120.0
EGFR_FLOOR = 5.0

ACR_RANGES = {
    ProteinuriaLevel.A1: (5.0, 28.5),
    ProteinuriaLevel.A2: (31.0, 299.0),
    ProteinuriaLevel.A3: (301.0, 1500.0),
}

SYSTOLIC_RANGES = {
    CKDStage.STAGE_1: (115, 130),
    CKDStage.STAGE_2: (120, 135),
    CKDStage.STAGE_3A: (125, 145),
    CKDStage.STAGE_3B: (130, 150),
    CKDStage.STAGE_4: (135, 160),
    CKDStage.STAGE_5: (140, 170),
}

DIASTOLIC_RATIO = 0.62
DIASTOLIC_MAX_JITTER = 5.0


def _rng(rng):
    return rng if rng is not None else random.Random()


def egfr_sampling_range(stage: CKDStage):
    lower, upper = stage_interval(stage)
    lower = max(lower, EGFR_FLOOR)
    upper = min(upper, EGFR_CEILING)
    return lower + EGFR_MARGIN, upper - EGFR_MARGIN


def generate_egfr(stage: CKDStage, rng: Optional[random.Random] = None) -> float:
    low, high = egfr_sampling_range(CKDStage(stage))
    return round(_rng(rng).uniform(low, high), 1)


def generate_proteinuria(level: ProteinuriaLevel, rng: Optional[random.Random] = None) -> float:
    """Urine ACR in mg/g inside the given albuminuria category"""
    low, high = ACR_RANGES[ProteinuriaLevel(level)]
    return float(round(_rng(rng).uniform(low, high)))


def generate_systolic_bp(stage: CKDStage, rng: Optional[random.Random] = None) -> int:
    low, high = SYSTOLIC_RANGES[CKDStage(stage)]
    return int(round(_rng(rng).uniform(low, high)))


def generate_diastolic_bp(systolic, rng: Optional[random.Random] = None) -> int:
    """
    Diastolic pressure as a fixed fraction of systolic plus jitter.
    The jitter is capped at a tenth of the systolic value, which keeps the
    result strictly below systolic.
    """
    if isinstance(systolic, bool):
        raise InvalidMeasurement(f"Systolic BP must be a number, got {systolic!r}")
    try:
        systolic = float(systolic)
    except (TypeError, ValueError):
        raise InvalidMeasurement(f"Systolic BP must be a number, got {systolic!r}")
    if not math.isfinite(systolic) or systolic <= 0:
        raise InvalidMeasurement(f"Systolic BP must be positive, got {systolic}")

    jitter = min(DIASTOLIC_MAX_JITTER, systolic * 0.1)
    diastolic = systolic * DIASTOLIC_RATIO + _rng(rng).uniform(-jitter, jitter)
    return int(math.floor(diastolic))
