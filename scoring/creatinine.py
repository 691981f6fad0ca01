# scoring/creatinine.py
import math

from scoring.errors import InvalidMeasurement

# 4-variable MDRD study equation, IDMS-traceable coefficients:
#   eGFR = 175 * Scr^-1.154 * age^-0.203 * 0.742 (if female)
MDRD_CONSTANT = 175.0
CREATININE_EXPONENT = -1.154
AGE_EXPONENT = -0.203
FEMALE_FACTOR = 0.742


def _positive(value, name: str) -> float:
    if isinstance(value, bool) or value is None:
        raise InvalidMeasurement(f"{name} must be a number, got {value!r}")
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise InvalidMeasurement(f"{name} must be a number, got {value!r}")
    if not math.isfinite(value) or value <= 0:
        raise InvalidMeasurement(f"{name} must be a positive number, got {value}")
    return value


def _scale(age: float, is_female: bool) -> float:
    sex_factor = FEMALE_FACTOR if is_female else 1.0
    return MDRD_CONSTANT * age ** AGE_EXPONENT * sex_factor


def egfr_from_creatinine(creatinine, age, is_female: bool) -> float:
    """eGFR (mL/min/1.73m2) from serum creatinine in mg/dL"""
    creatinine = _positive(creatinine, "Creatinine")
    age = _positive(age, "Age")
    return _scale(age, is_female) * creatinine ** CREATININE_EXPONENT


def estimate_creatinine(egfr, age, is_female: bool) -> float:
    """
    Serum creatinine (mg/dL) that the MDRD equation maps to the given eGFR.
    Not clamped: a low eGFR gives a correspondingly high creatinine.
    """
    egfr = _positive(egfr, "eGFR")
    age = _positive(age, "Age")
    return (egfr / _scale(age, is_female)) ** (1.0 / CREATININE_EXPONENT)
