# scoring/risk.py
from typing import Optional, Union

from models.ckd import ProgressionRisk, ProteinuriaLevel
from scoring.errors import InsufficientData, InvalidMeasurement
from scoring.staging import check_measurement

LOW = ProgressionRisk.LOW
MODERATE = ProgressionRisk.MODERATE
HIGH = ProgressionRisk.HIGH
VERY_HIGH = ProgressionRisk.VERY_HIGH

# (lower bound of eGFR band, risk for A1, A2, A3), best band first.
# KDIGO heat map; bands G1 and G2 share a row.
RISK_TABLE = (
    (60.0, (LOW, MODERATE, HIGH)),
    (45.0, (MODERATE, HIGH, VERY_HIGH)),
    (30.0, (HIGH, VERY_HIGH, VERY_HIGH)),
    (15.0, (VERY_HIGH, VERY_HIGH, VERY_HIGH)),
    (0.0, (VERY_HIGH, VERY_HIGH, VERY_HIGH)),
)


def _proteinuria_level(value) -> ProteinuriaLevel:
    try:
        return ProteinuriaLevel(value)
    except ValueError:
        raise InvalidMeasurement(f"Unknown proteinuria category: {value!r}")


def score_risk(
    egfr: Optional[float],
    proteinuria: Optional[Union[ProteinuriaLevel, str]],
) -> ProgressionRisk:
    """
    Cross the eGFR band with the albuminuria category.
    Both inputs are required; a risk label without them would be misleading.
    """
    if egfr is None or proteinuria is None:
        missing = [n for n, v in (("eGFR", egfr), ("proteinuria", proteinuria)) if v is None]
        raise InsufficientData(f"Risk scoring requires {' and '.join(missing)}")

    egfr = check_measurement(egfr, "eGFR")
    level = _proteinuria_level(proteinuria)

    for lower, row in RISK_TABLE:
        if egfr >= lower:
            return row[level.rank]
    return VERY_HIGH


def risk_label(egfr, proteinuria, fallback: str = "Unknown") -> str:
    """Risk as a display string, or the fallback when data are missing"""
    try:
        return score_risk(egfr, proteinuria).value
    except InsufficientData:
        return fallback
