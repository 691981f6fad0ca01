# scoring/proteinuria.py
from models.ckd import ProteinuriaLevel
from scoring.staging import check_measurement

# Urine albumin-to-creatinine ratio cut-offs (mg/g)
A2_LOWER = 30.0
A3_LOWER = 300.0


def categorize_acr(acr) -> ProteinuriaLevel:
    """
    Map a urine ACR value in mg/g to its albuminuria category:
    <30 A1, 30-300 A2, >300 A3.
    """
    acr = check_measurement(acr, "ACR")
    if acr < A2_LOWER:
        return ProteinuriaLevel.A1
    if acr <= A3_LOWER:
        return ProteinuriaLevel.A2
    return ProteinuriaLevel.A3
