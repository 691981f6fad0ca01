# normalize/summary.py
from typing import Dict, Iterable, List, Optional

import pandas as pd

from models.ckd import CKDStage
from models.records import LabResult, LabTest, Patient
from normalize.transformer import normalize_result
from scoring.risk import risk_label
from scoring.staging import classify_stage


def stage_distribution(patients: Iterable[Patient]) -> Dict[str, int]:
    """Patients per CKD stage; every stage is present, in severity order"""
    counts = {stage.value: 0 for stage in CKDStage}
    for patient in patients:
        if patient.ckd_stage in counts:
            counts[patient.ckd_stage] += 1
    return counts


def patient_summary(patient: Patient, latest_egfr: Optional[float] = None) -> Dict:
    """
    Header block for a patient view: latest eGFR, the stage it implies and
    the progression risk ("Unknown" until eGFR and proteinuria are known).
    """
    egfr = latest_egfr if latest_egfr is not None else patient.last_egfr_value
    return {
        "id": patient.id,
        "name": f"{patient.first_name} {patient.last_name}",
        "ckdStage": patient.ckd_stage,
        "latestEgfr": egfr,
        "egfrStage": classify_stage(egfr).value if egfr is not None else None,
        "proteinuriaLevel": patient.proteinuria_level or "Not assessed",
        "progressionRisk": risk_label(egfr, patient.proteinuria_level),
    }


def lab_results_frame(results: Iterable[LabResult], lab_tests: Iterable[LabTest]) -> pd.DataFrame:
    """Flat table of lab results for CSV export"""
    tests = {t.id: t for t in lab_tests}
    rows: List[Dict] = []
    for r in results:
        n = normalize_result(r, tests.get(r.lab_test_id))
        rows.append({
            "ID": n["id"],
            "Patient ID": n["patient"]["id"],
            "Test Name": n["test"]["name"],
            "Result Value": n["result"]["value"],
            "Units": n["result"]["unit"],
            "Result Date": n["resultDate"],
        })
    columns = ["ID", "Patient ID", "Test Name", "Result Value", "Units", "Result Date"]
    return pd.DataFrame(rows, columns=columns)
