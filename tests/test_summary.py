"""
Tests for dashboard summaries and the lab result export table.
"""

from datetime import date

from models.records import LabResult, LabTest, Patient
from normalize.summary import lab_results_frame, patient_summary, stage_distribution
from normalize.transformer import normalize_result


def _patient(**overrides):
    fields = dict(id=1, first_name="Jean", last_name="Dupont", email="j@example.com",
                  birth_date=date(1975, 5, 15), gender="M", ckd_stage="Stage 3A")
    fields.update(overrides)
    return Patient(**fields)


class TestStageDistribution:

    def test_zero_filled_and_ordered(self):
        patients = [_patient(), _patient(ckd_stage="Stage 3A"), _patient(ckd_stage="Stage 5"),
                    _patient(ckd_stage=None)]
        counts = stage_distribution(patients)
        assert list(counts) == ["Stage 1", "Stage 2", "Stage 3A", "Stage 3B", "Stage 4", "Stage 5"]
        assert counts["Stage 3A"] == 2
        assert counts["Stage 5"] == 1
        assert counts["Stage 1"] == 0

    def test_empty(self):
        assert sum(stage_distribution([]).values()) == 0


class TestPatientSummary:

    def test_full_summary(self):
        summary = patient_summary(_patient(proteinuria_level="A2"), latest_egfr=52.0)
        assert summary["egfrStage"] == "Stage 3A"
        assert summary["progressionRisk"] == "High"
        assert summary["name"] == "Jean Dupont"

    def test_falls_back_to_last_egfr_on_record(self):
        summary = patient_summary(_patient(proteinuria_level="A1", last_egfr_value=95.0))
        assert summary["latestEgfr"] == 95.0
        assert summary["progressionRisk"] == "Low"

    def test_unknown_risk_without_data(self):
        summary = patient_summary(_patient())
        assert summary["egfrStage"] is None
        assert summary["proteinuriaLevel"] == "Not assessed"
        assert summary["progressionRisk"] == "Unknown"


class TestExport:

    def test_normalize_result(self):
        test = LabTest(id=1, test_name="eGFR", unit="mL/min")
        result = LabResult(id=7, patient_id=3, lab_test_id=1, result_value=41.5,
                           result_date=date(2024, 3, 1))
        out = normalize_result(result, test)
        assert out["test"]["name"] == "eGFR"
        assert out["result"] == {"value": 41.5, "unit": "mL/min"}
        assert out["resultDate"] == "2024-03-01"

    def test_frame_columns_and_rows(self):
        tests = [LabTest(id=1, test_name="eGFR", unit="mL/min"),
                 LabTest(id=2, test_name="Serum Creatinine", unit="mg/dL")]
        results = [
            LabResult(id=1, patient_id=1, lab_test_id=1, result_value=41.5, result_date=date(2024, 3, 1)),
            LabResult(id=2, patient_id=1, lab_test_id=2, result_value=1.62, result_date=date(2024, 3, 1)),
        ]
        frame = lab_results_frame(results, tests)
        assert list(frame.columns) == ["ID", "Patient ID", "Test Name", "Result Value", "Units", "Result Date"]
        assert frame["Test Name"].tolist() == ["eGFR", "Serum Creatinine"]
        assert frame["Units"].tolist() == ["mL/min", "mg/dL"]

    def test_empty_frame_keeps_columns(self):
        assert len(lab_results_frame([], []).columns) == 6
