"""
Tests for the repository implementations (in-memory and SQLModel-backed).
"""

from datetime import date

import pytest

from models.ckd import AlertThreshold
from models.records import LabResult, LabTest, Patient, WorkflowRequirementRecord
from repository import (
    REFERENCE_LAB_TESTS,
    NotFound,
    find_lab_test,
    latest_lab_results,
    load_requirements,
    save_workflow,
    seed_reference_data,
)
from workflows.validator import WorkflowValidationFailed, validate_workflow


def _patient(**overrides):
    fields = dict(
        first_name="Jean",
        last_name="Dupont",
        email="jean.dupont@example.com",
        birth_date=date(1975, 5, 15),
        gender="M",
        ckd_stage="Stage 3A",
    )
    fields.update(overrides)
    return Patient(**fields)


# =============================================================================
# CRUD
# =============================================================================

class TestCrud:

    def test_create_assigns_incrementing_ids(self, repo):
        first = repo.create(_patient())
        second = repo.create(_patient(email="other@example.com"))
        assert first.id == 1
        assert second.id == 2

    def test_get(self, repo):
        created = repo.create(_patient())
        fetched = repo.get(Patient, created.id)
        assert fetched.last_name == "Dupont"
        assert fetched.birth_date == date(1975, 5, 15)

    def test_get_missing_raises(self, repo):
        with pytest.raises(NotFound, match="Patient 99"):
            repo.get(Patient, 99)

    def test_list_with_filters(self, repo):
        repo.create(_patient())
        repo.create(_patient(email="b@example.com", ckd_stage="Stage 4"))
        repo.create(_patient(email="c@example.com", ckd_stage="Stage 4"))
        stage_4 = repo.list(Patient, ckd_stage="Stage 4")
        assert [p.email for p in stage_4] == ["b@example.com", "c@example.com"]
        assert len(repo.list(Patient)) == 3

    def test_update(self, repo):
        created = repo.create(_patient())
        updated = repo.update(Patient, created.id, last_egfr_value=48.2)
        assert updated.last_egfr_value == 48.2
        assert repo.get(Patient, created.id).last_egfr_value == 48.2

    def test_update_unknown_field(self, repo):
        created = repo.create(_patient())
        with pytest.raises(AttributeError):
            repo.update(Patient, created.id, favourite_colour="blue")

    def test_delete(self, repo):
        created = repo.create(_patient())
        repo.delete(Patient, created.id)
        with pytest.raises(NotFound):
            repo.get(Patient, created.id)
        with pytest.raises(NotFound):
            repo.delete(Patient, created.id)


# =============================================================================
# Reference data and lab results
# =============================================================================

class TestLabData:

    def test_seed_is_idempotent(self, repo):
        seed_reference_data(repo)
        tests = seed_reference_data(repo)
        assert [t.test_name for t in tests] == [t["test_name"] for t in REFERENCE_LAB_TESTS]

    def test_find_lab_test(self, repo):
        seed_reference_data(repo)
        assert find_lab_test(repo, "Serum Creatinine").unit == "mg/dL"
        assert find_lab_test(repo, "Potassium") is None

    def test_latest_result_per_test(self, repo):
        seed_reference_data(repo)
        patient = repo.create(_patient())
        egfr = find_lab_test(repo, "eGFR")
        acr = find_lab_test(repo, "Urine Albumin-to-Creatinine Ratio")
        for value, day in [(52.0, date(2024, 1, 10)), (47.0, date(2024, 4, 10)), (50.0, date(2024, 2, 10))]:
            repo.create(LabResult(patient_id=patient.id, lab_test_id=egfr.id,
                                  result_value=value, result_date=day))
        repo.create(LabResult(patient_id=patient.id, lab_test_id=acr.id,
                              result_value=80.0, result_date=date(2024, 1, 10)))

        latest = latest_lab_results(repo, patient.id)
        assert latest["eGFR"].result_value == 47.0
        assert latest["Urine Albumin-to-Creatinine Ratio"].result_value == 80.0
        assert "Blood Pressure" not in latest


# =============================================================================
# Workflows
# =============================================================================

REQUIREMENTS = [
    {
        "test_name": "eGFR",
        "frequency": "Every 3 months",
        "alert_threshold": {"direction": "Below", "value": "30", "unit": "mL/min"},
        "action": "Alert Only",
    },
    {
        "test_name": "Blood Pressure",
        "frequency": "Every visit",
        "alert_threshold": {"direction": "Above", "value": "140/90", "unit": "mmHg"},
        "action": "Schedule Appointment",
    },
]


class TestWorkflows:

    def test_save_and_load(self, repo):
        workflow = save_workflow(repo, " Stage 3A follow-up ", REQUIREMENTS, ckd_stage="Stage 3A")
        assert workflow.name == "Stage 3A follow-up"

        stored = repo.list(WorkflowRequirementRecord, workflow_id=workflow.id)
        assert [r.alert_threshold for r in stored] == ["Below 30 mL/min", "Above 140/90 mmHg"]

        loaded = load_requirements(repo, workflow.id)
        assert [r.test_name for r in loaded] == ["eGFR", "Blood Pressure"]
        assert loaded[1].alert_threshold.value == "140/90"

    def test_invalid_workflow_is_not_stored(self, repo):
        with pytest.raises(WorkflowValidationFailed):
            save_workflow(repo, "Broken", [dict(REQUIREMENTS[0], action="Phone")])
        assert repo.list(WorkflowRequirementRecord) == []

    def test_empty_workflow_is_rejected(self, repo):
        with pytest.raises(WorkflowValidationFailed) as exc_info:
            save_workflow(repo, "Empty", [])
        assert len(exc_info.value.errors) == 1

    def test_name_is_required(self, repo):
        with pytest.raises(WorkflowValidationFailed, match="name") as exc_info:
            save_workflow(repo, "  ", REQUIREMENTS)
        assert [e.field for e in exc_info.value.errors] == ["name"]
        assert repo.list(WorkflowRequirementRecord) == []

    @pytest.mark.parametrize("value, unit", [
        ("30", "mL/min"),
        (" 45 ", ""),
        (7.5, "mL/min/1.73m2"),
        (45.0, "mL/min"),
        (1234567, "mg/g"),
        (0.00001, " mg/dL "),
        ("140/90", "mmHg"),
        ("0.5/0.25", "ratio"),
    ])
    def test_accepted_thresholds_load_back_unchanged(self, repo, value, unit):
        req = dict(REQUIREMENTS[0], alert_threshold={"direction": "Below", "value": value, "unit": unit})
        assert validate_workflow([req]) == []

        workflow = save_workflow(repo, "Round trip", [req])
        loaded = load_requirements(repo, workflow.id)

        expected = AlertThreshold(direction="Below", value=value, unit=unit)
        assert loaded[0].alert_threshold == expected

    def test_load_requirements_for_missing_workflow(self, repo):
        with pytest.raises(NotFound):
            load_requirements(repo, 42)

    def test_lab_results_unaffected(self, repo):
        save_workflow(repo, "Any", REQUIREMENTS)
        assert repo.list(LabResult) == []
        assert repo.list(LabTest) == []
