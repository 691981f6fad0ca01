"""
Tests for the FastAPI service shell.
"""

from datetime import date

import pandas as pd
import pytest
from fastapi.testclient import TestClient

from main import app, get_repo, seed, stage
from models.records import Patient, Workflow, WorkflowRequirementRecord
from repository import InMemoryRepository, seed_reference_data

DOCTOR = {"X-Role": "medecin"}

WORKFLOW = {
    "name": "Stage 3A Monitoring",
    "ckd_stage": "Stage 3A",
    "requirements": [
        {
            "test_name": "eGFR",
            "frequency": "Every 3 months",
            "alert_threshold": {"direction": "Below", "value": "50", "unit": "mL/min"},
            "action": "Alert Only",
        },
    ],
}


@pytest.fixture
def repo():
    repo = InMemoryRepository()
    seed_reference_data(repo)
    return repo


@pytest.fixture
def client(repo):
    app.dependency_overrides[get_repo] = lambda: repo
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def patient(repo):
    return repo.create(Patient(
        first_name="Jean",
        last_name="Dupont",
        email="jean.dupont@example.com",
        birth_date=date(1975, 5, 15),
        gender="M",
        ckd_stage="Stage 3A",
        proteinuria_level="A1",
    ))


# =============================================================================
# Scoring endpoints
# =============================================================================

class TestScoring:

    def test_root(self, client):
        assert client.get("/").status_code == 200

    def test_stage(self, client):
        resp = client.post("/score/stage", json={"egfr": 52})
        assert resp.status_code == 200
        assert resp.json()["stage"] == "Stage 3A"
        assert resp.json()["needsAttention"] is True

    def test_negative_egfr_is_rejected(self, client):
        resp = client.post("/score/stage", json={"egfr": -4})
        assert resp.status_code == 422
        assert "negative" in resp.json()["detail"]

    def test_risk(self, client):
        resp = client.post("/score/risk", json={"egfr": 40, "proteinuria": "A2"})
        assert resp.json()["risk"] == "Very High"

    def test_risk_unknown_without_proteinuria(self, client):
        resp = client.post("/score/risk", json={"egfr": 40})
        assert resp.status_code == 200
        assert resp.json() == {"risk": "Unknown", "explanation": None}

    def test_creatinine(self, client):
        resp = client.post("/score/creatinine", json={"egfr": 60, "age": 50, "is_female": True})
        assert resp.status_code == 200
        assert resp.json()["creatinine"] > 0

    def test_creatinine_invalid_age(self, client):
        resp = client.post("/score/creatinine", json={"egfr": 60, "age": 0})
        assert resp.status_code == 422


# =============================================================================
# Workflows
# =============================================================================

class TestWorkflowEndpoints:

    def test_validate_reports_every_error(self, client):
        body = {"requirements": [
            dict(WORKFLOW["requirements"][0], test_name=""),
            dict(WORKFLOW["requirements"][0], action="Phone"),
        ]}
        resp = client.post("/workflows/validate", json=body)
        assert resp.json()["valid"] is False
        assert len(resp.json()["errors"]) == 2

    def test_validate_empty(self, client):
        resp = client.post("/workflows/validate", json={"requirements": []})
        assert len(resp.json()["errors"]) == 1

    def test_create_requires_permission(self, client):
        resp = client.post("/workflows", json=WORKFLOW, headers={"X-Role": "patient"})
        assert resp.status_code == 403

    def test_create(self, client):
        resp = client.post("/workflows", json=WORKFLOW, headers=DOCTOR)
        assert resp.status_code == 201
        assert resp.json()["requirements"] == 1

    def test_create_invalid(self, client):
        resp = client.post("/workflows", json=dict(WORKFLOW, requirements=[]), headers=DOCTOR)
        assert resp.status_code == 422
        assert len(resp.json()["errors"]) == 1

    def test_create_without_name(self, client):
        resp = client.post("/workflows", json=dict(WORKFLOW, name=""), headers=DOCTOR)
        assert resp.status_code == 422
        assert [e["field"] for e in resp.json()["errors"]] == ["name"]


# =============================================================================
# Patients
# =============================================================================

class TestPatientEndpoints:

    def test_missing_patient(self, client):
        assert client.get("/patients/99/summary").status_code == 404

    def test_generate_then_summarize(self, client, patient):
        resp = client.post(f"/patients/{patient.id}/lab-results/generate",
                           json={"use_existing_values": False}, headers=DOCTOR)
        assert resp.status_code == 201
        body = resp.json()
        assert len(body["results"]) == 4
        assert body["diastolicBp"] is not None

        summary = client.get(f"/patients/{patient.id}/summary").json()
        assert summary["egfrStage"] == "Stage 3A"
        assert summary["progressionRisk"] == "Moderate"

    def test_generate_requires_permission(self, client, patient):
        resp = client.post(f"/patients/{patient.id}/lab-results/generate", json={})
        assert resp.status_code == 403

    def test_generate_unknown_test(self, client, patient):
        resp = client.post(f"/patients/{patient.id}/lab-results/generate",
                           json={"tests": ["potassium"]}, headers=DOCTOR)
        assert resp.status_code == 400

    def test_alerts_and_notifications(self, client, patient):
        client.post("/workflows", json=WORKFLOW, headers=DOCTOR)
        client.post(f"/patients/{patient.id}/lab-results/generate",
                    json={"tests": ["egfr"], "use_existing_values": False}, headers=DOCTOR)

        # every Stage 3A eGFR is below 60 but only some are below 50
        alerts = client.get(f"/patients/{patient.id}/alerts").json()["alerts"]
        summary = client.get(f"/patients/{patient.id}/summary").json()
        assert len(alerts) == (1 if summary["latestEgfr"] < 50 else 0)

        resp = client.post(f"/patients/{patient.id}/alerts/notify", headers=DOCTOR)
        assert resp.status_code == 201
        stored = client.get(f"/patients/{patient.id}/notifications").json()
        assert len(stored) == len(alerts)

    def test_unreadable_workflow_is_skipped(self, client, repo, patient):
        client.post("/workflows", json=WORKFLOW, headers=DOCTOR)
        broken = repo.create(Workflow(name="Legacy import"))
        repo.create(WorkflowRequirementRecord(
            workflow_id=broken.id,
            test_name="eGFR",
            frequency="Every 3 months",
            alert_threshold="Below nan mL/min",
            action="Alert Only",
        ))
        client.post(f"/patients/{patient.id}/lab-results/generate",
                    json={"tests": ["egfr"], "use_existing_values": False}, headers=DOCTOR)

        resp = client.get(f"/patients/{patient.id}/alerts")
        assert resp.status_code == 200
        assert all(a["workflow"] == WORKFLOW["name"] for a in resp.json()["alerts"])

        resp = client.post(f"/patients/{patient.id}/alerts/notify", headers=DOCTOR)
        assert resp.status_code == 201

    def test_stage_distribution(self, client, patient):
        counts = client.get("/dashboard/stages").json()
        assert counts["Stage 3A"] == 1
        assert sum(counts.values()) == 1


# =============================================================================
# CLI commands
# =============================================================================

class TestCli:

    def test_stage_command(self):
        assert stage(50) == {"stage": "Stage 3A"}
        assert stage(50, "A2") == {"stage": "Stage 3A", "risk": "High"}

    def test_seed_in_memory_with_export(self, tmp_path):
        out = tmp_path / "results.csv"
        counts = seed(size=6, random_seed=3, export=str(out), in_memory=True)

        assert all(counts[s] == 1 for s in counts)
        frame = pd.read_csv(out)
        assert len(frame) == 6 * 4
        assert list(frame.columns)[:3] == ["ID", "Patient ID", "Test Name"]
