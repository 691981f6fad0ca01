# main.py
import logging
import random
from typing import Any, Dict, List, Optional

import fire
import uvicorn
from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from auth import Action, PermissionDenied, require_role
from config import configure_logging, load_settings
from demo_pipeline import DEFAULT_TESTS, LabResultGenerator, seed_demo_cohort
from models.records import LabResult, LabTest, Notification, Patient, Workflow
from normalize.summary import lab_results_frame, patient_summary, stage_distribution
from normalize.transformer import normalize_result
from repository import (
    InMemoryRepository,
    NotFound,
    Repository,
    SQLRepository,
    latest_lab_results,
    load_requirements,
    notify_alerts,
    save_workflow,
    seed_reference_data,
)
from scoring.creatinine import estimate_creatinine
from scoring.errors import InsufficientData, InvalidMeasurement
from scoring.risk import score_risk
from scoring.staging import classify_stage, needs_clinical_attention
from workflows.thresholds import evaluate_requirements
from workflows.validator import WorkflowValidationFailed, validate_workflow

# Configure logger
settings = load_settings()
configure_logging(settings)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(title="CKD Monitoring")

_repo: Optional[Repository] = None


def get_repo() -> Repository:
    """SQL-backed store on the configured database, created on first use"""
    global _repo
    if _repo is None:
        from db import engine, init_db
        init_db()
        _repo = SQLRepository(engine)
        seed_reference_data(_repo)
    return _repo


class StageRequest(BaseModel):
    egfr: float


class RiskRequest(BaseModel):
    egfr: Optional[float] = None
    proteinuria: Optional[str] = None


class CreatinineRequest(BaseModel):
    egfr: float
    age: float
    is_female: bool = False


class WorkflowForm(BaseModel):
    name: str = ""
    description: Optional[str] = None
    ckd_stage: Optional[str] = None
    requirements: List[Dict[str, Any]] = []


class GenerateRequest(BaseModel):
    tests: List[str] = list(DEFAULT_TESTS)
    use_existing_values: bool = True
    doctor_id: Optional[int] = None


@app.exception_handler(InvalidMeasurement)
async def invalid_measurement_handler(request: Request, exc: InvalidMeasurement):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(InsufficientData)
async def insufficient_data_handler(request: Request, exc: InsufficientData):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(PermissionDenied)
async def permission_denied_handler(request: Request, exc: PermissionDenied):
    return JSONResponse(status_code=403, content={"detail": str(exc)})


@app.exception_handler(WorkflowValidationFailed)
async def workflow_invalid_handler(request: Request, exc: WorkflowValidationFailed):
    return JSONResponse(
        status_code=422,
        content={"detail": "Invalid workflow", "errors": [e.model_dump() for e in exc.errors]},
    )


@app.get("/")
def read_root():
    return {"CKD Monitoring": "Service is live. POST to /score/stage to classify an eGFR."}


@app.post("/score/stage")
def score_stage(body: StageRequest):
    stage = classify_stage(body.egfr)
    return {
        "stage": stage.value,
        "description": stage.description,
        "needsAttention": needs_clinical_attention(body.egfr),
    }


@app.post("/score/risk")
def score_progression_risk(body: RiskRequest):
    try:
        risk = score_risk(body.egfr, body.proteinuria)
    except InsufficientData as e:
        logger.info(f"Risk not assessed: {e}")
        return {"risk": "Unknown", "explanation": None}
    return {"risk": risk.value, "explanation": risk.explanation}


@app.post("/score/creatinine")
def score_creatinine(body: CreatinineRequest):
    creatinine = estimate_creatinine(body.egfr, body.age, body.is_female)
    return {"creatinine": round(creatinine, 2), "unit": "mg/dL"}


@app.post("/workflows/validate")
def validate_workflow_form(body: WorkflowForm):
    errors = validate_workflow(body.requirements)
    return {"valid": not errors, "errors": [e.model_dump() for e in errors]}


@app.post("/workflows", status_code=201)
def create_workflow(
    body: WorkflowForm,
    x_role: str = Header("patient"),
    repo: Repository = Depends(get_repo),
):
    require_role(x_role, Action.MANAGE_WORKFLOWS)
    workflow = save_workflow(
        repo,
        body.name,
        body.requirements,
        description=body.description,
        ckd_stage=body.ckd_stage,
    )
    return {"id": workflow.id, "name": workflow.name, "requirements": len(body.requirements)}


@app.get("/patients/{patient_id}/summary")
def get_patient_summary(patient_id: int, repo: Repository = Depends(get_repo)):
    patient = repo.get(Patient, patient_id)
    latest = latest_lab_results(repo, patient_id)
    egfr = latest["eGFR"].result_value if "eGFR" in latest else None
    return patient_summary(patient, egfr)


def _workflow_alerts(repo: Repository, patient: Patient):
    """(workflow, alerts) for every workflow that applies to the patient's stage"""
    latest = {name: r.result_value for name, r in latest_lab_results(repo, patient.id).items()}
    for workflow in repo.list(Workflow):
        if workflow.ckd_stage and workflow.ckd_stage != patient.ckd_stage:
            continue
        try:
            requirements = load_requirements(repo, workflow.id)
        except ValueError as e:
            logger.error(f"Skipping workflow {workflow.id} '{workflow.name}': {e}")
            continue
        yield workflow, evaluate_requirements(requirements, latest)


@app.get("/patients/{patient_id}/alerts")
def get_patient_alerts(patient_id: int, repo: Repository = Depends(get_repo)):
    patient = repo.get(Patient, patient_id)
    alerts = [
        {"workflow": workflow.name, **alert.model_dump(mode="json")}
        for workflow, found in _workflow_alerts(repo, patient)
        for alert in found
    ]
    return {"patientId": patient_id, "alerts": alerts}


@app.post("/patients/{patient_id}/alerts/notify", status_code=201)
def notify_patient_alerts(
    patient_id: int,
    x_role: str = Header("patient"),
    repo: Repository = Depends(get_repo),
):
    require_role(x_role, Action.VIEW_PATIENTS)
    patient = repo.get(Patient, patient_id)
    notifications = []
    for workflow, found in _workflow_alerts(repo, patient):
        notifications.extend(notify_alerts(repo, patient_id, found, source=workflow.name))
    return {
        "patientId": patient_id,
        "notifications": [n.model_dump(mode="json") for n in notifications],
    }


@app.get("/patients/{patient_id}/notifications")
def get_patient_notifications(patient_id: int, repo: Repository = Depends(get_repo)):
    repo.get(Patient, patient_id)
    return [n.model_dump(mode="json") for n in repo.list(Notification, patient_id=patient_id)]


@app.post("/patients/{patient_id}/lab-results/generate", status_code=201)
def generate_lab_results(
    patient_id: int,
    body: GenerateRequest,
    x_role: str = Header("patient"),
    repo: Repository = Depends(get_repo),
):
    require_role(x_role, Action.GENERATE_DEMO_DATA)
    patient = repo.get(Patient, patient_id)
    try:
        batch = LabResultGenerator(repo).generate_and_store(
            patient,
            tests=body.tests,
            doctor_id=body.doctor_id,
            use_existing_values=body.use_existing_values,
        )
    except ValueError as e:
        if isinstance(e, InvalidMeasurement):
            raise
        return JSONResponse(status_code=400, content={"detail": str(e)})

    tests = {t.id: t for t in repo.list(LabTest)}
    return {
        "patientId": patient_id,
        "stage": patient.ckd_stage,
        "results": [normalize_result(r, tests.get(r.lab_test_id)) for r in batch["results"]],
        "diastolicBp": batch["diastolic_bp"],
        "skipped": batch["skipped"],
    }


@app.get("/dashboard/stages")
def get_stage_distribution(repo: Repository = Depends(get_repo)):
    return stage_distribution(repo.list(Patient))


def serve(host: Optional[str] = None, port: Optional[int] = None):
    """Run the API with uvicorn"""
    uvicorn.run(app, host=host or settings.host, port=port or settings.port)


def seed(size: Optional[int] = None, random_seed: Optional[int] = None, export: Optional[str] = None,
         in_memory: bool = False):
    """
    Create a demo cohort with generated lab results.
    Pass --export=path.csv to also write the results as CSV.
    """
    repo = InMemoryRepository() if in_memory else get_repo()
    rng = random.Random(random_seed if random_seed is not None else settings.demo_seed)
    patients = seed_demo_cohort(repo, size or settings.demo_cohort_size, rng)

    if export:
        frame = lab_results_frame(repo.list(LabResult), repo.list(LabTest))
        frame.to_csv(export, index=False)
        logger.info(f"Exported {len(frame)} lab results to {export}")

    return stage_distribution(patients)


def stage(egfr: float, proteinuria: Optional[str] = None):
    """Classify an eGFR value, and score risk when a proteinuria category is given"""
    result = {"stage": classify_stage(egfr).value}
    if proteinuria:
        result["risk"] = score_risk(egfr, proteinuria).value
    return result


# CLI entrypoint using python-fire
def cli():
    fire.Fire({
        "serve": serve,
        "seed": seed,
        "stage": stage,
    })


# Entry point for CLI or server
if __name__ == "__main__":
    cli()
