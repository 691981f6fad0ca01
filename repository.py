# repository.py
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

from sqlmodel import SQLModel, Session, select

from models.ckd import Alert, WorkflowRequirement, WorkflowValidationError
from models.records import (
    LabResult,
    LabTest,
    Notification,
    Workflow,
    WorkflowRequirementRecord,
)
from workflows.thresholds import format_threshold, parse_threshold
from workflows.validator import WorkflowValidationFailed, ensure_valid_workflow

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=SQLModel)

# Lab test catalog seeded into every new store
REFERENCE_LAB_TESTS = [
    {"test_name": "eGFR", "description": "Estimated Glomerular Filtration Rate",
     "unit": "mL/min", "normal_min": 90, "normal_max": 120},
    {"test_name": "Serum Creatinine", "description": "Measure of kidney function",
     "unit": "mg/dL", "normal_min": 0.7, "normal_max": 1.3},
    {"test_name": "Urine Albumin-to-Creatinine Ratio", "description": "Measure of kidney damage",
     "unit": "mg/g", "normal_min": 0, "normal_max": 30},
    {"test_name": "Blood Pressure", "description": "Systolic/Diastolic pressure",
     "unit": "mmHg", "normal_min": 90, "normal_max": 120},
]


class NotFound(LookupError):
    def __init__(self, model, record_id):
        self.model = model
        self.record_id = record_id
        super().__init__(f"{model.__name__} {record_id} not found")


class Repository(ABC):
    """
    Create/read/update/delete for every record type in models.records.
    The record class is passed explicitly so one store serves all entities.
    """

    @abstractmethod
    def create(self, record: T) -> T:
        ...

    @abstractmethod
    def get(self, model: Type[T], record_id: int) -> T:
        """Return the record or raise NotFound"""

    @abstractmethod
    def list(self, model: Type[T], **filters) -> List[T]:
        """All records whose attributes equal the given filters, ordered by id"""

    @abstractmethod
    def update(self, model: Type[T], record_id: int, **changes) -> T:
        ...

    @abstractmethod
    def delete(self, model: Type[T], record_id: int) -> None:
        ...


class InMemoryRepository(Repository):
    """Dict-backed store with an auto-incrementing id per record type"""

    def __init__(self):
        self._tables: Dict[type, Dict[int, SQLModel]] = {}
        self._next_ids: Dict[type, int] = {}

    def _table(self, model):
        return self._tables.setdefault(model, {})

    def create(self, record):
        model = type(record)
        record_id = self._next_ids.get(model, 1)
        self._next_ids[model] = record_id + 1
        record.id = record_id
        self._table(model)[record_id] = record
        return record

    def get(self, model, record_id):
        try:
            return self._table(model)[record_id]
        except KeyError:
            raise NotFound(model, record_id)

    def list(self, model, **filters):
        rows = sorted(self._table(model).values(), key=lambda r: r.id)
        return [r for r in rows if all(getattr(r, k) == v for k, v in filters.items())]

    def update(self, model, record_id, **changes):
        record = self.get(model, record_id)
        for key, value in changes.items():
            if key == "id" or not hasattr(record, key):
                raise AttributeError(f"{model.__name__} has no updatable field '{key}'")
            setattr(record, key, value)
        return record

    def delete(self, model, record_id):
        self.get(model, record_id)
        del self._table(model)[record_id]


class SQLRepository(Repository):
    """Store backed by SQLModel tables on a SQLAlchemy engine"""

    def __init__(self, engine):
        self.engine = engine

    def create(self, record):
        with Session(self.engine) as session:
            session.add(record)
            session.commit()
            session.refresh(record)
            return record

    def get(self, model, record_id):
        with Session(self.engine) as session:
            record = session.get(model, record_id)
            if record is None:
                raise NotFound(model, record_id)
            return record

    def list(self, model, **filters):
        with Session(self.engine) as session:
            query = select(model)
            for key, value in filters.items():
                query = query.where(getattr(model, key) == value)
            return list(session.exec(query.order_by(model.id)).all())

    def update(self, model, record_id, **changes):
        with Session(self.engine) as session:
            record = session.get(model, record_id)
            if record is None:
                raise NotFound(model, record_id)
            for key, value in changes.items():
                if key == "id" or not hasattr(record, key):
                    raise AttributeError(f"{model.__name__} has no updatable field '{key}'")
                setattr(record, key, value)
            session.add(record)
            session.commit()
            session.refresh(record)
            return record

    def delete(self, model, record_id):
        with Session(self.engine) as session:
            record = session.get(model, record_id)
            if record is None:
                raise NotFound(model, record_id)
            session.delete(record)
            session.commit()


def seed_reference_data(repo: Repository) -> List[LabTest]:
    """Create the lab test catalog unless it is already there"""
    existing = {t.test_name for t in repo.list(LabTest)}
    for entry in REFERENCE_LAB_TESTS:
        if entry["test_name"] not in existing:
            repo.create(LabTest(**entry))
            logger.info(f"Seeded lab test {entry['test_name']}")
    return repo.list(LabTest)


def find_lab_test(repo: Repository, test_name: str) -> Optional[LabTest]:
    matches = repo.list(LabTest, test_name=test_name)
    return matches[0] if matches else None


def save_workflow(
    repo: Repository,
    name: str,
    requirements: Sequence[Any],
    description: Optional[str] = None,
    ckd_stage: Optional[str] = None,
    created_by: Optional[int] = None,
) -> Workflow:
    """
    Validate then persist a workflow and its requirements.
    Requirements may be form data (mappings) or WorkflowRequirement models.
    """
    if not name or not name.strip():
        raise WorkflowValidationFailed([
            WorkflowValidationError(field="name", message="Workflow name is required"),
        ])
    ensure_valid_workflow(requirements)
    requirements = [
        r if isinstance(r, WorkflowRequirement) else WorkflowRequirement.model_validate(r)
        for r in requirements
    ]

    workflow = repo.create(Workflow(
        name=name.strip(),
        description=description,
        ckd_stage=ckd_stage,
        created_by=created_by,
    ))
    for req in requirements:
        repo.create(WorkflowRequirementRecord(
            workflow_id=workflow.id,
            test_name=req.test_name,
            frequency=req.frequency.value,
            alert_threshold=format_threshold(req.alert_threshold),
            action=req.action.value,
        ))
    logger.info(f"Saved workflow '{workflow.name}' with {len(requirements)} requirements")
    return workflow


def load_requirements(repo: Repository, workflow_id: int) -> List[WorkflowRequirement]:
    repo.get(Workflow, workflow_id)
    return [
        WorkflowRequirement(
            test_name=r.test_name,
            frequency=r.frequency,
            alert_threshold=parse_threshold(r.alert_threshold),
            action=r.action,
        )
        for r in repo.list(WorkflowRequirementRecord, workflow_id=workflow_id)
    ]


def latest_lab_results(repo: Repository, patient_id: int) -> Dict[str, LabResult]:
    """Most recent result per lab test name for a patient"""
    tests = {t.id: t.test_name for t in repo.list(LabTest)}
    latest: Dict[str, LabResult] = {}
    for result in repo.list(LabResult, patient_id=patient_id):
        name = tests.get(result.lab_test_id)
        if name is None:
            continue
        current = latest.get(name)
        if current is None or (result.result_date, result.id) >= (current.result_date, current.id):
            latest[name] = result
    return latest


def notify_alerts(repo: Repository, patient_id: int, alerts: Sequence[Alert], source: str = "") -> List[Notification]:
    """Store one unread notification per alert"""
    created = []
    for alert in alerts:
        title = f"{alert.test_name} alert" + (f" ({source})" if source else "")
        created.append(repo.create(Notification(
            patient_id=patient_id,
            title=title,
            message=alert.message,
        )))
    if created:
        logger.info(f"Created {len(created)} notifications for patient {patient_id}")
    return created
