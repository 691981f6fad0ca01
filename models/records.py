# models/records.py

from datetime import date, datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class Doctor(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    first_name: str
    last_name: str
    email: str
    specialty: Optional[str] = None
    hospital: Optional[str] = None


class Patient(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    first_name: str
    last_name: str
    email: str
    birth_date: date
    gender: str  # "M", "F" or "Autre"
    address: Optional[str] = None
    phone: Optional[str] = None
    ckd_stage: Optional[str] = None  # CKDStage value, e.g. "Stage 3A"
    proteinuria_level: Optional[str] = None  # "A1" / "A2" / "A3"
    last_egfr_value: Optional[float] = None
    last_proteinuria_value: Optional[float] = None
    doctor_id: Optional[int] = Field(default=None, foreign_key="doctor.id")
    created_at: datetime = Field(default_factory=datetime.now)


class LabTest(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    test_name: str
    description: Optional[str] = None
    unit: str
    normal_min: Optional[float] = None
    normal_max: Optional[float] = None


class LabResult(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    patient_id: int = Field(foreign_key="patient.id")
    doctor_id: Optional[int] = Field(default=None, foreign_key="doctor.id")
    lab_test_id: int = Field(foreign_key="labtest.id")
    result_value: float
    result_date: date


class Workflow(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    description: Optional[str] = None
    ckd_stage: Optional[str] = None
    created_by: Optional[int] = None
    created_at: datetime = Field(default_factory=datetime.now)


class WorkflowRequirementRecord(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    workflow_id: int = Field(foreign_key="workflow.id")
    test_name: str
    frequency: str
    alert_threshold: str  # e.g. "Below 30 mL/min"
    action: str


class Notification(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    patient_id: Optional[int] = Field(default=None, foreign_key="patient.id")
    title: str
    message: str
    is_read: bool = False
    created_at: datetime = Field(default_factory=datetime.now)
