# models/ckd.py
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _OrdinalEnum(str, Enum):
    """str-valued enum ordered by declaration (severity) order"""

    @property
    def rank(self) -> int:
        return list(type(self)).index(self)

    def __lt__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self.rank >= other.rank


class CKDStage(_OrdinalEnum):
    STAGE_1 = "Stage 1"
    STAGE_2 = "Stage 2"
    STAGE_3A = "Stage 3A"
    STAGE_3B = "Stage 3B"
    STAGE_4 = "Stage 4"
    STAGE_5 = "Stage 5"

    @property
    def description(self) -> str:
        return _STAGE_DESCRIPTIONS[self]


_STAGE_DESCRIPTIONS = {
    CKDStage.STAGE_1: "Normal or high",
    CKDStage.STAGE_2: "Mildly decreased",
    CKDStage.STAGE_3A: "Mild to moderately decreased",
    CKDStage.STAGE_3B: "Moderately to severely decreased",
    CKDStage.STAGE_4: "Severely decreased",
    CKDStage.STAGE_5: "Kidney failure",
}


class ProteinuriaLevel(_OrdinalEnum):
    A1 = "A1"  # normal to mildly increased
    A2 = "A2"  # moderately increased
    A3 = "A3"  # severely increased


class ProgressionRisk(_OrdinalEnum):
    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"
    VERY_HIGH = "Very High"

    @property
    def explanation(self) -> str:
        return _RISK_EXPLANATIONS[self]


_RISK_EXPLANATIONS = {
    ProgressionRisk.LOW: "Low risk of CKD progression. Regular monitoring is recommended.",
    ProgressionRisk.MODERATE: "Moderate risk of CKD progression. More frequent monitoring is advised.",
    ProgressionRisk.HIGH: "High risk of CKD progression. Close monitoring and management is necessary.",
    ProgressionRisk.VERY_HIGH: "Very high risk of CKD progression. Specialist referral and intensive management is required.",
}


class LabTestKind(str, Enum):
    EGFR = "eGFR"
    CREATININE = "Creatinine"
    PROTEINURIA_ACR = "Proteinuria-ACR"
    SYSTOLIC_BP = "Systolic-BP"
    DIASTOLIC_BP = "Diastolic-BP"

    @property
    def unit(self) -> str:
        return _DEFAULT_UNITS[self]


_DEFAULT_UNITS = {
    LabTestKind.EGFR: "mL/min/1.73m2",
    LabTestKind.CREATININE: "mg/dL",
    LabTestKind.PROTEINURIA_ACR: "mg/g",
    LabTestKind.SYSTOLIC_BP: "mmHg",
    LabTestKind.DIASTOLIC_BP: "mmHg",
}


class Frequency(str, Enum):
    EVERY_3_MONTHS = "Every 3 months"
    EVERY_6_MONTHS = "Every 6 months"
    EVERY_12_MONTHS = "Every 12 months"
    EVERY_VISIT = "Every visit"
    CUSTOM = "Custom..."


class ThresholdDirection(str, Enum):
    ABOVE = "Above"
    BELOW = "Below"


class WorkflowAction(str, Enum):
    ALERT_ONLY = "Alert Only"
    SCHEDULE_APPOINTMENT = "Schedule Appointment"
    REFER_TO_SPECIALIST = "Refer to Specialist"
    MEDICATION_REVIEW = "Medication Review"


class LabMeasurement(BaseModel):
    """A single (kind, value, unit) lab reading"""
    model_config = ConfigDict(frozen=True)

    kind: LabTestKind
    value: float
    unit: str = Field(default="", validate_default=True)

    @field_validator("unit")
    @classmethod
    def default_unit(cls, v, info):
        if v:
            return v.strip()
        kind = info.data.get("kind")
        return kind.unit if kind else v


def format_number(value) -> str:
    """Plain decimal text for a number, without exponent or trailing zeros"""
    text = format(Decimal(str(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


class AlertThreshold(BaseModel):
    model_config = ConfigDict(frozen=True)

    direction: ThresholdDirection
    value: str
    unit: str = ""

    @field_validator("value", mode="before")
    @classmethod
    def coerce_number(cls, v):
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return format_number(v)
        return v.strip() if isinstance(v, str) else v

    @field_validator("unit")
    @classmethod
    def strip_unit(cls, v):
        return v.strip()


class WorkflowRequirement(BaseModel):
    model_config = ConfigDict(frozen=True)

    test_name: str
    frequency: Frequency
    alert_threshold: AlertThreshold
    action: WorkflowAction = WorkflowAction.ALERT_ONLY

    @field_validator("test_name")
    @classmethod
    def validate_test_name(cls, v):
        if not v or v.strip() == "":
            raise ValueError("Test name cannot be empty")
        return v.strip()


class WorkflowValidationError(BaseModel):
    """One violation found in a workflow's requirement list"""
    model_config = ConfigDict(frozen=True)

    index: Optional[int] = None  # None for workflow-level problems
    field: str
    message: str


class Alert(BaseModel):
    """A lab value that crossed a workflow requirement's threshold"""
    model_config = ConfigDict(frozen=True)

    test_name: str
    value: str
    threshold: str
    action: WorkflowAction
    message: str
