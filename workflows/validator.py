# workflows/validator.py
from typing import Any, List, Mapping, Sequence

from models.ckd import (
    Frequency,
    ThresholdDirection,
    WorkflowAction,
    WorkflowValidationError,
    format_number,
)
from workflows.thresholds import is_limit

FREQUENCIES = [f.value for f in Frequency]
DIRECTIONS = [d.value for d in ThresholdDirection]
ACTIONS = [a.value for a in WorkflowAction]


class WorkflowValidationFailed(ValueError):
    """Raised when a workflow with violations is about to be persisted"""

    def __init__(self, errors: List[WorkflowValidationError]):
        self.errors = list(errors)
        super().__init__("; ".join(_describe(e) for e in self.errors))


def _describe(error: WorkflowValidationError) -> str:
    if error.index is None:
        return error.message
    return f"requirement {error.index + 1}: {error.message}"


def _get(obj: Any, name: str, default=None):
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _enum_value(value):
    # enum members compare by their string value
    return getattr(value, "value", value)


def _is_limit(value) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        value = format_number(value)
    if not isinstance(value, str):
        return False
    return is_limit(value.strip())


def validate_requirement(index: int, requirement: Any) -> List[WorkflowValidationError]:
    errors = []

    def err(field, message):
        errors.append(WorkflowValidationError(index=index, field=field, message=message))

    test_name = _get(requirement, "test_name")
    if not isinstance(test_name, str) or not test_name.strip():
        err("test_name", "Test name is required")

    frequency = _enum_value(_get(requirement, "frequency"))
    if frequency not in FREQUENCIES:
        err("frequency", f"Invalid frequency {frequency!r}; expected one of {FREQUENCIES}")

    threshold = _get(requirement, "alert_threshold")
    if threshold is None:
        err("alert_threshold", "Alert threshold is required")
    else:
        direction = _enum_value(_get(threshold, "direction"))
        if direction not in DIRECTIONS:
            err("alert_threshold.direction",
                f"Invalid threshold direction {direction!r}; expected one of {DIRECTIONS}")
        value = _get(threshold, "value")
        if not _is_limit(value):
            err("alert_threshold.value",
                f"Threshold value must be a number or a pair like 140/90, got {value!r}")

    action = _enum_value(_get(requirement, "action"))
    if action not in ACTIONS:
        err("action", f"Invalid action {action!r}; expected one of {ACTIONS}")

    return errors


def validate_workflow(requirements: Sequence[Any]) -> List[WorkflowValidationError]:
    """
    Check every requirement of a workflow and return all violations.
    An empty list means the workflow can be saved.
    """
    if not requirements:
        return [WorkflowValidationError(
            field="requirements",
            message="At least one requirement is required",
        )]

    errors = []
    for i, requirement in enumerate(requirements):
        errors.extend(validate_requirement(i, requirement))
    return errors


def ensure_valid_workflow(requirements: Sequence[Any]) -> None:
    errors = validate_workflow(requirements)
    if errors:
        raise WorkflowValidationFailed(errors)
