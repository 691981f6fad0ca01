# workflows/thresholds.py
import logging
import re
from typing import Iterable, List, Mapping, Sequence, Tuple, Union

from models.ckd import Alert, AlertThreshold, ThresholdDirection, WorkflowRequirement

logger = logging.getLogger(__name__)

Reading = Union[float, int, Sequence[float]]

# non-negative decimal, optionally a systolic/diastolic pair like 140/90
LIMIT_PATTERN = r"[0-9]+(?:\.[0-9]+)?(?:/[0-9]+(?:\.[0-9]+)?)?"

_LIMIT_RE = re.compile(rf"^{LIMIT_PATTERN}$")
_THRESHOLD_RE = re.compile(rf"^\s*(Above|Below)\s+({LIMIT_PATTERN})(?:\s+(.*?))?\s*$", re.IGNORECASE)


def is_limit(text: str) -> bool:
    """Whether text is a threshold value that survives storage as-is"""
    return bool(_LIMIT_RE.match(text))


def format_threshold(threshold: AlertThreshold) -> str:
    """Stored form of a threshold, e.g. 'Below 30 mL/min'"""
    return " ".join(p for p in (threshold.direction.value, threshold.value, threshold.unit) if p)


def parse_threshold(text: str) -> AlertThreshold:
    match = _THRESHOLD_RE.match(text or "")
    if not match:
        raise ValueError(f"Malformed alert threshold: {text!r}")
    direction, value, unit = match.groups()
    threshold = AlertThreshold(direction=direction.capitalize(), value=value, unit=unit or "")
    threshold_limits(threshold)
    return threshold


def threshold_limits(threshold: AlertThreshold) -> Tuple[float, ...]:
    """Numeric limits of a threshold; '140/90' gives (140.0, 90.0)"""
    try:
        return tuple(float(part) for part in threshold.value.split("/"))
    except ValueError:
        raise ValueError(f"Threshold value is not numeric: {threshold.value!r}")


def threshold_breached(threshold: AlertThreshold, reading: Reading) -> bool:
    """
    Above means reading > limit, Below means reading < limit.
    A compound reading such as (systolic, diastolic) breaches when any
    component crosses its matching limit; a scalar reading is compared
    with the first limit only.
    """
    limits = threshold_limits(threshold)
    if isinstance(reading, (int, float)):
        values = (float(reading),)
    else:
        values = tuple(float(v) for v in reading)
    pairs = list(zip(values, limits))

    if threshold.direction == ThresholdDirection.ABOVE:
        return any(v > limit for v, limit in pairs)
    return any(v < limit for v, limit in pairs)


def _normalize_name(name: str) -> str:
    return " ".join(name.lower().split())


def _lookup(latest_values: Mapping[str, Reading], test_name: str):
    wanted = _normalize_name(test_name)
    for name, value in latest_values.items():
        have = _normalize_name(name)
        # a requirement may name a catalog test by its leading words
        if have == wanted or have.startswith(wanted + " "):
            return name, value
    return None, None


def _format_reading(reading: Reading) -> str:
    if isinstance(reading, (int, float)):
        return f"{reading:g}"
    return "/".join(f"{v:g}" for v in reading)


def evaluate_requirements(
    requirements: Iterable[WorkflowRequirement],
    latest_values: Mapping[str, Reading],
) -> List[Alert]:
    """
    Compare each requirement with the latest value of its test.
    Requirements without a matching value are skipped.
    """
    alerts = []
    for req in requirements:
        name, reading = _lookup(latest_values, req.test_name)
        if name is None:
            logger.info(f"No recent value for {req.test_name}, skipping")
            continue
        if not threshold_breached(req.alert_threshold, reading):
            continue

        text = format_threshold(req.alert_threshold)
        shown = _format_reading(reading)
        alerts.append(Alert(
            test_name=req.test_name,
            value=shown,
            threshold=text,
            action=req.action,
            message=f"{req.test_name} at {shown} is {text.lower()} ({req.action.value})",
        ))
        logger.info(f"Threshold breached: {req.test_name} {shown} ({text})")
    return alerts
