# normalize/transformer.py
from typing import Dict, Optional

from models.records import LabResult, LabTest


def normalize_result(result: LabResult, lab_test: Optional[LabTest] = None) -> Dict:
    """
    Convert a stored lab result into the JSON shape returned by the API.
    """
    return {
        "id": result.id,
        "patient": {"id": result.patient_id},
        "doctor": {"id": result.doctor_id},
        "test": {
            "id": result.lab_test_id,
            "name": lab_test.test_name if lab_test else None,
        },
        "result": {
            "value": result.result_value,
            "unit": lab_test.unit if lab_test else None,
        },
        "resultDate": result.result_date.isoformat(),
    }
