# demo_pipeline.py
import logging
import random
from datetime import date
from typing import Dict, List, Optional, Sequence

from models.ckd import CKDStage, LabMeasurement, LabTestKind, ProteinuriaLevel
from models.records import Doctor, LabResult, Patient
from repository import Repository, find_lab_test, seed_reference_data
from scoring.creatinine import estimate_creatinine
from scoring.errors import InsufficientData
from scoring.staging import classify_stage
from scoring.synthetic import (
    generate_diastolic_bp,
    generate_egfr,
    generate_proteinuria,
    generate_systolic_bp,
)

logger = logging.getLogger(__name__)

MEASUREMENT_KINDS = {
    "egfr": LabTestKind.EGFR,
    "creatinine": LabTestKind.CREATININE,
    "proteinuria": LabTestKind.PROTEINURIA_ACR,
    "blood_pressure": LabTestKind.SYSTOLIC_BP,
}

# selectable test key -> lab test catalog name
TEST_NAMES = {
    "egfr": "eGFR",
    "creatinine": "Serum Creatinine",
    "proteinuria": "Urine Albumin-to-Creatinine Ratio",
    "blood_pressure": "Blood Pressure",
}
DEFAULT_TESTS = tuple(TEST_NAMES)


def age_on(birth_date: date, today: date) -> int:
    had_birthday = (today.month, today.day) >= (birth_date.month, birth_date.day)
    return today.year - birth_date.year - (0 if had_birthday else 1)


def patient_stage(patient: Patient) -> CKDStage:
    """Declared stage, else the stage of the last eGFR on record"""
    if patient.ckd_stage:
        return CKDStage(patient.ckd_stage)
    if patient.last_egfr_value is not None:
        return classify_stage(patient.last_egfr_value)
    raise InsufficientData(f"Patient {patient.id} has no CKD stage or eGFR on record")


class LabResultGenerator:
    """
    Builds plausible lab results for a patient from their CKD stage
    and proteinuria category, for demo and seed data.
    """

    def __init__(self, repo: Repository, rng: Optional[random.Random] = None):
        self.repo = repo
        self.rng = rng if rng is not None else random.Random()

    def generate(
        self,
        patient: Patient,
        tests: Sequence[str] = DEFAULT_TESTS,
        doctor_id: Optional[int] = None,
        use_existing_values: bool = True,
        today: Optional[date] = None,
    ) -> Dict:
        unknown = [t for t in tests if t not in TEST_NAMES]
        if unknown:
            raise ValueError(f"Unknown tests requested: {unknown}")
        if not tests:
            raise ValueError("Select at least one test to generate")

        today = today or date.today()
        values: Dict[str, float] = {}
        skipped: List[str] = []
        diastolic = None

        egfr = None
        if "egfr" in tests or "creatinine" in tests:
            if use_existing_values and patient.last_egfr_value is not None:
                egfr = patient.last_egfr_value
            else:
                egfr = generate_egfr(patient_stage(patient), self.rng)

        if "egfr" in tests:
            values["egfr"] = egfr

        if "creatinine" in tests:
            age = age_on(patient.birth_date, today)
            creatinine = estimate_creatinine(egfr, age, patient.gender == "F")
            values["creatinine"] = round(creatinine, 2)

        if "proteinuria" in tests:
            if patient.proteinuria_level:
                if use_existing_values and patient.last_proteinuria_value is not None:
                    values["proteinuria"] = patient.last_proteinuria_value
                else:
                    values["proteinuria"] = generate_proteinuria(
                        ProteinuriaLevel(patient.proteinuria_level), self.rng)
            else:
                logger.warning(f"Patient {patient.id} has no proteinuria level, skipping ACR")
                skipped.append("proteinuria")

        if "blood_pressure" in tests:
            systolic = generate_systolic_bp(patient_stage(patient), self.rng)
            diastolic = generate_diastolic_bp(systolic, self.rng)
            # only systolic is stored as the result value
            values["blood_pressure"] = systolic

        results = []
        for key, value in values.items():
            lab_test = find_lab_test(self.repo, TEST_NAMES[key])
            if lab_test is None:
                logger.warning(f"Lab test '{TEST_NAMES[key]}' missing from catalog, skipping")
                skipped.append(key)
                continue
            results.append(LabResult(
                patient_id=patient.id,
                doctor_id=doctor_id,
                lab_test_id=lab_test.id,
                result_value=value,
                result_date=today,
            ))

        measurements = [LabMeasurement(kind=MEASUREMENT_KINDS[k], value=v) for k, v in values.items()]
        if diastolic is not None:
            measurements.append(LabMeasurement(kind=LabTestKind.DIASTOLIC_BP, value=diastolic))

        return {
            "patient_id": patient.id,
            "results": results,
            "measurements": measurements,
            "values": values,
            "diastolic_bp": diastolic,
            "skipped": skipped,
        }

    def generate_and_store(self, patient: Patient, **kwargs) -> Dict:
        """Generate, persist the results and refresh the patient's last values"""
        batch = self.generate(patient, **kwargs)
        batch["results"] = [self.repo.create(r) for r in batch["results"]]

        changes = {}
        if "egfr" in batch["values"]:
            changes["last_egfr_value"] = batch["values"]["egfr"]
        if "proteinuria" in batch["values"]:
            changes["last_proteinuria_value"] = batch["values"]["proteinuria"]
        if changes:
            self.repo.update(Patient, patient.id, **changes)

        logger.info(f"Stored {len(batch['results'])} generated lab results for patient {patient.id}")
        return batch


FIRST_NAMES = ["Jean", "Marie", "Fatou", "Ahmed", "Claire", "Luc", "Awa", "Paul", "Nadia", "Omar"]
LAST_NAMES = ["Dupont", "Martin", "Coulibaly", "Benali", "Durand", "Diallo", "Moreau", "Petit"]


def seed_demo_cohort(
    repo: Repository,
    size: int = 12,
    rng: Optional[random.Random] = None,
    today: Optional[date] = None,
) -> List[Patient]:
    """
    Create a doctor and `size` patients spread across every CKD stage,
    each with a generated set of lab results.
    """
    if size < 1:
        raise ValueError("Cohort size must be at least 1")
    rng = rng if rng is not None else random.Random()
    today = today or date.today()
    seed_reference_data(repo)

    doctor = repo.create(Doctor(
        first_name="Martin",
        last_name="Dubois",
        email="dr.martin@example.com",
        specialty="Néphrologie",
        hospital="Hôpital Universitaire",
    ))
    generator = LabResultGenerator(repo, rng)
    stages = list(CKDStage)
    levels = list(ProteinuriaLevel)

    patients = []
    for i in range(size):
        first, last = rng.choice(FIRST_NAMES), rng.choice(LAST_NAMES)
        age = rng.randint(30, 85)
        patient = repo.create(Patient(
            first_name=first,
            last_name=last,
            email=f"{first.lower()}.{last.lower()}{i + 1}@example.com",
            birth_date=date(today.year - age, rng.randint(1, 12), rng.randint(1, 28)),
            gender=rng.choice(["M", "F"]),
            ckd_stage=stages[i % len(stages)].value,
            proteinuria_level=levels[i % len(levels)].value,
            doctor_id=doctor.id,
        ))
        generator.generate_and_store(patient, doctor_id=doctor.id, use_existing_values=False, today=today)
        patients.append(repo.get(Patient, patient.id))

    logger.info(f"Seeded demo cohort of {len(patients)} patients")
    return patients
