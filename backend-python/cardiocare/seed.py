from dataclasses import replace
from datetime import date
from typing import List, Optional

import structlog

from .config import Condition
from .models import PatientSnapshot
from .risk_engine import condition_for_risk
from .storage import PatientStore

logger = structlog.get_logger(__name__)


def new_patient(
    patient_id: str,
    name: str,
    age: Optional[int] = None,
    gender: Optional[str] = None,
    ward: Optional[str] = None,
    admission_date: Optional[str] = None,
    family_member_email: Optional[str] = None,
) -> PatientSnapshot:
    """Fresh admission with resting vitals, starting Stable."""
    return PatientSnapshot(
        id=patient_id,
        device_id=f"cc-{patient_id}",
        bpm=80,
        stress=20,
        spo2=98,
        temp=36.8,
        risk=0.1,
        condition=Condition.STABLE,
        name=name,
        age=age,
        gender=gender,
        ward=ward,
        admission_date=admission_date or date.today().isoformat(),
        family_member_email=family_member_email,
    )


SEED_PATIENTS: List[PatientSnapshot] = [
    PatientSnapshot(id="p001", device_id="cc-hr-1001", bpm=78, stress=22, spo2=98, temp=36.7, risk=0.12,
                    name="Amelia Hart", age=54, gender="Female", ward="Cardiology A", admission_date="2024-05-02"),
    PatientSnapshot(id="p002", device_id="cc-hr-1002", bpm=82, stress=28, spo2=97, temp=36.9, risk=0.18,
                    name="Rahul Mehta", age=61, gender="Male", ward="Cardiology A", admission_date="2024-05-03"),
    PatientSnapshot(id="p003", device_id="cc-hr-1003", bpm=88, stress=35, spo2=96, temp=37.1, risk=0.26,
                    name="Lena Fischer", age=47, gender="Female", ward="Cardiology B", admission_date="2024-05-04"),
    PatientSnapshot(id="p004", device_id="cc-hr-1004", bpm=84, stress=30, spo2=97, temp=36.8, risk=0.21,
                    name="Marcus Bell", age=72, gender="Male", ward="ICU", admission_date="2024-05-01"),
    PatientSnapshot(id="p005", device_id="cc-hr-1005", bpm=80, stress=25, spo2=98, temp=36.6, risk=0.15,
                    name="Sofia Alvarez", age=39, gender="Female", ward="Cardiology B", admission_date="2024-05-05"),
    PatientSnapshot(id="p006", device_id="cc-hr-1006", bpm=86, stress=33, spo2=96, temp=37.0, risk=0.24,
                    name="Kenji Watanabe", age=66, gender="Male", ward="ICU", admission_date="2024-05-02"),
]


def bootstrap(store: PatientStore) -> List[PatientSnapshot]:
    """
    Load the patients the scheduler should start from.

    An empty store is seeded and every patient starts Stable. Otherwise each
    stored patient's condition is derived from its persisted risk.
    """
    if store.is_empty():
        logger.info("No patients found, seeding store", count=len(SEED_PATIENTS))
        patients = [replace(p, condition=Condition.STABLE) for p in SEED_PATIENTS]
        store.add_patients(patients)
        return patients

    patients = store.list_patients()
    for p in patients:
        p.condition = condition_for_risk(p.risk)
    logger.info("Loaded patients from store", count=len(patients))
    return patients
