from typing import Any, Dict, List

from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from .models import Base, PatientRow, PatientSnapshot


def init_db(db_url: str = "sqlite:///cardiocare.db"):
    connect_args = {"check_same_thread": False} if db_url.startswith("sqlite") else {}
    engine = create_engine(db_url, connect_args=connect_args)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


class PatientStore:
    """Durable copies of patient records. Never the source of truth for a running tick."""

    def __init__(self, Session):
        self.Session = Session

    def is_empty(self) -> bool:
        with self.Session() as s:
            return s.execute(select(PatientRow.id).limit(1)).first() is None

    def list_patients(self) -> List[PatientSnapshot]:
        with self.Session() as s:
            rows = s.execute(select(PatientRow).order_by(PatientRow.id)).scalars().all()
            return [PatientSnapshot.from_row(r) for r in rows]

    def add_patient(self, patient: PatientSnapshot) -> None:
        with self.Session() as s:
            s.add(PatientRow(id=patient.id, **patient.persisted_fields()))
            s.commit()

    def add_patients(self, patients: List[PatientSnapshot]) -> None:
        with self.Session() as s:
            s.add_all([PatientRow(id=p.id, **p.persisted_fields()) for p in patients])
            s.commit()

    def upsert(self, patient_id: str, fields: Dict[str, Any]) -> None:
        if "condition" in fields:
            raise ValueError("condition is simulation state and is not persisted")
        with self.Session() as s:
            row = s.get(PatientRow, patient_id)
            if row is None:
                row = PatientRow(id=patient_id)
                s.add(row)
            for key, value in fields.items():
                setattr(row, key, value)
            s.commit()

    def next_patient_id(self) -> str:
        with self.Session() as s:
            ids = s.execute(select(PatientRow.id)).scalars().all()
        numbers = [int(i[1:]) for i in ids if i.startswith("p") and i[1:].isdigit()]
        return f"p{max(numbers, default=0) + 1:03d}"
