from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional

from sqlalchemy import Column, Float, Integer, String
from sqlalchemy.orm import declarative_base

from .config import Condition

Base = declarative_base()


class PatientRow(Base):
    __tablename__ = "patients"
    id = Column(String, primary_key=True, index=True)
    device_id = Column(String, nullable=False)
    name = Column(String, nullable=False)
    age = Column(Integer, nullable=True)
    gender = Column(String, nullable=True)
    ward = Column(String, nullable=True)
    admission_date = Column(String, nullable=True)
    family_member_email = Column(String, nullable=True)

    # latest vitals, overwritten every tick
    bpm = Column(Integer, nullable=False)
    stress = Column(Integer, nullable=False)
    spo2 = Column(Integer, nullable=False)
    temp = Column(Float, nullable=False)
    risk = Column(Float, nullable=False)
    timestamp = Column(String, nullable=True)  # ISO-8601


@dataclass
class Vitals:
    bpm: int
    stress: int
    spo2: int
    temp: float


@dataclass
class PatientSnapshot:
    id: str
    device_id: str
    bpm: int
    stress: int
    spo2: int
    temp: float
    risk: float
    condition: Condition = Condition.STABLE
    timestamp: Optional[str] = None
    name: str = ""
    age: Optional[int] = None
    gender: Optional[str] = None
    ward: Optional[str] = None
    admission_date: Optional[str] = None
    family_member_email: Optional[str] = None

    def persisted_fields(self) -> Dict[str, Any]:
        """Everything the store keeps; condition stays inside the simulation."""
        out = asdict(self)
        out.pop("id")
        out.pop("condition")
        return out

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["condition"] = self.condition.value
        return out

    @classmethod
    def from_row(cls, row: PatientRow, condition: Condition = Condition.STABLE) -> "PatientSnapshot":
        names = {f.name for f in fields(cls)} - {"condition"}
        return cls(condition=condition, **{n: getattr(row, n) for n in names})


@dataclass(frozen=True)
class TelemetryEntry:
    id: str  # source timestamp
    patient_id: str
    device_id: str
    bpm: int
    stress: int
    spo2: int
    temp: float
    risk: float
    condition: Condition
    timestamp: str

    @classmethod
    def from_snapshot(cls, p: PatientSnapshot) -> "TelemetryEntry":
        return cls(
            id=p.timestamp,
            patient_id=p.id,
            device_id=p.device_id,
            bpm=p.bpm,
            stress=p.stress,
            spo2=p.spo2,
            temp=p.temp,
            risk=p.risk,
            condition=p.condition,
            timestamp=p.timestamp,
        )

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["condition"] = self.condition.value
        return out
