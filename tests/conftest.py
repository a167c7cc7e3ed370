import pytest

from cardiocare.config import Condition
from cardiocare.models import PatientSnapshot, TelemetryEntry
from cardiocare.storage import PatientStore, init_db


class ScriptedRandom:
    """Stand-in for random.Random that hands out a fixed list of draws."""

    def __init__(self, *values):
        self.values = list(values)

    def random(self):
        if not self.values:
            raise AssertionError("unexpected random draw")
        return self.values.pop(0)


def patient(pid="p003", condition=Condition.STABLE, bpm=80, stress=20, spo2=97, temp=36.8, risk=0.1, name=""):
    return PatientSnapshot(
        id=pid,
        device_id=f"dev-{pid}",
        bpm=bpm,
        stress=stress,
        spo2=spo2,
        temp=temp,
        risk=risk,
        condition=condition,
        name=name or f"Patient {pid}",
    )


def entry(i, patient_id="p003"):
    ts = f"2024-05-01T00:00:{i:02d}+00:00"
    return TelemetryEntry(
        id=ts, patient_id=patient_id, device_id=f"dev-{patient_id}",
        bpm=80, stress=20, spo2=97, temp=36.8, risk=0.1,
        condition=Condition.STABLE, timestamp=ts,
    )


@pytest.fixture
def store(tmp_path):
    return PatientStore(init_db(f"sqlite:///{tmp_path / 'cardiocare.db'}"))
