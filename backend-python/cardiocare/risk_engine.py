from dataclasses import dataclass, replace
from typing import Optional, Tuple

from .config import RISK_CRITICAL, RISK_ELEVATED, RISK_SMOOTHING, Condition
from .models import TelemetryEntry


def _clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


def baseline_risk(bpm: float, stress: float) -> float:
    return stress / 200 + max(0, bpm - 80) / 100


class RiskScorer:
    """
    Exponentially smoothed risk in [0, 1].

    The score drifts toward the vitals-derived baseline instead of jumping to it,
    so a condition change never shows up as a spike.
    """

    def __init__(self, smoothing: float = RISK_SMOOTHING):
        if not 0.0 < smoothing <= 1.0:
            raise ValueError(f"smoothing must be in (0, 1], got {smoothing}")
        self.smoothing = smoothing

    def next(self, previous_risk: float, bpm: float, stress: float) -> float:
        a = self.smoothing
        return _clamp01(previous_risk * (1 - a) + baseline_risk(bpm, stress) * a)


def condition_for_risk(risk: float) -> Condition:
    if risk > RISK_CRITICAL:
        return Condition.CRITICAL
    if risk > RISK_ELEVATED:
        return Condition.ELEVATED
    return Condition.STABLE


@dataclass(frozen=True)
class TelemetryWindow:
    """Last `capacity` telemetry entries of one patient, oldest first."""

    patient_id: Optional[str] = None
    capacity: int = 30
    entries: Tuple[TelemetryEntry, ...] = ()

    def __post_init__(self):
        if self.capacity < 1:
            raise ValueError(f"capacity must be positive, got {self.capacity}")

    def __len__(self):
        return len(self.entries)

    def append(self, entry: TelemetryEntry) -> "TelemetryWindow":
        if self.patient_id is not None and entry.patient_id != self.patient_id:
            raise ValueError(
                f"window holds {self.patient_id}, got entry for {entry.patient_id}"
            )
        entries = (self.entries + (entry,))[-self.capacity:]
        return replace(self, patient_id=entry.patient_id, entries=entries)

    def reset(self, patient_id: Optional[str]) -> "TelemetryWindow":
        return TelemetryWindow(patient_id=patient_id, capacity=self.capacity)

    @property
    def latest(self) -> Optional[TelemetryEntry]:
        return self.entries[-1] if self.entries else None
