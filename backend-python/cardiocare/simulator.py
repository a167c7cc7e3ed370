import math
import random
from typing import Dict, Optional, Tuple

from .config import (
    CONDITION_PROFILES,
    SPO2_DRIFT,
    SPO2_RANGE,
    TEMP_DRIFT,
    TRANSITIONS,
    Condition,
    ConditionProfile,
    Transitions,
)
from .models import PatientSnapshot, Vitals


class VitalsRangeError(AssertionError):
    """A clamped vital landed outside its range. Always a bug, never retried."""


def _clamp(x, lo, hi):
    if hi is None:
        return max(lo, x)
    return max(lo, min(hi, x))


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _check(name: str, value: float, bounds: Tuple[float, Optional[float]]):
    lo, hi = bounds
    if not math.isfinite(value) or value < lo or (hi is not None and value > hi):
        raise VitalsRangeError(f"{name}={value} outside [{lo}, {hi if hi is not None else 'inf'}]")


class ConditionStateMachine:
    """
    Picks the clinical condition a patient is in for the next tick.

    Rules run in precedence order and the first one that fires wins.
    Every probabilistic check that gets evaluated takes its own draw from `rng`.
    """

    def __init__(self, rng: Optional[random.Random] = None, transitions: Transitions = TRANSITIONS):
        self.rng = rng or random.Random()
        self.t = transitions

    def next(self, patient: PatientSnapshot) -> Condition:
        t = self.t
        condition = patient.condition

        if patient.id in t.privileged_ids:
            if self.rng.random() < t.privileged_escalate:
                return Condition.ELEVATED
            return Condition.STABLE

        if condition == Condition.STABLE and self.rng.random() < t.stable_to_elevated:
            return Condition.ELEVATED
        if condition == Condition.ELEVATED and self.rng.random() < t.elevated_to_critical:
            return Condition.CRITICAL
        if condition in (Condition.CRITICAL, Condition.ELEVATED) and self.rng.random() < t.to_recovering:
            return Condition.RECOVERING
        if condition == Condition.RECOVERING and patient.bpm < t.recovered_bpm:
            return Condition.STABLE
        return condition


class VitalsGenerator:
    def __init__(
        self,
        rng: Optional[random.Random] = None,
        profiles: Dict[Condition, ConditionProfile] = CONDITION_PROFILES,
    ):
        self.rng = rng or random.Random()
        self.profiles = profiles

    def next(self, patient: PatientSnapshot, condition: Condition) -> Vitals:
        prof = self.profiles[condition]
        rng = self.rng

        bpm = _clamp(patient.bpm + prof.bpm_drift.step(rng.random()), *prof.bpm_range)
        stress = _clamp(patient.stress + prof.stress_drift.step(rng.random()), *prof.stress_range)

        # condition-independent walk
        spo2 = _clamp(patient.spo2 + SPO2_DRIFT.step(rng.random()), *SPO2_RANGE)
        temp = patient.temp + TEMP_DRIFT.step(rng.random())

        _check("bpm", bpm, prof.bpm_range)
        _check("stress", stress, prof.stress_range)
        _check("spo2", spo2, SPO2_RANGE)
        return Vitals(
            bpm=round_half_up(bpm),
            stress=round_half_up(stress),
            spo2=round_half_up(spo2),
            temp=round(temp, 1),
        )
