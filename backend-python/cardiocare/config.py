import os
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple


class Condition(str, Enum):
    STABLE = "Stable"
    ELEVATED = "Elevated"
    RECOVERING = "Recovering"
    CRITICAL = "Critical"


@dataclass(frozen=True)
class Drift:
    # delta = (u - offset) * scale, u uniform in [0, 1)
    offset: float
    scale: float

    def step(self, u: float) -> float:
        return (u - self.offset) * self.scale


@dataclass(frozen=True)
class ConditionProfile:
    bpm_range: Tuple[float, Optional[float]]
    stress_range: Tuple[float, Optional[float]]
    bpm_drift: Drift
    stress_drift: Drift


CONDITION_PROFILES: Dict[Condition, ConditionProfile] = {
    Condition.STABLE: ConditionProfile(
        bpm_range=(75, 90), stress_range=(10, 40),
        bpm_drift=Drift(0.5, 4), stress_drift=Drift(0.5, 6),
    ),
    Condition.ELEVATED: ConditionProfile(
        bpm_range=(100, 120), stress_range=(40, 70),
        bpm_drift=Drift(0.4, 5), stress_drift=Drift(0.4, 8),
    ),
    # no upper bound: recovery only ever drifts down
    Condition.RECOVERING: ConditionProfile(
        bpm_range=(80, None), stress_range=(20, None),
        bpm_drift=Drift(1.0, 3), stress_drift=Drift(1.0, 4),
    ),
    Condition.CRITICAL: ConditionProfile(
        bpm_range=(120, 160), stress_range=(70, 100),
        bpm_drift=Drift(0.3, 6), stress_drift=Drift(0.3, 10),
    ),
}

SPO2_RANGE = (92, 99)
SPO2_DRIFT = Drift(0.5, 1.0)
TEMP_DRIFT = Drift(0.5, 0.1)


@dataclass(frozen=True)
class Transitions:
    privileged_ids: Tuple[str, ...] = ("p001", "p002")
    privileged_escalate: float = 0.02
    stable_to_elevated: float = 0.03
    elevated_to_critical: float = 0.05
    to_recovering: float = 0.15
    recovered_bpm: float = 95


TRANSITIONS = Transitions()

# Seeding thresholds for patients loaded from an existing store
RISK_CRITICAL = 0.7
RISK_ELEVATED = 0.4
RISK_SMOOTHING = 0.1


def _int_env(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return int(raw)


@dataclass(frozen=True)
class Settings:
    db_url: str
    tick_ms: int
    window_capacity: int
    seed: Optional[int]
    explain_url: str
    explain_timeout: float
    log_level: str
    ws_origin: str

    @property
    def tick_seconds(self) -> float:
        return self.tick_ms / 1000.0


def load_settings() -> Settings:
    return Settings(
        db_url=os.getenv("CARDIOCARE_DB_URL", "sqlite:///cardiocare.db"),
        tick_ms=_int_env("CARDIOCARE_TICK_MS", 6000),
        window_capacity=_int_env("CARDIOCARE_WINDOW_CAPACITY", 30),
        seed=_int_env("CARDIOCARE_SEED", None),
        explain_url=os.getenv("CARDIOCARE_EXPLAIN_URL", "http://localhost:4567/explain"),
        explain_timeout=float(os.getenv("CARDIOCARE_EXPLAIN_TIMEOUT", "5.0")),
        log_level=os.getenv("CARDIOCARE_LOG_LEVEL", "INFO"),
        ws_origin=os.getenv("WS_ORIGIN", "*"),
    )
