"""
Simulation scheduler

Owns the live patient snapshots and advances all of them once per period.
"""
import asyncio
import random
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

import structlog

from .config import Condition
from .models import PatientSnapshot, TelemetryEntry
from .risk_engine import RiskScorer, TelemetryWindow
from .simulator import ConditionStateMachine, VitalsGenerator

logger = structlog.get_logger(__name__)

Sink = Callable[[PatientSnapshot], object]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SimulationScheduler:
    """
    Periodic driver for the vitals engine.

    Every tick runs condition -> vitals -> risk for each tracked patient, hands
    a copy of the result to `sink` without waiting on it, and appends the
    focused patient's reading to the telemetry window. All mutation happens
    inside `tick`; readers get copies from `snapshot()` and `telemetry()`.
    """

    def __init__(
        self,
        patients: Iterable[PatientSnapshot] = (),
        sink: Optional[Sink] = None,
        rng: Optional[random.Random] = None,
        period_ms: int = 6000,
        window_capacity: int = 30,
        focused_id: Optional[str] = None,
        clock: Callable[[], str] = utc_now_iso,
        state_machine: Optional[ConditionStateMachine] = None,
        vitals: Optional[VitalsGenerator] = None,
        scorer: Optional[RiskScorer] = None,
    ):
        if period_ms <= 0:
            raise ValueError(f"period_ms must be positive, got {period_ms}")
        rng = rng or random.Random()
        self.state_machine = state_machine or ConditionStateMachine(rng)
        self.vitals = vitals or VitalsGenerator(rng)
        self.scorer = scorer or RiskScorer()
        self.sink = sink
        self.period_ms = period_ms
        self.clock = clock
        self.tick_count = 0

        self._patients: Dict[str, PatientSnapshot] = {}
        for p in patients:
            if p.id in self._patients:
                raise ValueError(f"Duplicate patient id {p.id}")
            self._patients[p.id] = replace(p)

        if focused_id is None and self._patients:
            focused_id = next(iter(self._patients))
        if focused_id is not None and focused_id not in self._patients:
            raise KeyError(focused_id)
        self._focused_id = focused_id
        self._window = TelemetryWindow(patient_id=focused_id, capacity=window_capacity)

        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def focused_id(self) -> Optional[str]:
        return self._focused_id

    @property
    def running(self) -> bool:
        return self._running

    def __len__(self):
        return len(self._patients)

    # ---- tick ----

    def tick(self) -> List[PatientSnapshot]:
        now = self.clock()
        updated: List[PatientSnapshot] = []

        for pid, p in self._patients.items():
            condition = self.state_machine.next(p)
            v = self.vitals.next(p, condition)
            p.risk = self.scorer.next(p.risk, v.bpm, v.stress)
            p.bpm, p.stress, p.spo2, p.temp = v.bpm, v.stress, v.spo2, v.temp
            p.condition = condition
            p.timestamp = now

            out = replace(p)
            updated.append(out)
            self._forward(out)

            if pid == self._focused_id:
                self._window = self._window.append(TelemetryEntry.from_snapshot(out))

        self.tick_count += 1
        return updated

    def _forward(self, patient: PatientSnapshot):
        if self.sink is None:
            return
        try:
            self.sink(patient)
        except Exception as e:
            logger.error("Snapshot hand-off failed", patient_id=patient.id, error=str(e))

    # ---- periodic loop ----

    async def start(self):
        if self._running:
            logger.warning("Scheduler already running")
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("Simulation scheduler started", period_ms=self.period_ms, patients=len(self))

    async def stop(self):
        if not self._running:
            return
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Simulation scheduler stopped", ticks=self.tick_count)

    async def _loop(self):
        while self._running:
            await asyncio.sleep(self.period_ms / 1000.0)
            if not self._running:
                break
            try:
                self.tick()
            except Exception as e:
                logger.error("Simulation tick failed", error=str(e), exc_info=True)

    # ---- patients and focus ----

    def add_patient(self, patient: PatientSnapshot) -> PatientSnapshot:
        if patient.id in self._patients:
            raise ValueError(f"Duplicate patient id {patient.id}")
        p = replace(patient, condition=Condition.STABLE)
        self._patients[p.id] = p
        if self._focused_id is None:
            self.focus(p.id)
        logger.info("Patient admitted", patient_id=p.id)
        return replace(p)

    def focus(self, patient_id: str):
        if patient_id not in self._patients:
            raise KeyError(patient_id)
        if patient_id != self._focused_id:
            self._focused_id = patient_id
            self._window = self._window.reset(patient_id)

    def get(self, patient_id: str) -> PatientSnapshot:
        return replace(self._patients[patient_id])

    def snapshot(self) -> List[PatientSnapshot]:
        return [replace(p) for p in self._patients.values()]

    def telemetry(self) -> TelemetryWindow:
        return self._window

    def search(self, term: str) -> List[PatientSnapshot]:
        term = (term or "").lower()
        return [
            replace(p) for p in self._patients.values()
            if term in p.name.lower() or term in p.id.lower()
        ]
