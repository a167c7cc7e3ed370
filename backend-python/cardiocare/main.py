import asyncio
import random
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError

from .config import Settings, load_settings
from .explain import ExplainContext, ExplainRequest, Explanation, ask_assistant
from .log import configure_logging
from .persistence import PersistenceWorker
from .scheduler import SimulationScheduler
from .seed import bootstrap, new_patient
from .storage import PatientStore, init_db

logger = structlog.get_logger(__name__)


class PatientCreate(BaseModel):
    name: str
    age: Optional[int] = None
    gender: Optional[str] = None
    ward: Optional[str] = None
    admission_date: Optional[str] = None
    family_member_email: Optional[str] = None


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        store = PatientStore(init_db(settings.db_url))
        patients = await asyncio.to_thread(bootstrap, store)

        worker = PersistenceWorker(store)
        await worker.start()
        rng = random.Random(settings.seed)
        scheduler = SimulationScheduler(
            patients,
            sink=worker.submit,
            rng=rng,
            period_ms=settings.tick_ms,
            window_capacity=settings.window_capacity,
        )
        app.state.store = store
        app.state.worker = worker
        app.state.scheduler = scheduler
        await scheduler.start()
        logger.info("Telemetry service ready", patients=len(scheduler), db_url=settings.db_url)
        try:
            yield
        finally:
            await scheduler.stop()
            await worker.close()

    app = FastAPI(title="CardioCare Telemetry API", version="1.0.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.ws_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _scheduler(request: Request) -> SimulationScheduler:
        return request.app.state.scheduler

    @app.get("/health")
    async def health(request: Request):
        s = _scheduler(request)
        return {"ok": True, "running": s.running, "patients": len(s), "ticks": s.tick_count}

    @app.get("/patients")
    async def get_patients(request: Request, q: str = Query("")):
        return [p.to_dict() for p in _scheduler(request).search(q)]

    @app.get("/patients/{patient_id}")
    async def get_patient(patient_id: str, request: Request):
        try:
            return _scheduler(request).get(patient_id).to_dict()
        except KeyError:
            raise HTTPException(status_code=404, detail="Unknown patient_id")

    @app.post("/patients", status_code=201)
    async def add_patient(body: PatientCreate, request: Request):
        store: PatientStore = request.app.state.store
        patient_id = await asyncio.to_thread(store.next_patient_id)
        patient = new_patient(patient_id, **body.model_dump())
        try:
            await asyncio.to_thread(store.add_patient, patient)
            added = _scheduler(request).add_patient(patient)
        except (IntegrityError, ValueError) as e:
            raise HTTPException(status_code=409, detail=str(e))
        return added.to_dict()

    @app.get("/telemetry")
    async def get_telemetry(request: Request):
        window = _scheduler(request).telemetry()
        return {
            "patient_id": window.patient_id,
            "capacity": window.capacity,
            "entries": [e.to_dict() for e in window.entries],
        }

    @app.post("/focus/{patient_id}")
    async def set_focus(patient_id: str, request: Request):
        s = _scheduler(request)
        try:
            s.focus(patient_id)
        except KeyError:
            raise HTTPException(status_code=404, detail="Unknown patient_id")
        return {"focused_id": s.focused_id}

    @app.post("/explain", response_model=Explanation, response_model_exclude_none=True)
    async def explain(body: ExplainRequest, request: Request):
        s = _scheduler(request)
        ctx = ExplainContext(question=body.question)
        if body.patient_id is not None:
            try:
                ctx.patient = s.get(body.patient_id).to_dict()
            except KeyError:
                raise HTTPException(status_code=404, detail="Unknown patient_id")
            window = s.telemetry()
            if window.patient_id == body.patient_id:
                ctx.telemetry = [e.to_dict() for e in window.entries]
        return await asyncio.to_thread(
            ask_assistant, ctx, settings.explain_url, settings.explain_timeout
        )

    @app.websocket("/ws")
    async def ws_endpoint(ws: WebSocket):
        await ws.accept()
        s: SimulationScheduler = ws.app.state.scheduler
        try:
            while True:
                await ws.send_json({
                    "focused_id": s.focused_id,
                    "patients": [p.to_dict() for p in s.snapshot()],
                })
                try:
                    # doubles as the wait between pushes, and notices a closed socket
                    await asyncio.wait_for(ws.receive_text(), timeout=s.period_ms / 1000.0)
                except asyncio.TimeoutError:
                    pass
        except WebSocketDisconnect:
            return

    return app


app = create_app()
