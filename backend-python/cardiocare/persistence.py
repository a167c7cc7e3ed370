import asyncio
from typing import Any, Dict, Optional, Tuple

import structlog

from .models import PatientSnapshot
from .storage import PatientStore

logger = structlog.get_logger(__name__)


class PersistenceWorker:
    """
    Fire-and-forget writer between the tick loop and the patient store.

    `submit` only enqueues. A single background task drains the queue and runs
    each blocking upsert in a thread. Failures are logged and dropped, there is
    no retry.
    """

    def __init__(self, store: PatientStore):
        self.store = store
        self.written = 0
        self.failed = 0
        self._queue: Optional[asyncio.Queue] = None
        self._task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self):
        if self.running:
            logger.warning("Persistence worker already running")
            return
        self._queue = asyncio.Queue()
        self._closed = False
        self._task = asyncio.create_task(self._run())
        logger.info("Persistence worker started")

    def submit(self, patient: PatientSnapshot) -> bool:
        if self._queue is None or self._closed:
            logger.warning("Persistence worker not accepting writes", patient_id=patient.id)
            return False
        item: Tuple[str, Dict[str, Any]] = (patient.id, patient.persisted_fields())
        self._queue.put_nowait(item)
        return True

    async def _run(self):
        while True:
            patient_id, fields = await self._queue.get()
            try:
                await asyncio.to_thread(self.store.upsert, patient_id, fields)
                self.written += 1
            except Exception as e:
                self.failed += 1
                logger.error("Patient upsert failed", patient_id=patient_id, error=str(e))
            finally:
                self._queue.task_done()

    async def close(self):
        """Stop accepting writes, let queued ones finish, then stop the task."""
        if self._task is None:
            return
        self._closed = True
        await self._queue.join()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Persistence worker stopped", written=self.written, failed=self.failed)
