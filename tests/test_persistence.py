import asyncio
import threading

import pytest

from cardiocare.persistence import PersistenceWorker
from conftest import patient


class FakeStore:
    def __init__(self, fail_ids=()):
        self.fail_ids = set(fail_ids)
        self.calls = []

    def upsert(self, patient_id, fields):
        if patient_id in self.fail_ids:
            raise RuntimeError("write rejected")
        self.calls.append((patient_id, fields))


class BlockingStore(FakeStore):
    def __init__(self):
        super().__init__()
        self.release = threading.Event()

    def upsert(self, patient_id, fields):
        self.release.wait(timeout=5)
        super().upsert(patient_id, fields)


@pytest.mark.asyncio
async def test_submit_before_start_is_dropped():
    w = PersistenceWorker(FakeStore())
    assert w.submit(patient()) is False


@pytest.mark.asyncio
async def test_writes_drain_in_order_without_condition():
    store = FakeStore()
    w = PersistenceWorker(store)
    await w.start()
    for pid in ("p003", "p004", "p005"):
        assert w.submit(patient(pid)) is True
    await w.close()

    assert [c[0] for c in store.calls] == ["p003", "p004", "p005"]
    assert all("condition" not in fields for _, fields in store.calls)
    assert w.written == 3
    assert w.failed == 0


@pytest.mark.asyncio
async def test_failed_write_is_counted_and_skipped():
    store = FakeStore(fail_ids={"p004"})
    w = PersistenceWorker(store)
    await w.start()
    w.submit(patient("p003"))
    w.submit(patient("p004"))
    w.submit(patient("p005"))
    await w.close()

    assert [c[0] for c in store.calls] == ["p003", "p005"]
    assert w.failed == 1
    assert w.written == 2


@pytest.mark.asyncio
async def test_submit_returns_while_write_is_still_blocked():
    store = BlockingStore()
    w = PersistenceWorker(store)
    await w.start()

    assert w.submit(patient("p003")) is True
    assert w.submit(patient("p004")) is True
    await asyncio.sleep(0.05)
    assert store.calls == []

    store.release.set()
    await w.close()
    assert [c[0] for c in store.calls] == ["p003", "p004"]


@pytest.mark.asyncio
async def test_submit_after_close_is_dropped():
    w = PersistenceWorker(FakeStore())
    await w.start()
    await w.close()
    assert not w.running
    assert w.submit(patient()) is False


@pytest.mark.asyncio
async def test_close_without_start():
    w = PersistenceWorker(FakeStore())
    await w.close()
    assert not w.running
