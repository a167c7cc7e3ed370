import pytest
import requests
from fastapi.testclient import TestClient

from cardiocare import explain
from cardiocare.config import Settings
from cardiocare.explain import FALLBACK_EXPLANATION
from cardiocare.main import create_app


@pytest.fixture
def client(tmp_path):
    settings = Settings(
        db_url=f"sqlite:///{tmp_path / 'api.db'}",
        tick_ms=60_000,  # ticks are driven by the tests
        window_capacity=30,
        seed=7,
        explain_url="http://explain.local/explain",
        explain_timeout=1.0,
        log_level="WARNING",
        ws_origin="*",
    )
    with TestClient(create_app(settings)) as c:
        yield c


def tick(client):
    # run on the app's event loop, the scheduler's only writer
    return client.portal.call(client.app.state.scheduler.tick)


def test_health(client):
    body = client.get("/health").json()
    assert body["ok"] is True
    assert body["running"] is True
    assert body["patients"] == 6


def test_list_and_search_patients(client):
    patients = client.get("/patients").json()
    assert [p["id"] for p in patients] == ["p001", "p002", "p003", "p004", "p005", "p006"]
    assert all(p["condition"] == "Stable" for p in patients)

    found = client.get("/patients", params={"q": "amelia"}).json()
    assert [p["id"] for p in found] == ["p001"]


def test_get_patient(client):
    assert client.get("/patients/p003").json()["name"] == "Lena Fischer"
    assert client.get("/patients/nope").status_code == 404


def test_admit_patient(client):
    r = client.post("/patients", json={"name": "Noah Green", "age": 58, "ward": "ICU"})
    assert r.status_code == 201
    body = r.json()
    assert body["id"] == "p007"
    assert body["condition"] == "Stable"
    assert len(client.get("/patients").json()) == 7


def test_focus_and_telemetry(client):
    r = client.post("/focus/p003")
    assert r.json() == {"focused_id": "p003"}
    assert client.get("/telemetry").json() == {"patient_id": "p003", "capacity": 30, "entries": []}

    tick(client)
    tick(client)
    entries = client.get("/telemetry").json()["entries"]
    assert len(entries) == 2
    assert {e["patient_id"] for e in entries} == {"p003"}
    assert entries[-1]["bpm"] == client.get("/patients/p003").json()["bpm"]

    assert client.post("/focus/nope").status_code == 404


def test_ticks_reach_the_store(client):
    updated = tick(client)
    client.portal.call(client.app.state.worker.close)
    stored = {p.id: p for p in client.app.state.store.list_patients()}
    for p in updated:
        assert stored[p.id].bpm == p.bpm
        assert stored[p.id].timestamp == p.timestamp


def test_explain_degrades_when_service_down(client, monkeypatch):
    def fake_post(*args, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(explain.requests, "post", fake_post)
    r = client.post("/explain", json={"question": "Status?", "patient_id": "p001"})
    assert r.status_code == 200
    assert r.json() == {"explanation": FALLBACK_EXPLANATION}


def test_explain_sends_focused_telemetry(client, monkeypatch):
    sent = {}

    class Resp:
        def raise_for_status(self):
            pass

        def json(self):
            return {"explanation": "Looks steady.", "confidence": 0.9}

    def fake_post(url, json, timeout):
        sent.update(json)
        return Resp()

    monkeypatch.setattr(explain.requests, "post", fake_post)
    client.post("/focus/p002")
    tick(client)
    r = client.post("/explain", json={"question": "Status?", "patient_id": "p002"})

    assert r.json() == {"explanation": "Looks steady.", "confidence": 0.9}
    assert sent["patient"]["id"] == "p002"
    assert len(sent["telemetry"]) == 1
    assert client.post("/explain", json={"question": "?", "patient_id": "nope"}).status_code == 404


def test_websocket_pushes_snapshot(client):
    with client.websocket_connect("/ws") as ws:
        data = ws.receive_json()
    assert data["focused_id"] == "p001"
    assert len(data["patients"]) == 6
