import pytest
from fastapi.testclient import TestClient

from axis_kernel.actions.capabilities import VitalStats
from axis_kernel.orchestrator import api
from axis_kernel.storage import InteractionTurn

from conftest import FakeFetcher, make_registry


@pytest.fixture
def orchestrator(build_orchestrator):
    llama = FakeFetcher("llama", ['{"target": "gpt", "task_type": "casual_chat"}'])
    gpt = FakeFetcher("gpt", ["Hi there!"])
    return build_orchestrator(make_registry(llama=llama, gpt=gpt))


@pytest.fixture
def client(orchestrator):
    api.app.dependency_overrides[api.get_orchestrator] = lambda: orchestrator
    yield TestClient(api.app)
    api.app.dependency_overrides.clear()


def test_ask_endpoint(client, orchestrator):
    resp = client.post("/ask", json={"text": "hello", "session_id": "web"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["answer"] == "Hi there!"
    assert data["provider_used"] == "llama→gpt"
    assert data["task_type"] == "casual_chat"
    assert data["session_id"] == "web"
    assert len(orchestrator.assembler.history.for_session("web")) == 1


def test_ask_rejects_empty_text(client):
    resp = client.post("/ask", json={"text": ""})
    assert resp.status_code == 422


def test_history_and_delete(client, orchestrator):
    history = orchestrator.assembler.history
    history.append(InteractionTurn(session_id="a", input_text="one", output_text="1"))
    history.append(InteractionTurn(session_id="b", input_text="two", output_text="2"))

    assert len(client.get("/history").json()) == 2
    only_a = client.get("/history", params={"session_id": "a"}).json()
    assert [t["input_text"] for t in only_a] == ["one"]

    resp = client.delete("/history/a")
    assert resp.json() == {"session_id": "a", "deleted": 1}
    assert client.get("/history", params={"session_id": "a"}).json() == []


def test_memory_search_endpoint(client, orchestrator):
    orchestrator.assembler.index.record("s1", "tokyo weather", "sunny")
    orchestrator.assembler.index.record("s1", "osaka food", "takoyaki")
    resp = client.get("/memory/search", params={"q": "tokyo", "k": 3})
    assert resp.status_code == 200
    hits = resp.json()
    assert [h["input"] for h in hits] == ["tokyo weather"]
    assert hits[0]["kind"] == "SHORT_TERM"


def test_memory_search_validates_k(client):
    assert client.get("/memory/search", params={"q": "x", "k": 0}).status_code == 422


def test_vitals_endpoint(client, monkeypatch):
    monkeypatch.setattr(api, "vital_stats", lambda: VitalStats(3.0, 1, 2, 80.0, True))
    data = client.get("/vitals").json()
    assert data == {
        "cpu_usage": 3.0,
        "memory_used": 1,
        "memory_total": 2,
        "battery_level": 80.0,
        "is_charging": True,
    }


def test_health_endpoint(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
