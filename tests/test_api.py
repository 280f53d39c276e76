import json

import pytest
from fastapi.testclient import TestClient

from lead_swarm.api import app, get_service
from lead_swarm.service import SwarmService
from lead_swarm.utils.lead_store import InMemoryLeadStore
from fakes import ScriptedGenerator


@pytest.fixture
def store(lead):
    return InMemoryLeadStore([lead])


@pytest.fixture
def client(store, config):
    service = SwarmService(store, ScriptedGenerator(routes=["MarketInsider", "FINISH"]), config)
    app.dependency_overrides[get_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["maxIterations"] == 6


def test_run_swarm_for_lead(client, store, lead):
    response = client.post(f"/api/leads/{lead.id}/swarm")

    assert response.status_code == 200
    body = response.json()
    assert body["visited"] == ["Psychologist", "MarketInsider"]
    assert body["leadPriority"] == "high"
    assert body["script"].startswith("## Proposal")
    assert {step["status"] for step in body["steps"]} == {"thinking", "done"}
    assert store.get(lead.id).priority == "high"


def test_unknown_lead_is_404(client):
    response = client.post("/api/leads/GHOST/swarm")
    assert response.status_code == 404


def test_batch_endpoint(client, lead):
    response = client.post("/api/leads/batch", json={"lead_ids": [lead.id, "GHOST"]})

    assert response.status_code == 200
    results = response.json()["results"]
    assert results[lead.id]["status"] == "success"
    assert results["GHOST"]["status"] == "error"


def test_batch_requires_ids(client):
    assert client.post("/api/leads/batch", json={"lead_ids": []}).status_code == 422


def test_stream_emits_steps_then_outcome(client, lead):
    response = client.post(f"/api/leads/{lead.id}/swarm/stream")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/x-ndjson")
    lines = [json.loads(line) for line in response.text.splitlines() if line]
    steps, final = lines[:-1], lines[-1]

    assert steps[0] == {"type": "step", "agentName": "Supervisor", "agentRole": "Coordinating...",
                        "agentType": "Manager", "status": "thinking"}
    assert all(line["type"] == "step" for line in steps)
    assert final["type"] == "outcome"
    assert final["visited"] == ["Psychologist", "MarketInsider"]
    assert len(steps) == len(final["steps"])


def test_stream_unknown_lead_is_404(client):
    assert client.post("/api/leads/GHOST/swarm/stream").status_code == 404
