import asyncio
import json

import pytest

from lead_swarm.models import Lead
from lead_swarm.orchestration.state import PersistPriority, PersistPsychology
from lead_swarm.service import SwarmService
from lead_swarm.utils.batch_processor import run_lead_batch
from lead_swarm.utils.error_handler import LeadNotFoundError
from lead_swarm.utils.lead_store import InMemoryLeadStore, JsonLeadStore, apply_effect
from fakes import ScriptedGenerator


@pytest.fixture
def json_store(tmp_path, lead):
    store = JsonLeadStore(str(tmp_path / "data" / "leads.json"))
    store.add(lead)
    return store


def test_json_store_round_trips_camel_case_records(json_store, lead):
    with open(json_store.path, encoding="utf-8") as f:
        records = json.load(f)
    assert records[0]["projectInterest"] == "Riverside Tower"
    assert json_store.get(lead.id) == lead


def test_json_store_unknown_lead(json_store):
    with pytest.raises(LeadNotFoundError):
        json_store.get("NOPE")


def test_apply_effects_to_json_store(json_store, lead):
    apply_effect(json_store, PersistPsychology(lead.id, "S", "low", ("noise",)))
    apply_effect(json_store, PersistPriority(lead.id, "urgent", "medium"))

    stored = json_store.get(lead.id)
    assert stored.psychology.disc_type == "S"
    assert stored.psychology.pain_points == ["noise"]
    assert stored.priority == "urgent"


def test_psychology_update_keeps_communication_style(profiled_lead):
    lead = profiled_lead.model_copy(
        update={"psychology": profiled_lead.psychology.model_copy(update={"communication_style": "brief"})}
    )
    store = InMemoryLeadStore([lead])
    store.update_psychology(lead.id, "C", "low", ["price"])

    assert store.get(lead.id).psychology.communication_style == "brief"
    assert store.get(lead.id).psychology.disc_type == "C"


def test_service_persists_effects_during_the_run(json_store, lead, config):
    service = SwarmService(json_store, ScriptedGenerator(routes=["FINISH"]), config)
    outcome = asyncio.run(service.run(lead.id))

    stored = json_store.get(lead.id)
    assert stored.psychology.disc_type == "C"
    assert stored.priority == "high"
    assert outcome.lead_priority == "high"


def test_second_run_reuses_the_saved_profile(lead, config):
    store = InMemoryLeadStore([lead])
    first = ScriptedGenerator(routes=["FINISH"])
    second = ScriptedGenerator(routes=["FINISH"])

    asyncio.run(SwarmService(store, first, config).run(lead.id))
    outcome = asyncio.run(SwarmService(store, second, config).run(lead.id))

    assert "Psychologist" not in outcome.visited
    assert second.calls_for("PsychologyResult") == []


def test_service_unknown_lead_raises(config):
    service = SwarmService(InMemoryLeadStore(), ScriptedGenerator(), config)
    with pytest.raises(LeadNotFoundError):
        asyncio.run(service.run("missing"))


class SlowGenerator(ScriptedGenerator):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.active = 0
        self.peak = 0

    async def generate(self, prompt, options):
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(0.01)
            return await super().generate(prompt, options)
        finally:
            self.active -= 1


def test_runs_for_one_lead_are_serialized(lead, config):
    generator = SlowGenerator()
    service = SwarmService(InMemoryLeadStore([lead]), generator, config)

    async def both():
        return await asyncio.gather(service.run(lead.id), service.run(lead.id))

    first, second = asyncio.run(both())

    assert generator.peak == 1
    assert first.visited == ["Psychologist"]
    assert second.visited == []


def test_runs_for_different_leads_overlap(lead, config):
    other = lead.model_copy(update={"id": "LEAD_002"})
    generator = SlowGenerator()
    service = SwarmService(InMemoryLeadStore([lead, other]), generator, config)

    async def both():
        return await asyncio.gather(service.run(lead.id), service.run(other.id))

    asyncio.run(both())
    assert generator.peak == 2


def test_batch_reports_each_lead(lead, config):
    other = lead.model_copy(update={"id": "LEAD_002", "priority": "urgent"})
    service = SwarmService(InMemoryLeadStore([lead, other]), ScriptedGenerator(), config)

    results = asyncio.run(run_lead_batch(service, [lead.id, "GHOST", other.id, lead.id], max_concurrency=2))

    assert list(results) == [lead.id, "GHOST", other.id]
    assert results[lead.id]["status"] == "success"
    assert results["GHOST"]["status"] == "error"
    assert results[other.id]["priority"] == "high"


def test_batch_respects_concurrency_limit(lead, config):
    leads = [lead.model_copy(update={"id": f"LEAD_{i}"}) for i in range(5)]
    generator = SlowGenerator()
    service = SwarmService(InMemoryLeadStore(leads), generator, config)

    asyncio.run(run_lead_batch(service, [item.id for item in leads], max_concurrency=2))
    assert generator.peak <= 2


def test_lead_parses_camel_case_payload():
    lead = Lead.model_validate({
        "id": "L1",
        "name": "Le Hoa",
        "userType": "enterprise",
        "purpose": "office",
        "chatHistory": [{"role": "user", "text": "Need 500m2"}],
    })
    assert lead.user_type == "enterprise"
    assert lead.transcript() == "[user] Need 500m2"


def test_lead_locks_are_released_after_runs(lead, config):
    other = lead.model_copy(update={"id": "LEAD_002"})
    service = SwarmService(InMemoryLeadStore([lead, other]), SlowGenerator(), config)

    async def runs():
        await asyncio.gather(service.run(lead.id), service.run(lead.id), service.run(other.id))
        return service.active_leads

    assert asyncio.run(runs()) == []


def test_lock_released_when_lead_is_missing(config):
    service = SwarmService(InMemoryLeadStore(), ScriptedGenerator(), config)
    with pytest.raises(LeadNotFoundError):
        asyncio.run(service.run("missing"))
    assert service.active_leads == []
