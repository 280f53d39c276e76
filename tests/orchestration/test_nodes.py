import pytest
from pydantic import ValidationError

from lead_swarm.models import PRIORITY_RANK
from lead_swarm.orchestration.nodes.compile_consultation import compile_consultation
from lead_swarm.orchestration.nodes.profile_lead import interpret_psychology
from lead_swarm.orchestration.nodes.supervisor import (
    decide,
    decision_schema,
    route_from_manager,
    supervisor_node,
)
from lead_swarm.orchestration.nodes.workers import build_worker_prompt, run_worker, WORKER_SPECS
from lead_swarm.orchestration.runtime import StepEmitter, SwarmRuntime
from lead_swarm.orchestration.state import (
    FINISH,
    SPECIALISTS,
    AgentRole,
    Blackboard,
    SlotContent,
    initial_state,
)
from lead_swarm.utils.market_context import StaticMarketContext
from fakes import ScriptedGenerator


def make_runtime(config, generator=None):
    return SwarmRuntime(
        generator=generator or ScriptedGenerator(),
        market_context=StaticMarketContext(),
        config=config,
        emitter=StepEmitter(),
    )


def test_route_from_manager_only_dispatches_eligible_roles(lead):
    state = initial_state(lead)
    assert route_from_manager({**state, "next": "MarketInsider"}) == "MarketInsider"
    assert route_from_manager({**state, "next": "Astrologer"}) == FINISH
    assert route_from_manager({**state, "next": "Manager"}) == FINISH

    visited = {**state, "visited": frozenset({AgentRole.MARKET_INSIDER}), "next": "MarketInsider"}
    assert route_from_manager(visited) == FINISH


def test_decision_schema_rejects_roles_outside_the_allowed_set():
    schema = decision_schema(["RiskOfficer", FINISH])
    assert schema.model_validate({"next_agent": "RiskOfficer"}).next_agent == "RiskOfficer"
    with pytest.raises(ValidationError):
        schema.model_validate({"next_agent": "Psychologist"})


def test_manager_at_cap_finishes_without_asking(run, lead, config):
    generator = ScriptedGenerator(routes=["MarketInsider"])
    runtime = make_runtime(config, generator)
    state = {**initial_state(lead), "iteration": config.max_iterations}

    update = run(supervisor_node(state, {"configurable": {"swarm": runtime}}))

    assert update["next"] == FINISH
    assert generator.calls == []
    assert runtime.emitter.steps == []


def test_manager_without_room_for_a_worker_finishes(run, lead, config):
    runtime = make_runtime(config)
    state = {**initial_state(lead), "iteration": config.max_iterations - 1}

    update = run(supervisor_node(state, {"configurable": {"swarm": runtime}}))

    assert update["next"] == FINISH
    assert update["iteration"] == config.max_iterations


def test_decide_with_everyone_visited_finishes_silently(run, lead, config):
    runtime = make_runtime(config)
    state = {**initial_state(lead), "visited": frozenset(SPECIALISTS)}

    decision = run(decide(state, runtime))

    assert decision.next == FINISH
    assert runtime.emitter.steps == []


def test_gate_assigns_psychologist_with_reason(run, lead, config):
    runtime = make_runtime(config)
    decision = run(decide(initial_state(lead), runtime))

    assert decision.next == "Psychologist"
    assert decision.assigned_task
    assert [s.status for s in runtime.emitter.steps] == ["thinking", "done"]


def test_empty_worker_reply_is_a_failure(run, lead, config):
    runtime = make_runtime(config, ScriptedGenerator(workers={"RiskOfficer": "   "}))

    outcome = run(run_worker(AgentRole.RISK_OFFICER, "Check legal risk", initial_state(lead), runtime))

    assert outcome["text"] is None
    assert outcome["blackboard"].risk_assessment.failed
    assert runtime.emitter.steps[-1].agent_role == "Analysis failed"


def test_search_roles_request_grounding(run, lead, config):
    generator = ScriptedGenerator()
    runtime = make_runtime(config, generator)

    for role in (AgentRole.MARKET_INSIDER, AgentRole.WEALTH_STRUCTURER):
        run(run_worker(role, "task", initial_state(lead), runtime))

    searched = [options.search for _, options in generator.calls]
    assert searched == [True, False]


def test_psychologist_prompt_redacts_contact_details(lead, config):
    prompt = build_worker_prompt(
        WORKER_SPECS[AgentRole.PSYCHOLOGIST], "profile", initial_state(lead), make_runtime(config)
    )

    assert "[CONVERSATION HISTORY]" in prompt
    assert "minh@example.com" not in prompt
    assert "[REDACTED_EMAIL]" in prompt


def test_psychology_reply_inside_code_fence_is_parsed():
    raw = '```json\n{"discType": "S", "riskTolerance": "medium", "painPoints": [], "summary": "Calm."}\n```'
    outcome = interpret_psychology("LEAD_001", raw)

    assert outcome["blackboard"].disc_type == "S"
    assert outcome["blackboard"].psychology_profile == SlotContent("Calm.")
    assert outcome["effects"][0].risk_tolerance == "medium"


def test_finalizer_with_full_blackboard_returns_script_and_tier(run, lead, config):
    blackboard = Blackboard(disc_type="I")
    for role in SPECIALISTS:
        blackboard = blackboard.with_slot(role, SlotContent(f"{role.value} report"))
    state = {**initial_state(lead), "blackboard": blackboard}
    generator = ScriptedGenerator()

    update = run(compile_consultation(state, make_runtime(config, generator)))

    report = update["report"]
    assert report.consultation_script
    assert report.lead_priority in PRIORITY_RANK
    prompt = generator.calls[0][0]
    assert "WealthStructurer report" in prompt
    assert "warm and enthusiastic" in prompt
