"""
Specialist workers: one dispatch table, one execution path.

Each ``WorkerSpec`` fixes what differs between roles (expertise, search
grounding, output schema, how the reply lands on the blackboard); ``run_worker``
does the rest identically for all five specialists.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Type

from langchain_core.runnables import RunnableConfig
from pydantic import BaseModel

from lead_swarm.orchestration.nodes.profile_lead import (
    PsychologyResult,
    interpret_psychology,
    psychology_failure,
)
from lead_swarm.orchestration.prompts import DEFAULT_WORKER_TASK, WORKER_PROMPT, tone_for
from lead_swarm.orchestration.runtime import SwarmRuntime, get_runtime
from lead_swarm.orchestration.state import (
    AgentRole,
    Blackboard,
    SlotContent,
    SlotFailure,
    SwarmState,
)
from lead_swarm.utils.compliance import redact_pii
from lead_swarm.utils.llm_provider import GenerationOptions

logger = logging.getLogger(__name__)

Interpreter = Callable[[str, str], Dict[str, Any]]


def _text_slot(role: AgentRole) -> Interpreter:
    def interpret(lead_id: str, raw_text: str) -> Dict[str, Any]:
        return {"blackboard": Blackboard().with_slot(role, SlotContent(raw_text)), "effects": []}
    return interpret


def _failed_slot(role: AgentRole) -> Callable[[str], Dict[str, Any]]:
    def on_failure(reason: str) -> Dict[str, Any]:
        return {"blackboard": Blackboard().with_slot(role, SlotFailure(reason)), "effects": []}
    return on_failure


@dataclass(frozen=True)
class WorkerSpec:
    role: AgentRole
    expertise: str
    search: bool
    interpret: Interpreter
    on_failure: Callable[[str], Dict[str, Any]]
    schema: Optional[Type[BaseModel]] = None
    include_transcript: bool = False


WORKER_SPECS: dict[AgentRole, WorkerSpec] = {
    AgentRole.PSYCHOLOGIST: WorkerSpec(
        role=AgentRole.PSYCHOLOGIST,
        expertise="You read buyers: DISC personality, risk appetite and hidden worries.",
        search=False,
        schema=PsychologyResult,
        interpret=interpret_psychology,
        on_failure=psychology_failure,
        include_transcript=True,
    ),
    AgentRole.MARKET_INSIDER: WorkerSpec(
        role=AgentRole.MARKET_INSIDER,
        expertise="You track supply, absorption, price trends and infrastructure in the local market.",
        search=True,
        interpret=_text_slot(AgentRole.MARKET_INSIDER),
        on_failure=_failed_slot(AgentRole.MARKET_INSIDER),
    ),
    AgentRole.VALUATION_EXPERT: WorkerSpec(
        role=AgentRole.VALUATION_EXPERT,
        expertise="You price properties: comparables, price per square metre, rental yield and upside.",
        search=True,
        interpret=_text_slot(AgentRole.VALUATION_EXPERT),
        on_failure=_failed_slot(AgentRole.VALUATION_EXPERT),
    ),
    AgentRole.RISK_OFFICER: WorkerSpec(
        role=AgentRole.RISK_OFFICER,
        expertise="You vet legal status, developer track record, liquidity and interest-rate exposure.",
        search=True,
        interpret=_text_slot(AgentRole.RISK_OFFICER),
        on_failure=_failed_slot(AgentRole.RISK_OFFICER),
    ),
    AgentRole.WEALTH_STRUCTURER: WorkerSpec(
        role=AgentRole.WEALTH_STRUCTURER,
        expertise="You structure the deal: down payment, loan schedule, monthly cash flow and exit.",
        search=False,
        interpret=_text_slot(AgentRole.WEALTH_STRUCTURER),
        on_failure=_failed_slot(AgentRole.WEALTH_STRUCTURER),
    ),
}


def build_worker_prompt(spec: WorkerSpec, task: str, state: SwarmState, runtime: SwarmRuntime) -> str:
    lead = state["lead"]
    blackboard: Blackboard = state.get("blackboard") or Blackboard()

    extra_context = ""
    if spec.include_transcript:
        transcript = redact_pii(lead.transcript()) or "(no conversation history)"
        extra_context = f"[CONVERSATION HISTORY]:\n{transcript}\n"

    return WORKER_PROMPT.format(
        role=spec.role.value,
        expertise=spec.expertise,
        market_context=runtime.market_context.snapshot_text(),
        lead_name=lead.name,
        purpose=lead.purpose,
        budget=lead.budget or "unknown",
        project_interest=lead.project_interest or "unspecified",
        needs=lead.needs or "unspecified",
        blackboard=json.dumps(blackboard.as_prompt_dict(), ensure_ascii=False),
        extra_context=extra_context,
        task=task,
        tone=tone_for(blackboard.disc_type),
    )


async def run_worker(role: AgentRole, task: str, state: SwarmState, runtime: SwarmRuntime) -> Dict[str, Any]:
    """
    Execute one specialist and return its blackboard update and effects.

    Never raises: generation errors become a SlotFailure on the role's slot.
    """
    spec = WORKER_SPECS[role]
    lead = state["lead"]
    config = runtime.config
    emitter = runtime.emitter

    await emitter.thinking(role.value, "Working on the assignment...", role)

    options = GenerationOptions(
        temperature=config.worker_temperature,
        max_output_tokens=config.max_output_tokens,
        model=config.resolved_worker_model,
        search=spec.search,
        schema=spec.schema,
    )

    try:
        prompt = build_worker_prompt(spec, task, state, runtime)
        result = await runtime.generator.generate(prompt, options)
        raw_text = (result.text or "").strip()
        if not raw_text:
            raise ValueError("empty response")
    except Exception as e:
        logger.error(f"{role.value} crashed for lead {lead.id}: {e}")
        await emitter.done(role.value, "Analysis failed", role, output=f"Failed: {e}")
        outcome = spec.on_failure(f"{role.value} failed: {e}")
        outcome["text"] = None
        return outcome

    outcome = spec.interpret(lead.id, raw_text)
    for effect in outcome["effects"]:
        await runtime.push_effect(effect)
    await emitter.done(role.value, "Analysis complete", role, output=raw_text)
    outcome["text"] = raw_text
    return outcome


def make_worker_node(role: AgentRole):
    """Graph node for ``role``: run it, record the visit, hand control back to the Manager."""

    async def worker_node(state: SwarmState, config: RunnableConfig) -> Dict[str, Any]:
        runtime = get_runtime(config)
        task = state.get("assigned_task") or DEFAULT_WORKER_TASK
        outcome = await run_worker(role, task, state, runtime)

        return {
            "blackboard": outcome["blackboard"],
            "effects": outcome["effects"],
            "visited": frozenset({role}),
            "trace": [role],
            "iteration": state.get("iteration", 0) + 1,
            "last_agent": role.value,
            "last_output": outcome["text"],
            "next": AgentRole.MANAGER.value,
            "assigned_task": "",
        }

    worker_node.__name__ = f"{role.value.lower()}_node"
    return worker_node
