"""
Supervisor: the router at the centre of the star.

Hard logic first (iteration cap, no agents left, Psychologist gate); only
then one deterministic, schema-constrained model call picks among the
specialists not yet visited. Any failure ends the run with FINISH.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Literal, Type

from langchain_core.runnables import RunnableConfig
from pydantic import BaseModel, Field, create_model

from lead_swarm.orchestration.prompts import PSYCHOLOGIST_GATE_TASK, SUPERVISOR_PROMPT, WORKER_CARDS
from lead_swarm.orchestration.runtime import SwarmRuntime, get_runtime, preview
from lead_swarm.orchestration.state import (
    FINISH,
    SPECIALISTS,
    AgentRole,
    Blackboard,
    SwarmState,
)
from lead_swarm.utils.error_handler import StructuredOutputError
from lead_swarm.utils.llm_provider import GenerationOptions
from lead_swarm.utils.structured_output import parse_structured

logger = logging.getLogger(__name__)

SUPERVISOR_NAME = "Supervisor"


@dataclass(frozen=True)
class RouteDecision:
    next: str
    assigned_task: str = ""
    reason: str = ""


def remaining_roles(state: SwarmState) -> list[AgentRole]:
    visited = state.get("visited") or frozenset()
    return [role for role in SPECIALISTS if role not in visited]


def decision_schema(allowed: list[str]) -> Type[BaseModel]:
    """Routing schema whose ``next_agent`` enum only admits ``allowed``."""
    return create_model(
        "SupervisorDecision",
        next_agent=(Literal[tuple(allowed)], Field(description="Next agent to run, or FINISH.")),
        specific_task=(str, Field("", description="Concrete assignment for the next agent.")),
        reason=(str, Field("", description="Why this agent was chosen.")),
    )


def needs_profile(state: SwarmState) -> bool:
    blackboard: Blackboard = state.get("blackboard") or Blackboard()
    visited = state.get("visited") or frozenset()
    return blackboard.disc_type is None and AgentRole.PSYCHOLOGIST not in visited


def build_supervisor_prompt(state: SwarmState, remaining: list[AgentRole], runtime: SwarmRuntime) -> str:
    lead = state["lead"]
    blackboard: Blackboard = state.get("blackboard") or Blackboard()
    allowed = [role.value for role in remaining] + [FINISH]

    return SUPERVISOR_PROMPT.format(
        market_context=runtime.market_context.snapshot_text(),
        lead_name=lead.name,
        purpose=lead.purpose,
        budget=lead.budget or "unknown",
        disc_type=blackboard.disc_type or "not yet determined",
        risk_tolerance=blackboard.risk_tolerance or "unknown",
        filled_slots=", ".join(blackboard.filled()) or "none",
        last_agent=state.get("last_agent") or "None",
        last_output=preview(state.get("last_output"), 500) or "None",
        worker_cards="\n".join(f"- {role.value}: {WORKER_CARDS[role.value]}" for role in remaining),
        allowed=", ".join(allowed),
    )


async def decide(state: SwarmState, runtime: SwarmRuntime) -> RouteDecision:
    """Pick the next specialist or FINISH. Never raises, never retries."""
    remaining = remaining_roles(state)
    if not remaining:
        return RouteDecision(FINISH, reason="Every specialist has reported.")

    emitter = runtime.emitter
    await emitter.thinking(SUPERVISOR_NAME, "Coordinating...", AgentRole.MANAGER)

    # Psychologist gate: tone for everyone else depends on the DISC profile.
    if needs_profile(state):
        reason = "Need to understand the client first (DISC analysis)."
        await emitter.done(SUPERVISOR_NAME, "→ Assigned: Psychologist", AgentRole.MANAGER, output=reason)
        return RouteDecision(AgentRole.PSYCHOLOGIST.value, PSYCHOLOGIST_GATE_TASK, reason)

    allowed = [role.value for role in remaining] + [FINISH]
    options = GenerationOptions(
        temperature=runtime.config.supervisor_temperature,
        model=runtime.config.resolved_worker_model,
        schema=decision_schema(allowed),
    )

    try:
        prompt = build_supervisor_prompt(state, remaining, runtime)
        response = await runtime.generator.generate(prompt, options)
        decision = parse_structured(response.text, options.schema)
    except StructuredOutputError as e:
        logger.error(f"Supervisor produced an invalid decision: {e}")
        await emitter.done(SUPERVISOR_NAME, "Compiling dossier", AgentRole.MANAGER, output="Invalid routing decision.")
        return RouteDecision(FINISH, reason=f"Invalid decision: {e}")
    except Exception as e:
        logger.error(f"Supervisor JSON Error: {e}")
        await emitter.done(SUPERVISOR_NAME, "Compiling dossier", AgentRole.MANAGER, output="Routing unavailable.")
        return RouteDecision(FINISH, reason=f"Routing failed: {e}")

    next_agent = decision.next_agent
    label = "Compiling dossier" if next_agent == FINISH else f"→ Dispatching: {next_agent}"
    await emitter.done(
        SUPERVISOR_NAME,
        label,
        AgentRole.MANAGER,
        output=f"[Reason]: {decision.reason}" if decision.reason else decision.specific_task,
    )
    logger.info(f"Supervisor routed to {next_agent}: {decision.reason}")
    return RouteDecision(next_agent, decision.specific_task, decision.reason)


async def supervisor_node(state: SwarmState, config: RunnableConfig) -> Dict[str, Any]:
    """
    Manager pass. Enforces the iteration cap around ``decide``:
    at the cap the run finishes without consulting anyone, and the model is
    only asked when a dispatched worker would still fit under the cap.
    """
    runtime = get_runtime(config)
    cap = runtime.config.max_iterations
    iteration = state.get("iteration", 0)

    if iteration >= cap:
        logger.info(f"Iteration cap ({cap}) reached for lead {state['lead'].id} → FINISH")
        return {"next": FINISH, "reason": "Iteration cap reached."}

    iteration += 1
    if iteration >= cap:
        # This pass uses the last iteration; no worker pass would fit after it.
        logger.info(f"No room for another worker within {cap} iterations → FINISH")
        return {"next": FINISH, "reason": "No room left under the iteration cap.", "iteration": iteration}

    decision = await decide(state, runtime)
    return {
        "next": decision.next,
        "assigned_task": decision.assigned_task,
        "reason": decision.reason,
        "iteration": iteration,
    }


def route_from_manager(state: SwarmState) -> str:
    """Conditional edge: dispatch to an eligible specialist, anything else finishes."""
    next_agent = state.get("next", FINISH)
    eligible = {role.value for role in remaining_roles(state)}
    if next_agent in eligible:
        return next_agent
    return FINISH
