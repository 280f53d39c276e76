import json
import logging
from typing import Any, Dict

from langchain_core.runnables import RunnableConfig
from pydantic import BaseModel, Field

from lead_swarm.models import Priority, outranks
from lead_swarm.orchestration.prompts import (
    EMPTY_SCRIPT_MESSAGE,
    FINALIZER_APOLOGY,
    FINALIZER_PROMPT,
    tone_for,
)
from lead_swarm.orchestration.runtime import SwarmRuntime, get_runtime
from lead_swarm.orchestration.state import AgentRole, Blackboard, FinalReport, PersistPriority, SwarmState
from lead_swarm.utils.llm_provider import GenerationOptions
from lead_swarm.utils.structured_output import parse_structured

logger = logging.getLogger(__name__)

FINALIZER_NAME = "CRM Sync"


class ConsultationResult(BaseModel):
    consultation_script: str
    lead_priority: Priority
    key_insights: list[str] = Field(default_factory=list)


def build_finalizer_prompt(state: SwarmState) -> str:
    lead = state["lead"]
    blackboard: Blackboard = state.get("blackboard") or Blackboard()
    return FINALIZER_PROMPT.format(
        blackboard=json.dumps(blackboard.as_prompt_dict(), ensure_ascii=False),
        lead_name=lead.name,
        purpose=lead.purpose,
        priority=lead.priority,
        tone=tone_for(blackboard.disc_type),
    )


async def compile_consultation(state: SwarmState, runtime: SwarmRuntime) -> Dict[str, Any]:
    """Synthesize every specialist's output into the client-facing consultation script."""
    lead = state["lead"]
    logger.info("compile_consultation: building script for lead %s", lead.id)
    emitter = runtime.emitter
    await emitter.thinking(FINALIZER_NAME, "Syncing data...", AgentRole.STORYTELLER)

    options = GenerationOptions(
        temperature=runtime.config.finalizer_temperature,
        max_output_tokens=runtime.config.finalizer_max_output_tokens,
        model=runtime.config.resolved_finalizer_model,
        schema=ConsultationResult,
    )

    try:
        response = await runtime.generator.generate(build_finalizer_prompt(state), options)
        result = parse_structured(response.text, ConsultationResult)
    except Exception as e:
        logger.error(f"Finalizer Error: {str(e)}")
        await emitter.done(FINALIZER_NAME, "Synthesis failed", AgentRole.STORYTELLER)
        report = FinalReport(FINALIZER_APOLOGY, lead.priority, [], degraded=True)
        return {"report": report, "effects": []}

    effects = []
    # Priority sync: only upgrades are written back.
    if outranks(result.lead_priority, lead.priority):
        effect = PersistPriority(lead_id=lead.id, priority=result.lead_priority, previous=lead.priority)
        await runtime.push_effect(effect)
        effects.append(effect)
        logger.info(f"Lead {lead.id} priority upgraded {lead.priority} → {result.lead_priority}")

    script = result.consultation_script.strip() or EMPTY_SCRIPT_MESSAGE
    await emitter.done(FINALIZER_NAME, "Updated & archived", AgentRole.STORYTELLER)
    logger.info("compile_consultation: completed with %d characters", len(script))

    report = FinalReport(script, result.lead_priority, list(result.key_insights))
    return {"report": report, "effects": effects}


async def finalizer_node(state: SwarmState, config: RunnableConfig) -> Dict[str, Any]:
    return await compile_consultation(state, get_runtime(config))
