import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from langgraph.graph import END, StateGraph

from lead_swarm.config import SwarmConfig
from lead_swarm.models import Lead
from lead_swarm.orchestration.nodes.compile_consultation import finalizer_node
from lead_swarm.orchestration.nodes.supervisor import route_from_manager, supervisor_node
from lead_swarm.orchestration.nodes.workers import make_worker_node
from lead_swarm.orchestration.prompts import FINALIZER_APOLOGY
from lead_swarm.orchestration.runtime import (
    EffectCallback,
    MarketContextProvider,
    StepCallback,
    StepEmitter,
    StructuredGenerator,
    SwarmRuntime,
)
from lead_swarm.orchestration.state import (
    FINISH,
    SPECIALISTS,
    AgentRole,
    Blackboard,
    Effect,
    FinalReport,
    SwarmState,
    SwarmStep,
    initial_state,
)
from lead_swarm.utils.compliance import audit_node
from lead_swarm.utils.llm_provider import LangChainGenerator
from lead_swarm.utils.market_context import StaticMarketContext

logger = logging.getLogger(__name__)

MANAGER = AgentRole.MANAGER.value
STORYTELLER = AgentRole.STORYTELLER.value


def build_graph():
    """
    Star topology:

        START → Manager → (Psychologist | MarketInsider | ValuationExpert
                           | RiskOfficer | WealthStructurer | FINISH→Storyteller)
        <specialist> → Manager
        Storyteller → END
    """
    workflow = StateGraph(SwarmState)

    workflow.add_node(MANAGER, audit_node("manager", supervisor_node))
    for role in SPECIALISTS:
        workflow.add_node(role.value, audit_node(role.value, make_worker_node(role)))
    workflow.add_node(STORYTELLER, audit_node("storyteller", finalizer_node))

    workflow.set_entry_point(MANAGER)

    routes = {role.value: role.value for role in SPECIALISTS}
    routes[FINISH] = STORYTELLER
    workflow.add_conditional_edges(MANAGER, route_from_manager, routes)

    # Workers never hand off to each other; control always returns to the Manager.
    for role in SPECIALISTS:
        workflow.add_edge(role.value, MANAGER)

    workflow.add_edge(STORYTELLER, END)

    return workflow.compile()


app = build_graph()


@dataclass
class SwarmOutcome:
    """Everything a caller needs after a run."""

    script: str
    lead_priority: str
    key_insights: list[str] = field(default_factory=list)
    steps: list[SwarmStep] = field(default_factory=list)
    effects: list[Effect] = field(default_factory=list)
    visited: list[str] = field(default_factory=list)
    iteration: int = 0
    blackboard: Blackboard = field(default_factory=Blackboard)
    degraded: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "script": self.script,
            "leadPriority": self.lead_priority,
            "keyInsights": self.key_insights,
            "steps": [step.to_dict() for step in self.steps],
            "effects": [{"kind": effect.kind, **asdict(effect)} for effect in self.effects],
            "visited": self.visited,
            "iteration": self.iteration,
            "blackboard": self.blackboard.as_prompt_dict(),
            "degraded": self.degraded,
        }


async def run_swarm(
    lead: Lead,
    on_step: Optional[StepCallback] = None,
    *,
    generator: Optional[StructuredGenerator] = None,
    market_context: Optional[MarketContextProvider] = None,
    config: Optional[SwarmConfig] = None,
    on_effect: Optional[EffectCallback] = None,
) -> SwarmOutcome:
    """
    Run the advisory swarm for one lead.

    Never raises: worker and routing failures degrade the analysis, a broken
    synthesis yields the apology script.
    """
    config = config or SwarmConfig.from_env()
    emitter = StepEmitter(on_step, config.preview_chars)
    runtime = SwarmRuntime(
        generator=generator or LangChainGenerator(config),
        market_context=market_context or StaticMarketContext(),
        config=config,
        emitter=emitter,
        on_effect=on_effect,
    )
    logger.info(f"Swarm started for lead {lead.id} ({lead.purpose}, priority={lead.priority})")

    try:
        final_state = await app.ainvoke(
            initial_state(lead),
            config={"configurable": {"swarm": runtime}, "recursion_limit": config.recursion_limit},
        )
    except Exception as e:
        logger.exception(f"Swarm run for lead {lead.id} aborted: {e}")
        return SwarmOutcome(
            script=FINALIZER_APOLOGY,
            lead_priority=lead.priority,
            steps=list(emitter.steps),
            degraded=True,
        )

    report: FinalReport = final_state.get("report") or FinalReport(FINALIZER_APOLOGY, lead.priority, degraded=True)
    outcome = SwarmOutcome(
        script=report.consultation_script,
        lead_priority=report.lead_priority,
        key_insights=report.key_insights,
        steps=list(emitter.steps),
        effects=list(final_state.get("effects", [])),
        visited=[role.value for role in final_state.get("trace", [])],
        iteration=final_state.get("iteration", 0),
        blackboard=final_state.get("blackboard") or Blackboard(),
        degraded=report.degraded,
    )
    logger.info(
        f"Swarm finished for lead {lead.id}: visited={outcome.visited}, "
        f"iterations={outcome.iteration}, priority={outcome.lead_priority}"
    )
    return outcome
