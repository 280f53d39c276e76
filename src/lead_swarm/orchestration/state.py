"""
Shared state schema for the lead advisory swarm.

The graph is a star: Manager → <specialist> → Manager → ... → Storyteller.
Every node reads the whole state and returns a partial update; the reducers
below make ``visited``, ``iteration`` and the blackboard grow-only.
"""

from __future__ import annotations

import operator
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Annotated, Optional, TypedDict, Union

from lead_swarm.models import DiscType, Lead, RiskTolerance

FINISH = "FINISH"


class AgentRole(str, Enum):
    MANAGER = "Manager"
    PSYCHOLOGIST = "Psychologist"
    MARKET_INSIDER = "MarketInsider"
    VALUATION_EXPERT = "ValuationExpert"
    RISK_OFFICER = "RiskOfficer"
    WEALTH_STRUCTURER = "WealthStructurer"
    STORYTELLER = "Storyteller"


# Specialists the Supervisor may dispatch, in their natural consulting order.
SPECIALISTS: tuple[AgentRole, ...] = (
    AgentRole.PSYCHOLOGIST,
    AgentRole.MARKET_INSIDER,
    AgentRole.VALUATION_EXPERT,
    AgentRole.RISK_OFFICER,
    AgentRole.WEALTH_STRUCTURER,
)


@dataclass(frozen=True)
class SlotContent:
    """A specialist's genuine output."""

    text: str

    @property
    def failed(self) -> bool:
        return False


@dataclass(frozen=True)
class SlotFailure:
    """A specialist ran but produced nothing usable."""

    reason: str

    @property
    def failed(self) -> bool:
        return True


SlotValue = Union[SlotContent, SlotFailure]

# Blackboard slot owned by each specialist.
ROLE_SLOTS: dict[AgentRole, str] = {
    AgentRole.PSYCHOLOGIST: "psychology_profile",
    AgentRole.MARKET_INSIDER: "market_data",
    AgentRole.VALUATION_EXPERT: "valuation_data",
    AgentRole.RISK_OFFICER: "risk_assessment",
    AgentRole.WEALTH_STRUCTURER: "financial_plan",
}


@dataclass(frozen=True)
class Blackboard:
    psychology_profile: Optional[SlotValue] = None
    disc_type: Optional[DiscType] = None
    risk_tolerance: Optional[RiskTolerance] = None
    market_data: Optional[SlotValue] = None
    valuation_data: Optional[SlotValue] = None
    risk_assessment: Optional[SlotValue] = None
    financial_plan: Optional[SlotValue] = None

    def slot(self, role: AgentRole) -> Optional[SlotValue]:
        return getattr(self, ROLE_SLOTS[role])

    def with_slot(self, role: AgentRole, value: SlotValue) -> "Blackboard":
        return replace(self, **{ROLE_SLOTS[role]: value})

    def filled(self) -> list[str]:
        return [f.name for f in fields(self) if getattr(self, f.name) is not None]

    def merge(self, update: "Blackboard") -> "Blackboard":
        """Overlay the slots set in ``update``; unset slots never erase existing ones."""
        changes = {
            f.name: getattr(update, f.name)
            for f in fields(update)
            if getattr(update, f.name) is not None
        }
        return replace(self, **changes) if changes else self

    def as_prompt_dict(self) -> dict[str, str]:
        """Blackboard rendered for prompts; degraded slots are marked as such."""
        rendered: dict[str, str] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, SlotFailure):
                rendered[f.name] = f"[UNAVAILABLE: {value.reason}]"
            elif isinstance(value, SlotContent):
                rendered[f.name] = value.text
            else:
                rendered[f.name] = str(value)
        return rendered


def merge_blackboard(left: Optional[Blackboard], right: Optional[Blackboard]) -> Blackboard:
    if left is None:
        return right or Blackboard()
    if right is None:
        return left
    return left.merge(right)


def latest_iteration(left: Optional[int], right: Optional[int]) -> int:
    """Iteration only moves forward, whatever order updates land in."""
    return max(left or 0, right or 0)


@dataclass
class SwarmStep:
    """One timeline event pushed to the observer."""

    agent_name: str
    agent_role: str
    agent_type: AgentRole
    status: str  # "thinking" | "done"
    output: Optional[str] = None

    def to_dict(self) -> dict:
        payload = {
            "agentName": self.agent_name,
            "agentRole": self.agent_role,
            "agentType": self.agent_type.value,
            "status": self.status,
        }
        if self.output is not None:
            payload["output"] = self.output
        return payload


@dataclass(frozen=True)
class PersistPsychology:
    lead_id: str
    disc_type: DiscType
    risk_tolerance: str
    pain_points: tuple[str, ...] = ()

    kind = "persist_psychology"


@dataclass(frozen=True)
class PersistPriority:
    lead_id: str
    priority: str
    previous: str

    kind = "persist_priority"


Effect = Union[PersistPsychology, PersistPriority]


@dataclass
class FinalReport:
    consultation_script: str
    lead_priority: str
    key_insights: list[str] = field(default_factory=list)
    degraded: bool = False


class SwarmState(TypedDict, total=False):
    """Shared state flowing through the swarm graph.

    Fields
    ------
    lead : Lead
        Input lead; read-only.
    blackboard : Blackboard
        Specialist outputs accumulated during the run.
    visited : frozenset[AgentRole]
        Specialists already executed (or pre-seeded).
    trace : list[AgentRole]
        Specialists in execution order.
    next : str
        Role to execute next, "Manager" or FINISH.
    assigned_task : str
        Instruction handed to the next specialist.
    reason : str
        Supervisor's justification for the last decision.
    last_agent / last_output : str
        Most recent specialist completion.
    iteration : int
        Graph passes so far; capped by ``SwarmConfig.max_iterations``.
    effects : list[Effect]
        Lead-store writes requested during the run.
    report : FinalReport
        Finalizer output.
    """

    lead: Lead
    blackboard: Annotated[Blackboard, merge_blackboard]
    visited: Annotated[frozenset, operator.or_]
    trace: Annotated[list, operator.add]
    next: str
    assigned_task: str
    reason: str
    last_agent: Optional[str]
    last_output: Optional[str]
    iteration: Annotated[int, latest_iteration]
    effects: Annotated[list, operator.add]
    report: FinalReport


def initial_state(lead: Lead) -> SwarmState:
    """Fresh run state; a stored psychology profile pre-seeds DISC and risk tolerance and skips the Psychologist."""
    blackboard = Blackboard()
    visited: frozenset = frozenset()
    if lead.psychology is not None:
        blackboard = Blackboard(
            disc_type=lead.psychology.disc_type,
            risk_tolerance=lead.psychology.risk_tolerance,
        )
        visited = frozenset({AgentRole.PSYCHOLOGIST})

    return {
        "lead": lead,
        "blackboard": blackboard,
        "visited": visited,
        "trace": [],
        "next": AgentRole.MANAGER.value,
        "assigned_task": "",
        "reason": "",
        "last_agent": None,
        "last_output": None,
        "iteration": 0,
        "effects": [],
    }
