"""
Lead records consumed by the swarm.

The swarm reads a ``Lead`` but never mutates it; profile and priority updates
travel as effects to whichever ``LeadStore`` the caller wires in.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

DiscType = Literal["D", "I", "S", "C", "Unknown"]
RiskTolerance = Literal["high", "medium", "low"]
Priority = Literal["low", "medium", "high", "urgent"]
Purpose = Literal["residence", "investment", "office", "wholesale", "partnership"]
LeadStatus = Literal["new", "contacted", "visited", "deposited", "negotiating", "lost"]

PRIORITY_RANK: dict[str, int] = {"low": 1, "medium": 2, "high": 3, "urgent": 4}


def outranks(candidate: str, current: str) -> bool:
    """True when ``candidate`` is a strictly higher priority tier than ``current``."""
    return PRIORITY_RANK.get(candidate, 0) > PRIORITY_RANK.get(current, 0)


class ChatMessage(BaseModel):
    role: Literal["user", "model"]
    text: str


class PsychologyProfile(BaseModel):
    """Behavioural profile stored on the lead (DISC plus buying anxieties)."""

    model_config = ConfigDict(populate_by_name=True)

    disc_type: DiscType = Field("Unknown", alias="discType")
    communication_style: Optional[Literal["brief", "detailed", "emotional", "factual"]] = Field(
        None, alias="communicationStyle"
    )
    risk_tolerance: RiskTolerance = Field("medium", alias="riskTolerance")
    pain_points: list[str] = Field(default_factory=list, alias="painPoints")


class Lead(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    name: str
    phone: str = ""
    user_type: Literal["individual", "enterprise"] = Field("individual", alias="userType")
    project_interest: str = Field("", alias="projectInterest")
    needs: str = ""
    budget: str = ""
    purpose: Purpose = "residence"
    timeline: Optional[str] = None
    status: LeadStatus = "new"
    priority: Priority = "medium"
    psychology: Optional[PsychologyProfile] = None
    chat_history: list[ChatMessage] = Field(default_factory=list, alias="chatHistory")

    def transcript(self, limit: int = 30) -> str:
        """Most recent chat turns as plain text, oldest first."""
        turns = self.chat_history[-limit:]
        return "\n".join(f"[{msg.role}] {msg.text}" for msg in turns)
