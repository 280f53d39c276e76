import logging
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field

from lead_swarm.models import DiscType, RiskTolerance
from lead_swarm.orchestration.state import Blackboard, PersistPsychology, SlotContent, SlotFailure
from lead_swarm.utils.error_handler import StructuredOutputError
from lead_swarm.utils.structured_output import parse_structured

logger = logging.getLogger(__name__)


class PsychologyResult(BaseModel):
    """Structured reply required from the Psychologist."""

    model_config = ConfigDict(populate_by_name=True)

    disc_type: DiscType = Field(alias="discType", description="Dominant DISC personality group.")
    risk_tolerance: RiskTolerance = Field(
        alias="riskTolerance", description="Risk appetite inferred from the chat history."
    )
    pain_points: list[str] = Field(
        default_factory=list, alias="painPoints", description="Concrete worries or problems the client raised."
    )
    summary: str = Field(description="Short psychological summary for display.")


def interpret_psychology(lead_id: str, raw_text: str) -> Dict[str, Any]:
    """
    Turn the Psychologist's reply into a blackboard update and a profile write-back.

    An unparsable reply degrades to the neutral DISC profile and requests no write.
    """
    try:
        profile = parse_structured(raw_text, PsychologyResult)
    except StructuredOutputError as e:
        logger.error(f"Failed to parse Psychologist result for lead {lead_id}: {e}")
        return {
            "blackboard": Blackboard(
                psychology_profile=SlotFailure(f"unparsable profile: {e}"),
                disc_type="Unknown",
            ),
            "effects": [],
        }

    logger.info(f"Profiled lead {lead_id}: DISC={profile.disc_type}, risk={profile.risk_tolerance}")
    effect = PersistPsychology(
        lead_id=lead_id,
        disc_type=profile.disc_type,
        risk_tolerance=profile.risk_tolerance,
        pain_points=tuple(profile.pain_points),
    )
    return {
        "blackboard": Blackboard(
            psychology_profile=SlotContent(profile.summary),
            disc_type=profile.disc_type,
            risk_tolerance=profile.risk_tolerance,
        ),
        "effects": [effect],
    }


def psychology_failure(reason: str) -> Dict[str, Any]:
    return {
        "blackboard": Blackboard(psychology_profile=SlotFailure(reason), disc_type="Unknown"),
        "effects": [],
    }
