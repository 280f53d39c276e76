import asyncio
import os
import tempfile

import pytest

# Keep audit and swarm logs out of the working tree.
os.environ.setdefault("SWARM_LOG_DIR", tempfile.mkdtemp(prefix="lead_swarm_logs_"))

from lead_swarm.config import SwarmConfig
from lead_swarm.models import ChatMessage, Lead, PsychologyProfile


@pytest.fixture
def config():
    return SwarmConfig(provider="google", max_iterations=6)


@pytest.fixture
def lead():
    return Lead(
        id="LEAD_001",
        name="Tran Minh",
        phone="0912 345 678",
        project_interest="Riverside Tower",
        needs="2 bedrooms near the metro",
        budget="5 billion VND",
        purpose="investment",
        priority="medium",
        chat_history=[
            ChatMessage(role="user", text="Is the pink book ready? Mail me at minh@example.com"),
            ChatMessage(role="model", text="The legal paperwork is complete."),
        ],
    )


@pytest.fixture
def profiled_lead(lead):
    profile = PsychologyProfile(disc_type="D", risk_tolerance="high", pain_points=["slow handover"])
    return lead.model_copy(update={"psychology": profile})


@pytest.fixture
def run():
    return asyncio.run
