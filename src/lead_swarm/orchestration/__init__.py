"""
Lead advisory swarm built on LangGraph.

Entry point
-----------
>>> from lead_swarm.orchestration import run_swarm
>>> outcome = await run_swarm(lead, on_step=print)
>>> outcome.script
"""

from .supervisor_graph import SwarmOutcome, app, build_graph, run_swarm

__all__ = ["build_graph", "app", "run_swarm", "SwarmOutcome"]
