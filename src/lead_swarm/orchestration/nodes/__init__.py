"""
Node functions for the lead advisory swarm graph.
"""

from .compile_consultation import compile_consultation, finalizer_node
from .supervisor import decide, route_from_manager, supervisor_node
from .workers import WORKER_SPECS, make_worker_node, run_worker

__all__ = [
    "compile_consultation",
    "finalizer_node",
    "decide",
    "route_from_manager",
    "supervisor_node",
    "WORKER_SPECS",
    "make_worker_node",
    "run_worker",
]
