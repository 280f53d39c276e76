"""
Per-run collaborators handed to graph nodes through ``config["configurable"]``.

Nodes stay plain async functions of ``(state, config)``; everything that talks
to the outside world (model, market feed, observer, effect sink) lives here.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol

from langchain_core.runnables import RunnableConfig

from lead_swarm.config import SwarmConfig
from lead_swarm.orchestration.state import AgentRole, Effect, SwarmStep
from lead_swarm.utils.llm_provider import GenerationOptions, GenerationResult

logger = logging.getLogger(__name__)

StepCallback = Callable[[SwarmStep], Any]
EffectCallback = Callable[[Effect], Any]


class StructuredGenerator(Protocol):
    async def generate(self, prompt: str, options: GenerationOptions) -> GenerationResult:
        ...


class MarketContextProvider(Protocol):
    def snapshot_text(self) -> str:
        ...


def preview(text: Optional[str], limit: int) -> Optional[str]:
    if text is None:
        return None
    return text[:limit] + "..." if len(text) > limit else text


class StepEmitter:
    """Pushes timeline steps to the observer in execution order and keeps a copy.

    The observer may be a plain function or a coroutine function; it is awaited
    before the run moves on, so steps arrive in order. Observer failures are
    logged and ignored.
    """

    def __init__(self, on_step: Optional[StepCallback] = None, preview_chars: int = 150):
        self.on_step = on_step
        self.preview_chars = preview_chars
        self.steps: list[SwarmStep] = []

    async def emit(self, step: SwarmStep) -> SwarmStep:
        self.steps.append(step)
        if self.on_step is not None:
            try:
                await _maybe_await(self.on_step(step))
            except Exception as e:
                logger.warning("Step observer failed on %s/%s: %s", step.agent_name, step.status, e)
        return step

    async def thinking(self, agent_name: str, agent_role: str, agent_type: AgentRole) -> SwarmStep:
        return await self.emit(SwarmStep(agent_name, agent_role, agent_type, "thinking"))

    async def done(
        self,
        agent_name: str,
        agent_role: str,
        agent_type: AgentRole,
        output: Optional[str] = None,
    ) -> SwarmStep:
        return await self.emit(
            SwarmStep(agent_name, agent_role, agent_type, "done", preview(output, self.preview_chars))
        )


@dataclass
class SwarmRuntime:
    generator: StructuredGenerator
    market_context: MarketContextProvider
    config: SwarmConfig = field(default_factory=SwarmConfig)
    emitter: StepEmitter = field(default_factory=StepEmitter)
    on_effect: Optional[EffectCallback] = None

    async def push_effect(self, effect: Effect) -> None:
        """Hand a lead-store write to the caller as soon as it is known."""
        if self.on_effect is None:
            return
        try:
            await _maybe_await(self.on_effect(effect))
        except Exception as e:
            logger.error("Effect sink failed for %s on lead %s: %s", effect.kind, effect.lead_id, e)


async def _maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


def get_runtime(config: Optional[RunnableConfig]) -> SwarmRuntime:
    configurable = (config or {}).get("configurable", {})
    runtime = configurable.get("swarm")
    if runtime is None:
        raise RuntimeError("Swarm graph invoked without a SwarmRuntime in config['configurable']['swarm']")
    return runtime
