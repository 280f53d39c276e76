"""
Service layer: load a lead, run the swarm for it, persist what the swarm learned.

Runs for the same lead are serialized so two swarms never interleave writes
to one record; different leads run concurrently. Store calls run in worker
threads so file I/O never blocks the event loop.
"""

import asyncio
import logging
from collections import Counter
from contextlib import asynccontextmanager
from typing import Optional

from lead_swarm.config import SwarmConfig
from lead_swarm.models import Lead
from lead_swarm.orchestration import SwarmOutcome, run_swarm
from lead_swarm.orchestration.runtime import MarketContextProvider, StepCallback, StructuredGenerator
from lead_swarm.orchestration.state import Effect
from lead_swarm.utils.lead_store import LeadStore, apply_effect
from lead_swarm.utils.logging import log_audit_action

logger = logging.getLogger(__name__)


class SwarmService:
    def __init__(
        self,
        store: LeadStore,
        generator: Optional[StructuredGenerator] = None,
        config: Optional[SwarmConfig] = None,
        market_context: Optional[MarketContextProvider] = None,
    ):
        self.store = store
        self.generator = generator
        self.config = config or SwarmConfig.from_env()
        self.market_context = market_context
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: Counter = Counter()

    @asynccontextmanager
    async def lead_lock(self, lead_id: str):
        """Exclusive access to one lead; the lock is discarded once nobody holds or awaits it."""
        lock = self._locks.setdefault(lead_id, asyncio.Lock())
        self._lock_users[lead_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[lead_id] -= 1
            if self._lock_users[lead_id] <= 0:
                del self._lock_users[lead_id]
                self._locks.pop(lead_id, None)

    @property
    def active_leads(self) -> list[str]:
        return list(self._locks)

    async def get_lead(self, lead_id: str) -> Lead:
        """Raises LeadNotFoundError for unknown leads."""
        return await asyncio.to_thread(self.store.get, lead_id)

    async def _persist(self, effect: Effect) -> None:
        await asyncio.to_thread(apply_effect, self.store, effect)
        log_audit_action(effect.lead_id, effect.kind.upper(), f"Persisted {effect.kind} for lead {effect.lead_id}.")

    async def run(self, lead_id: str, on_step: Optional[StepCallback] = None) -> SwarmOutcome:
        """Run the swarm for ``lead_id``. Raises LeadNotFoundError for unknown leads."""
        async with self.lead_lock(lead_id):
            lead = await self.get_lead(lead_id)
            logger.info(f"Running swarm for lead {lead_id}")
            return await run_swarm(
                lead,
                on_step,
                generator=self.generator,
                market_context=self.market_context,
                config=self.config,
                on_effect=self._persist,
            )
