import asyncio
import logging
import time

from lead_swarm.utils.error_handler import graceful_fallback

logger = logging.getLogger(__name__)


def _batch_error(e, lead_id, *args, **kwargs):
    return {"status": "error", "message": str(e)}


async def run_lead_batch(service, lead_ids: list, max_concurrency: int = 4):
    """
    Runs the swarm for many leads at once, at most ``max_concurrency`` in flight.
    A failing lead is reported in its own entry and never stops the batch.
    """
    logger.info(f"Starting batch process for {len(lead_ids)} leads.")
    semaphore = asyncio.Semaphore(max(max_concurrency, 1))

    @graceful_fallback(_batch_error)
    async def run_single(lead_id):
        async with semaphore:
            logger.info(f"Processing lead: {lead_id}")
            outcome = await service.run(lead_id)
            return {
                "status": "degraded" if outcome.degraded else "success",
                "priority": outcome.lead_priority,
                "visited": outcome.visited,
                "script_length": len(outcome.script),
            }

    start_time = time.time()
    unique_ids = list(dict.fromkeys(lead_ids))
    results = await asyncio.gather(*(run_single(lead_id) for lead_id in unique_ids))

    elapsed = time.time() - start_time
    logger.info(f"Batch completed in {elapsed:.2f} seconds.")

    return dict(zip(unique_ids, results))
