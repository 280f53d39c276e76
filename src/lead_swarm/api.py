"""
FastAPI backend for the lead advisory swarm.
Exposes swarm runs to the CRM frontend.
"""
import asyncio
import json
import logging
from functools import lru_cache

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from lead_swarm import __version__
from lead_swarm.config import SwarmConfig
from lead_swarm.service import SwarmService
from lead_swarm.utils.batch_processor import run_lead_batch
from lead_swarm.utils.error_handler import LeadNotFoundError
from lead_swarm.utils.lead_store import JsonLeadStore
from lead_swarm.utils.logging import setup_logger

setup_logger("lead_swarm")
logger = logging.getLogger(__name__)

app = FastAPI(title="Lead Swarm API", version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache()
def get_service() -> SwarmService:
    config = SwarmConfig.from_env()
    return SwarmService(JsonLeadStore(config.lead_store_path), config=config)


class BatchRequest(BaseModel):
    lead_ids: list[str] = Field(min_length=1)
    max_concurrency: int = Field(4, ge=1, le=16)


@app.post("/api/leads/{lead_id}/swarm")
async def run_lead_swarm(lead_id: str, service: SwarmService = Depends(get_service)):
    try:
        outcome = await service.run(lead_id)
    except LeadNotFoundError:
        logger.warning(f"Swarm requested for unknown lead {lead_id}")
        raise HTTPException(status_code=404, detail=f"Lead with ID {lead_id} not found.")
    return outcome.to_dict()


@app.post("/api/leads/{lead_id}/swarm/stream")
async def stream_lead_swarm(lead_id: str, service: SwarmService = Depends(get_service)):
    """
    Live timeline as newline-delimited JSON.

    One ``{"type": "step", ...}`` line per thinking/done step in execution
    order, then a final ``{"type": "outcome", ...}`` (or ``"error"``) line.
    """
    try:
        await service.get_lead(lead_id)
    except LeadNotFoundError:
        logger.warning(f"Swarm stream requested for unknown lead {lead_id}")
        raise HTTPException(status_code=404, detail=f"Lead with ID {lead_id} not found.")

    queue: asyncio.Queue = asyncio.Queue()

    async def push_step(step):
        await queue.put({"type": "step", **step.to_dict()})

    async def drive():
        try:
            outcome = await service.run(lead_id, push_step)
            await queue.put({"type": "outcome", **outcome.to_dict()})
        except Exception as e:
            logger.error(f"Streaming swarm for lead {lead_id} failed: {e}")
            await queue.put({"type": "error", "message": str(e)})
        finally:
            await queue.put(None)

    async def generate():
        task = asyncio.create_task(drive())
        try:
            while True:
                item = await queue.get()
                if item is None:
                    break
                yield json.dumps(item, ensure_ascii=False) + "\n"
        finally:
            await task

    return StreamingResponse(
        generate(),
        media_type="application/x-ndjson",
        headers={"Cache-Control": "no-cache"},
    )


@app.post("/api/leads/batch")
async def run_batch(req: BatchRequest, service: SwarmService = Depends(get_service)):
    results = await run_lead_batch(service, req.lead_ids, req.max_concurrency)
    return {"results": results}


@app.get("/api/health")
def health(service: SwarmService = Depends(get_service)):
    return {
        "status": "ok",
        "engine": f"LangGraph swarm v{__version__}",
        "llm": service.config.provider,
        "maxIterations": service.config.max_iterations,
    }
