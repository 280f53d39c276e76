"""
Run configuration for the lead swarm.

Values come from plain environment variables (a local ``.env`` is loaded first),
so the same settings drive the API, batch runs and ad-hoc scripts.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

DEFAULT_WORKER_MODELS = {
    "google": "gemini-2.5-flash",
    "openrouter": "openrouter/auto",
    "groq": "llama-3.3-70b-versatile",
    "ollama": "llama3",
}

DEFAULT_FINALIZER_MODELS = {
    "google": "gemini-2.5-pro",
    "openrouter": "openrouter/auto",
    "groq": "llama-3.3-70b-versatile",
    "ollama": "llama3",
}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else default


@dataclass(frozen=True)
class SwarmConfig:
    """Knobs for a single swarm run.

    Fields
    ------
    provider : str
        LLM provider name understood by ``get_llm``.
    worker_model / finalizer_model : str
        Model ids; empty means "provider default".
    max_iterations : int
        Hard cap on graph passes (Manager decisions plus worker executions).
    preview_chars : int
        Length of the output preview attached to ``done`` steps.
    """

    provider: str = "google"
    worker_model: str = ""
    finalizer_model: str = ""
    max_iterations: int = 6
    preview_chars: int = 150
    supervisor_temperature: float = 0.0
    worker_temperature: float = 0.3
    finalizer_temperature: float = 0.2
    max_output_tokens: int = 2000
    finalizer_max_output_tokens: int = 8192
    rate_limit_retries: int = 3
    lead_store_path: str = "data/leads.json"

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")

    @property
    def resolved_worker_model(self) -> str:
        return self.worker_model or DEFAULT_WORKER_MODELS.get(self.provider, "")

    @property
    def resolved_finalizer_model(self) -> str:
        return self.finalizer_model or DEFAULT_FINALIZER_MODELS.get(self.provider, "")

    @property
    def recursion_limit(self) -> int:
        # One graph step per pass plus the finalizer, with headroom.
        return self.max_iterations * 2 + 10

    @classmethod
    def from_env(cls) -> "SwarmConfig":
        return cls(
            provider=os.getenv("LLM_PROVIDER", "google").lower().replace("gemini", "google"),
            worker_model=os.getenv("SWARM_WORKER_MODEL", ""),
            finalizer_model=os.getenv("SWARM_FINALIZER_MODEL", ""),
            max_iterations=_env_int("SWARM_MAX_ITERATIONS", 6),
            preview_chars=_env_int("SWARM_PREVIEW_CHARS", 150),
            worker_temperature=_env_float("SWARM_WORKER_TEMPERATURE", 0.3),
            finalizer_temperature=_env_float("SWARM_FINALIZER_TEMPERATURE", 0.2),
            max_output_tokens=_env_int("SWARM_MAX_OUTPUT_TOKENS", 2000),
            rate_limit_retries=_env_int("SWARM_RATE_LIMIT_RETRIES", 3),
            lead_store_path=os.getenv("LEAD_STORE_PATH", "data/leads.json"),
        )
