"""
Universal LLM Provider - switch between Google, Groq, OpenRouter or Ollama with ONE environment variable,
plus the structured generation capability the swarm consumes.
"""

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Optional, Type

from langchain_core.messages import HumanMessage
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_openai import ChatOpenAI
from pydantic import BaseModel

from lead_swarm.config import DEFAULT_WORKER_MODELS, SwarmConfig
from lead_swarm.utils.error_handler import LLMRateLimitError, safe_llm_invoke

logger = logging.getLogger(__name__)

# Global state to keep track of current key index per provider
_KEY_INDEXES = {"openrouter": 0, "google": 0, "groq": 0}


def get_keys_for_provider(provider: str) -> list:
    """Gets a list of keys from the environment for a given provider."""
    env_var = f"{provider.upper()}_API_KEY"
    raw_val = os.getenv(env_var, "")
    # Support comma-separated keys or multiple lines
    return [k.strip() for k in raw_val.replace(",", " ").split() if k.strip()]


def rotate_key(provider: str):
    """Increments the key index for the provider."""
    keys = get_keys_for_provider(provider)
    if len(keys) > 1:
        _KEY_INDEXES[provider] = (_KEY_INDEXES[provider] + 1) % len(keys)
        logger.warning(f"Rotating to next {provider} API key (New index: {_KEY_INDEXES[provider]})")


def get_llm(
    temperature: float = 0.3,
    model_override: Optional[str] = None,
    max_output_tokens: Optional[int] = None,
    provider: Optional[str] = None,
    **model_kwargs: Any,
):
    """
    Get a chat model for the configured provider with multi-key rotation support.

    Extra keyword arguments go straight to the model constructor (e.g. Gemini's
    ``response_mime_type``).
    """
    provider = (provider or os.getenv("LLM_PROVIDER", "google")).lower()
    if provider == "gemini":
        provider = "google"
    keys = get_keys_for_provider(provider)

    # Fallback to standard env var if key list is empty
    current_idx = _KEY_INDEXES.get(provider, 0)
    if not keys:
        api_key = os.getenv(f"{provider.upper()}_API_KEY")
    else:
        api_key = keys[current_idx % len(keys)]

    model = model_override or DEFAULT_WORKER_MODELS.get(provider)

    if provider == "groq":
        from langchain_groq import ChatGroq
        if not api_key:
            raise ValueError("GROQ_API_KEY not set in .env")
        return ChatGroq(
            api_key=api_key, model=model, temperature=temperature,
            max_tokens=max_output_tokens, max_retries=1, **model_kwargs,
        )

    elif provider == "openrouter":
        if not api_key:
            raise ValueError("OPENROUTER_API_KEY not set in .env")
        return ChatOpenAI(
            api_key=api_key,
            base_url="https://openrouter.ai/api/v1",
            model=model,
            temperature=temperature,
            max_tokens=max_output_tokens,
            max_retries=1,
            **model_kwargs,
        )

    elif provider == "ollama":
        return ChatOpenAI(
            base_url="http://localhost:11434/v1",
            api_key="ollama",
            model=model,
            temperature=temperature,
            max_tokens=max_output_tokens,
            max_retries=1,
            **model_kwargs,
        )

    elif provider == "google":
        if not api_key:
            raise ValueError("GOOGLE_API_KEY not set in .env")
        return ChatGoogleGenerativeAI(
            model=model,
            google_api_key=api_key,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            max_retries=1,
            **model_kwargs,
        )

    else:
        raise ValueError(f"Unknown provider: {provider}. Use: groq, openrouter, google, or ollama")


@dataclass(frozen=True)
class GenerationOptions:
    """What a single generation call asks of the provider."""

    temperature: float = 0.3
    max_output_tokens: Optional[int] = None
    model: Optional[str] = None
    search: bool = False
    schema: Optional[Type[BaseModel]] = None


@dataclass(frozen=True)
class GenerationResult:
    text: str


def schema_instruction(schema: Type[BaseModel]) -> str:
    """Prompt suffix that pins the reply to a JSON schema."""
    return (
        "\n\nRespond ONLY with a JSON object matching this JSON schema, without commentary:\n"
        f"{json.dumps(schema.model_json_schema(), ensure_ascii=False)}"
    )


class LangChainGenerator:
    """Structured generation backed by a LangChain chat model.

    - ``search`` binds Gemini's Google Search grounding tool (ignored elsewhere).
    - ``schema`` is enforced by the provider at decode time through
      ``with_structured_output``; the raw reply text is still returned so the
      caller does the final validation.
    """

    def __init__(self, config: Optional[SwarmConfig] = None):
        self.config = config or SwarmConfig.from_env()

    def _build(self, options: GenerationOptions):
        provider = self.config.provider
        llm = get_llm(
            temperature=options.temperature,
            model_override=options.model or self.config.resolved_worker_model,
            max_output_tokens=options.max_output_tokens,
            provider=provider,
        )
        if options.search:
            if provider == "google":
                llm = llm.bind_tools([{"google_search": {}}])
            else:
                logger.debug("Search grounding not available for provider %s", provider)
        if options.schema is not None:
            # Native response schema: enum fields such as the routing target are constrained while decoding.
            llm = llm.with_structured_output(options.schema, method="json_schema", include_raw=True)
        return llm

    async def generate(self, prompt: str, options: GenerationOptions) -> GenerationResult:
        if options.schema is not None:
            prompt = prompt + schema_instruction(options.schema)
        llm = self._build(options)
        try:
            response = await safe_llm_invoke(
                llm,
                [HumanMessage(content=prompt)],
                max_attempts=self.config.rate_limit_retries,
            )
        except LLMRateLimitError:
            rotate_key(self.config.provider)
            raise
        if isinstance(response, dict):
            # include_raw=True: {"raw": AIMessage, "parsed": ..., "parsing_error": ...}
            response = response.get("raw")
        return GenerationResult(text=_response_text(response))


def _response_text(response) -> str:
    content = getattr(response, "content", response)
    if isinstance(content, list):
        # Grounded Gemini replies arrive as a list of content parts.
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text", ""))
        return "".join(parts)
    return str(content or "")
