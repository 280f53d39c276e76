import logging
import re
from typing import Type, TypeVar

from pydantic import BaseModel, ValidationError

from lead_swarm.utils.error_handler import StructuredOutputError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_FENCE_PATTERN = re.compile(r"```(?:json)?", re.IGNORECASE)


def extract_json_block(text: str) -> str:
    """
    Best-effort isolation of the JSON object embedded in a model reply.

    Takes everything between the first '{' and the last '}'; when no such pair
    exists, strips markdown code fences and returns the remainder.
    """
    if not text:
        return "{}"

    first_brace = text.find("{")
    last_brace = text.rfind("}")
    if first_brace != -1 and last_brace > first_brace:
        return text[first_brace:last_brace + 1]

    return _FENCE_PATTERN.sub("", text).strip()


def parse_structured(text: str, schema: Type[ModelT]) -> ModelT:
    """Validate model text against ``schema`` or raise StructuredOutputError."""
    payload = extract_json_block(text)
    try:
        return schema.model_validate_json(payload)
    except ValidationError as e:
        logger.warning("Structured output rejected by %s: %s", schema.__name__, e.errors()[:3])
        raise StructuredOutputError(f"{schema.__name__}: {e.error_count()} validation error(s)") from e
