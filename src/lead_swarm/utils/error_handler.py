import functools
import logging

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)


class SwarmError(Exception):
    """Base exception for the lead swarm."""
    pass


class GenerationError(SwarmError):
    pass


class LLMRateLimitError(GenerationError):
    pass


class StructuredOutputError(SwarmError):
    """Model text could not be turned into the requested schema."""
    pass


class LeadNotFoundError(SwarmError):
    pass


def is_rate_limit(exc: Exception) -> bool:
    message = str(exc).lower()
    return "429" in message or "rate limit" in message or "resource exhausted" in message


def handle_rate_limit(retry_state):
    logger.warning(f"Rate limited. Retrying... Attempt {retry_state.attempt_number}")


async def safe_llm_invoke(llm, prompt, max_attempts: int = 3):
    """
    Invoke a LangChain runnable asynchronously.

    Only provider throttling (HTTP 429) is retried, with exponential backoff.
    Every other failure propagates to the caller's failure policy.
    """
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(max(max_attempts, 1)),
        wait=wait_exponential(multiplier=2, min=2, max=30),
        retry=retry_if_exception_type(LLMRateLimitError),
        after=handle_rate_limit,
        reraise=True,
    ):
        with attempt:
            try:
                return await llm.ainvoke(prompt)
            except Exception as e:
                if is_rate_limit(e):
                    raise LLMRateLimitError(str(e)) from e
                raise


def graceful_fallback(fallback):
    """Decorator for coroutines: return a fallback upon failure.

    ``fallback`` is either a plain value or a callable receiving the exception
    and the original call arguments.
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                logger.error(f"Error in {func.__name__}: {str(e)}. Using fallback.")
                if callable(fallback):
                    return fallback(e, *args, **kwargs)
                return fallback
        return wrapper
    return decorator
