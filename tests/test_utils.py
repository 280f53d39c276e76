import asyncio
import json
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pydantic import BaseModel
from tenacity import wait_none

from lead_swarm.utils.compliance import audit_node, redact_pii
from lead_swarm.utils.error_handler import (
    LLMRateLimitError,
    StructuredOutputError,
    graceful_fallback,
    safe_llm_invoke,
)
from lead_swarm.utils.logging import JSONFormatter
from lead_swarm.utils.structured_output import extract_json_block, parse_structured


class Sample(BaseModel):
    name: str
    score: int = 0


def test_extract_json_block_variants():
    assert extract_json_block("") == "{}"
    assert extract_json_block('Sure! {"name": "a"} hope that helps') == '{"name": "a"}'
    assert extract_json_block("```json\nnot an object\n```") == "not an object"


def test_parse_structured_raises_on_bad_payload():
    assert parse_structured('```json\n{"name": "x", "score": 3}\n```', Sample).score == 3
    with pytest.raises(StructuredOutputError):
        parse_structured('{"score": "high"}', Sample)
    with pytest.raises(StructuredOutputError):
        parse_structured("no json here", Sample)


def test_redact_pii():
    text = "Call 0912 345 678 or +84912345678, mail a.b@mail.vn, CCCD 079123456789"
    redacted = redact_pii(text)
    assert "[REDACTED_EMAIL]" in redacted
    assert "[REDACTED_ID]" in redacted
    assert redacted.count("[REDACTED_PHONE]") == 2
    assert "0912" not in redacted
    assert redact_pii("") == ""


def test_audit_node_logs_start_and_failure():
    async def failing(state, config):
        raise ValueError("bad node")

    wrapped = audit_node("risk", failing)
    with patch("lead_swarm.utils.logging.log_audit_action") as mock_audit:
        with pytest.raises(ValueError):
            asyncio.run(wrapped({"lead": MagicMock(id="LEAD_9")}, {}))

    actions = [c.args[1] for c in mock_audit.call_args_list]
    assert actions == ["STARTED_RISK", "FAILED_RISK"]
    assert mock_audit.call_args_list[0].args[0] == "LEAD_9"


def test_json_formatter_includes_audit_extras():
    record = logging.LogRecord("audit", logging.INFO, __file__, 1, "done", None, None)
    record.lead_id = "LEAD_1"
    record.action = "COMPLETED_MANAGER"
    payload = json.loads(JSONFormatter().format(record))
    assert payload["lead_id"] == "LEAD_1"
    assert payload["action"] == "COMPLETED_MANAGER"
    assert payload["message"] == "done"


def test_safe_llm_invoke_retries_only_rate_limits():
    llm = MagicMock()
    llm.ainvoke = AsyncMock(side_effect=[Exception("429 Too Many Requests"), "ok"])
    with patch("lead_swarm.utils.error_handler.wait_exponential", return_value=wait_none()):
        assert asyncio.run(safe_llm_invoke(llm, "hi", max_attempts=3)) == "ok"
    assert llm.ainvoke.await_count == 2

    llm.ainvoke = AsyncMock(side_effect=ValueError("invalid request"))
    with pytest.raises(ValueError):
        asyncio.run(safe_llm_invoke(llm, "hi", max_attempts=3))
    assert llm.ainvoke.await_count == 1


def test_safe_llm_invoke_gives_up_after_max_attempts():
    llm = MagicMock()
    llm.ainvoke = AsyncMock(side_effect=Exception("Resource exhausted"))
    with patch("lead_swarm.utils.error_handler.wait_exponential", return_value=wait_none()):
        with pytest.raises(LLMRateLimitError):
            asyncio.run(safe_llm_invoke(llm, "hi", max_attempts=2))
    assert llm.ainvoke.await_count == 2


def test_graceful_fallback_value_and_callable():
    @graceful_fallback("fallback")
    async def broken():
        raise RuntimeError("x")

    @graceful_fallback(lambda e, item: f"{item}: {e}")
    async def broken_with_args(item):
        raise RuntimeError("down")

    assert asyncio.run(broken()) == "fallback"
    assert asyncio.run(broken_with_args("LEAD_2")) == "LEAD_2: down"
