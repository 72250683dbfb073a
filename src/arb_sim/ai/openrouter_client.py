"""OpenRouter LLM client for trade analyses and lessons."""

from __future__ import annotations

import json
import time
from dataclasses import asdict
from typing import Any

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from arb_sim.ai.schemas import Lesson, TradeAnalysis
from arb_sim.config import Settings
from arb_sim.types import TradeRecord
from arb_sim.utils.logging import get_logger, log_llm_call

_OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"

_SYSTEM_PROMPT = (
    "You analyze cross-exchange cryptocurrency arbitrage executions. "
    "Be analytical and cautious, focused on capital preservation. "
    "Return only JSON."
)

_ANALYSIS_INSTRUCTIONS = (
    "Analyze this simulated arbitrage execution in five layers and return JSON with keys "
    "summary (one sentence) and layers (object with l1..l5): "
    "l1 sensory (data captured), l2 pattern (inefficiency recognized), "
    "l3 risk (confidence and safety corridor), l4 strategic (temporal significance), "
    "l5 crystallization (final reflection)."
)

_LESSON_INSTRUCTIONS = (
    "Write one retention flashcard about this trade outcome, explaining the structural "
    "reasons for its success or failure. Return JSON with keys topic, content, reasoning "
    "and retention_score (0-100)."
)


class OpenRouterError(Exception):
    """Base OpenRouter error."""


class OpenRouterAPIError(OpenRouterError):
    """Raised when API transport/request fails."""


class OpenRouterClient:
    """Thin async client for the OpenRouter chat completion endpoint."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._logger = get_logger("arb_sim.ai.openrouter_client")

    async def analyze_trade(self, record: TradeRecord) -> TradeAnalysis | None:
        """Layered analysis of one settled trade. ``None`` if unparsable."""
        content = await self._timed_completion(
            f"{_ANALYSIS_INSTRUCTIONS}\nTrade: {_trade_payload(record)}",
            purpose="trade_analysis",
        )
        return TradeAnalysis.parse_response_text(content)

    async def generate_lesson(self, record: TradeRecord) -> Lesson | None:
        """Retention lesson for one notable trade. ``None`` if unparsable."""
        event = (
            f"Trade outcome: execution {record.id}, net yield {record.net_profit:.2f} USDT, "
            f"status {record.status}."
        )
        content = await self._timed_completion(
            f"{_LESSON_INSTRUCTIONS}\nEvent: {event}\nTrade: {_trade_payload(record)}",
            purpose="lesson",
        )
        return Lesson.parse_response_text(content)

    async def _timed_completion(self, prompt: str, *, purpose: str) -> str:
        started = time.perf_counter()
        try:
            content = await self._request_completion(prompt)
        except OpenRouterAPIError:
            log_llm_call(
                self._logger,
                model=self._settings.openrouter_model,
                success=False,
                latency_ms=(time.perf_counter() - started) * 1000,
                purpose=purpose,
                reason="api_error",
            )
            raise
        log_llm_call(
            self._logger,
            model=self._settings.openrouter_model,
            success=True,
            latency_ms=(time.perf_counter() - started) * 1000,
            purpose=purpose,
        )
        return content

    @retry(
        retry=retry_if_exception_type(OpenRouterAPIError),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    async def _request_completion(self, prompt: str) -> str:
        if not self._settings.openrouter_api_key:
            raise OpenRouterAPIError("missing_openrouter_api_key")

        headers = {
            "Authorization": f"Bearer {self._settings.openrouter_api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": self._settings.openrouter_model,
            "temperature": 0.5,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
        }

        try:
            async with httpx.AsyncClient(timeout=self._settings.openrouter_timeout) as client:
                response = await client.post(_OPENROUTER_URL, headers=headers, json=payload)
                response.raise_for_status()
        except (httpx.HTTPError, httpx.TimeoutException) as exc:
            raise OpenRouterAPIError(str(exc)) from exc

        return _extract_message_content(response.json())


def _trade_payload(record: TradeRecord) -> str:
    payload = asdict(record)
    payload.pop("rationale", None)
    payload.pop("analysis_layers", None)
    return json.dumps(payload, ensure_ascii=True)


def _extract_message_content(payload: dict[str, Any]) -> str:
    """Read assistant content from OpenRouter response payload."""
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return "{}"
    first = choices[0]
    if not isinstance(first, dict):
        return "{}"
    message = first.get("message")
    if not isinstance(message, dict):
        return "{}"
    content = message.get("content")
    if isinstance(content, str):
        return content
    return "{}"
