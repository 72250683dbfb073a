"""Enrichment response schemas and strict parsing helpers."""

from __future__ import annotations

import json
import re
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class _StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    @classmethod
    def parse_strict(cls, payload: dict[str, Any]) -> Self | None:
        """Parse a raw dict. Any violation maps to ``None``."""
        try:
            return cls.model_validate(payload)
        except ValidationError:
            return None

    @classmethod
    def parse_response_text(cls, text: str) -> Self | None:
        """Parse model text. Non-JSON or invalid JSON maps to ``None``."""
        try:
            json_obj = _extract_json_obj(text)
        except ValueError:
            return None
        return cls.parse_strict(json_obj)


class AnalysisLayers(_StrictModel):
    """Five-step reading of one trade, from raw data to final reflection."""

    l1: str = Field(min_length=1, description="Sensory: data captured")
    l2: str = Field(min_length=1, description="Pattern: inefficiency recognized")
    l3: str = Field(min_length=1, description="Risk: confidence and safety corridor")
    l4: str = Field(min_length=1, description="Strategic: temporal significance")
    l5: str = Field(min_length=1, description="Crystallization: final reflection")


class TradeAnalysis(_StrictModel):
    """Rationale attached to a settled live trade."""

    summary: str = Field(min_length=1)
    layers: AnalysisLayers


class Lesson(_StrictModel):
    """Retention note derived from a notable trade outcome."""

    topic: str = Field(min_length=1)
    content: str = Field(min_length=1)
    reasoning: str = Field(min_length=1)
    retention_score: float = Field(ge=0.0, le=100.0)


def _extract_json_obj(text: str) -> dict[str, Any]:
    """Extract the first JSON object from plain text or fenced content."""
    stripped = text.strip()
    if stripped.startswith("{") and stripped.endswith("}"):
        return _decode_object(stripped)

    fenced_match = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", stripped, re.DOTALL)
    if fenced_match:
        return _decode_object(fenced_match.group(1))

    brace_match = re.search(r"\{.*\}", stripped, re.DOTALL)
    if brace_match:
        return _decode_object(brace_match.group(0))

    raise ValueError("model_response_not_json")


def _decode_object(raw: str) -> dict[str, Any]:
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("model_response_invalid_json") from exc
    if isinstance(decoded, dict):
        return decoded
    raise ValueError("model_response_json_not_object")
