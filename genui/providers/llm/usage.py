"""Token usage estimation and cost accounting."""

import math
from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel

from genui.providers.llm.base import UsageRecord


class UsageTotals(BaseModel):
    """Aggregated usage over several layer calls."""

    total_tokens: int = 0
    total_requests: int = 0
    estimated_cost_usd: float = 0.0


def estimate_tokens(text: str) -> int:
    """Rough token count: one token per four characters, at least one."""
    if not text:
        return 0
    return max(1, math.ceil(len(text) / 4))


def _first_count(raw: dict[str, Any] | None, *keys: str) -> int:
    if not raw:
        return 0
    for key in keys:
        value = raw.get(key)
        if value is None:
            continue
        try:
            count = int(value)
        except (TypeError, ValueError):
            continue
        if count > 0:
            return count
    return 0


def build_usage(
    layer: str,
    vendor: str,
    model: str,
    prompt_text: str,
    completion_text: str,
    raw_usage: dict[str, Any] | None = None,
    input_cost_per_1k: float = 0.0,
    output_cost_per_1k: float = 0.0,
    requests: int = 1,
) -> UsageRecord:
    """Build a usage record, preferring vendor-reported counts."""
    prompt_tokens = _first_count(
        raw_usage, "prompt_tokens", "input_tokens", "inputTokens"
    ) or estimate_tokens(prompt_text)
    completion_tokens = _first_count(
        raw_usage, "completion_tokens", "output_tokens", "completionTokens", "outputTokens"
    ) or estimate_tokens(completion_text)
    total_tokens = _first_count(raw_usage, "total_tokens", "totalTokens") or (
        prompt_tokens + completion_tokens
    )

    cost = (prompt_tokens / 1000) * input_cost_per_1k + (
        completion_tokens / 1000
    ) * output_cost_per_1k

    return UsageRecord(
        layer=layer,
        vendor=vendor,
        model=model,
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=total_tokens,
        requests=requests,
        estimated_cost_usd=round(cost, 8),
    )


def summarize_usage(records: Iterable[UsageRecord]) -> UsageTotals:
    """Total tokens, requests and cost over a list of records."""
    totals = UsageTotals()
    for record in records:
        totals.total_tokens += record.total_tokens
        totals.total_requests += record.requests
        totals.estimated_cost_usd += record.estimated_cost_usd
    totals.estimated_cost_usd = round(totals.estimated_cost_usd, 8)
    return totals
