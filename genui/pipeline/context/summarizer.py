"""Conversation context compression.

Keeps the most recent turns verbatim and replaces older turns with a short
deterministic summary, plus a digest of the current UI state. An optional
LLM pass can refine the summary; any failure keeps the deterministic one.
"""

import json
from typing import Any

from pydantic import BaseModel, Field

from genui.config.models.pipeline import SummarizerConfig
from genui.observability.logging import get_logger
from genui.pipeline.models.context import GenerationContext
from genui.providers.llm import LayerLLMExecutor, LLMMessage, UsageRecord

logger = get_logger(__name__)

MAX_SUMMARY_CHARS = 1800
MAX_MESSAGE_CHARS = 220
MAX_UI_DIGEST_CHARS = 700
MAX_DIGEST_KEYS = 20
MAX_KEY_PREFERENCES = 8

SUMMARIZER_SYSTEM_PROMPT = (
    "You compress chat context. Return ONLY JSON with keys: contextSummary"
    "(string <= 400 tokens) and keyPreferences(string[]). Keep it factual and compact."
)


class SummarizerResult(BaseModel):
    """Compressed context plus any LLM usage."""

    context: GenerationContext
    usage: list[UsageRecord] = Field(default_factory=list)


def truncate(value: str, max_chars: int) -> str:
    """Cut a string to max_chars, marking the cut with an ellipsis."""
    if not value:
        return ""
    if len(value) <= max_chars:
        return value
    return f"{value[: max_chars - 3]}..."


def describe_value(value: Any) -> str:
    """One-line description of a UI state value."""
    if value is None:
        return "null"
    if isinstance(value, list):
        return f"array(len={len(value)})"
    if isinstance(value, dict):
        keys = list(value)
        preview = ", ".join(str(k) for k in keys[:5])
        suffix = ", ..." if len(keys) > 5 else ""
        return f"object(keys={len(keys)}{': ' + preview + suffix if preview else ''})"
    if isinstance(value, str):
        return f'"{truncate(value, 60)}"'
    return json.dumps(value) if isinstance(value, bool) else str(value)


def build_ui_state_digest(ui_state: dict[str, Any] | None) -> str | None:
    """Compact description of the top-level UI state keys."""
    if not ui_state or not isinstance(ui_state, dict):
        return None

    entries = list(ui_state.items())
    top = [f"{key}: {describe_value(value)}" for key, value in entries[:MAX_DIGEST_KEYS]]
    extra = len(entries) - len(top)
    extra_suffix = f"; +{extra} more keys" if extra > 0 else ""

    return truncate(
        f"UI state digest ({len(entries)} keys): {'; '.join(top)}{extra_suffix}",
        MAX_UI_DIGEST_CHARS,
    )


class ContextSummarizer:
    """Compresses conversation history before generation."""

    def __init__(
        self,
        llm_executor: LayerLLMExecutor | None = None,
        config: SummarizerConfig | None = None,
    ) -> None:
        self._llm_executor = llm_executor
        self._config = config or SummarizerConfig()

    async def compress(self, context: GenerationContext) -> SummarizerResult:
        """Return a compressed copy of the context."""
        history = context.conversation_history
        digest = build_ui_state_digest(context.current_ui_state)

        logger.debug(
            "summarizer_start",
            history_count=len(history),
            trace_id=context.trace_id,
        )

        if not self._config.enabled or not history:
            return SummarizerResult(context=context.model_copy(update={"ui_state_digest": digest}))

        keep = self._config.max_recent_messages
        recent = history[-keep:]
        older = history[:-keep] if len(history) > keep else []

        summary: str | None = None
        if older:
            lines = [
                f"{i}. {message.role}: {truncate(message.content.strip(), MAX_MESSAGE_CHARS)}"
                for i, message in enumerate(older, start=1)
            ]
            summary = truncate(
                "Earlier conversation summary:\n" + "\n".join(lines),
                MAX_SUMMARY_CHARS,
            )

        compressed = context.model_copy(
            update={
                "conversation_history": list(recent),
                "context_summary": summary,
                "ui_state_digest": digest,
            }
        )

        if not self._config.llm_refinement or not summary or self._llm_executor is None:
            return SummarizerResult(context=compressed)

        return await self._refine(compressed, summary)

    async def _refine(self, context: GenerationContext, summary: str) -> SummarizerResult:
        payload = {
            "deterministicSummary": summary,
            "uiStateDigest": context.ui_state_digest,
            "userPrompt": context.user_prompt,
        }
        try:
            response = await self._llm_executor.complete(
                "summarizer",
                [
                    LLMMessage(role="system", content=SUMMARIZER_SYSTEM_PROMPT),
                    LLMMessage(role="user", content=json.dumps(payload)),
                ],
                tier="fast",
                response_kind="structured",
                temperature=0.0,
                trace_id=context.trace_id,
            )
        except Exception as e:
            logger.warning("summarizer_llm_refinement_failed", error=str(e), trace_id=context.trace_id)
            return SummarizerResult(context=context)

        data = response.json_data if isinstance(response.json_data, dict) else {}
        if not data:
            logger.warning("summarizer_llm_refinement_empty", trace_id=context.trace_id)
            return SummarizerResult(context=context)

        better = truncate(str(data.get("contextSummary") or summary), MAX_SUMMARY_CHARS)
        preferences = data.get("keyPreferences")
        if isinstance(preferences, list) and preferences:
            joined = ", ".join(str(p) for p in preferences[:MAX_KEY_PREFERENCES])
            better = f"{better}\n\nKey preferences: {joined}"

        return SummarizerResult(
            context=context.model_copy(update={"context_summary": better}),
            usage=[response.usage],
        )

