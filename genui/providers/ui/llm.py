"""UI provider backed by one LLM vendor."""

from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import Any

from genui.observability.logging import get_logger
from genui.pipeline.generation.prompt_builder import PromptBuilder
from genui.pipeline.models.chunks import ChunkMeta, UISchemaChunk
from genui.pipeline.models.context import GenerationContext
from genui.providers.llm import (
    LayerLLMExecutor,
    LLMMessage,
    ModelConfigError,
    ParseError,
    classify_vendor_error,
    parse_structured,
)
from genui.providers.ui.base import UIProvider

logger = get_logger(__name__)

SCHEMA_LAYER = "schema"
SCHEMA_TEMPERATURE = 0.2

MODEL_CONFIG_ERROR = "MODEL_CONFIG_ERROR"
NOT_CONFIGURED = "NOT_CONFIGURED"
PARSE_ERROR = "PARSE_ERROR"

PARTIAL_LOG_EVERY = 25


class LLMUIProvider(UIProvider):
    """Streams schema generation from the `schema` layer of one vendor.

    Text deltas are forwarded as partial chunks; the accumulated text is
    parsed tolerantly into the terminal `complete` chunk.
    """

    def __init__(
        self,
        vendor: str,
        llm_executor: LayerLLMExecutor,
        prompt_builder: PromptBuilder,
    ) -> None:
        self._vendor = vendor
        self._llm_executor = llm_executor
        self._prompt_builder = prompt_builder

    @property
    def name(self) -> str:
        return self._vendor

    def is_available(self) -> bool:
        return self._llm_executor.is_vendor_configured(self._vendor)

    async def generate_ui(self, context: GenerationContext) -> AsyncIterator[UISchemaChunk]:
        messages = self._prompt_builder.build_generate_messages(context)
        async with aclosing(self._run("generate", messages, context)) as chunks:
            async for chunk in chunks:
                yield chunk

    async def update_ui(
        self,
        schema: Any,
        interaction: Any,
        context: GenerationContext,
    ) -> AsyncIterator[UISchemaChunk]:
        messages = self._prompt_builder.build_update_messages(schema, interaction, context)
        async with aclosing(self._run("update", messages, context)) as chunks:
            async for chunk in chunks:
                yield chunk

    async def _run(
        self,
        phase: str,
        messages: list[LLMMessage],
        context: GenerationContext,
    ) -> AsyncIterator[UISchemaChunk]:
        trace_id = context.trace_id
        decision = context.routing_decision
        tier = decision.model_tier if decision is not None else "balanced"

        if not self.is_available():
            logger.error("ui_provider_not_configured", provider=self.name, phase=phase, trace_id=trace_id)
            yield UISchemaChunk.error(f"{self.name} provider is not configured", code=NOT_CONFIGURED)
            return

        try:
            candidate = self._llm_executor.resolver.resolve_chain(
                SCHEMA_LAYER, tier, vendor_override=self._vendor
            ).primary
        except ModelConfigError as e:
            logger.error("ui_provider_model_config_error", provider=self.name, error=str(e), trace_id=trace_id)
            yield UISchemaChunk.error(str(e), code=MODEL_CONFIG_ERROR)
            return

        logger.info(
            "ui_provider_start",
            provider=self.name,
            phase=phase,
            model=candidate.model,
            trace_id=trace_id,
        )

        pieces: list[str] = []
        try:
            deltas = self._llm_executor.stream(
                SCHEMA_LAYER,
                messages,
                tier=tier,
                vendor=self._vendor,
                temperature=SCHEMA_TEMPERATURE,
                trace_id=trace_id,
            )
            async with aclosing(deltas):
                async for delta in deltas:
                    pieces.append(delta)
                    if len(pieces) == 1 or len(pieces) % PARTIAL_LOG_EVERY == 0:
                        logger.debug(
                            "ui_provider_partial",
                            provider=self.name,
                            count=len(pieces),
                            trace_id=trace_id,
                        )
                    yield UISchemaChunk.partial({"content": delta})
        except ModelConfigError as e:
            logger.error("ui_provider_model_config_error", provider=self.name, error=str(e), trace_id=trace_id)
            yield UISchemaChunk.error(str(e), code=MODEL_CONFIG_ERROR)
            return
        except Exception as e:
            error = classify_vendor_error(e)
            logger.error(
                "ui_provider_stream_failed",
                provider=self.name,
                phase=phase,
                error=str(error),
                status_code=error.status_code,
                trace_id=trace_id,
            )
            code = str(error.status_code) if error.status_code else None
            yield UISchemaChunk.error(str(error), code=code)
            return

        text = "".join(pieces)
        try:
            schema = parse_structured(text)
        except ParseError as e:
            logger.warning("ui_provider_json_parse_failed", provider=self.name, phase=phase, trace_id=trace_id)
            yield UISchemaChunk.error(f"{self.name} returned invalid JSON ({phase}): {e}", code=PARSE_ERROR)
            return

        if not isinstance(schema, dict):
            yield UISchemaChunk.error(f"{self.name} returned a non-object schema ({phase})", code=PARSE_ERROR)
            return

        usage = self._llm_executor.account_usage(SCHEMA_LAYER, candidate, messages, text)
        logger.info(
            "ui_provider_complete",
            provider=self.name,
            phase=phase,
            partial_chunks=len(pieces),
            total_tokens=usage.total_tokens,
            trace_id=trace_id,
        )
        yield UISchemaChunk.complete(schema, meta=ChunkMeta(usage=[usage]))
