"""Tests for LLMUIProvider."""

import asyncio
import json
from collections.abc import Callable
from typing import Any

import pytest

from genui.manifest import StaticManifestRegistry
from genui.pipeline.fallback import is_retryable_error
from genui.pipeline.generation import PromptBuilder
from genui.pipeline.models.chunks import UISchemaChunk
from genui.pipeline.models.context import GenerationContext
from genui.pipeline.models.routing import RoutingDecision
from genui.providers.llm import LayerLLMExecutor, MockVendorClients, ModelError, RateLimitError
from genui.providers.ui import LLMUIProvider
from genui.providers.ui.llm import MODEL_CONFIG_ERROR, NOT_CONFIGURED, PARSE_ERROR


@pytest.fixture
def make_provider(
    manifest: StaticManifestRegistry,
    make_executor: Callable[..., LayerLLMExecutor],
) -> Callable[..., LLMUIProvider]:
    def _make(
        clients: MockVendorClients,
        vendor: str = "gemini",
        routing: dict[str, str] | None = None,
    ) -> LLMUIProvider:
        executor = make_executor(clients, routing=routing)
        return LLMUIProvider(vendor, executor, PromptBuilder(manifest))

    return _make


async def collect(provider: LLMUIProvider, context: GenerationContext) -> list[UISchemaChunk]:
    return [chunk async for chunk in provider.generate_ui(context)]


class TestGenerate:
    """Tests for LLMUIProvider.generate_ui."""

    @pytest.mark.asyncio
    async def test_streams_partials_then_complete(
        self,
        make_provider: Callable[..., LLMUIProvider],
        context: GenerationContext,
        valid_schema: dict[str, Any],
    ) -> None:
        text = json.dumps(valid_schema)
        clients = MockVendorClients(default_response=text, stream_chunk_size=20)

        chunks = await collect(make_provider(clients), context)

        *partials, final = chunks
        assert all(chunk.type == "partial" for chunk in partials)
        assert "".join(chunk.data["content"] for chunk in partials) == text
        assert final.type == "complete"
        assert final.data == valid_schema
        usage = final.meta.usage[0]
        assert (usage.layer, usage.vendor) == ("schema", "gemini")
        assert usage.total_tokens > 0

    @pytest.mark.asyncio
    async def test_uses_routed_tier_and_own_vendor(
        self,
        make_provider: Callable[..., LLMUIProvider],
        valid_schema: dict[str, Any],
    ) -> None:
        clients = MockVendorClients(default_response=json.dumps(valid_schema))
        context = GenerationContext(
            user_prompt="Build a CRM", routing_decision=RoutingDecision(model_tier="quality")
        )

        chunks = await collect(make_provider(clients, vendor="groq"), context)

        assert chunks[-1].type == "complete"
        call = clients.call_history[0]
        assert call["vendor"] == "groq"
        assert call["model"] == "llama-3.3-70b-versatile"
        assert call["temperature"] == 0.2
        assert call["stream"] is True

    @pytest.mark.asyncio
    async def test_fenced_output_is_parsed(
        self, make_provider: Callable[..., LLMUIProvider], context: GenerationContext
    ) -> None:
        clients = MockVendorClients(default_response='```json\n{"type": "card",}\n```')

        chunks = await collect(make_provider(clients), context)

        assert chunks[-1].data == {"type": "card"}


class TestFailures:
    """Tests for error chunks."""

    @pytest.mark.asyncio
    async def test_not_configured(
        self, make_provider: Callable[..., LLMUIProvider], context: GenerationContext
    ) -> None:
        clients = MockVendorClients(configured=("gemini",))
        provider = make_provider(clients, vendor="groq")

        chunks = await collect(provider, context)

        assert provider.is_available() is False
        assert [chunk.error_code for chunk in chunks] == [NOT_CONFIGURED]
        assert clients.call_history == []

    @pytest.mark.asyncio
    async def test_misconfigured_model(
        self, make_provider: Callable[..., LLMUIProvider], context: GenerationContext
    ) -> None:
        clients = MockVendorClients()
        provider = make_provider(clients, routing={"AI_LAYER_SCHEMA_GEMINI_MODEL": "gpt-4"})

        chunks = await collect(provider, context)

        assert len(chunks) == 1
        assert chunks[0].error_code == MODEL_CONFIG_ERROR
        assert clients.call_history == []

    @pytest.mark.asyncio
    async def test_rejected_model(
        self, make_provider: Callable[..., LLMUIProvider], context: GenerationContext
    ) -> None:
        clients = MockVendorClients()
        clients.script("gemini", ModelError("model not found", status_code=404))

        chunks = await collect(make_provider(clients), context)

        assert chunks[-1].error_code == MODEL_CONFIG_ERROR

    @pytest.mark.asyncio
    async def test_rate_limited_stream(
        self, make_provider: Callable[..., LLMUIProvider], context: GenerationContext
    ) -> None:
        clients = MockVendorClients()
        clients.script("gemini", RateLimitError("Rate limited: quota", status_code=429))

        chunks = await collect(make_provider(clients), context)

        assert len(chunks) == 1
        assert chunks[0].type == "error"
        assert chunks[0].error_code == "429"

    @pytest.mark.asyncio
    async def test_sdk_exception_is_classified(
        self, make_provider: Callable[..., LLMUIProvider], context: GenerationContext
    ) -> None:
        clients = MockVendorClients()
        clients.script("gemini", ConnectionError("connection reset by peer"))

        chunks = await collect(make_provider(clients), context)

        assert chunks[-1].type == "error"
        assert "connection reset" in chunks[-1].error_message
        assert chunks[-1].error_code == ""

    @pytest.mark.asyncio
    async def test_bare_timeout_is_retryable(
        self, make_provider: Callable[..., LLMUIProvider], context: GenerationContext
    ) -> None:
        clients = MockVendorClients()
        clients.script("gemini", asyncio.TimeoutError())

        chunks = await collect(make_provider(clients), context)

        assert chunks[-1].type == "error"
        assert "timed out" in chunks[-1].error_message
        assert is_retryable_error(chunks[-1])

    @pytest.mark.asyncio
    async def test_unparseable_output(
        self, make_provider: Callable[..., LLMUIProvider], context: GenerationContext
    ) -> None:
        clients = MockVendorClients(default_response="Sorry, I cannot build that UI.")

        chunks = await collect(make_provider(clients), context)

        assert chunks[0].type == "partial"
        assert chunks[-1].error_code == PARSE_ERROR
        assert len([chunk for chunk in chunks if chunk.is_terminal]) == 1

    @pytest.mark.asyncio
    async def test_non_object_output(
        self, make_provider: Callable[..., LLMUIProvider], context: GenerationContext
    ) -> None:
        clients = MockVendorClients(default_response="[1, 2, 3]")

        chunks = await collect(make_provider(clients), context)

        assert chunks[-1].error_code == PARSE_ERROR
        assert "non-object" in chunks[-1].error_message


class TestUpdate:
    """Tests for LLMUIProvider.update_ui."""

    @pytest.mark.asyncio
    async def test_update_prompt(
        self,
        make_provider: Callable[..., LLMUIProvider],
        context: GenerationContext,
        valid_schema: dict[str, Any],
    ) -> None:
        clients = MockVendorClients(default_response=json.dumps(valid_schema))
        provider = make_provider(clients)

        chunks = [
            chunk async for chunk in provider.update_ui(valid_schema, {"type": "click"}, context)
        ]

        assert chunks[-1].type == "complete"
        user_message = clients.call_history[0]["messages"][-1].content
        assert user_message.startswith("Current UI schema:")
        assert 'User interaction: {"type": "click"}' in user_message
