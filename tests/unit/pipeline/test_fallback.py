"""Tests for whole-provider fallback."""

from collections.abc import AsyncIterator

import pytest

from genui.pipeline.fallback import ProviderFallbackCoordinator, is_retryable_error
from genui.pipeline.models.chunks import UISchemaChunk
from genui.pipeline.models.context import GenerationContext
from genui.providers.ui import MockUIProvider, ProviderRegistry, UIProvider
from genui.providers.ui.llm import PARSE_ERROR

ORDER = ["gemini", "openrouter", "groq", "openai", "anthropic"]

SCHEMA = {"type": "container", "children": []}


def make_registry(**runs: list[list[UISchemaChunk]]) -> ProviderRegistry:
    """Registry with a mock provider per vendor; unscripted ones succeed."""
    return ProviderRegistry(MockUIProvider(name, runs=runs.get(name)) for name in ORDER)


def provider(registry: ProviderRegistry, name: str) -> MockUIProvider:
    found = registry.get(name)
    assert isinstance(found, MockUIProvider)
    return found


async def run(
    registry: ProviderRegistry,
    context: GenerationContext,
    primary: str = "gemini",
    enabled: bool = True,
) -> list[UISchemaChunk]:
    coordinator = ProviderFallbackCoordinator(registry, ORDER, enabled=enabled)

    def runner(p: UIProvider) -> AsyncIterator[UISchemaChunk]:
        return p.generate_ui(context)

    return [chunk async for chunk in coordinator.run(registry.get(primary), runner)]


class TestIsRetryableError:
    """Tests for is_retryable_error."""

    @pytest.mark.parametrize(
        ("message", "code"),
        [
            ("Rate limited: too many requests", None),
            ("Request timed out", None),
            ("connect ETIMEDOUT 10.0.0.1:443", None),
            ("getaddrinfo ENOTFOUND api.example.com", None),
            ("Upstream failure", "502"),
            ("HTTP 503 from vendor", None),
            ("gemini returned invalid JSON", PARSE_ERROR),
        ],
    )
    def test_retryable(self, message: str, code: str | None) -> None:
        assert is_retryable_error(UISchemaChunk.error(message, code=code))

    @pytest.mark.parametrize(
        ("message", "code"),
        [
            ("Authentication failed: invalid API key", "401"),
            ("Vendor 'gemini' rejected model 'gpt-4'", "MODEL_CONFIG_ERROR"),
            ("Bad request", "400"),
        ],
    )
    def test_not_retryable(self, message: str, code: str) -> None:
        assert not is_retryable_error(UISchemaChunk.error(message, code=code))

    def test_non_error_chunks(self) -> None:
        assert not is_retryable_error(UISchemaChunk.complete(SCHEMA))


class TestCandidates:
    """Tests for ProviderFallbackCoordinator.candidates."""

    def test_order_excludes_primary_and_unavailable(self) -> None:
        registry = make_registry()
        provider(registry, "groq").set_available(False)

        coordinator = ProviderFallbackCoordinator(registry, ORDER)

        assert coordinator.candidates("gemini") == ["openrouter", "openai", "anthropic"]

    def test_unregistered_names_are_skipped(self) -> None:
        registry = ProviderRegistry([MockUIProvider("groq")])
        coordinator = ProviderFallbackCoordinator(registry, ORDER)
        assert coordinator.candidates("gemini") == ["groq"]


class TestRun:
    """Tests for ProviderFallbackCoordinator.run."""

    @pytest.mark.asyncio
    async def test_primary_success_streams_live(self, context: GenerationContext) -> None:
        chunks = [UISchemaChunk.partial({"content": "{"}), UISchemaChunk.complete(SCHEMA)]
        registry = make_registry(gemini=[chunks])

        output = await run(registry, context)

        assert output == chunks
        assert provider(registry, "openrouter").calls == []

    @pytest.mark.asyncio
    async def test_falls_through_to_first_success(self, context: GenerationContext) -> None:
        """A 429 on the primary and a 500 on the first alternate end with groq's result."""
        groq_chunks = [
            UISchemaChunk.partial({"content": '{"type"'}),
            UISchemaChunk.complete(SCHEMA),
        ]
        registry = make_registry(
            gemini=[[UISchemaChunk.error("Rate limited", code="429")]],
            openrouter=[[UISchemaChunk.error("Internal server error", code="500")]],
            groq=[groq_chunks],
        )

        output = await run(registry, context)

        assert output == groq_chunks
        assert len(provider(registry, "openrouter").calls) == 1
        assert provider(registry, "openai").calls == []
        for name in ("gemini", "openrouter", "groq"):
            assert provider(registry, name).closed_runs == 1

    @pytest.mark.asyncio
    async def test_non_retryable_primary_error(self, context: GenerationContext) -> None:
        error = UISchemaChunk.error("Authentication failed", code="401")
        registry = make_registry(gemini=[[error]])

        output = await run(registry, context)

        assert output == [error]
        assert provider(registry, "openrouter").calls == []

    @pytest.mark.asyncio
    async def test_disabled(self, context: GenerationContext) -> None:
        error = UISchemaChunk.error("Rate limited", code="429")
        registry = make_registry(gemini=[[error]])

        output = await run(registry, context, enabled=False)

        assert output == [error]
        assert provider(registry, "openrouter").calls == []

    @pytest.mark.asyncio
    async def test_exhausted_returns_primary_error(self, context: GenerationContext) -> None:
        primary_error = UISchemaChunk.error("Rate limited", code="429")
        registry = make_registry(
            gemini=[[primary_error]],
            **{
                name: [[UISchemaChunk.error("Service unavailable", code="503")]]
                for name in ORDER[1:]
            },
        )

        output = await run(registry, context)

        assert output == [primary_error]
        for name in ORDER[1:]:
            assert len(provider(registry, name).calls) == 1

    @pytest.mark.asyncio
    async def test_alternate_non_retryable_error_stops(self, context: GenerationContext) -> None:
        alternate_error = UISchemaChunk.error("Authentication failed", code="401")
        registry = make_registry(
            gemini=[[UISchemaChunk.error("Rate limited", code="429")]],
            openrouter=[[alternate_error]],
        )

        output = await run(registry, context)

        assert output == [alternate_error]
        assert provider(registry, "groq").calls == []

    @pytest.mark.asyncio
    async def test_unavailable_alternates_are_skipped(self, context: GenerationContext) -> None:
        registry = make_registry(gemini=[[UISchemaChunk.error("Rate limited", code="429")]])
        provider(registry, "openrouter").set_available(False)

        output = await run(registry, context)

        assert output[-1].type == "complete"
        assert provider(registry, "openrouter").calls == []
        assert len(provider(registry, "groq").calls) == 1

    @pytest.mark.asyncio
    async def test_parse_error_falls_back(self, context: GenerationContext) -> None:
        registry = make_registry(
            gemini=[[UISchemaChunk.error("gemini returned invalid JSON", code=PARSE_ERROR)]]
        )

        output = await run(registry, context)

        assert [chunk.type for chunk in output] == ["complete"]
        assert len(provider(registry, "openrouter").calls) == 1

    @pytest.mark.asyncio
    async def test_failed_alternate_partials_are_not_released(
        self, context: GenerationContext
    ) -> None:
        registry = make_registry(
            gemini=[[UISchemaChunk.error("Rate limited", code="429")]],
            openrouter=[[
                UISchemaChunk.partial({"content": "openrouter"}),
                UISchemaChunk.error("Bad gateway", code="502"),
            ]],
        )

        output = await run(registry, context)

        assert {"content": "openrouter"} not in [chunk.data for chunk in output]
        assert output == [UISchemaChunk.complete(SCHEMA)]

    @pytest.mark.asyncio
    async def test_alternate_without_terminal_chunk_is_retried(
        self, context: GenerationContext
    ) -> None:
        registry = make_registry(
            gemini=[[UISchemaChunk.error("Rate limited", code="429")]],
            openrouter=[[UISchemaChunk.partial({"content": "{"})]],
        )

        output = await run(registry, context)

        assert output == [UISchemaChunk.complete(SCHEMA)]
        assert len(provider(registry, "groq").calls) == 1

    @pytest.mark.asyncio
    async def test_primary_partials_stream_before_fallback(
        self, context: GenerationContext
    ) -> None:
        partial = UISchemaChunk.partial({"content": "{"})
        registry = make_registry(
            gemini=[[partial, UISchemaChunk.error("Request timed out")]],
        )

        output = await run(registry, context)

        assert output[0] == partial
        assert output[-1].type == "complete"
        assert len([chunk for chunk in output if chunk.is_terminal]) == 1
