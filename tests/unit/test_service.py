"""Tests for GenerationService wiring."""

import json
from pathlib import Path
from typing import Any

import pytest
import structlog

from genui.config import Settings
from genui.manifest import StaticManifestRegistry
from genui.pipeline.models.chunks import UISchemaChunk
from genui.pipeline.models.context import GenerationContext
from genui.providers.llm import MockVendorClients, RateLimitError
from genui.providers.ui import MockUIProvider
from genui.service import NO_PROVIDER, GenerationService, configure_observability, load_manifest


@pytest.fixture
def settings() -> Settings:
    return Settings(pipeline={"ux_plan": {"enabled": False}})


@pytest.fixture
def schema_clients(valid_schema: dict[str, Any]) -> MockVendorClients:
    """Clients whose every vendor answers with a valid schema."""
    return MockVendorClients(default_response=json.dumps(valid_schema))


def build_service(
    settings: Settings,
    clients: MockVendorClients,
    manifest: StaticManifestRegistry,
) -> GenerationService:
    return GenerationService.from_settings(
        settings, environ={}, clients=clients, manifest=manifest
    )


async def collect(stream: Any) -> list[UISchemaChunk]:
    return [chunk async for chunk in stream]


class TestFromSettings:
    """Tests for GenerationService.from_settings."""

    def test_registers_every_vendor(
        self,
        settings: Settings,
        schema_clients: MockVendorClients,
        manifest: StaticManifestRegistry,
    ) -> None:
        service = build_service(settings, schema_clients, manifest)

        assert service.registry.names() == ["gemini", "openrouter", "groq", "openai", "anthropic"]
        assert service.registry.available() == service.registry.names()

    def test_agno_clients_read_api_keys_from_environment(
        self, settings: Settings, manifest: StaticManifestRegistry
    ) -> None:
        service = GenerationService.from_settings(
            settings, environ={"GROQ_API_KEY": "gsk_test"}, manifest=manifest
        )
        assert service.registry.available() == ["groq"]

    def test_check_routing(
        self, schema_clients: MockVendorClients, manifest: StaticManifestRegistry
    ) -> None:
        settings = Settings(
            routing={"AI_LAYER_ROUTER_PROVIDER": "openrouter", "AI_LAYER_ROUTER_MODEL": "llama3"}
        )
        service = build_service(settings, schema_clients, manifest)

        assert len(service.check_routing()) == 3
        assert build_service(Settings(), schema_clients, manifest).check_routing() == []


class TestSelectProvider:
    """Tests for GenerationService.select_provider."""

    def test_default_provider(
        self,
        settings: Settings,
        schema_clients: MockVendorClients,
        manifest: StaticManifestRegistry,
    ) -> None:
        service = build_service(settings, schema_clients, manifest)
        assert service.select_provider().name == "gemini"
        assert service.select_provider("anthropic").name == "anthropic"

    def test_unavailable_provider_uses_alternate(
        self, settings: Settings, manifest: StaticManifestRegistry
    ) -> None:
        service = build_service(settings, MockVendorClients(configured=("groq",)), manifest)
        assert service.select_provider("gemini").name == "groq"

    def test_none_available(self, settings: Settings, manifest: StaticManifestRegistry) -> None:
        service = build_service(settings, MockVendorClients(configured=()), manifest)
        assert service.select_provider() is None


class TestGenerate:
    """End-to-end generation through the service with mock vendors."""

    @pytest.mark.asyncio
    async def test_generate(
        self,
        settings: Settings,
        schema_clients: MockVendorClients,
        manifest: StaticManifestRegistry,
        context: GenerationContext,
        valid_schema: dict[str, Any],
    ) -> None:
        service = build_service(settings, schema_clients, manifest)

        chunks = await collect(service.generate_ui(context))

        final = chunks[-1]
        assert [chunk.is_terminal for chunk in chunks].count(True) == 1
        assert final.type == "complete"
        assert final.data == {
            "manifestVersion": "2025.1.0",
            "rendererVersion": "1.4.0",
            "ui": valid_schema,
        }
        assert final.meta.telemetry["provider"] == "gemini"
        assert "trace_id" not in structlog.contextvars.get_contextvars()

    @pytest.mark.asyncio
    async def test_rate_limited_primary_falls_back(
        self,
        settings: Settings,
        schema_clients: MockVendorClients,
        manifest: StaticManifestRegistry,
        context: GenerationContext,
    ) -> None:
        schema_clients.script("gemini", RateLimitError("Rate limited: quota", status_code=429))
        service = build_service(settings, schema_clients, manifest)

        chunks = await collect(service.generate_ui(context))

        final = chunks[-1]
        assert final.type == "complete"
        assert final.meta.telemetry["provider"] == "openrouter"
        assert [call["vendor"] for call in schema_clients.call_history] == ["gemini", "openrouter"]

    @pytest.mark.asyncio
    async def test_closing_stream_closes_provider(
        self,
        settings: Settings,
        schema_clients: MockVendorClients,
        manifest: StaticManifestRegistry,
        context: GenerationContext,
        valid_schema: dict[str, Any],
    ) -> None:
        """A caller that stops reading releases the provider's stream at once."""
        provider = MockUIProvider(
            "gemini",
            runs=[[
                UISchemaChunk.partial({"type": "container"}),
                UISchemaChunk.partial({"type": "container", "children": []}),
                UISchemaChunk.complete(valid_schema),
            ]],
        )
        service = build_service(settings, schema_clients, manifest)
        service.registry.register(provider)

        stream = service.generate_ui(context)
        first = await stream.__anext__()
        await stream.aclose()

        assert first.type == "partial"
        assert provider.chunks_served == 1
        assert provider.closed_runs == 1
        assert "trace_id" not in structlog.contextvars.get_contextvars()

    @pytest.mark.asyncio
    async def test_no_provider(
        self,
        settings: Settings,
        manifest: StaticManifestRegistry,
        context: GenerationContext,
    ) -> None:
        service = build_service(settings, MockVendorClients(configured=()), manifest)

        chunks = await collect(service.generate_ui(context))

        assert len(chunks) == 1
        assert chunks[0].error_code == NO_PROVIDER

    @pytest.mark.asyncio
    async def test_update(
        self,
        settings: Settings,
        schema_clients: MockVendorClients,
        manifest: StaticManifestRegistry,
        valid_schema: dict[str, Any],
    ) -> None:
        service = build_service(settings, schema_clients, manifest)
        context = GenerationContext(user_prompt="Rename the refresh button")

        chunks = await collect(
            service.update_ui(valid_schema, {"type": "click"}, context, provider_name="groq")
        )

        final = chunks[-1]
        assert final.type == "complete"
        assert final.meta.routing_decision.mode == "patch"
        assert final.meta.telemetry["flow"] == "update"
        assert schema_clients.call_history[0]["vendor"] == "groq"


class TestLoadManifest:
    """Tests for load_manifest."""

    def test_not_configured(self) -> None:
        assert load_manifest(Settings()).get_version() == "unknown"

    def test_relative_to_config_dir(
        self,
        test_config_dir: Path,
        manifest: StaticManifestRegistry,
        env_override: Any,
    ) -> None:
        data = manifest.manifest.model_dump(by_alias=True)
        (test_config_dir / "manifest.json").write_text(json.dumps(data))

        with env_override({"GENUI_CONFIG_DIR": str(test_config_dir)}):
            registry = load_manifest(Settings(manifest_path="manifest.json"))

        assert registry.get_version() == "2025.1.0"

    def test_repository_manifest_loads(self) -> None:
        config_dir = Path(__file__).resolve().parents[2] / "config"
        registry = load_manifest(Settings(manifest_path=str(config_dir / "genui-manifest.json")))
        assert registry.is_loaded
        assert "container" in registry.component_types()


def test_configure_observability_without_metrics_server() -> None:
    settings = Settings(observability={"logging": {"format": "console", "level": "DEBUG"}})
    configure_observability(settings, start_metrics=False)
    structlog.get_logger("test").debug("observability_configured")
