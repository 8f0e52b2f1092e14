"""Generation service: the composition root.

Wires settings, manifest, LLM execution, pipeline stages, UI providers and
whole-provider fallback into one object that callers stream from.

Example:
    service = GenerationService.from_settings()
    async for chunk in service.generate_ui(GenerationContext(user_prompt="...")):
        send(chunk.to_wire())
"""

import os
from collections.abc import AsyncIterator, Mapping
from contextlib import aclosing
from pathlib import Path
from typing import Any

from prometheus_client import start_http_server

from genui.config import Settings, get_settings
from genui.config.loader import get_config_dir
from genui.config.models.providers import VENDORS
from genui.manifest.base import ManifestRegistry
from genui.manifest.static import StaticManifestRegistry
from genui.observability.logging import bind_trace_id, clear_trace_id, get_logger, setup_logging
from genui.pipeline.context.enrichment import ContextEnricher, LLMWebSearch, WebSearchClient
from genui.pipeline.context.summarizer import ContextSummarizer
from genui.pipeline.fallback import ProviderFallbackCoordinator
from genui.pipeline.generation.prompt_builder import PromptBuilder
from genui.pipeline.models.chunks import UISchemaChunk
from genui.pipeline.models.context import GenerationContext
from genui.pipeline.orchestrator import PipelineOrchestrator
from genui.pipeline.planning.ux_planner import UXPlanner
from genui.pipeline.repair.agent import RepairAgent
from genui.pipeline.repair.sanitizer import SchemaSanitizer
from genui.pipeline.routing.router import Router
from genui.pipeline.validation.validator import SchemaValidator
from genui.providers.llm import (
    AgnoVendorClients,
    LayerLLMExecutor,
    ModelResolver,
    RoutingTable,
    VendorClients,
)
from genui.providers.ui.base import UIProvider
from genui.providers.ui.llm import LLMUIProvider
from genui.providers.ui.registry import ProviderRegistry

logger = get_logger(__name__)

NO_PROVIDER = "NO_PROVIDER"


def load_manifest(settings: Settings) -> StaticManifestRegistry:
    """Load the configured manifest; paths are relative to the config directory."""
    if not settings.manifest_path:
        logger.warning("manifest_path_not_configured")
        return StaticManifestRegistry()

    path = Path(settings.manifest_path)
    if not path.is_absolute():
        path = get_config_dir() / path
    return StaticManifestRegistry.from_file(path)


def configure_observability(settings: Settings, start_metrics: bool = True) -> None:
    """Configure logging and, when enabled, expose Prometheus metrics over HTTP."""
    log_config = settings.observability.logging
    setup_logging(
        level=log_config.level,
        format=log_config.format,
        redact_pii=log_config.redact_pii,
    )

    metrics = settings.observability.metrics
    if start_metrics and metrics.enabled:
        start_http_server(metrics.port)
        logger.info("metrics_server_started", port=metrics.port)


class GenerationService:
    """Entry point for UI generation and updates."""

    def __init__(
        self,
        orchestrator: PipelineOrchestrator,
        registry: ProviderRegistry,
        fallback: ProviderFallbackCoordinator,
        resolver: ModelResolver | None = None,
        default_provider: str = "gemini",
    ) -> None:
        self._orchestrator = orchestrator
        self._registry = registry
        self._fallback = fallback
        self._resolver = resolver
        self._default_provider = default_provider

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        environ: Mapping[str, str] | None = None,
        clients: VendorClients | None = None,
        manifest: ManifestRegistry | None = None,
        search_client: WebSearchClient | None = None,
    ) -> "GenerationService":
        """Build the full pipeline from configuration.

        Args:
            settings: Settings (loaded from config files when omitted)
            environ: Environment used for routing keys and API keys
            clients: Vendor clients (Agno-backed when omitted)
            manifest: Manifest registry (loaded from manifest_path when omitted)
            search_client: Web search client (the `search` layer when omitted)
        """
        settings = settings or get_settings()
        environ = os.environ if environ is None else environ
        pipeline = settings.pipeline

        resolver = ModelResolver(RoutingTable(settings.routing, environ))
        executor = LayerLLMExecutor(
            resolver=resolver,
            clients=clients or AgnoVendorClients.from_config(settings.providers, environ),
            providers=settings.providers,
            completion=pipeline.completion,
        )
        manifest = manifest or load_manifest(settings)

        validator = SchemaValidator(manifest, pipeline.policy)
        repair_agent = RepairAgent(
            validator=validator,
            sanitizer=SchemaSanitizer(manifest, pipeline.policy),
            manifest=manifest,
            llm_executor=executor,
            config=pipeline.repair,
        )
        orchestrator = PipelineOrchestrator(
            router=Router(executor, pipeline.router),
            validator=validator,
            repair_agent=repair_agent,
            manifest=manifest,
            summarizer=ContextSummarizer(executor, pipeline.summarizer),
            enricher=ContextEnricher(search_client or LLMWebSearch(executor), pipeline.web_search),
            ux_planner=UXPlanner(executor, manifest),
            config=pipeline,
        )

        prompt_builder = PromptBuilder(manifest, max_sources=pipeline.web_search.max_sources)
        registry = ProviderRegistry(
            LLMUIProvider(vendor, executor, prompt_builder) for vendor in VENDORS
        )
        fallback = ProviderFallbackCoordinator(
            registry,
            provider_order=pipeline.fallback.provider_order,
            enabled=pipeline.fallback.enabled,
        )

        service = cls(
            orchestrator=orchestrator,
            registry=registry,
            fallback=fallback,
            resolver=resolver,
            default_provider=settings.default_provider,
        )
        logger.info(
            "generation_service_ready",
            default_provider=settings.default_provider,
            available_providers=registry.available(),
            manifest_version=manifest.get_version(),
        )
        return service

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    def check_routing(self) -> list[str]:
        """Resolve every layer chain once and report configuration problems."""
        if self._resolver is None:
            return []
        return self._resolver.check_routing()

    def select_provider(self, provider_name: str | None = None) -> UIProvider | None:
        """The requested provider, or the first available alternate."""
        name = provider_name or self._default_provider
        provider = self._registry.get(name)
        if provider is not None and provider.is_available():
            return provider

        for alternate in self._fallback.candidates(name):
            logger.warning("provider_unavailable_using_alternate", requested=name, alternate=alternate)
            return self._registry.get(alternate)
        return None

    async def generate_ui(
        self,
        context: GenerationContext,
        provider_name: str | None = None,
    ) -> AsyncIterator[UISchemaChunk]:
        """Stream a freshly generated UI."""
        provider = self.select_provider(provider_name)
        if provider is None:
            yield self._no_provider(provider_name)
            return

        bind_trace_id(context.trace_id)
        try:
            async with aclosing(
                self._fallback.run(provider, lambda p: self._orchestrator.generate_ui(context, p))
            ) as stream:
                async for chunk in stream:
                    yield chunk
        finally:
            clear_trace_id()

    async def update_ui(
        self,
        schema: Any,
        interaction: Any,
        context: GenerationContext,
        provider_name: str | None = None,
    ) -> AsyncIterator[UISchemaChunk]:
        """Stream an updated UI after an interaction."""
        provider = self.select_provider(provider_name)
        if provider is None:
            yield self._no_provider(provider_name)
            return

        bind_trace_id(context.trace_id)
        try:
            async with aclosing(
                self._fallback.run(
                    provider,
                    lambda p: self._orchestrator.update_ui(schema, interaction, context, p),
                )
            ) as stream:
                async for chunk in stream:
                    yield chunk
        finally:
            clear_trace_id()

    def _no_provider(self, provider_name: str | None) -> UISchemaChunk:
        name = provider_name or self._default_provider
        logger.error("no_provider_available", requested=name)
        return UISchemaChunk.error(f"No UI provider available (requested '{name}')", code=NO_PROVIDER)
