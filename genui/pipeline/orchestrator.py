"""Pipeline orchestrator.

Runs one request through the generation pipeline:

ROUTE -> COMPRESS -> ENRICH -> PLAN (generate only) -> GENERATE (stream)
-> VALIDATE -> REPAIR* -> STAMP -> COMPLETE

Partial chunks from the provider are forwarded as they arrive. A provider
that ends without a schema ends the request with a terminal error chunk.
Validation failures never surface as errors: after the repair rounds are
spent the last candidate is stamped and returned anyway.
"""

import time
from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import Any

from genui.config.models.pipeline import PipelineConfig
from genui.manifest.base import ManifestRegistry
from genui.manifest.static import UNKNOWN_VERSION
from genui.observability.logging import get_logger
from genui.observability.metrics import PIPELINE_RESULTS, PIPELINE_STAGE_LATENCY
from genui.pipeline.context.enrichment import ContextEnricher
from genui.pipeline.context.summarizer import ContextSummarizer
from genui.pipeline.models.chunks import ChunkMeta, UISchemaChunk
from genui.pipeline.models.context import GenerationContext
from genui.pipeline.models.routing import Flow, RoutingDecision
from genui.pipeline.models.telemetry import PipelineStepTiming, PipelineTelemetry
from genui.pipeline.models.validation import ValidationResult
from genui.pipeline.planning.ux_planner import UXPlanner
from genui.pipeline.repair.agent import RepairAgent
from genui.pipeline.routing.router import Router
from genui.pipeline.validation.validator import SchemaValidator
from genui.providers.llm import UsageRecord, classify_vendor_error
from genui.providers.ui.base import UIProvider

logger = get_logger(__name__)

NO_SCHEMA = "NO_SCHEMA"


def stamp_schema(schema: Any, manifest: ManifestRegistry) -> Any:
    """Attach manifest and renderer versions when absent.

    A bare tree is wrapped as `{manifestVersion, rendererVersion, ui}`.
    Nothing is stamped until a manifest is loaded.
    """
    version = manifest.get_version()
    if version == UNKNOWN_VERSION or not isinstance(schema, dict):
        return schema

    if isinstance(schema.get("ui"), dict):
        stamped = dict(schema)
        stamped.setdefault("manifestVersion", version)
        stamped.setdefault("rendererVersion", manifest.get_renderer_version())
        return stamped

    return {
        "manifestVersion": version,
        "rendererVersion": manifest.get_renderer_version(),
        "ui": schema,
    }


class PipelineOrchestrator:
    """Coordinates routing, context stages, generation, validation and repair."""

    def __init__(
        self,
        router: Router,
        validator: SchemaValidator,
        repair_agent: RepairAgent,
        manifest: ManifestRegistry,
        summarizer: ContextSummarizer | None = None,
        enricher: ContextEnricher | None = None,
        ux_planner: UXPlanner | None = None,
        config: PipelineConfig | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            router: Request router
            validator: Schema validator
            repair_agent: Repair agent for invalid candidates
            manifest: Manifest used for stamping
            summarizer: Optional history compression stage
            enricher: Optional web search stage
            ux_planner: Optional UX planning stage
            config: Pipeline configuration
        """
        self._router = router
        self._validator = validator
        self._repair_agent = repair_agent
        self._manifest = manifest
        self._summarizer = summarizer
        self._enricher = enricher
        self._ux_planner = ux_planner
        self._config = config or PipelineConfig()

    async def generate_ui(
        self,
        context: GenerationContext,
        provider: UIProvider,
    ) -> AsyncIterator[UISchemaChunk]:
        """Generate a fresh UI for the context."""
        async with aclosing(self._run("generate", context, provider)) as chunks:
            async for chunk in chunks:
                yield chunk

    async def update_ui(
        self,
        schema: Any,
        interaction: Any,
        context: GenerationContext,
        provider: UIProvider,
    ) -> AsyncIterator[UISchemaChunk]:
        """Update an existing UI after an interaction. Skips UX planning."""
        update: dict[str, Any] = {}
        if context.current_ui_state is None and isinstance(schema, dict):
            update["current_ui_state"] = schema
        if context.last_interaction is None and isinstance(interaction, dict):
            update["last_interaction"] = interaction
        if update:
            context = context.model_copy(update=update)

        async with aclosing(
            self._run("update", context, provider, schema=schema, interaction=interaction)
        ) as chunks:
            async for chunk in chunks:
                yield chunk

    async def _run(
        self,
        flow: Flow,
        context: GenerationContext,
        provider: UIProvider,
        schema: Any = None,
        interaction: Any = None,
    ) -> AsyncIterator[UISchemaChunk]:
        start_time = time.perf_counter()
        telemetry = PipelineTelemetry(flow=flow, provider=provider.name, trace_id=context.trace_id)
        usage: list[UsageRecord] = []

        logger.info(
            "pipeline_start",
            flow=flow,
            provider=provider.name,
            trace_id=context.trace_id,
        )

        # ROUTE
        step_start = time.perf_counter()
        if flow == "generate":
            outcome = await self._router.decide_for_generate(context)
        else:
            outcome = await self._router.decide_for_update(context, interaction)
        decision = outcome.decision
        usage.extend(outcome.usage)
        context = context.model_copy(update={"routing_decision": decision})
        self._record(telemetry, "route", step_start)

        # COMPRESS
        step_start = time.perf_counter()
        if self._summarizer is not None:
            summarized = await self._summarizer.compress(context)
            context = summarized.context
            usage.extend(summarized.usage)
            self._record(telemetry, "compress", step_start)
        else:
            self._record(telemetry, "compress", step_start, skip_reason="No summarizer")

        # ENRICH
        step_start = time.perf_counter()
        if self._enricher is not None:
            enriched = await self._enricher.enrich(context, decision)
            context = enriched.context
            usage.extend(enriched.usage)
            self._record(telemetry, "enrich", step_start)
        else:
            self._record(telemetry, "enrich", step_start, skip_reason="No enricher")

        # PLAN
        step_start = time.perf_counter()
        skip_reason = self._plan_skip_reason(flow, decision)
        if skip_reason is None:
            planned = await self._ux_planner.plan(context, tier=decision.model_tier)
            usage.extend(planned.usage)
            if planned.plan:
                context = context.model_copy(update={"ux_plan": planned.plan})
            self._record(telemetry, "plan", step_start)
        else:
            self._record(telemetry, "plan", step_start, skip_reason=skip_reason)

        # GENERATE
        step_start = time.perf_counter()
        if flow == "generate":
            stream = provider.generate_ui(context)
        else:
            stream = provider.update_ui(schema, interaction, context)

        candidate: Any = None
        failure: UISchemaChunk | None = None
        try:
            async with aclosing(stream):
                async for chunk in stream:
                    if chunk.type == "partial":
                        yield chunk
                        continue
                    if chunk.type == "complete":
                        candidate = chunk.data
                        if chunk.meta is not None and chunk.meta.usage:
                            usage.extend(chunk.meta.usage)
                    else:
                        failure = chunk
                    break
        except Exception as e:
            error = classify_vendor_error(e)
            logger.error(
                "pipeline_provider_raised",
                provider=provider.name,
                error=str(error),
                trace_id=context.trace_id,
            )
            code = str(error.status_code) if error.status_code else None
            failure = UISchemaChunk.error(str(error), code=code)
        self._record(telemetry, "generate", step_start)

        if candidate is None:
            if failure is None:
                failure = UISchemaChunk.error(
                    f"Provider {provider.name} finished without a schema", code=NO_SCHEMA
                )
            telemetry.total_time_ms = (time.perf_counter() - start_time) * 1000
            logger.warning(
                "pipeline_generation_failed",
                flow=flow,
                provider=provider.name,
                error=failure.error_message,
                code=failure.error_code or None,
                trace_id=context.trace_id,
            )
            PIPELINE_RESULTS.labels(flow=flow, outcome="error").inc()
            yield UISchemaChunk(
                type="error",
                data=failure.data,
                done=True,
                meta=ChunkMeta(
                    usage=usage,
                    telemetry=telemetry.model_dump(by_alias=True),
                    routing_decision=decision,
                ),
            )
            return

        # VALIDATE -> REPAIR*
        step_start = time.perf_counter()
        candidate, result = await self._validate_and_repair(candidate, context, decision, telemetry, usage)
        self._record(telemetry, "validate_repair", step_start)

        # STAMP
        stamped = stamp_schema(candidate, self._manifest)

        telemetry.valid = result.valid
        telemetry.total_time_ms = (time.perf_counter() - start_time) * 1000
        outcome_label = "complete" if result.valid else "degraded"
        PIPELINE_RESULTS.labels(flow=flow, outcome=outcome_label).inc()
        logger.info(
            "pipeline_complete",
            flow=flow,
            provider=provider.name,
            valid=result.valid,
            repair_rounds=telemetry.repair_rounds,
            total_time_ms=round(telemetry.total_time_ms, 2),
            trace_id=context.trace_id,
        )

        yield UISchemaChunk.complete(
            stamped,
            meta=ChunkMeta(
                usage=usage,
                telemetry=telemetry.model_dump(by_alias=True),
                routing_decision=decision,
                safety={
                    "valid": result.valid,
                    "errors": result.error_messages,
                },
                warnings=result.warning_messages,
            ),
        )

    async def _validate_and_repair(
        self,
        candidate: Any,
        context: GenerationContext,
        decision: RoutingDecision,
        telemetry: PipelineTelemetry,
        usage: list[UsageRecord],
    ) -> tuple[Any, ValidationResult]:
        """Validate, repairing up to max_rounds times.

        Returns the final candidate and its validation result. The candidate
        may still be invalid once every round is spent.
        """
        max_rounds = self._config.repair.max_rounds
        result = ValidationResult()

        for round_number in range(max_rounds + 1):
            result = self._validator.validate(candidate)
            if result.valid:
                return candidate, result
            if round_number == max_rounds:
                break

            repaired = await self._repair_agent.repair(
                candidate,
                result.error_messages,
                context,
                mode=decision.mode,
            )
            telemetry.repair_rounds += 1
            telemetry.repair_methods.append(repaired.method)
            usage.extend(repaired.usage)
            candidate = repaired.candidate

            if repaired.success:
                return candidate, self._validator.validate(candidate)

        logger.warning(
            "pipeline_degraded_returning_last_candidate",
            errors=len(result.errors),
            repair_rounds=telemetry.repair_rounds,
            trace_id=context.trace_id,
        )
        return candidate, result

    def _plan_skip_reason(self, flow: Flow, decision: RoutingDecision) -> str | None:
        if flow != "generate":
            return "Update flow"
        if self._ux_planner is None or not self._config.ux_plan.enabled:
            return "UX planning disabled"
        if not decision.run_ux_plan:
            return "Not routed to UX planning"
        return None

    def _record(
        self,
        telemetry: PipelineTelemetry,
        step: str,
        step_start: float,
        skip_reason: str | None = None,
    ) -> None:
        elapsed = time.perf_counter() - step_start
        PIPELINE_STAGE_LATENCY.labels(stage=step).observe(elapsed)
        telemetry.timings.append(
            PipelineStepTiming(
                step=step,
                duration_ms=elapsed * 1000,
                skipped=skip_reason is not None,
                skip_reason=skip_reason,
            )
        )
