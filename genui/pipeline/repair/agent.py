"""Repair agent for schemas that fail validation.

Two phases:
1. Deterministic sanitizer (always runs, no cost)
2. LLM repair, escalating through the configured tiers until one yields a
   fully valid schema
"""

import json
from typing import Any

from genui.config.models.pipeline import RepairConfig
from genui.manifest.base import ManifestRegistry
from genui.observability.logging import get_logger
from genui.observability.metrics import REPAIR_ATTEMPTS
from genui.pipeline.models.context import GenerationContext
from genui.pipeline.models.routing import RoutingMode
from genui.pipeline.models.validation import RepairResult
from genui.pipeline.repair.sanitizer import SchemaSanitizer
from genui.pipeline.validation.validator import SchemaValidator
from genui.providers.llm import LayerLLMExecutor, LLMMessage, UsageRecord

logger = get_logger(__name__)


class RepairAgent:
    """Fixes invalid candidates with the sanitizer, then the repair layer."""

    def __init__(
        self,
        validator: SchemaValidator,
        sanitizer: SchemaSanitizer,
        manifest: ManifestRegistry,
        llm_executor: LayerLLMExecutor | None = None,
        config: RepairConfig | None = None,
    ) -> None:
        self._validator = validator
        self._sanitizer = sanitizer
        self._manifest = manifest
        self._llm_executor = llm_executor
        self._config = config or RepairConfig()

    async def repair(
        self,
        candidate: Any,
        errors: list[str],
        context: GenerationContext,
        mode: RoutingMode = "replace",
    ) -> RepairResult:
        """Repair a candidate schema.

        Args:
            candidate: Schema that failed validation
            errors: Validation error messages for the candidate
            context: Request context (for tracing)
            mode: Requested output mode, passed to the model as a hint

        Returns:
            RepairResult; `success` is True only when the result validates
        """
        sanitized = self._sanitizer.sanitize(candidate)
        post_sanitize = self._validator.validate(sanitized)

        if post_sanitize.valid:
            logger.info("repair_sanitizer_fixed", fixed=len(errors), trace_id=context.trace_id)
            REPAIR_ATTEMPTS.labels(method="sanitizer", outcome="success").inc()
            return RepairResult(candidate=sanitized, method="sanitizer", success=True)

        REPAIR_ATTEMPTS.labels(method="sanitizer", outcome="partial").inc()

        last_candidate = sanitized
        remaining = post_sanitize.error_messages
        usage: list[UsageRecord] = []

        tiers = self._config.tiers if self._llm_executor is not None else []
        for tier in tiers:
            method = f"llm-{tier}"
            try:
                response = await self._llm_executor.complete(
                    "repair",
                    self._build_messages(last_candidate, remaining, mode),
                    tier=tier,
                    response_kind="structured",
                    temperature=0.0,
                    trace_id=context.trace_id,
                )
            except Exception as e:
                logger.warning(
                    "repair_tier_failed",
                    tier=tier,
                    error=str(e),
                    trace_id=context.trace_id,
                )
                REPAIR_ATTEMPTS.labels(method=method, outcome="error").inc()
                continue

            usage.append(response.usage)
            repaired = response.json_data
            if not isinstance(repaired, dict):
                logger.warning("repair_tier_not_an_object", tier=tier, trace_id=context.trace_id)
                REPAIR_ATTEMPTS.labels(method=method, outcome="failure").inc()
                continue

            check = self._validator.validate(repaired)
            last_candidate = repaired
            remaining = check.error_messages

            if check.valid:
                logger.info("repair_llm_fixed", tier=tier, trace_id=context.trace_id)
                REPAIR_ATTEMPTS.labels(method=method, outcome="success").inc()
                return RepairResult(
                    candidate=repaired,
                    method=method,
                    success=True,
                    usage=usage,
                )

            logger.warning(
                "repair_llm_still_invalid",
                tier=tier,
                errors=len(remaining),
                trace_id=context.trace_id,
            )
            REPAIR_ATTEMPTS.labels(method=method, outcome="failure").inc()

        return RepairResult(
            candidate=last_candidate,
            method="llm-partial",
            success=False,
            remaining_errors=remaining,
            usage=usage,
        )

    def _build_messages(
        self,
        candidate: Any,
        errors: list[str],
        mode: RoutingMode,
    ) -> list[LLMMessage]:
        allowed_types = ", ".join(sorted(self._manifest.component_types())) or "any"
        error_lines = "\n".join(f"- {error}" for error in errors)

        system_prompt = f"""You are a schema repair agent. Fix the following UI schema to pass validation.

ERRORS to fix:
{error_lines}

RULES:
- Only use these component types: {allowed_types}
- All icon values must be Lucide icon names in kebab-case (no emojis)
- No button type="submit"; use type="button"
- No form actions or URL submits
- Requested output mode: {mode}
- Keep the UI structure and intent as close to the original as possible
- Make MINIMAL changes to fix the errors

Return ONLY the fixed JSON UI schema, no explanation."""

        return [
            LLMMessage(role="system", content=system_prompt),
            LLMMessage(role="user", content=json.dumps(candidate)),
        ]
