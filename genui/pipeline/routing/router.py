"""Request routing for the generation pipeline.

Decides, per request, whether to replace or patch the UI, whether to run UX
planning and web search, and which model tier to use. The deterministic
rules always run; an LLM can optionally overlay them.
"""

import json
import re
from typing import Any

from genui.config.models.pipeline import RouterConfig
from genui.observability.logging import get_logger
from genui.pipeline.models.context import GenerationContext
from genui.pipeline.models.routing import Flow, RoutingDecision, RoutingOutcome
from genui.providers.llm import LayerLLMExecutor, LLMMessage

logger = get_logger(__name__)

EXPLICIT_REPLACE = re.compile(
    r"\b(from scratch|start over|new ui|redesign|rebuild|replace all)\b"
)
EDIT_VERBS = re.compile(
    r"\b(change|update|edit|rename|fix|tweak|adjust|set|toggle|open|close|sort|filter"
    r"|paginate|tab|density|padding|gap|spacing|label|title|icon)\b"
)
STRUCTURAL_KEYWORDS = re.compile(
    r"\b(dashboard|workflow|multi-step|wizard|analytics|layout|information architecture)\b"
)
RESEARCH_KEYWORDS = re.compile(
    r"\b(latest|today|current|news|price|release|version|who is|when was|updated"
    r"|breaking|search|browse|look up)\b"
)
AMBIGUOUS_VERBS = re.compile(r"\b(update|change|fix|improve|optimize|adjust|modify)\b")
AMBIGUOUS_TARGETS = re.compile(
    r"\b(layout|structure|style|copy|interaction|data|performance)\b"
)

TINY_EDIT_MAX_WORDS = 22
QUALITY_MIN_WORDS = 45

PATCH_HINTS = [
    "Prefer minimal, targeted edits to the existing schema",
    "Preserve existing structure and IDs where possible",
    "Avoid full schema regeneration for small interaction updates",
]

ROUTER_SYSTEM_PROMPT = (
    "You are a routing controller for UI generation. Return ONLY JSON with keys: "
    "mode(replace|patch), runUxPlan(boolean), runWebSearch(boolean), "
    "modelTier(fast|balanced|quality), patchHints(string[]), reasons(string[])."
)


def decide_deterministic(
    context: GenerationContext,
    flow: Flow,
    interaction: Any = None,
) -> RoutingDecision:
    """Rule-based routing decision."""
    prompt = (context.user_prompt or "").strip()
    lower = prompt.lower()

    word_count = len(prompt.split())
    has_ui_state = context.has_ui_state
    has_interaction = context.has_interaction or interaction is not None

    explicit_replace = bool(EXPLICIT_REPLACE.search(lower))
    tiny_edit_intent = word_count <= TINY_EDIT_MAX_WORDS and bool(EDIT_VERBS.search(lower))
    needs_fresh_structure = (
        not has_ui_state or explicit_replace or bool(STRUCTURAL_KEYWORDS.search(lower))
    )
    requires_research = bool(RESEARCH_KEYWORDS.search(lower))

    mode = "patch" if flow == "update" or has_interaction else "replace"
    if needs_fresh_structure:
        mode = "replace"

    run_ux_plan = mode == "replace" and not tiny_edit_intent
    run_web_search = mode == "replace" and requires_research

    if mode == "patch" or tiny_edit_intent:
        model_tier = "fast"
    elif requires_research or word_count > QUALITY_MIN_WORDS:
        model_tier = "quality"
    else:
        model_tier = "balanced"

    reasons = [
        f"flow={flow}",
        f"wordCount={word_count}",
        "has-current-ui-state" if has_ui_state else "no-current-ui-state",
        "has-interaction" if has_interaction else "no-interaction",
    ]
    if explicit_replace:
        reasons.append("explicit-replace")
    if tiny_edit_intent:
        reasons.append("tiny-edit-intent")
    if needs_fresh_structure:
        reasons.append("needs-fresh-structure")
    if requires_research:
        reasons.append("requires-research")
    reasons += [
        f"mode={mode}",
        "run-ux-plan" if run_ux_plan else "skip-ux-plan",
        "run-web-search" if run_web_search else "skip-web-search",
        f"model-tier={model_tier}",
    ]

    return RoutingDecision(
        mode=mode,
        run_ux_plan=run_ux_plan,
        run_web_search=run_web_search,
        model_tier=model_tier,
        reasons=reasons,
        patch_hints=list(PATCH_HINTS) if mode == "patch" else [],
    )


def normalize_decision(raw: Any, fallback: RoutingDecision) -> RoutingDecision:
    """Merge an LLM routing reply into the deterministic decision.

    Each field is taken from the reply only when it holds a valid value.
    """
    if not isinstance(raw, dict):
        return fallback

    mode = raw.get("mode") if raw.get("mode") in ("replace", "patch") else fallback.mode
    tier = raw.get("modelTier")
    model_tier = tier if tier in ("fast", "balanced", "quality") else fallback.model_tier

    def _bool(key: str, default: bool) -> bool:
        value = raw.get(key)
        return value if isinstance(value, bool) else default

    def _strings(key: str, default: list[str]) -> list[str]:
        value = raw.get(key)
        return [str(v) for v in value] if isinstance(value, list) else list(default)

    return RoutingDecision(
        mode=mode,
        run_ux_plan=_bool("runUxPlan", fallback.run_ux_plan),
        run_web_search=_bool("runWebSearch", fallback.run_web_search),
        model_tier=model_tier,
        reasons=_strings("reasons", fallback.reasons),
        patch_hints=_strings("patchHints", fallback.patch_hints),
    )


def is_ambiguous(prompt: str) -> bool:
    """A prompt that names both an update verb and a broad target."""
    lower = (prompt or "").lower()
    return bool(AMBIGUOUS_VERBS.search(lower)) and bool(AMBIGUOUS_TARGETS.search(lower))


class Router:
    """Deterministic router with an optional LLM overlay.

    Overlay modes:
    - deterministic: rules only
    - llm: always ask the router layer
    - hybrid: ask only for ambiguous prompts
    """

    def __init__(
        self,
        llm_executor: LayerLLMExecutor | None = None,
        config: RouterConfig | None = None,
    ) -> None:
        self._llm_executor = llm_executor
        self._config = config or RouterConfig()

    async def decide_for_generate(self, context: GenerationContext) -> RoutingOutcome:
        return await self._decide(context, "generate")

    async def decide_for_update(
        self,
        context: GenerationContext,
        interaction: Any = None,
    ) -> RoutingOutcome:
        return await self._decide(context, "update", interaction)

    async def _decide(
        self,
        context: GenerationContext,
        flow: Flow,
        interaction: Any = None,
    ) -> RoutingOutcome:
        deterministic = decide_deterministic(context, flow, interaction)

        mode = self._config.mode
        should_call_llm = self._llm_executor is not None and (
            mode == "llm" or (mode == "hybrid" and is_ambiguous(context.user_prompt))
        )

        logger.info(
            "router_start",
            flow=flow,
            mode=mode,
            llm=should_call_llm,
            trace_id=context.trace_id,
        )

        if not should_call_llm:
            logger.info(
                "router_deterministic",
                routing_mode=deterministic.mode,
                tier=deterministic.model_tier,
                trace_id=context.trace_id,
            )
            return RoutingOutcome(decision=deterministic)

        payload = {
            "flow": flow,
            "userPrompt": context.user_prompt,
            "hasCurrentUiState": context.has_ui_state,
            "hasInteraction": context.has_interaction or interaction is not None,
            "deterministic": deterministic.model_dump(by_alias=True),
        }

        try:
            response = await self._llm_executor.complete(
                "router",
                [
                    LLMMessage(role="system", content=ROUTER_SYSTEM_PROMPT),
                    LLMMessage(role="user", content=json.dumps(payload)),
                ],
                tier="fast",
                response_kind="structured",
                temperature=0.0,
                trace_id=context.trace_id,
            )
        except Exception as e:
            logger.warning(
                "router_llm_failed_using_deterministic",
                error=str(e),
                trace_id=context.trace_id,
            )
            return RoutingOutcome(decision=deterministic)

        if not response.json_data:
            logger.warning("router_llm_empty_response_using_deterministic", trace_id=context.trace_id)
            return RoutingOutcome(decision=deterministic)

        merged = normalize_decision(response.json_data, deterministic)
        logger.info(
            "router_llm_decision",
            routing_mode=merged.mode,
            tier=merged.model_tier,
            ux=merged.run_ux_plan,
            search=merged.run_web_search,
            trace_id=context.trace_id,
        )
        return RoutingOutcome(decision=merged, usage=[response.usage])
