"""Tests for request routing."""

import json
from collections.abc import Callable

import pytest

from genui.config.models.pipeline import RouterConfig
from genui.pipeline.models.context import GenerationContext
from genui.pipeline.models.routing import RoutingDecision
from genui.pipeline.routing.router import (
    PATCH_HINTS,
    Router,
    decide_deterministic,
    is_ambiguous,
    normalize_decision,
)
from genui.providers.llm import LayerLLMExecutor, MockVendorClients, ProviderError

CURRENT_UI = {"type": "container", "children": [{"type": "heading", "props": {"text": "Sales"}}]}


class TestDeterministicRouting:
    """Tests for decide_deterministic."""

    def test_fresh_dashboard_request(self, context: GenerationContext) -> None:
        decision = decide_deterministic(context, "generate")

        assert decision.mode == "replace"
        assert decision.run_ux_plan is True
        assert decision.run_web_search is False
        assert decision.model_tier == "balanced"
        assert decision.patch_hints == []
        assert "no-current-ui-state" in decision.reasons
        assert "needs-fresh-structure" in decision.reasons

    def test_small_interaction_update(self) -> None:
        context = GenerationContext(
            user_prompt="Sort the table by revenue",
            current_ui_state=CURRENT_UI,
            last_interaction={"type": "click", "target": "sort"},
        )

        decision = decide_deterministic(context, "update")

        assert decision.mode == "patch"
        assert decision.run_ux_plan is False
        assert decision.run_web_search is False
        assert decision.model_tier == "fast"
        assert decision.patch_hints == PATCH_HINTS
        assert "tiny-edit-intent" in decision.reasons

    def test_interaction_argument_counts(self) -> None:
        context = GenerationContext(user_prompt="Close the panel", current_ui_state=CURRENT_UI)

        decision = decide_deterministic(context, "generate", {"type": "click"})

        assert decision.mode == "patch"
        assert "has-interaction" in decision.reasons

    def test_empty_state_and_interaction_count_as_present(self) -> None:
        context = GenerationContext(
            user_prompt="Close the panel", current_ui_state={}, last_interaction={}
        )

        decision = decide_deterministic(context, "generate")

        assert decision.mode == "patch"
        assert "has-current-ui-state" in decision.reasons
        assert "has-interaction" in decision.reasons

    def test_explicit_replace_wins_over_update(self) -> None:
        context = GenerationContext(
            user_prompt="Start over with a new ui for billing",
            current_ui_state=CURRENT_UI,
        )

        decision = decide_deterministic(context, "update")

        assert decision.mode == "replace"
        assert "explicit-replace" in decision.reasons

    def test_research_request(self) -> None:
        context = GenerationContext(user_prompt="Show the latest bitcoin price trends")

        decision = decide_deterministic(context, "generate")

        assert decision.run_web_search is True
        assert decision.model_tier == "quality"

    def test_long_prompt_uses_quality_tier(self) -> None:
        prompt = " ".join(["describe"] * 50)
        decision = decide_deterministic(GenerationContext(user_prompt=prompt), "generate")
        assert decision.model_tier == "quality"

    def test_summary_reasons_close_the_list(self, context: GenerationContext) -> None:
        reasons = decide_deterministic(context, "generate").reasons
        assert reasons[0] == "flow=generate"
        assert reasons[-4:] == ["mode=replace", "run-ux-plan", "skip-web-search", "model-tier=balanced"]


class TestNormalizeDecision:
    """Tests for normalize_decision."""

    @pytest.fixture
    def fallback(self) -> RoutingDecision:
        return RoutingDecision(mode="replace", run_ux_plan=True, model_tier="balanced", reasons=["rules"])

    def test_valid_fields_override(self, fallback: RoutingDecision) -> None:
        merged = normalize_decision(
            {"mode": "patch", "modelTier": "fast", "runUxPlan": False, "patchHints": ["small"]},
            fallback,
        )

        assert merged.mode == "patch"
        assert merged.model_tier == "fast"
        assert merged.run_ux_plan is False
        assert merged.patch_hints == ["small"]
        assert merged.reasons == ["rules"]

    def test_invalid_fields_keep_fallback(self, fallback: RoutingDecision) -> None:
        merged = normalize_decision(
            {"mode": "rewrite", "modelTier": "turbo", "runUxPlan": "yes", "reasons": "nope"},
            fallback,
        )
        assert merged == fallback

    def test_non_dict_reply(self, fallback: RoutingDecision) -> None:
        assert normalize_decision(["patch"], fallback) is fallback


def test_is_ambiguous() -> None:
    assert is_ambiguous("Update the layout please")
    assert not is_ambiguous("Update the heading text")
    assert not is_ambiguous("")


class TestRouter:
    """Tests for Router with the LLM overlay."""

    @pytest.mark.asyncio
    async def test_deterministic_mode_never_calls_llm(
        self,
        executor: LayerLLMExecutor,
        mock_clients: MockVendorClients,
        context: GenerationContext,
    ) -> None:
        outcome = await Router(executor).decide_for_generate(context)

        assert outcome.decision.mode == "replace"
        assert outcome.usage == []
        assert mock_clients.call_history == []

    @pytest.mark.asyncio
    async def test_without_executor(self, context: GenerationContext) -> None:
        router = Router(config=RouterConfig(mode="llm"))
        outcome = await router.decide_for_generate(context)
        assert outcome.decision.model_tier == "balanced"

    @pytest.mark.asyncio
    async def test_llm_mode_overlays_decision(
        self,
        executor: LayerLLMExecutor,
        mock_clients: MockVendorClients,
        context: GenerationContext,
    ) -> None:
        mock_clients.script("gemini", json.dumps({"modelTier": "quality", "runWebSearch": True}))
        router = Router(executor, RouterConfig(mode="llm"))

        outcome = await router.decide_for_generate(context)

        assert outcome.decision.mode == "replace"
        assert outcome.decision.model_tier == "quality"
        assert outcome.decision.run_web_search is True
        assert len(outcome.usage) == 1
        call = mock_clients.call_history[0]
        assert call["structured"] is True
        payload = json.loads(call["messages"][1].content)
        assert payload["flow"] == "generate"
        assert payload["deterministic"]["modelTier"] == "balanced"

    @pytest.mark.asyncio
    async def test_hybrid_mode_only_for_ambiguous_prompts(
        self,
        executor: LayerLLMExecutor,
        mock_clients: MockVendorClients,
    ) -> None:
        mock_clients.script("gemini", json.dumps({"mode": "patch"}))
        router = Router(executor, RouterConfig(mode="hybrid"))
        clear = GenerationContext(user_prompt="Rename the title", current_ui_state=CURRENT_UI)
        vague = GenerationContext(user_prompt="Improve the style", current_ui_state=CURRENT_UI)

        clear_outcome = await router.decide_for_update(clear)
        assert mock_clients.call_history == []
        assert clear_outcome.decision.mode == "patch"

        vague_outcome = await router.decide_for_update(vague)
        assert len(mock_clients.call_history) == 1
        assert vague_outcome.decision.mode == "patch"

    @pytest.mark.asyncio
    async def test_llm_failure_falls_back_to_rules(
        self,
        make_executor: Callable[..., LayerLLMExecutor],
        context: GenerationContext,
    ) -> None:
        clients = MockVendorClients(configured=("gemini",))
        clients.script("gemini", ProviderError("down", status_code=503))
        router = Router(make_executor(clients), RouterConfig(mode="llm"))

        outcome = await router.decide_for_generate(context)

        assert outcome.decision == decide_deterministic(context, "generate")
        assert outcome.usage == []

    @pytest.mark.asyncio
    async def test_empty_llm_reply_falls_back_to_rules(
        self,
        executor: LayerLLMExecutor,
        mock_clients: MockVendorClients,
        context: GenerationContext,
    ) -> None:
        mock_clients.script("gemini", "{}")
        router = Router(executor, RouterConfig(mode="llm"))

        outcome = await router.decide_for_generate(context)

        assert outcome.decision == decide_deterministic(context, "generate")
