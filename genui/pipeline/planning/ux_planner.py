"""UX planning stage.

Asks the `ux` layer for a structural recommendation (layout, sections,
interaction model) before the schema is generated. The plan is advisory:
any failure means the pipeline proceeds without one.
"""

import json

from pydantic import BaseModel, Field

from genui.manifest.base import ManifestRegistry
from genui.observability.logging import get_logger
from genui.pipeline.models.context import GenerationContext
from genui.providers.llm import LayerLLMExecutor, LLMMessage, ModelTier, UsageRecord

logger = get_logger(__name__)

MAX_UI_STATE_CHARS = 2000

UX_PLAN_SHAPE = """{
  "layout": "grid|flexbox|tabs|accordion|card",
  "sections": [
    {
      "purpose": "what this section does",
      "componentType": "primary component type",
      "density": "compact",
      "children": ["component-type-1", "component-type-2"]
    }
  ],
  "interactionModel": "filter-locally|details-on-demand|paginate|tabbed-navigation|wizard-flow",
  "densityNotes": "specific density choices for this layout",
  "iconSuggestions": { "sectionName": "lucide-icon-name" }
}"""


class UXPlanResult(BaseModel):
    """UX plan text (None when planning failed) plus LLM usage."""

    plan: str | None = None
    usage: list[UsageRecord] = Field(default_factory=list)


class UXPlanner:
    """Produces a UX plan for fresh layouts."""

    def __init__(self, llm_executor: LayerLLMExecutor, manifest: ManifestRegistry) -> None:
        self._llm_executor = llm_executor
        self._manifest = manifest

    def build_system_prompt(self) -> str:
        """System prompt listing the layouts and components on offer."""
        layouts: list[str] = []
        components: list[str] = []
        for component_type in sorted(self._manifest.component_types()):
            component = self._manifest.get_component(component_type)
            if component is None:
                continue
            if component.children_rules.is_container:
                layouts.append(component.type)
            components.append(f"{component.type} ({component.category}): {component.description}")

        return "\n".join(
            [
                "You are a UX designer for a generative UI system.",
                "",
                "Your constraints:",
                "- Design for COMPACT, information-dense UIs",
                f"- Available layouts: {', '.join(layouts) or 'container'}",
                "- Available components:",
                *components,
                "- Icons: Lucide only (kebab-case), NEVER emojis",
                "- NO form submits to URLs; prefer local filtering, details panels, copy-to-clipboard",
                "- Density: use the smallest gaps, paddings and font sizes that remain readable",
                "",
                "You MUST output ONLY valid JSON in this shape:",
                UX_PLAN_SHAPE,
                "",
                "Do NOT produce the final UI schema. Only recommend structure.",
            ]
        )

    async def plan(self, context: GenerationContext, tier: ModelTier = "balanced") -> UXPlanResult:
        """Return the plan as JSON text; the plan is None when planning fails."""
        ui_state = (
            json.dumps(context.current_ui_state)[:MAX_UI_STATE_CHARS]
            if context.current_ui_state
            else "none"
        )
        user_content = f'User request: "{context.user_prompt}"\n\nCurrent UI state: {ui_state}'

        try:
            response = await self._llm_executor.complete(
                "ux",
                [
                    LLMMessage(role="system", content=self.build_system_prompt()),
                    LLMMessage(role="user", content=user_content),
                ],
                tier=tier,
                response_kind="structured",
                temperature=0.5,
                trace_id=context.trace_id,
            )
        except Exception as e:
            logger.warning("ux_plan_failed_skipping", error=str(e), trace_id=context.trace_id)
            return UXPlanResult()

        if not isinstance(response.json_data, dict):
            logger.warning("ux_plan_not_an_object", trace_id=context.trace_id)
            return UXPlanResult(usage=[response.usage])

        sections = response.json_data.get("sections")
        logger.debug(
            "ux_plan_ready",
            layout=response.json_data.get("layout"),
            sections=len(sections) if isinstance(sections, list) else 0,
            trace_id=context.trace_id,
        )
        return UXPlanResult(plan=json.dumps(response.json_data), usage=[response.usage])
