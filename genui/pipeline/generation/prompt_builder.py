"""Prompt building for schema generation.

Assembles the component vocabulary, compressed history, search results,
UX plan and routing hints into messages for the `schema` layer.
"""

import json
from pathlib import Path
from typing import Any

from genui.manifest.base import ManifestRegistry
from genui.pipeline.context.enrichment import format_search_results
from genui.pipeline.models.context import ConversationMessage, GenerationContext
from genui.providers.llm import LLMMessage

_SYSTEM_PROMPT_PATH = Path(__file__).parent / "prompts" / "system_prompt.txt"

MAX_HISTORY_CONTENT_CHARS = 500


class PromptBuilder:
    """Build prompts for UI schema generation and updates."""

    def __init__(
        self,
        manifest: ManifestRegistry | None = None,
        system_template: str | None = None,
        max_sources: int = 6,
    ) -> None:
        """Initialize the prompt builder.

        Args:
            manifest: Component vocabulary listed in the system prompt
            system_template: Optional custom system prompt template
            max_sources: Search sources included in prompts
        """
        if system_template:
            self._system_template = system_template
        elif _SYSTEM_PROMPT_PATH.exists():
            self._system_template = _SYSTEM_PROMPT_PATH.read_text(encoding="utf-8")
        else:
            self._system_template = self._default_template()

        self._manifest = manifest
        self._max_sources = max_sources

    def _default_template(self) -> str:
        """Return a minimal default template."""
        return """You are a UI generation assistant. Output ONLY valid JSON.
{components_section}
Do not invent new component types."""

    def build_system_prompt(self) -> str:
        """Build the system prompt with the component vocabulary."""
        return self._system_template.format(
            components_section=self._build_components_section(),
        )

    def build_generate_messages(self, context: GenerationContext) -> list[LLMMessage]:
        """Messages for generating a fresh schema."""
        sections = [f"User request: {context.user_prompt}"]

        if context.current_ui_state:
            sections.append(f"Current UI state: {json.dumps(context.current_ui_state)}")
        sections.extend(self._build_context_sections(context))
        sections.append("Generate a UI schema to fulfill this request.")

        return self.build_messages(
            self.build_system_prompt(),
            "\n\n".join(sections),
            history=context.conversation_history,
        )

    def build_update_messages(
        self,
        schema: Any,
        interaction: Any,
        context: GenerationContext,
    ) -> list[LLMMessage]:
        """Messages for updating an existing schema after an interaction."""
        sections = [
            f"Current UI schema: {json.dumps(schema)}",
            f"User interaction: {json.dumps(interaction)}",
            f"User request: {context.user_prompt}",
        ]
        sections.extend(self._build_context_sections(context))

        decision = context.routing_decision
        if decision is not None and decision.mode == "patch":
            sections.append(
                "Make minimal edits. Keep unchanged structure and IDs untouched."
            )
        sections.append(
            "Update the UI schema based on the interaction and request. "
            "Return the complete updated schema."
        )

        return self.build_messages(self.build_system_prompt(), "\n\n".join(sections))

    def build_messages(
        self,
        system_prompt: str,
        user_message: str,
        history: list[ConversationMessage] | None = None,
    ) -> list[LLMMessage]:
        """Build the message list for the LLM.

        Args:
            system_prompt: System prompt to use
            user_message: Current user message
            history: Conversation history (already compressed)

        Returns:
            List of messages with role and content
        """
        messages = [LLMMessage(role="system", content=system_prompt)]

        for turn in history or []:
            content = turn.content or ""
            if len(content) > MAX_HISTORY_CONTENT_CHARS:
                content = content[:MAX_HISTORY_CONTENT_CHARS] + "...[truncated]"
            role = turn.role if turn.role in ("user", "assistant") else "user"
            messages.append(LLMMessage(role=role, content=content))

        messages.append(LLMMessage(role="user", content=user_message))
        return messages

    def _build_components_section(self) -> str:
        """Build the supported components section of the prompt."""
        if self._manifest is None or not self._manifest.component_types():
            return ""

        lines = ["Supported component types (type field):"]
        for component_type in sorted(self._manifest.component_types()):
            component = self._manifest.get_component(component_type)
            if component is None:
                continue
            props = ", ".join(sorted(component.prop_names))
            lines.append(f"- {component.type} (props: {props})" if props else f"- {component.type}")
        return "\n".join(lines)

    def _build_context_sections(self, context: GenerationContext) -> list[str]:
        """Sections shared by generate and update prompts."""
        sections: list[str] = []

        if context.ui_state_digest:
            sections.append(f"UI state digest:\n{context.ui_state_digest}")

        if context.context_summary:
            sections.append(f"Conversation summary:\n{context.context_summary}")

        search = format_search_results(context.search_results, self._max_sources)
        if search:
            sections.append(search)

        routing = self._build_routing_section(context)
        if routing:
            sections.append(routing)

        if context.ux_plan:
            sections.append(f"UX design plan to follow:\n{context.ux_plan}")

        return sections

    def _build_routing_section(self, context: GenerationContext) -> str:
        """Build the routing hints section of the prompt."""
        decision = context.routing_decision
        if decision is None:
            return ""

        lines = [
            "Routing hints:",
            f"- mode: {decision.mode}",
            f"- model tier: {decision.model_tier}",
            f"- run UX plan: {'yes' if decision.run_ux_plan else 'no'}",
            f"- run web search: {'yes' if decision.run_web_search else 'no'}",
        ]
        lines.extend(f"- {hint}" for hint in decision.patch_hints)
        return "\n".join(lines)
