"""Request context flowing through the generation pipeline."""

from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from genui.pipeline.models.routing import RoutingDecision


class SearchSource(BaseModel):
    """A web source backing search results."""

    url: str
    title: str | None = None


class SearchResults(BaseModel):
    """Web search findings added to the context."""

    summary: str = ""
    sources: list[SearchSource] = Field(default_factory=list)


class ConversationMessage(BaseModel):
    """One prior conversation turn."""

    role: str = "user"
    content: str = ""


class GenerationContext(BaseModel):
    """Everything a provider needs to generate or update a UI.

    Stages never mutate a context; they return `model_copy(update=...)`.
    """

    user_prompt: str = Field(..., description="The user's request")
    conversation_history: list[ConversationMessage] = Field(default_factory=list)
    current_ui_state: dict[str, Any] | None = Field(
        default=None, description="Schema currently rendered for the user"
    )
    last_interaction: dict[str, Any] | None = Field(
        default=None, description="Most recent UI interaction event"
    )
    search_results: SearchResults | None = None
    ux_plan: str | None = None
    routing_decision: RoutingDecision | None = None
    context_summary: str | None = Field(
        default=None, description="Compressed summary of older history"
    )
    ui_state_digest: str | None = Field(
        default=None, description="Short digest of the current UI state"
    )
    trace_id: str = Field(default_factory=lambda: uuid4().hex)

    @property
    def has_ui_state(self) -> bool:
        return self.current_ui_state is not None

    @property
    def has_interaction(self) -> bool:
        return self.last_interaction is not None

