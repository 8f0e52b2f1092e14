"""Generation pipeline configuration models."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

RouterMode = Literal["deterministic", "llm", "hybrid"]
WebSearchMode = Literal["auto", "always", "never"]


class RouterConfig(BaseModel):
    """Request router configuration."""

    mode: RouterMode = Field(
        default="deterministic",
        description="Whether an LLM overlays the deterministic routing decision",
    )


class RepairConfig(BaseModel):
    """Validate/repair loop configuration."""

    max_rounds: int = Field(
        default=2,
        ge=0,
        description="Maximum repair agent invocations per request",
    )
    escalate: bool = Field(
        default=True,
        description="Escalate LLM repair from the fast tier to the quality tier",
    )

    @property
    def tiers(self) -> list[str]:
        """Ordered model tiers tried by LLM repair."""
        return ["fast", "quality"] if self.escalate else ["fast"]


class WebSearchConfig(BaseModel):
    """Web search enrichment configuration."""

    enabled: bool = Field(default=False, description="Enable web search enrichment")
    mode: WebSearchMode = Field(default="auto", description="When to search")
    keywords: list[str] = Field(
        default_factory=list,
        description="Extra prompt keywords that trigger a search in auto mode",
    )
    max_sources: int = Field(default=6, gt=0, description="Sources included in prompts")

    @field_validator("keywords", mode="before")
    @classmethod
    def split_keywords(cls, value: object) -> object:
        """Accept a comma separated string as well as a list."""
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


class SummarizerConfig(BaseModel):
    """Conversation history compression configuration."""

    enabled: bool = Field(default=True, description="Compress older history")
    max_recent_messages: int = Field(default=8, ge=1, description="Messages kept verbatim")
    llm_refinement: bool = Field(
        default=False,
        description="Ask the summarizer layer to refine the deterministic summary",
    )


class UXPlanConfig(BaseModel):
    """UX planning stage configuration."""

    enabled: bool = Field(default=True, description="Run the UX planner when routed to")


class PolicyConfig(BaseModel):
    """Interaction-safety and icon policy configuration."""

    tool_allowlist: list[str] = Field(
        default_factory=list,
        description="Tool names permitted in tool.call event handlers",
    )
    media_domains: list[str] = Field(
        default_factory=list,
        description="Hosts allowed for media src/poster URLs ('*' allows all)",
    )
    reject_emoji: bool = Field(
        default=True,
        description="Reject emoji anywhere in the tree and require kebab-case icon names",
    )
    allowed_actions: list[str] = Field(
        default_factory=list,
        description="Extra string event handlers accepted besides the core actions",
    )

    @field_validator("tool_allowlist", "media_domains", "allowed_actions", mode="before")
    @classmethod
    def split_lists(cls, value: object) -> object:
        """Accept a comma separated string as well as a list."""
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @property
    def allow_all_media(self) -> bool:
        """Whether every http(s) media host is allowed."""
        return "*" in self.media_domains


class FallbackConfig(BaseModel):
    """Whole-provider fallback configuration."""

    enabled: bool = Field(default=True, description="Retry failed requests on other providers")
    provider_order: list[str] = Field(
        default_factory=lambda: ["gemini", "openrouter", "groq", "openai", "anthropic"],
        description="Global provider preference order for fallback",
    )


class CompletionConfig(BaseModel):
    """Model-level retry configuration for layer completions."""

    max_rate_limit_retries: int = Field(default=2, ge=0, description="In-place retries on 429")
    backoff_base_ms: int = Field(default=400, ge=0, description="First backoff delay")
    backoff_jitter_ms: int = Field(default=250, ge=0, description="Random jitter upper bound")
    rate_limit_promotion_vendor: str = Field(
        default="openrouter",
        description="Preferred alternate vendor promoted after a rate limit",
    )
    temperature: float = Field(default=0.0, ge=0.0, le=2.0, description="Default temperature")
    max_tokens: int = Field(default=4096, gt=0, description="Default max tokens")


class PipelineConfig(BaseModel):
    """Configuration for the full generation pipeline."""

    router: RouterConfig = Field(default_factory=RouterConfig)
    repair: RepairConfig = Field(default_factory=RepairConfig)
    web_search: WebSearchConfig = Field(default_factory=WebSearchConfig)
    summarizer: SummarizerConfig = Field(default_factory=SummarizerConfig)
    ux_plan: UXPlanConfig = Field(default_factory=UXPlanConfig)
    policy: PolicyConfig = Field(default_factory=PolicyConfig)
    fallback: FallbackConfig = Field(default_factory=FallbackConfig)
    completion: CompletionConfig = Field(default_factory=CompletionConfig)
