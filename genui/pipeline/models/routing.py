"""Routing decision model."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from genui.providers.llm.base import ModelTier, UsageRecord

RoutingMode = Literal["replace", "patch"]
Flow = Literal["generate", "update"]


class RoutingDecision(BaseModel):
    """How the pipeline should handle one request.

    Serialized with camelCase aliases (`runUxPlan`, `modelTier`, ...) when
    placed in chunk metadata.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    mode: RoutingMode = "replace"
    run_ux_plan: bool = False
    run_web_search: bool = False
    model_tier: ModelTier = "balanced"
    reasons: list[str] = Field(default_factory=list)
    patch_hints: list[str] = Field(default_factory=list)


class RoutingOutcome(BaseModel):
    """Routing decision plus any LLM usage spent reaching it."""

    decision: RoutingDecision
    usage: list[UsageRecord] = Field(default_factory=list)
