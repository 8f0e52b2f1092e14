"""LLM data models and error types.

This module provides the core types used by the layer executor:
- LLMMessage: Input message format
- LayerLLMResponse: Output of a layer completion
- UsageRecord: Per-call token and cost accounting
- Error types for the different failure modes
"""

from typing import Any, Literal

from pydantic import BaseModel, Field

ModelTier = Literal["fast", "balanced", "quality"]
ResponseKind = Literal["text", "structured"]

MODEL_TIERS: tuple[ModelTier, ...] = ("fast", "balanced", "quality")


class LLMMessage(BaseModel):
    """A message in a conversation."""

    role: Literal["system", "user", "assistant"] = Field(
        ..., description="Role: system, user, or assistant"
    )
    content: str = Field(..., description="Message content")


class UsageRecord(BaseModel):
    """Token usage and cost of one layer call."""

    layer: str
    vendor: str
    model: str
    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)
    requests: int = Field(default=1, ge=0)
    estimated_cost_usd: float = Field(default=0.0, ge=0.0)


class VendorReply(BaseModel):
    """Raw text and vendor-reported usage from a single vendor call."""

    text: str = ""
    raw_usage: dict[str, Any] | None = None


class LayerLLMResponse(BaseModel):
    """Response from a layer completion."""

    vendor: str = Field(..., description="Vendor that answered")
    model: str = Field(..., description="Model that answered")
    text: str = Field(default="", description="Generated text")
    json_data: Any = Field(default=None, description="Parsed structured output")
    usage: UsageRecord


# ============================================================================
# Error Types
# ============================================================================


class ProviderError(Exception):
    """Base exception for LLM vendor errors.

    status_code carries the HTTP status reported by the vendor, when known.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(ProviderError):
    """Invalid or missing API key."""


class RateLimitError(ProviderError):
    """Rate limit exceeded."""


class ModelError(ProviderError):
    """The vendor rejected the model id outright."""


class ParseError(ProviderError):
    """Structured output could not be parsed, even after tolerant repair."""


class NoAvailableVendorError(ProviderError):
    """No vendor in the chain had credentials configured."""


class ModelConfigError(Exception):
    """Model routing is misconfigured.

    Raised for unresolved or malformed model mappings, vendor/model shape
    mismatches and model ids the vendor does not know. Never retried.
    """
