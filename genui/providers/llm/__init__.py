"""LLM layer execution.

The primary interface is LayerLLMExecutor, which:
- Resolves a (vendor, model) chain per pipeline layer and tier
- Calls vendors through Agno model classes (AgnoVendorClients)
- Retries rate limits and falls back across vendors
- Parses structured output and accounts usage
"""

# Data models
from genui.providers.llm.base import (
    MODEL_TIERS,
    AuthenticationError,
    LayerLLMResponse,
    LLMMessage,
    ModelConfigError,
    ModelError,
    ModelTier,
    NoAvailableVendorError,
    ParseError,
    ProviderError,
    RateLimitError,
    ResponseKind,
    UsageRecord,
    VendorReply,
)

# Executor (primary interface)
from genui.providers.llm.executor import (
    AgnoVendorClients,
    LayerLLMExecutor,
    VendorClients,
    classify_vendor_error,
)

# Mock clients for tests
from genui.providers.llm.mock import MockVendorClients
from genui.providers.llm.parsing import parse_structured
from genui.providers.llm.resolver import (
    ModelChain,
    ModelResolver,
    ResolvedModel,
    RoutingTable,
    normalize_vendor,
)
from genui.providers.llm.usage import UsageTotals, build_usage, estimate_tokens, summarize_usage

__all__ = [
    # Data models
    "MODEL_TIERS",
    "LLMMessage",
    "LayerLLMResponse",
    "ModelTier",
    "ResponseKind",
    "UsageRecord",
    "VendorReply",
    # Errors
    "ProviderError",
    "AuthenticationError",
    "RateLimitError",
    "ModelError",
    "ParseError",
    "NoAvailableVendorError",
    "ModelConfigError",
    # Resolution
    "ModelChain",
    "ModelResolver",
    "ResolvedModel",
    "RoutingTable",
    "normalize_vendor",
    # Executor (primary interface)
    "LayerLLMExecutor",
    "VendorClients",
    "AgnoVendorClients",
    "classify_vendor_error",
    # Parsing and usage
    "parse_structured",
    "UsageTotals",
    "build_usage",
    "estimate_tokens",
    "summarize_usage",
    # Testing
    "MockVendorClients",
]
