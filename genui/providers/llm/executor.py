"""Layer LLM Executor - runs one pipeline layer's completion across vendors.

Each pipeline layer (router, summarizer, ux, schema, repair, search) asks the
executor for a completion at a model tier. The executor:
- Resolves the (vendor, model) chain for the layer via ModelResolver
- Skips vendors without credentials
- Retries rate-limited calls in place with exponential backoff
- Promotes an alternate vendor after persistent rate limiting
- Falls through the chain on any other vendor failure
- Parses structured output tolerantly
- Accounts token usage and cost per call

Vendor calls go through the VendorClients protocol. AgnoVendorClients is the
production implementation, built on Agno model classes:
- Gemini for gemini
- OpenRouter for openrouter
- Groq for groq
- OpenAIChat for openai
- Claude for anthropic
"""

from __future__ import annotations

import asyncio
import random
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any, Protocol

from genui.config.models.pipeline import CompletionConfig
from genui.config.models.providers import ProvidersConfig
from genui.observability.logging import get_logger
from genui.observability.metrics import LAYER_CALLS, LLM_TOKENS, RATE_LIMIT_RETRIES
from genui.providers.llm.base import (
    AuthenticationError,
    LayerLLMResponse,
    LLMMessage,
    ModelConfigError,
    ModelError,
    ModelTier,
    NoAvailableVendorError,
    ProviderError,
    RateLimitError,
    ResponseKind,
    UsageRecord,
    VendorReply,
)
from genui.providers.llm.parsing import parse_structured
from genui.providers.llm.resolver import ModelResolver, ResolvedModel
from genui.providers.llm.usage import build_usage

if TYPE_CHECKING:
    from agno.agent import Agent

logger = get_logger(__name__)


class VendorClients(Protocol):
    """Seam between the executor and the vendor SDKs."""

    def is_configured(self, vendor: str) -> bool:
        """Whether credentials exist for the vendor."""
        ...

    async def complete(
        self,
        vendor: str,
        model: str,
        messages: list[LLMMessage],
        *,
        structured: bool,
        temperature: float,
        max_tokens: int,
    ) -> VendorReply:
        """Run one non-streaming completion."""
        ...

    def stream(
        self,
        vendor: str,
        model: str,
        messages: list[LLMMessage],
        *,
        temperature: float,
        max_tokens: int,
    ) -> AsyncIterator[str]:
        """Stream text deltas from one completion."""
        ...


def classify_vendor_error(exc: Exception) -> ProviderError:
    """Translate an SDK exception into the provider error taxonomy."""
    if isinstance(exc, ProviderError):
        return exc

    status = _error_status(exc)
    text = str(exc).lower()

    # bare timeouts carry no message
    detail = str(exc) or type(exc).__name__
    if isinstance(exc, TimeoutError):
        return ProviderError(f"Vendor call timed out: {detail}", status_code=status)
    if isinstance(exc, ConnectionError):
        return ProviderError(f"Vendor connection failed: {detail}", status_code=status)

    if status == 429 or "rate limit" in text or "too many requests" in text:
        return RateLimitError(f"Rate limited: {exc}", status_code=status or 429)
    if status in (401, 403) or "api key" in text or "unauthorized" in text:
        return AuthenticationError(f"Authentication failed: {exc}", status_code=status)
    if _is_invalid_model_message(status, text):
        return ModelError(f"Model rejected: {exc}", status_code=status)
    return ProviderError(f"Vendor call failed: {exc}", status_code=status)


def _error_status(exc: Exception) -> int | None:
    for attr in ("status_code", "status", "code"):
        value = getattr(exc, attr, None)
        try:
            status = int(value) if value is not None else None
        except (TypeError, ValueError):
            continue
        if status and status > 0:
            return status
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def _is_invalid_model_message(status: int | None, text: str) -> bool:
    if status not in (400, 404):
        return False
    return "model" in text and any(
        marker in text for marker in ("invalid", "not found", "unknown", "does not exist")
    )


class LayerLLMExecutor:
    """Completion fan-out over the resolved vendor chain of a layer.

    Example:
        executor = LayerLLMExecutor(
            resolver=ModelResolver(RoutingTable(settings.routing, os.environ)),
            clients=AgnoVendorClients.from_config(settings.providers, os.environ),
            providers=settings.providers,
            completion=settings.pipeline.completion,
        )

        response = await executor.complete(
            "router",
            [LLMMessage(role="user", content="...")],
            tier="fast",
            response_kind="structured",
        )
    """

    def __init__(
        self,
        resolver: ModelResolver,
        clients: VendorClients,
        providers: ProvidersConfig | None = None,
        completion: CompletionConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._resolver = resolver
        self._clients = clients
        self._providers = providers or ProvidersConfig()
        self._completion = completion or CompletionConfig()
        self._sleep = sleep

    @property
    def resolver(self) -> ModelResolver:
        return self._resolver

    def is_vendor_configured(self, vendor: str) -> bool:
        return self._clients.is_configured(vendor)

    async def complete(
        self,
        layer: str,
        messages: list[LLMMessage],
        *,
        tier: ModelTier = "balanced",
        response_kind: ResponseKind = "text",
        vendor_override: str | None = None,
        model_override: str | None = None,
        allow_fallback: bool = True,
        temperature: float | None = None,
        max_tokens: int | None = None,
        trace_id: str | None = None,
    ) -> LayerLLMResponse:
        """Complete a layer call, falling through the vendor chain on failure.

        Args:
            layer: Pipeline layer name used for model resolution
            messages: Conversation messages
            tier: Model tier
            response_kind: "structured" parses the output as JSON
            vendor_override: Force the primary vendor
            model_override: Force the primary model
            allow_fallback: Stop after the first failed candidate when False
            temperature: Sampling temperature (config default when None)
            max_tokens: Output token cap (config default when None)
            trace_id: Request trace id for logging

        Returns:
            LayerLLMResponse from the first candidate that succeeded

        Raises:
            ModelConfigError: routing is misconfigured or a vendor rejected
                the model id
            NoAvailableVendorError: no candidate vendor has credentials
            ProviderError: the last candidate's failure when all failed
        """
        chain = self._resolver.resolve_chain(
            layer,
            tier,
            vendor_override=vendor_override,
            model_override=model_override,
        )
        pending: list[ResolvedModel] = list(chain.chain)
        attempted: set[str] = set()
        last_error: Exception | None = None

        logger.info(
            "layer_llm_start",
            layer=layer,
            tier=tier,
            response_kind=response_kind,
            chain=[entry.key for entry in pending],
            trace_id=trace_id,
        )

        while pending:
            candidate = pending.pop(0)
            if candidate.key in attempted:
                continue
            attempted.add(candidate.key)

            if not self._clients.is_configured(candidate.vendor):
                logger.warning(
                    "layer_llm_vendor_not_configured",
                    layer=layer,
                    vendor=candidate.vendor,
                    trace_id=trace_id,
                )
                continue

            try:
                response = await self._complete_with_backoff(
                    layer,
                    candidate,
                    messages,
                    response_kind=response_kind,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    trace_id=trace_id,
                )
            except ModelError as e:
                LAYER_CALLS.labels(layer=layer, vendor=candidate.vendor, outcome="config_error").inc()
                raise ModelConfigError(
                    f"Vendor '{candidate.vendor}' rejected model '{candidate.model}' "
                    f"for layer={layer}: {e}"
                ) from e
            except ProviderError as e:
                last_error = e
                LAYER_CALLS.labels(layer=layer, vendor=candidate.vendor, outcome="error").inc()
                logger.warning(
                    "layer_llm_failed",
                    layer=layer,
                    vendor=candidate.vendor,
                    model=candidate.model,
                    error=str(e),
                    error_type=type(e).__name__,
                    trace_id=trace_id,
                )
                if not allow_fallback:
                    break
                if isinstance(e, RateLimitError):
                    self._promote_alternate(pending, chain.chain, attempted, candidate.vendor)
                continue

            LAYER_CALLS.labels(layer=layer, vendor=candidate.vendor, outcome="success").inc()
            logger.info(
                "layer_llm_success",
                layer=layer,
                vendor=candidate.vendor,
                model=candidate.model,
                total_tokens=response.usage.total_tokens,
                trace_id=trace_id,
            )
            return response

        if last_error is not None:
            raise last_error

        logger.warning("layer_llm_no_available_vendor", layer=layer, trace_id=trace_id)
        raise NoAvailableVendorError(f"No configured vendor available for layer={layer}")

    async def stream(
        self,
        layer: str,
        messages: list[LLMMessage],
        *,
        tier: ModelTier = "balanced",
        vendor: str | None = None,
        model_override: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        trace_id: str | None = None,
    ) -> AsyncIterator[str]:
        """Stream text deltas from the layer's primary candidate.

        Streaming does not fall back; whole-provider fallback happens a level
        up, in the fallback coordinator.
        """
        chain = self._resolver.resolve_chain(
            layer, tier, vendor_override=vendor, model_override=model_override
        )
        primary = chain.primary
        if not self._clients.is_configured(primary.vendor):
            raise NoAvailableVendorError(
                f"Vendor '{primary.vendor}' is not configured for layer={layer}"
            )

        logger.info(
            "layer_llm_stream_start",
            layer=layer,
            vendor=primary.vendor,
            model=primary.model,
            trace_id=trace_id,
        )

        deltas = self._clients.stream(
            primary.vendor,
            primary.model,
            messages,
            temperature=self._temperature(temperature),
            max_tokens=max_tokens or self._completion.max_tokens,
        )
        try:
            async for delta in deltas:
                yield delta
        except ModelError as e:
            raise ModelConfigError(
                f"Vendor '{primary.vendor}' rejected model '{primary.model}' for layer={layer}: {e}"
            ) from e
        finally:
            aclose = getattr(deltas, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _complete_with_backoff(
        self,
        layer: str,
        candidate: ResolvedModel,
        messages: list[LLMMessage],
        *,
        response_kind: ResponseKind,
        temperature: float | None,
        max_tokens: int | None,
        trace_id: str | None,
    ) -> LayerLLMResponse:
        """Call one candidate, backing off and retrying while rate limited."""
        max_retries = self._completion.max_rate_limit_retries
        attempt = 0
        while True:
            try:
                return await self._complete_once(
                    layer,
                    candidate,
                    messages,
                    response_kind=response_kind,
                    temperature=temperature,
                    max_tokens=max_tokens,
                )
            except RateLimitError:
                if attempt >= max_retries:
                    raise
                delay_ms = self._backoff_delay_ms(attempt)
                RATE_LIMIT_RETRIES.labels(vendor=candidate.vendor).inc()
                logger.warning(
                    "layer_llm_rate_limited",
                    layer=layer,
                    vendor=candidate.vendor,
                    retry=attempt + 1,
                    max_retries=max_retries,
                    delay_ms=delay_ms,
                    trace_id=trace_id,
                )
                await self._sleep(delay_ms / 1000)
                attempt += 1

    async def _complete_once(
        self,
        layer: str,
        candidate: ResolvedModel,
        messages: list[LLMMessage],
        *,
        response_kind: ResponseKind,
        temperature: float | None,
        max_tokens: int | None,
    ) -> LayerLLMResponse:
        structured = response_kind == "structured"
        start_time = time.perf_counter()

        try:
            reply = await self._clients.complete(
                candidate.vendor,
                candidate.model,
                messages,
                structured=structured,
                temperature=self._temperature(temperature),
                max_tokens=max_tokens or self._completion.max_tokens,
            )
        except (ProviderError, ModelConfigError):
            raise
        except Exception as e:
            raise classify_vendor_error(e) from e

        text = reply.text or ""
        json_data = parse_structured(text) if structured else None

        usage = self.account_usage(layer, candidate, messages, text, reply.raw_usage)

        logger.debug(
            "layer_llm_call_complete",
            layer=layer,
            vendor=candidate.vendor,
            model=candidate.model,
            latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
            content_length=len(text),
        )

        return LayerLLMResponse(
            vendor=candidate.vendor,
            model=candidate.model,
            text=text,
            json_data=json_data,
            usage=usage,
        )

    def account_usage(
        self,
        layer: str,
        candidate: ResolvedModel,
        messages: list[LLMMessage],
        completion_text: str,
        raw_usage: dict[str, Any] | None = None,
    ) -> UsageRecord:
        """Build a usage record for one call and count its tokens."""
        vendor_config = self._providers.vendor(candidate.vendor)
        usage = build_usage(
            layer=layer,
            vendor=candidate.vendor,
            model=candidate.model,
            prompt_text="\n\n".join(message.content for message in messages),
            completion_text=completion_text,
            raw_usage=raw_usage,
            input_cost_per_1k=vendor_config.input_cost_per_1k,
            output_cost_per_1k=vendor_config.output_cost_per_1k,
        )
        LLM_TOKENS.labels(vendor=candidate.vendor, model=candidate.model, direction="input").inc(
            usage.prompt_tokens
        )
        LLM_TOKENS.labels(vendor=candidate.vendor, model=candidate.model, direction="output").inc(
            usage.completion_tokens
        )
        return usage

    def _promote_alternate(
        self,
        pending: list[ResolvedModel],
        chain: list[ResolvedModel],
        attempted: set[str],
        failed_vendor: str,
    ) -> None:
        """Move an untried candidate from another vendor to the front.

        The configured promotion vendor is preferred; otherwise the first
        untried candidate from a different vendor.
        """
        preferred = self._completion.rate_limit_promotion_vendor
        untried = [
            entry
            for entry in chain
            if entry.vendor != failed_vendor and entry.key not in attempted
        ]
        if not untried:
            return

        promoted = next((entry for entry in untried if entry.vendor == preferred), untried[0])
        pending[:] = [promoted, *(entry for entry in pending if entry.key != promoted.key)]
        logger.info(
            "layer_llm_vendor_promoted",
            from_vendor=failed_vendor,
            to_vendor=promoted.vendor,
            model=promoted.model,
        )

    def _backoff_delay_ms(self, attempt: int) -> int:
        base = self._completion.backoff_base_ms * (2**attempt)
        jitter = random.randint(0, self._completion.backoff_jitter_ms)
        return base + jitter

    def _temperature(self, temperature: float | None) -> float:
        return self._completion.temperature if temperature is None else temperature


# ============================================================================
# Agno vendor clients
# ============================================================================


class AgnoVendorClients:
    """VendorClients backed by Agno model classes.

    Model handles are created once per (vendor, model, sampling settings) and
    reused; a fresh Agent wraps the handle for every call so no conversation
    state leaks between requests.
    """

    def __init__(
        self,
        api_keys: Mapping[str, str],
        providers: ProvidersConfig | None = None,
    ) -> None:
        self._api_keys = {vendor: key for vendor, key in api_keys.items() if key}
        self._providers = providers or ProvidersConfig()
        self._models: dict[tuple[str, str, float, int], Any] = {}

    @classmethod
    def from_config(
        cls,
        providers: ProvidersConfig,
        environ: Mapping[str, str],
    ) -> AgnoVendorClients:
        """Collect API keys from config and the conventional env variables."""
        from genui.config.models.providers import VENDORS

        keys: dict[str, str] = {}
        for vendor in VENDORS:
            key = providers.resolve_api_key(vendor, environ)
            if key:
                keys[vendor] = key
        return cls(keys, providers)

    def is_configured(self, vendor: str) -> bool:
        return vendor in self._api_keys

    async def complete(
        self,
        vendor: str,
        model: str,
        messages: list[LLMMessage],
        *,
        structured: bool,
        temperature: float,
        max_tokens: int,
    ) -> VendorReply:
        agent = self._build_agent(vendor, model, messages, structured, temperature, max_tokens)
        input_text = self._format_input(vendor, messages)

        try:
            run_response = await agent.arun(input_text)
        except Exception as e:
            raise classify_vendor_error(e) from e

        content = run_response.content if run_response.content else ""
        if not isinstance(content, str):
            content = str(content)
        return VendorReply(text=content, raw_usage=_usage_from_metrics(run_response))

    async def stream(
        self,
        vendor: str,
        model: str,
        messages: list[LLMMessage],
        *,
        temperature: float,
        max_tokens: int,
    ) -> AsyncIterator[str]:
        agent = self._build_agent(vendor, model, messages, False, temperature, max_tokens)
        input_text = self._format_input(vendor, messages)

        try:
            async for chunk in agent.arun(input_text, stream=True):
                if hasattr(chunk, "content") and chunk.content:
                    yield chunk.content
        except Exception as e:
            raise classify_vendor_error(e) from e

    def _build_agent(
        self,
        vendor: str,
        model: str,
        messages: list[LLMMessage],
        structured: bool,
        temperature: float,
        max_tokens: int,
    ) -> Agent:
        from agno.agent import Agent

        system_prompt = "\n\n".join(m.content for m in messages if m.role == "system")
        return Agent(
            model=self._get_or_create_model(vendor, model, temperature, max_tokens),
            instructions=[system_prompt] if system_prompt else None,
            markdown=False,
            # Claude has no JSON response mode; its prompts ask for JSON instead
            use_json_mode=structured and vendor != "anthropic",
        )

    def _get_or_create_model(
        self,
        vendor: str,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> Any:
        cache_key = (vendor, model, temperature, max_tokens)
        if cache_key not in self._models:
            self._models[cache_key] = self._create_agno_model(vendor, model, temperature, max_tokens)
        return self._models[cache_key]

    def _create_agno_model(
        self,
        vendor: str,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> Any:
        """Create the Agno model class for a vendor."""
        api_key = self._api_keys.get(vendor)
        config = self._providers.vendor(vendor)

        if vendor == "gemini":
            from agno.models.google import Gemini

            return Gemini(
                id=model,
                api_key=api_key,
                temperature=temperature,
                max_output_tokens=max_tokens,
            )

        elif vendor == "openrouter":
            from agno.models.openrouter import OpenRouter

            kwargs: dict[str, Any] = {}
            if config.base_url:
                kwargs["base_url"] = config.base_url
            return OpenRouter(
                id=model,
                api_key=api_key,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=config.timeout,
                **kwargs,
            )

        elif vendor == "groq":
            from agno.models.groq import Groq

            return Groq(
                id=model,
                api_key=api_key,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=config.timeout,
            )

        elif vendor == "openai":
            from agno.models.openai import OpenAIChat

            return OpenAIChat(
                id=model,
                api_key=api_key,
                base_url=config.base_url,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=config.timeout,
            )

        elif vendor == "anthropic":
            from agno.models.anthropic import Claude

            return Claude(
                id=model,
                api_key=api_key,
                temperature=temperature,
                max_tokens=max_tokens,
            )

        raise ModelConfigError(f"Unknown vendor '{vendor}'")

    def _format_input(self, vendor: str, messages: list[LLMMessage]) -> str:
        """Convert non-system messages to Agno input text.

        System messages travel as agent instructions. Claude rejects an
        empty turn list, so it gets a minimal continuation turn.
        """
        turns = [m for m in messages if m.role != "system"]

        if not turns:
            return "Continue." if vendor == "anthropic" else ""

        if len(turns) == 1:
            return turns[0].content

        parts = []
        for msg in turns:
            if msg.role == "user":
                parts.append(f"User: {msg.content}")
            elif msg.role == "assistant":
                parts.append(f"Assistant: {msg.content}")
        return "\n\n".join(parts)


def _usage_from_metrics(run_response: Any) -> dict[str, Any] | None:
    """Pull token counts out of an Agno run response, when present."""
    metrics = getattr(run_response, "metrics", None)
    if metrics is None:
        return None

    if isinstance(metrics, dict):

        def _total(key: str) -> int:
            value = metrics.get(key)
            if isinstance(value, list):
                return sum(v for v in value if isinstance(v, int))
            return value if isinstance(value, int) else 0

        return {
            "input_tokens": _total("input_tokens"),
            "output_tokens": _total("output_tokens"),
            "total_tokens": _total("total_tokens"),
        }

    return {
        "input_tokens": getattr(metrics, "input_tokens", 0) or 0,
        "output_tokens": getattr(metrics, "output_tokens", 0) or 0,
        "total_tokens": getattr(metrics, "total_tokens", 0) or 0,
    }
