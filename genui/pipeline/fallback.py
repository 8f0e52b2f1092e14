"""Whole-provider fallback.

Retries an entire request on another UI provider when the primary fails
with a retryable error (rate limit, 5xx, network failure). The primary's
partial chunks stream live; alternates are fully drained before anything
of theirs is released.
"""

import re
from collections.abc import AsyncIterator, Callable, Iterable
from contextlib import aclosing

from genui.observability.logging import get_logger
from genui.observability.metrics import PROVIDER_FALLBACKS
from genui.pipeline.models.chunks import UISchemaChunk
from genui.providers.ui.base import UIProvider
from genui.providers.ui.llm import PARSE_ERROR
from genui.providers.ui.registry import ProviderRegistry

logger = get_logger(__name__)

DEFAULT_PROVIDER_ORDER = ("gemini", "openrouter", "groq", "openai", "anthropic")

RETRYABLE_TEXT = re.compile(
    r"rate limit|too many requests|timeout|timed out|etimedout"
    r"|connection (?:reset|refused|aborted|failed)"
    r"|econnreset|enotfound|getaddrinfo|\bdns\b",
    re.IGNORECASE,
)
RETRYABLE_STATUS = re.compile(r"\b(429|5\d\d)\b")

Runner = Callable[[UIProvider], AsyncIterator[UISchemaChunk]]


def is_retryable_error(chunk: UISchemaChunk) -> bool:
    """Whether an error chunk looks transient.

    Both the message and the machine code are checked. Unparseable output
    counts as transient too.
    """
    if chunk.type != "error":
        return False
    if chunk.error_code == PARSE_ERROR:
        return True
    for value in (chunk.error_message, chunk.error_code):
        if value and (RETRYABLE_TEXT.search(value) or RETRYABLE_STATUS.search(value)):
            return True
    return False


class ProviderFallbackCoordinator:
    """Runs a request on the primary provider, falling back on retryable failure."""

    def __init__(
        self,
        registry: ProviderRegistry,
        provider_order: Iterable[str] = DEFAULT_PROVIDER_ORDER,
        enabled: bool = True,
    ) -> None:
        self._registry = registry
        self._provider_order = list(provider_order)
        self._enabled = enabled

    def candidates(self, primary_name: str) -> list[str]:
        """Alternate providers in preference order, currently available only."""
        return [
            name
            for name in self._provider_order
            if name != primary_name and self._registry.is_available(name)
        ]

    async def run(self, primary: UIProvider, runner: Runner) -> AsyncIterator[UISchemaChunk]:
        """Stream the request result, trying alternates when the primary fails.

        Args:
            primary: Provider to try first
            runner: Runs the request on a given provider

        Yields:
            The primary's partial chunks live, then the terminal outcome
        """
        primary_errors: list[UISchemaChunk] = []

        async with aclosing(runner(primary)) as chunks:
            async for chunk in chunks:
                if chunk.type == "partial":
                    yield chunk
                elif chunk.type == "complete":
                    yield chunk
                    return
                else:
                    primary_errors.append(chunk)

        if not self._enabled or not any(is_retryable_error(c) for c in primary_errors):
            for chunk in primary_errors:
                yield chunk
            return

        logger.warning(
            "provider_fallback_triggered",
            primary=primary.name,
            error=primary_errors[0].error_message,
            code=primary_errors[0].error_code or None,
        )

        for name in self.candidates(primary.name):
            provider = self._registry.get(name)
            if provider is None:
                continue

            attempt = await self._drain(runner(provider))
            if any(chunk.type == "complete" for chunk in attempt):
                logger.info("provider_fallback_succeeded", primary=primary.name, fallback=name)
                PROVIDER_FALLBACKS.labels(
                    from_provider=primary.name, to_provider=name, outcome="success"
                ).inc()
                for chunk in attempt:
                    yield chunk
                    if chunk.type == "complete":
                        return

            errors = [chunk for chunk in attempt if chunk.type == "error"]
            if errors and not any(is_retryable_error(c) for c in errors):
                logger.warning(
                    "provider_fallback_failed_non_retryable",
                    primary=primary.name,
                    fallback=name,
                    error=errors[0].error_message,
                )
                PROVIDER_FALLBACKS.labels(
                    from_provider=primary.name, to_provider=name, outcome="failed"
                ).inc()
                for chunk in errors:
                    yield chunk
                return

            logger.warning(
                "provider_fallback_retryable_failure",
                primary=primary.name,
                fallback=name,
                error=errors[0].error_message if errors else None,
            )
            PROVIDER_FALLBACKS.labels(
                from_provider=primary.name, to_provider=name, outcome="retryable"
            ).inc()

        logger.error("provider_fallback_exhausted", primary=primary.name)
        for chunk in primary_errors:
            yield chunk

    async def _drain(self, stream: AsyncIterator[UISchemaChunk]) -> list[UISchemaChunk]:
        """Collect a stream up to and including its first terminal chunk."""
        collected: list[UISchemaChunk] = []
        async with aclosing(stream) as chunks:
            async for chunk in chunks:
                collected.append(chunk)
                if chunk.is_terminal:
                    break
        return collected
