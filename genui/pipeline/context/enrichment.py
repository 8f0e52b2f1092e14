"""Web search enrichment of the generation context."""

from typing import Protocol

from pydantic import BaseModel, Field

from genui.config.models.pipeline import WebSearchConfig
from genui.observability.logging import get_logger
from genui.pipeline.models.context import GenerationContext, SearchResults, SearchSource
from genui.pipeline.models.routing import RoutingDecision
from genui.providers.llm import LayerLLMExecutor, LLMMessage, UsageRecord

logger = get_logger(__name__)

SEARCH_SYSTEM_PROMPT = (
    "You are a web research tool. Answer from the most recent information you have "
    "and return JSON only: an object with keys summary (string) and sources "
    "(array of {url, title})."
)


class SearchOutcome(BaseModel):
    """Search results plus the LLM usage spent on them."""

    results: SearchResults
    usage: list[UsageRecord] = Field(default_factory=list)


class WebSearchClient(Protocol):
    """Anything that can research a query."""

    async def search(self, query: str, trace_id: str | None = None) -> SearchOutcome:
        ...


class LLMWebSearch:
    """WebSearchClient backed by the `search` layer."""

    def __init__(self, llm_executor: LayerLLMExecutor) -> None:
        self._llm_executor = llm_executor

    async def search(self, query: str, trace_id: str | None = None) -> SearchOutcome:
        response = await self._llm_executor.complete(
            "search",
            [
                LLMMessage(role="system", content=SEARCH_SYSTEM_PROMPT),
                LLMMessage(role="user", content=query),
            ],
            tier="fast",
            response_kind="structured",
            trace_id=trace_id,
        )
        data = response.json_data if isinstance(response.json_data, dict) else {}

        sources = []
        for item in data.get("sources") or []:
            if isinstance(item, dict) and item.get("url"):
                sources.append(SearchSource(url=str(item["url"]), title=item.get("title")))

        return SearchOutcome(
            results=SearchResults(summary=str(data.get("summary") or response.text), sources=sources),
            usage=[response.usage],
        )


class EnrichmentResult(BaseModel):
    """Enriched context plus any LLM usage."""

    context: GenerationContext
    usage: list[UsageRecord] = Field(default_factory=list)


class ContextEnricher:
    """Adds web search results to the context when warranted.

    Modes:
    - never: no search
    - always: search every request
    - auto: search when routing asks for it or the prompt has a keyword
    """

    def __init__(
        self,
        search_client: WebSearchClient | None = None,
        config: WebSearchConfig | None = None,
    ) -> None:
        self._search_client = search_client
        self._config = config or WebSearchConfig()

    def should_search(self, context: GenerationContext, decision: RoutingDecision | None) -> bool:
        if not self._config.enabled or self._search_client is None:
            return False
        if self._config.mode == "never":
            return False
        if self._config.mode == "always":
            return True

        if decision is not None and decision.run_web_search:
            return True
        lower = (context.user_prompt or "").lower()
        return any(keyword.lower() in lower for keyword in self._config.keywords)

    async def enrich(
        self,
        context: GenerationContext,
        decision: RoutingDecision | None = None,
    ) -> EnrichmentResult:
        if not self.should_search(context, decision):
            return EnrichmentResult(context=context)

        try:
            outcome = await self._search_client.search(context.user_prompt, trace_id=context.trace_id)
        except Exception as e:
            logger.warning("web_search_failed", error=str(e), trace_id=context.trace_id)
            return EnrichmentResult(context=context)

        logger.info(
            "web_search_complete",
            sources=len(outcome.results.sources),
            trace_id=context.trace_id,
        )
        return EnrichmentResult(
            context=context.model_copy(update={"search_results": outcome.results}),
            usage=outcome.usage,
        )


def format_search_results(results: SearchResults | None, max_sources: int = 6) -> str | None:
    """Render search results as a prompt section."""
    if results is None or not results.summary:
        return None

    sources = "\n".join(
        f"- {source.title + ' ' if source.title else ''}({source.url})"
        for source in results.sources[:max_sources]
    )
    return f"Web search summary:\n{results.summary}\n\nSources:\n{sources}"

