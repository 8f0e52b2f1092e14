"""Context preparation stages: history compression and web search enrichment."""

from genui.pipeline.context.enrichment import (
    ContextEnricher,
    EnrichmentResult,
    LLMWebSearch,
    SearchOutcome,
    WebSearchClient,
    format_search_results,
)
from genui.pipeline.context.summarizer import ContextSummarizer, SummarizerResult

__all__ = [
    "ContextEnricher",
    "ContextSummarizer",
    "EnrichmentResult",
    "LLMWebSearch",
    "SearchOutcome",
    "SummarizerResult",
    "WebSearchClient",
    "format_search_results",
]
