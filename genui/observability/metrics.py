"""Prometheus metrics for the generation pipeline.

Tracks model calls, token usage, repair activity, provider fallback
and per-stage latency.
"""

from prometheus_client import Counter, Histogram

# LLM metrics
LLM_TOKENS = Counter(
    "genui_llm_tokens_total",
    "Total LLM tokens used",
    labelnames=["vendor", "model", "direction"],
)

LAYER_CALLS = Counter(
    "genui_layer_calls_total",
    "Model calls issued per pipeline layer",
    labelnames=["layer", "vendor", "outcome"],
)

RATE_LIMIT_RETRIES = Counter(
    "genui_rate_limit_retries_total",
    "In-place retries after a vendor rate limit",
    labelnames=["vendor"],
)

# Pipeline metrics
PIPELINE_RESULTS = Counter(
    "genui_pipeline_results_total",
    "Terminal outcomes of pipeline runs",
    labelnames=["flow", "outcome"],
)

PIPELINE_STAGE_LATENCY = Histogram(
    "genui_pipeline_stage_latency_seconds",
    "Latency of individual pipeline stages",
    labelnames=["stage"],
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

REPAIR_ATTEMPTS = Counter(
    "genui_repair_attempts_total",
    "Repair agent invocations by method and outcome",
    labelnames=["method", "outcome"],
)

VALIDATION_ISSUES = Counter(
    "genui_validation_issues_total",
    "Validation issues found in candidate schemas",
    labelnames=["kind", "severity"],
)

# Fallback metrics
PROVIDER_FALLBACKS = Counter(
    "genui_provider_fallbacks_total",
    "Whole-provider fallback attempts",
    labelnames=["from_provider", "to_provider", "outcome"],
)
