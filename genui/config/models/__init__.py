"""Configuration model exports.

    from genui.config.models import PipelineConfig, ProvidersConfig
"""

from genui.config.models.observability import (
    LoggingConfig,
    MetricsConfig,
    ObservabilityConfig,
)
from genui.config.models.pipeline import (
    CompletionConfig,
    FallbackConfig,
    PipelineConfig,
    PolicyConfig,
    RepairConfig,
    RouterConfig,
    SummarizerConfig,
    UXPlanConfig,
    WebSearchConfig,
)
from genui.config.models.providers import (
    VENDORS,
    ProvidersConfig,
    Vendor,
    VendorConfig,
)

__all__ = [
    # Observability
    "LoggingConfig",
    "MetricsConfig",
    "ObservabilityConfig",
    # Pipeline
    "CompletionConfig",
    "FallbackConfig",
    "PipelineConfig",
    "PolicyConfig",
    "RepairConfig",
    "RouterConfig",
    "SummarizerConfig",
    "UXPlanConfig",
    "WebSearchConfig",
    # Providers
    "VENDORS",
    "ProvidersConfig",
    "Vendor",
    "VendorConfig",
]
