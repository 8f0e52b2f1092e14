"""Pipeline data models."""

from genui.pipeline.models.chunks import ChunkMeta, ChunkType, UISchemaChunk
from genui.pipeline.models.context import (
    ConversationMessage,
    GenerationContext,
    SearchResults,
    SearchSource,
)
from genui.pipeline.models.routing import Flow, RoutingDecision, RoutingMode, RoutingOutcome
from genui.pipeline.models.schema import UINode
from genui.pipeline.models.telemetry import PipelineStepTiming, PipelineTelemetry
from genui.pipeline.models.validation import (
    RepairResult,
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    "ChunkMeta",
    "ChunkType",
    "ConversationMessage",
    "Flow",
    "GenerationContext",
    "PipelineStepTiming",
    "PipelineTelemetry",
    "RepairResult",
    "RoutingDecision",
    "RoutingMode",
    "RoutingOutcome",
    "SearchResults",
    "SearchSource",
    "UINode",
    "UISchemaChunk",
    "ValidationIssue",
    "ValidationResult",
]
