"""Per-request pipeline telemetry."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from genui.pipeline.models.routing import Flow


class PipelineStepTiming(BaseModel):
    """Timing information for a single pipeline step."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    step: str = Field(..., description="Step name")
    duration_ms: float = Field(ge=0)
    skipped: bool = False
    skip_reason: str | None = None


class PipelineTelemetry(BaseModel):
    """What happened while serving one request."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    flow: Flow
    provider: str
    trace_id: str
    timings: list[PipelineStepTiming] = Field(default_factory=list)
    repair_rounds: int = 0
    repair_methods: list[str] = Field(default_factory=list)
    valid: bool | None = None
    total_time_ms: float = 0.0
