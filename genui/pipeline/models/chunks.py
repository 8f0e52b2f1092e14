"""Streamed UI schema chunks.

A chunk stream carries zero or more `partial` chunks followed by exactly
one terminal chunk, either `complete` or `error`.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from genui.pipeline.models.routing import RoutingDecision
from genui.providers.llm.base import UsageRecord

ChunkType = Literal["partial", "complete", "error"]


class ChunkMeta(BaseModel):
    """Metadata attached to a terminal chunk."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    usage: list[UsageRecord] | None = None
    telemetry: dict[str, Any] | None = None
    routing_decision: RoutingDecision | None = None
    safety: dict[str, Any] | None = None
    warnings: list[str] | None = None


class UISchemaChunk(BaseModel):
    """One element of a UI generation stream."""

    type: ChunkType
    data: Any = None
    done: bool = False
    meta: ChunkMeta | None = None

    @classmethod
    def partial(cls, data: Any) -> "UISchemaChunk":
        return cls(type="partial", data=data, done=False)

    @classmethod
    def complete(cls, data: Any, meta: ChunkMeta | None = None) -> "UISchemaChunk":
        return cls(type="complete", data=data, done=True, meta=meta)

    @classmethod
    def error(
        cls,
        message: str,
        code: str | None = None,
        meta: ChunkMeta | None = None,
    ) -> "UISchemaChunk":
        data: dict[str, Any] = {"message": message}
        if code is not None:
            data["code"] = code
        return cls(type="error", data=data, done=True, meta=meta)

    @property
    def is_terminal(self) -> bool:
        return self.type in ("complete", "error")

    @property
    def error_message(self) -> str:
        """Message of an error chunk, empty for other chunk types."""
        if isinstance(self.data, dict):
            return str(self.data.get("message") or self.data.get("error") or "")
        return str(self.data or "")

    @property
    def error_code(self) -> str:
        """Machine code of an error chunk, empty when absent."""
        if isinstance(self.data, dict):
            code = self.data.get("code")
            return str(code) if code is not None else ""
        return ""

    def to_wire(self) -> dict[str, Any]:
        """Serialize as `{type, data, done, meta?}` with camelCase meta keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
