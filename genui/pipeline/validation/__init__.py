"""Schema validation and UI policy."""

from genui.pipeline.validation.validator import LAYOUT_TYPES, SchemaValidator

__all__ = ["LAYOUT_TYPES", "SchemaValidator"]
