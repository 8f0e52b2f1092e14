"""UI generation pipeline: routing, context stages, validation, repair and fallback."""
