"""Request routing."""

from genui.pipeline.routing.router import Router, decide_deterministic, normalize_decision

__all__ = ["Router", "decide_deterministic", "normalize_decision"]
