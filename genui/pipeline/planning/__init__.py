"""UX planning stage."""

from genui.pipeline.planning.ux_planner import UXPlanner, UXPlanResult

__all__ = ["UXPlanResult", "UXPlanner"]
