"""Schema repair: deterministic sanitizer and escalating LLM repair."""

from genui.pipeline.repair.agent import RepairAgent
from genui.pipeline.repair.sanitizer import EMOJI_ICONS, SchemaSanitizer, emoji_to_icon

__all__ = ["EMOJI_ICONS", "RepairAgent", "SchemaSanitizer", "emoji_to_icon"]
