"""Schema generation prompts."""

from genui.pipeline.generation.prompt_builder import PromptBuilder

__all__ = ["PromptBuilder"]
