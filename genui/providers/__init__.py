"""External services: LLM vendors and UI providers.

Import from the subpackages directly:
    from genui.providers.llm import LayerLLMExecutor
    from genui.providers.ui import LLMUIProvider
"""
