"""UI providers: vendor adapters that stream UI schemas."""

from genui.providers.ui.base import UIProvider
from genui.providers.ui.llm import LLMUIProvider
from genui.providers.ui.mock import MockUIProvider
from genui.providers.ui.registry import ProviderRegistry

__all__ = [
    "LLMUIProvider",
    "MockUIProvider",
    "ProviderRegistry",
    "UIProvider",
]
