"""Registry of UI providers by name."""

from collections.abc import Iterable

from genui.providers.ui.base import UIProvider


class ProviderRegistry:
    """Maps provider names to UIProvider instances."""

    def __init__(self, providers: Iterable[UIProvider] = ()) -> None:
        self._providers: dict[str, UIProvider] = {}
        for provider in providers:
            self.register(provider)

    def register(self, provider: UIProvider) -> None:
        self._providers[provider.name] = provider

    def get(self, name: str) -> UIProvider | None:
        return self._providers.get(name)

    def names(self) -> list[str]:
        return list(self._providers)

    def is_available(self, name: str) -> bool:
        provider = self._providers.get(name)
        return provider is not None and provider.is_available()

    def available(self) -> list[str]:
        """Names of providers that can currently serve requests."""
        return [name for name, provider in self._providers.items() if provider.is_available()]

    def __contains__(self, name: object) -> bool:
        return name in self._providers

    def __len__(self) -> int:
        return len(self._providers)
