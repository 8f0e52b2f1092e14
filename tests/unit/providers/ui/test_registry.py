"""Tests for ProviderRegistry."""

from genui.providers.ui import MockUIProvider, ProviderRegistry


class TestProviderRegistry:
    """Tests for ProviderRegistry."""

    def test_register_and_get(self) -> None:
        gemini = MockUIProvider("gemini")
        registry = ProviderRegistry([gemini])

        assert registry.get("gemini") is gemini
        assert registry.get("groq") is None
        assert "gemini" in registry
        assert len(registry) == 1

    def test_register_replaces_same_name(self) -> None:
        registry = ProviderRegistry([MockUIProvider("gemini")])
        replacement = MockUIProvider("gemini")

        registry.register(replacement)

        assert registry.get("gemini") is replacement
        assert registry.names() == ["gemini"]

    def test_availability(self) -> None:
        registry = ProviderRegistry([
            MockUIProvider("gemini", available=False),
            MockUIProvider("groq"),
        ])

        assert registry.available() == ["groq"]
        assert registry.is_available("gemini") is False
        assert registry.is_available("groq") is True
        assert registry.is_available("openai") is False
