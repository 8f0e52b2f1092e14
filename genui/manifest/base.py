"""Manifest registry read contract."""

from typing import Any, Protocol, runtime_checkable

from genui.manifest.models import ManifestComponent


@runtime_checkable
class ManifestRegistry(Protocol):
    """Read-only access to the loaded component manifest."""

    def get_version(self) -> str:
        """Manifest version, "unknown" when nothing is loaded."""
        ...

    def get_renderer_version(self) -> str:
        """Renderer version the manifest targets."""
        ...

    def validate(self, schema: dict[str, Any]) -> list[str]:
        """Structural errors for a schema (wrapped or bare tree)."""
        ...

    def sanitize(self, schema: dict[str, Any]) -> dict[str, Any]:
        """Structurally cleaned copy of a schema."""
        ...

    def component_types(self) -> set[str]:
        """Known component types."""
        ...

    def get_component(self, component_type: str) -> ManifestComponent | None:
        """Manifest entry for a component type, if known."""
        ...
