"""Component manifest: the renderer's component vocabulary."""

from genui.manifest.base import ManifestRegistry
from genui.manifest.models import ComponentManifest, ManifestComponent
from genui.manifest.static import StaticManifestRegistry, unwrap_tree

__all__ = [
    "ComponentManifest",
    "ManifestComponent",
    "ManifestRegistry",
    "StaticManifestRegistry",
    "unwrap_tree",
]
