"""File-backed manifest registry."""

import copy
import json
from pathlib import Path
from typing import Any

from genui.manifest.models import ComponentManifest, ManifestComponent
from genui.observability.logging import get_logger

logger = get_logger(__name__)

MAX_SCHEMA_BYTES = 1024 * 1024
UNKNOWN_VERSION = "unknown"
DEFAULT_RENDERER_VERSION = "1.0.0"
FALLBACK_COMPONENT_TYPE = "container"


def unwrap_tree(schema: Any) -> Any:
    """Return the UI tree of a wrapped schema, or the schema itself."""
    if isinstance(schema, dict) and isinstance(schema.get("ui"), dict):
        return schema["ui"]
    return schema


class StaticManifestRegistry:
    """Manifest registry loaded from a JSON file or a dict.

    Before a manifest is loaded the version is "unknown", no component type
    is rejected and sanitize leaves types alone.
    """

    def __init__(self, manifest: ComponentManifest | None = None) -> None:
        self._manifest: ComponentManifest | None = None
        self._components: dict[str, ManifestComponent] = {}
        if manifest is not None:
            self._set_manifest(manifest)

    @classmethod
    def from_file(cls, path: Path | str) -> "StaticManifestRegistry":
        registry = cls()
        registry.load(path)
        return registry

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StaticManifestRegistry":
        return cls(ComponentManifest.model_validate(data))

    @property
    def is_loaded(self) -> bool:
        return self._manifest is not None

    @property
    def manifest(self) -> ComponentManifest | None:
        return self._manifest

    def load(self, path: Path | str) -> bool:
        """Load a manifest JSON file.

        Returns:
            False when the file does not exist

        Raises:
            ValueError: if the file is not valid JSON
            pydantic.ValidationError: if the JSON is not a manifest
        """
        manifest_path = Path(path)
        if not manifest_path.exists():
            logger.warning("manifest_not_found", path=str(manifest_path))
            return False

        try:
            with open(manifest_path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid manifest JSON in {manifest_path}: {e}") from e

        self._set_manifest(ComponentManifest.model_validate(data))
        return True

    def get_version(self) -> str:
        return self._manifest.manifest_version if self._manifest else UNKNOWN_VERSION

    def get_renderer_version(self) -> str:
        return self._manifest.renderer_version if self._manifest else DEFAULT_RENDERER_VERSION

    def component_types(self) -> set[str]:
        return set(self._components)

    def get_component(self, component_type: str) -> ManifestComponent | None:
        return self._components.get(component_type)

    def validate(self, schema: dict[str, Any]) -> list[str]:
        """Component whitelist and size checks."""
        errors: list[str] = []
        if self.is_loaded:
            errors.extend(self._validate_whitelist(unwrap_tree(schema), "root"))

        size = len(json.dumps(schema, default=str))
        if size > MAX_SCHEMA_BYTES:
            errors.append(f"Schema size {size} bytes exceeds 1MB limit")
        return errors

    def sanitize(self, schema: dict[str, Any]) -> dict[str, Any]:
        """Replace unknown component types and prune undeclared props.

        Works on a copy; the input is never mutated.
        """
        if not isinstance(schema, dict):
            return schema

        result = copy.deepcopy(schema)
        tree = unwrap_tree(result)
        self._sanitize_node(tree)

        if tree is not result and self._manifest is not None:
            result["manifestVersion"] = self._manifest.manifest_version
            result["rendererVersion"] = self._manifest.renderer_version
        return result

    def _set_manifest(self, manifest: ComponentManifest) -> None:
        self._manifest = manifest
        self._components = {component.type: component for component in manifest.components}
        logger.info(
            "manifest_loaded",
            version=manifest.manifest_version,
            components=len(manifest.components),
        )

    def _validate_whitelist(self, node: Any, path: str) -> list[str]:
        errors: list[str] = []
        if not isinstance(node, dict):
            return errors

        node_type = node.get("type")
        if node_type and node_type not in self._components:
            errors.append(f"Unknown component '{node_type}' at {path}")

        for key in ("children", "components"):
            children = node.get(key)
            if isinstance(children, list):
                for i, child in enumerate(children):
                    errors.extend(self._validate_whitelist(child, f"{path}.{key}[{i}]"))
        return errors

    def _sanitize_node(self, node: Any) -> None:
        if not isinstance(node, dict):
            return

        if self.is_loaded:
            node_type = node.get("type")
            if node_type and node_type not in self._components:
                logger.warning("manifest_sanitize_unknown_type", component_type=node_type)
                node["type"] = FALLBACK_COMPONENT_TYPE
                if not isinstance(node.get("props"), dict):
                    node["props"] = {}

            component = self._components.get(node.get("type", ""))
            props = node.get("props")
            if component is not None and isinstance(props, dict):
                allowed = component.prop_names
                node["props"] = {key: value for key, value in props.items() if key in allowed}

        for key in ("children", "components"):
            children = node.get(key)
            if isinstance(children, list):
                for child in children:
                    self._sanitize_node(child)
