"""Multi-pass UI schema validation.

Every pass runs and contributes issues; only error-severity issues make a
schema invalid. Passes:

1. manifest structure and component whitelist
2. unknown props per component type (warning)
3. root is a layout component (warning)
4. density heuristics (warning)
5. interaction safety
6. icon names and emoji
7. manifest version contract (warning)
"""

from collections.abc import Iterator
from typing import Any

from pydantic import ValidationError

from genui.config.models.pipeline import PolicyConfig
from genui.manifest.base import ManifestRegistry
from genui.manifest.static import UNKNOWN_VERSION, unwrap_tree
from genui.observability.logging import get_logger
from genui.observability.metrics import VALIDATION_ISSUES
from genui.pipeline.models.schema import UINode, node_section, node_type, walk_tree
from genui.pipeline.models.validation import IssueKind, ValidationIssue, ValidationResult
from genui.pipeline.validation import policy as rules

logger = get_logger(__name__)

LAYOUT_TYPES = frozenset({"container", "flexbox", "grid", "card", "tabs", "split-layout"})
MAX_COMPACT_SPACING = 24

NodeList = list[tuple[str, dict[str, Any]]]


def iter_strings(value: Any, path: str) -> Iterator[tuple[str, str]]:
    """Yield (path, string) for every string value in a JSON structure."""
    if isinstance(value, str):
        yield path, value
    elif isinstance(value, list):
        for i, item in enumerate(value):
            yield from iter_strings(item, f"{path}[{i}]")
    elif isinstance(value, dict):
        for key, item in value.items():
            yield from iter_strings(item, f"{path}.{key}")


class SchemaValidator:
    """Validates candidate schemas against the manifest and UI policy."""

    def __init__(
        self,
        manifest: ManifestRegistry,
        policy: PolicyConfig | None = None,
    ) -> None:
        self._manifest = manifest
        self._policy = policy or PolicyConfig()

    @property
    def policy(self) -> PolicyConfig:
        return self._policy

    def validate(self, schema: Any) -> ValidationResult:
        """Run every pass over a candidate schema."""
        result = ValidationResult()

        if not isinstance(schema, dict):
            self._add(result, "schema", "Schema must be a JSON object.")
            return result

        for message in self._manifest.validate(schema):
            self._add(result, "schema", message)

        tree = unwrap_tree(schema)
        try:
            UINode.model_validate(tree)
        except ValidationError as e:
            self._add(result, "schema", f"Invalid UI tree: {e.error_count()} structural error(s).")

        nodes = list(walk_tree(tree))
        self._check_props(nodes, result)
        self._check_root_layout(tree, result)
        self._check_density(nodes, result)
        self._check_safety(nodes, result)
        self._check_icons(nodes, result)
        self._check_emoji(tree, result)

        self._check_version(schema, result)

        logger.debug(
            "schema_validated",
            valid=result.valid,
            errors=len(result.errors),
            warnings=len(result.warnings),
        )
        return result

    def _add(
        self,
        result: ValidationResult,
        kind: IssueKind,
        message: str,
        severity: str = "error",
        path: str = "root",
    ) -> None:
        result.add(ValidationIssue(kind=kind, message=message, severity=severity, path=path))
        VALIDATION_ISSUES.labels(kind=kind, severity=severity).inc()

    def _check_props(self, nodes: NodeList, result: ValidationResult) -> None:
        for path, node in nodes:
            component_type = node_type(node)
            component = self._manifest.get_component(component_type)
            if component is None:
                continue
            allowed = component.prop_names
            for key in node_section(node, "props"):
                if key not in allowed:
                    self._add(
                        result,
                        "props",
                        f"{path}.props.{key}: unknown prop for '{component_type}'",
                        severity="warning",
                        path=f"{path}.props.{key}",
                    )

    def _check_root_layout(self, tree: Any, result: ValidationResult) -> None:
        if not isinstance(tree, dict):
            return
        root_type = node_type(tree)
        if root_type in LAYOUT_TYPES:
            return
        component = self._manifest.get_component(root_type)
        if component is not None and component.category == "layout":
            return
        self._add(
            result,
            "layout",
            f"Root component is '{root_type}'; should be a layout "
            f"({', '.join(sorted(LAYOUT_TYPES))})",
            severity="warning",
        )

    def _check_density(self, nodes: NodeList, result: ValidationResult) -> None:
        for path, node in nodes:
            props = node_section(node, "props")
            if props.get("size") == "large":
                self._add(
                    result,
                    "density",
                    f'{path}: size="large" discouraged; use "small" or "medium" for compact density',
                    severity="warning",
                    path=path,
                )
            for key in ("gap", "padding"):
                value = props.get(key)
                if isinstance(value, (int, float)) and not isinstance(value, bool):
                    if value > MAX_COMPACT_SPACING:
                        self._add(
                            result,
                            "density",
                            f"{path}: {key}={value} is large; prefer <=16 for compact density",
                            severity="warning",
                            path=path,
                        )

    def _check_safety(self, nodes: NodeList, result: ValidationResult) -> None:
        for path, node in nodes:
            component_type = node_type(node)
            for key, value in node_section(node, "props").items():
                error = rules.check_prop(component_type, key, value, self._policy)
                if error:
                    self._add(
                        result, "safety", f"{path}.props.{key}: {error}", path=f"{path}.props.{key}"
                    )

            for event_name, handler in node_section(node, "events").items():
                event_path = f"{path}.events.{event_name}"
                for severity, message in rules.check_event_handler(handler, self._policy):
                    self._add(
                        result,
                        "safety",
                        f"{event_path}: {message}",
                        severity=severity,
                        path=event_path,
                    )

    def _check_icons(self, nodes: NodeList, result: ValidationResult) -> None:
        for path, node in nodes:
            for section in ("props", "events"):
                for key, value in node_section(node, section).items():
                    if not rules.is_icon_key(key):
                        continue
                    error = rules.check_icon_value(value, self._policy)
                    if error:
                        self._add(
                            result,
                            "icon",
                            f"{path}.{section}.{key}: {error}",
                            path=f"{path}.{section}.{key}",
                        )

    def _check_emoji(self, tree: Any, result: ValidationResult) -> None:
        if not self._policy.reject_emoji:
            return
        for path, value in iter_strings(tree, "root"):
            if rules.contains_emoji(value):
                self._add(
                    result,
                    "emoji",
                    f'Emoji found in "{path}": "{value[:50]}". Use Lucide icon names instead.',
                    path=path,
                )

    def _check_version(self, schema: dict[str, Any], result: ValidationResult) -> None:
        declared = schema.get("manifestVersion")
        expected = self._manifest.get_version()
        if declared and expected != UNKNOWN_VERSION and declared != expected:
            self._add(
                result,
                "version",
                f"Manifest version '{declared}' != loaded '{expected}'",
                severity="warning",
            )
