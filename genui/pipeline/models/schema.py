"""UI tree shapes used at the validation boundary.

Candidates travel through the pipeline as plain JSON dicts. The validator
parses them into UINode to report structural problems, and walks the raw
dicts with walk_tree so one malformed node never hides the others.
"""

from collections.abc import Iterator
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# `components` is the legacy spelling of `children`
CHILD_KEYS = ("children", "components")


class UINode(BaseModel):
    """A node in a UI component tree."""

    model_config = ConfigDict(extra="allow")

    type: str = Field(..., min_length=1)
    id: str | int | None = None
    props: dict[str, Any] = Field(default_factory=dict)
    children: list["UINode"] = Field(default_factory=list)
    components: list["UINode"] = Field(default_factory=list)
    events: dict[str, Any] = Field(default_factory=dict)


UINode.model_rebuild()


def walk_tree(node: Any, path: str = "root") -> Iterator[tuple[str, dict[str, Any]]]:
    """Yield (path, node) for every dict node in a raw tree, depth first.

    Non-dict entries are skipped; `children` and `components` are both followed.
    """
    if not isinstance(node, dict):
        return
    yield path, node
    for key in CHILD_KEYS:
        children = node.get(key)
        if isinstance(children, list):
            for i, child in enumerate(children):
                yield from walk_tree(child, f"{path}.{key}[{i}]")


def node_type(node: dict[str, Any]) -> str:
    value = node.get("type")
    return value if isinstance(value, str) else ""


def node_section(node: dict[str, Any], key: str) -> dict[str, Any]:
    """The node's `props` or `events` mapping, empty when missing or malformed."""
    value = node.get(key)
    return value if isinstance(value, dict) else {}
