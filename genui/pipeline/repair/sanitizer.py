"""Deterministic schema sanitizer.

The free first phase of repair: fixes the violations that have a single
obvious correction, without calling a model.
"""

from typing import Any

from genui.config.models.pipeline import PolicyConfig
from genui.manifest.base import ManifestRegistry
from genui.manifest.static import unwrap_tree
from genui.observability.logging import get_logger
from genui.pipeline.validation import policy as rules

logger = get_logger(__name__)

FALLBACK_ICON = "circle"

EMOJI_ICONS = {
    "📊": "bar-chart-3",
    "📈": "trending-up",
    "📉": "trending-down",
    "✅": "check-circle",
    "❌": "x-circle",
    "⚠️": "alert-triangle",
    "🔔": "bell",
    "🔍": "search",
    "⚙️": "settings",
    "👤": "user",
    "👥": "users",
    "📁": "folder",
    "📄": "file-text",
    "📌": "pin",
    "📎": "paperclip",
    "📍": "map-pin",
    "📨": "mail",
    "🔐": "lock",
    "🔑": "key",
    "🏠": "home",
    "🌟": "star",
    "🌈": "rainbow",
    "🎯": "target",
    "🏁": "flag",
    "▶️": "play",
    "⏸️": "pause",
    "⏹️": "square",
    "✨": "sparkles",
    "💡": "lightbulb",
    "🔥": "flame",
    "❤️": "heart",
    "📱": "smartphone",
    "💻": "laptop",
    "🖥️": "monitor",
    "🔒": "lock",
    "🔓": "unlock",
    "📝": "edit",
    "🗑️": "trash-2",
    "➕": "plus",
    "➖": "minus",
    "✏️": "pencil",
    "📋": "clipboard",
    "📆": "calendar",
    "⏰": "clock",
    "💬": "message-circle",
    "🔗": "link",
    "🌐": "globe",
    "☁️": "cloud",
    "1️⃣": "circle-1",
    "2️⃣": "circle-2",
    "3️⃣": "circle-3",
    "4️⃣": "circle-4",
    "5️⃣": "circle-5",
}


def emoji_to_icon(value: str) -> str:
    """Map an emoji (or any non-kebab value) to a Lucide icon name."""
    if rules.ICON_NAME.match(value):
        return value
    return EMOJI_ICONS.get(value.strip(), FALLBACK_ICON)


class SchemaSanitizer:
    """Removes policy violations from a schema.

    Structural cleanup (unknown types, undeclared props) is delegated to the
    manifest; this class then applies the interaction-safety and icon rules.
    The input is never mutated and sanitizing twice equals sanitizing once.
    """

    def __init__(self, manifest: ManifestRegistry, policy: PolicyConfig | None = None) -> None:
        self._manifest = manifest
        self._policy = policy or PolicyConfig()

    def sanitize(self, schema: Any) -> Any:
        if not isinstance(schema, dict):
            return schema

        # manifest.sanitize returns a deep copy
        result = self._manifest.sanitize(schema)
        self._sanitize_node(unwrap_tree(result))
        return result

    def _sanitize_node(self, node: Any) -> None:
        if not isinstance(node, dict):
            return

        node_type = node.get("type") or ""
        props = node.get("props")
        if isinstance(props, dict):
            self._sanitize_props(node_type, props)

        events = node.get("events")
        if isinstance(events, dict):
            self._map_icons(events)
            kept = {}
            for name, handler in events.items():
                if isinstance(handler, dict):
                    self._map_icons(handler)
                findings = rules.check_event_handler(handler, self._policy)
                if any(severity == "error" for severity, _ in findings):
                    logger.debug("sanitizer_dropped_handler", component_type=node_type, event_name=name)
                    continue
                kept[name] = handler
            node["events"] = kept

        for key in ("children", "components"):
            children = node.get(key)
            if isinstance(children, list):
                for child in children:
                    self._sanitize_node(child)

    def _sanitize_props(self, node_type: str, props: dict[str, Any]) -> None:
        for key, value in list(props.items()):
            if node_type == "button" and key == "type" and value == "submit":
                props[key] = "button"
                continue

            if rules.check_prop(node_type, key, value, self._policy):
                logger.debug("sanitizer_dropped_prop", component_type=node_type, prop=key)
                del props[key]

        self._map_icons(props)

    def _map_icons(self, values: dict[str, Any]) -> None:
        """Replace emoji under icon keys with icon names, in place."""
        for key, value in values.items():
            if rules.is_icon_key(key) and isinstance(value, str):
                if rules.check_icon_value(value, self._policy):
                    values[key] = emoji_to_icon(value)
