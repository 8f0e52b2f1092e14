"""Interaction-safety and icon policy rules.

Shared by the validator, which reports violations, and the sanitizer,
which removes them. Both must agree on what counts as a violation so a
sanitized tree validates clean.
"""

import re
from typing import Any, Literal
from urllib.parse import urlsplit

from genui.config.models.pipeline import PolicyConfig

FORBIDDEN_PROP_KEYS = frozenset({"href", "actionUrl", "formAction", "target"})
HTTP_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"})

MEDIA_COMPONENT_TYPES = frozenset({"image", "video-player", "audio-player", "carousel", "avatar"})
MEDIA_PROP_KEYS = frozenset({"src", "poster"})

ALLOWED_EVENT_ACTIONS = ("ui.patch", "tool.call", "state.update", "copyToClipboard")
ACTION_TYPE_KEYS = ("type", "action", "kind")
TOOL_NAME_KEYS = ("tool", "toolName", "name")

URL_KEY_FRAGMENTS = ("url", "href", "link", "endpoint", "action")

FORBIDDEN_HANDLER_PATTERN = re.compile(
    r"submit|\bpost\b|\bfetch\b|axios|https?://|window\.location",
    re.IGNORECASE,
)
URL_SCHEME = re.compile(r"^[a-z][a-z0-9+.-]*:\S", re.IGNORECASE)

ICON_STYLE_KEYS = frozenset({"iconColor", "iconSize", "iconPosition", "iconPlacement"})
ICON_NAME = re.compile(r"^[a-z][a-z0-9-]*$")
EMOJI = re.compile(
    "["
    "\U0001F600-\U0001F64F"
    "\U0001F300-\U0001F5FF"
    "\U0001F680-\U0001F6FF"
    "\U0001F1E0-\U0001F1FF"
    "\u2600-\u26FF"
    "\u2700-\u27BF"
    "\uFE00-\uFE0F"
    "\U0001F900-\U0001F9FF"
    "\U0001FA00-\U0001FA6F"
    "\U0001FA70-\U0001FAFF"
    "\u200D"
    "\u20E3"
    "\U000E0020-\U000E007F"
    "]"
)

Severity = Literal["error", "warning"]
Finding = tuple[Severity, str]


def is_url_like_key(key: str) -> bool:
    """Prop keys that may carry a link or endpoint."""
    if key in MEDIA_PROP_KEYS:
        return True
    lower = key.lower()
    return any(fragment in lower for fragment in URL_KEY_FRAGMENTS)


def is_navigation_value(value: Any) -> bool:
    """Absolute, external or navigation-style URL values."""
    if not isinstance(value, str):
        return False
    text = value.strip()
    if not text:
        return False
    return (
        text.startswith("/")
        or text.lower().startswith("www.")
        or bool(URL_SCHEME.match(text))
    )


def host_allowed(host: str, policy: PolicyConfig) -> bool:
    """Whether a media host is on the allow-list (subdomains included)."""
    if policy.allow_all_media:
        return True
    host = host.lower()
    for domain in policy.media_domains:
        domain = domain.lower().lstrip(".")
        if host == domain or host.endswith("." + domain):
            return True
    return False


def is_allowed_media(component_type: str, key: str, value: Any, policy: PolicyConfig) -> bool:
    """The media exception for src/poster on media components."""
    if component_type not in MEDIA_COMPONENT_TYPES or key not in MEDIA_PROP_KEYS:
        return False
    if not isinstance(value, str):
        return False

    text = value.strip()
    lower = text.lower()
    if lower.startswith(("//", "mailto:", "tel:")):
        return False
    if text.startswith("/"):
        return True
    if lower.startswith(("http://", "https://")):
        host = urlsplit(text).hostname
        return bool(host) and host_allowed(host, policy)
    return False


def check_prop(component_type: str, key: str, value: Any, policy: PolicyConfig) -> str | None:
    """Safety error for one prop, or None when the prop is acceptable."""
    if component_type == "button" and key == "type" and value == "submit":
        return 'Button type="submit" is forbidden. Use type="button" with explicit actions.'
    if key in FORBIDDEN_PROP_KEYS:
        return f"Prop '{key}' is forbidden."
    if key == "method" and isinstance(value, str) and value.strip().upper() in HTTP_METHODS:
        return f"Prop 'method' with HTTP verb '{value}' is forbidden."
    if is_url_like_key(key) and is_navigation_value(value):
        if not is_allowed_media(component_type, key, value, policy):
            return f"Prop '{key}' holds a navigation URL."
    return None


def resolve_action(handler: dict[str, Any]) -> str | None:
    for key in ACTION_TYPE_KEYS:
        value = handler.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def resolve_tool_name(handler: dict[str, Any]) -> str | None:
    for key in TOOL_NAME_KEYS:
        value = handler.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def check_event_handler(handler: Any, policy: PolicyConfig) -> list[Finding]:
    """Findings for one event handler (string or object form).

    An empty tool allow-list rejects every tool.call, while copyToClipboard
    is allowed with a warning under the same condition.
    """
    if isinstance(handler, str):
        if FORBIDDEN_HANDLER_PATTERN.search(handler):
            return [("error", "Forbidden interaction pattern detected.")]
        vocabulary = set(ALLOWED_EVENT_ACTIONS) | set(policy.allowed_actions)
        if handler not in vocabulary:
            return [("error", f"Handler '{handler[:50]}' is not an allowed action.")]
        handler = {"type": handler}

    if not isinstance(handler, dict):
        return [("error", "Handler must be a string or an object.")]

    findings: list[Finding] = []
    action = resolve_action(handler)
    if action not in ALLOWED_EVENT_ACTIONS and action not in policy.allowed_actions:
        findings.append(("error", f"Unsupported action '{action}'."))

    for key, value in handler.items():
        if is_url_like_key(key) and is_navigation_value(value):
            findings.append(("error", f"Handler key '{key}' holds a navigation URL."))

    if action == "tool.call":
        tool = resolve_tool_name(handler)
        if not policy.tool_allowlist:
            findings.append(("error", "tool.call rejected: no tools are registered."))
        elif tool is None:
            findings.append(("error", "tool.call is missing a tool name."))
        elif tool not in policy.tool_allowlist:
            findings.append(("error", f"Tool '{tool}' is not on the allow-list."))
    elif action == "copyToClipboard" and not policy.tool_allowlist:
        findings.append(("warning", "copyToClipboard allowed without a tool registry."))

    return findings


def is_icon_key(key: str) -> bool:
    if key in ICON_STYLE_KEYS:
        return False
    return key == "icon" or key.endswith("Icon") or key.startswith("icon")


def contains_emoji(value: str) -> bool:
    return bool(EMOJI.search(value))


def is_emoji_only(value: str) -> bool:
    stripped = value.strip()
    return bool(stripped) and not EMOJI.sub("", stripped).strip()


def check_icon_value(value: Any, policy: PolicyConfig) -> str | None:
    """Icon policy error for an icon prop value, or None."""
    if not isinstance(value, str):
        return None
    if ICON_NAME.match(value):
        return None
    if not policy.reject_emoji and is_emoji_only(value):
        return None
    return f"Icon '{value[:50]}' must be a kebab-case Lucide icon name."
