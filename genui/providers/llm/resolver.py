"""Model resolution for pipeline layers.

Maps (layer, tier, vendor) to a concrete model id and builds the ordered
vendor fallback chain for a layer. Resolution reads a flat key/value
routing table captured once at composition time, so identical tables and
inputs always resolve identically.

Key conventions (L = layer, T = tier, V = vendor, upper-snake-cased):

    AI_LAYER_{L}_{V}_MODEL_{T}     AI_LAYER_{L}_PROVIDER_{T}
    AI_LAYER_{L}_MODEL_{T}_{V}     AI_LAYER_{L}_PROVIDER
    AI_LAYER_{L}_{V}_MODEL         AI_LAYER_DEFAULT_PROVIDER
    AI_LAYER_{L}_MODEL_{V}         AI_LAYER_{L}_FALLBACK_PROVIDERS_{T}
    AI_LAYER_{L}_MODEL_{T}         AI_LAYER_{L}_FALLBACK_PROVIDERS
    AI_LAYER_{L}_MODEL             AI_LAYER_FALLBACK_PROVIDERS
    {V}_MODEL_{L}_{T}, {V}_MODEL_{L}, {V}_{L}_MODEL_{T}, {V}_{L}_MODEL, {V}_{L}
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from pydantic import BaseModel, Field

from genui.observability.logging import get_logger
from genui.providers.llm.base import MODEL_TIERS, ModelConfigError, ModelTier

logger = get_logger(__name__)

DEFAULT_VENDOR = "gemini"

# Appended to every chain so an incomplete config still has somewhere to go
SAFETY_NET_VENDORS: tuple[str, ...] = ("openrouter", "groq", "openai", "anthropic", "gemini")

KNOWN_LAYERS: tuple[str, ...] = ("router", "summarizer", "ux", "schema", "repair", "search")

_PLACEHOLDER = re.compile(r"\$\{([A-Z0-9_]+)\}")
_MAX_INTERPOLATION_ROUNDS = 5

_VENDOR_ALIASES = {
    "gemini": "gemini",
    "google": "gemini",
    "groq": "groq",
    "openrouter": "openrouter",
    "openai": "openai",
    "anthropic": "anthropic",
}

# (vendor, tier) -> alias keys tried before the hard-coded default
_VENDOR_DEFAULTS: dict[str, dict[str, tuple[list[str], str]]] = {
    "groq": {
        "fast": (["GROQ_MODEL_FAST", "GROQ_MODEL_ROUTER_FAST", "GROQ_MODEL"], "llama-3.1-8b-instant"),
        "balanced": (["GROQ_MODEL_BALANCED", "GROQ_MODEL"], "llama-3.3-70b-versatile"),
        "quality": (["GROQ_MODEL_QUALITY", "GROQ_MODEL_REPAIR_FAST", "GROQ_MODEL"], "llama-3.3-70b-versatile"),
    },
    "gemini": {
        "fast": (["GEMINI_MODEL_FAST", "GEMINI_MODEL_FLASH", "GEMINI_MODEL"], "gemini-2.0-flash"),
        "balanced": (
            ["GEMINI_MODEL_BALANCED", "GEMINI_MODEL_FLASH", "GEMINI_MODEL", "GEMINI_MODEL_PRO"],
            "gemini-2.5-flash",
        ),
        "quality": (["GEMINI_MODEL_QUALITY", "GEMINI_MODEL_PRO", "GEMINI_MODEL"], "gemini-2.5-pro"),
    },
    "openrouter": {
        "fast": (["OPENROUTER_MODEL_FAST", "OPENROUTER_MODEL"], "openai/gpt-4o-mini"),
        "balanced": (["OPENROUTER_MODEL_BALANCED", "OPENROUTER_MODEL"], "google/gemini-2.5-flash"),
        "quality": (["OPENROUTER_MODEL_QUALITY", "OPENROUTER_MODEL"], "google/gemini-2.5-pro"),
    },
    "openai": {
        "fast": (["OPENAI_MODEL_FAST", "OPENAI_MODEL"], "gpt-4o-mini"),
        "balanced": (["OPENAI_MODEL_BALANCED", "OPENAI_MODEL"], "gpt-4.1-mini"),
        "quality": (["OPENAI_MODEL_QUALITY", "OPENAI_MODEL"], "gpt-4.1"),
    },
    "anthropic": {
        "fast": (["ANTHROPIC_MODEL_FAST", "ANTHROPIC_MODEL"], "claude-3-5-haiku-latest"),
        "balanced": (["ANTHROPIC_MODEL_BALANCED", "ANTHROPIC_MODEL"], "claude-3-5-sonnet-latest"),
        "quality": (["ANTHROPIC_MODEL_QUALITY", "ANTHROPIC_MODEL"], "claude-3-7-sonnet-latest"),
    },
}


class ResolvedModel(BaseModel):
    """A concrete (vendor, model) pair."""

    model_config = {"frozen": True}

    vendor: str
    model: str

    @property
    def key(self) -> str:
        return f"{self.vendor}:{self.model}"


class ModelChain(BaseModel):
    """Primary model plus ordered fallbacks for one (layer, tier)."""

    layer: str
    tier: ModelTier
    primary: ResolvedModel
    fallbacks: list[ResolvedModel] = Field(default_factory=list)

    @property
    def chain(self) -> list[ResolvedModel]:
        return [self.primary, *self.fallbacks]


class RoutingTable:
    """Immutable snapshot of routing configuration.

    Values from the settings `[routing]` table win over the process
    environment; blank values count as missing.
    """

    def __init__(
        self,
        values: Mapping[str, str] | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        merged: dict[str, str] = {}
        for source in (environ or {}, values or {}):
            for key, raw in source.items():
                text = str(raw) if raw is not None else ""
                if text.strip():
                    merged[key] = text
        self._values = MappingProxyType(merged)

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def items(self) -> Iterable[tuple[str, str]]:
        return self._values.items()


def normalize_vendor(raw: str | None) -> str | None:
    """Map a vendor name (or alias) to its canonical form, None if unknown."""
    if not raw:
        return None
    return _VENDOR_ALIASES.get(str(raw).strip().lower())


def to_env_segment(value: str) -> str:
    """Upper-snake-case a layer name for use inside a config key."""
    segment = re.sub(r"[^a-zA-Z0-9]+", "_", str(value or "").strip())
    return segment.strip("_").upper()


class ModelResolver:
    """Resolve models and fallback chains from a routing table."""

    def __init__(self, table: RoutingTable) -> None:
        self._table = table

    def resolve_model(
        self,
        layer: str,
        tier: ModelTier,
        vendor: str,
        model_override: str | None = None,
    ) -> str:
        """Resolve the model id for a layer/tier on a given vendor.

        Raises:
            ModelConfigError: nothing resolvable, unresolved placeholders, or
                a model id whose shape the vendor cannot accept
        """
        layer_key = to_env_segment(layer)
        tier_key = tier.upper()
        vendor_key = vendor.upper()

        configured_vendor = self._configured_vendor(layer_key, tier_key)

        candidates: list[str | None] = [model_override]
        candidates += [
            self._read(f"AI_LAYER_{layer_key}_{vendor_key}_MODEL_{tier_key}"),
            self._read(f"AI_LAYER_{layer_key}_MODEL_{tier_key}_{vendor_key}"),
            self._read(f"AI_LAYER_{layer_key}_{vendor_key}_MODEL"),
            self._read(f"AI_LAYER_{layer_key}_MODEL_{vendor_key}"),
        ]

        # Generic layer keys only apply to the vendor selected for this layer
        if configured_vendor is None or configured_vendor == vendor:
            candidates += [
                self._read(f"AI_LAYER_{layer_key}_MODEL_{tier_key}"),
                self._read(f"AI_LAYER_{layer_key}_MODEL"),
            ]

        candidates += [
            self._read(f"{vendor_key}_MODEL_{layer_key}_{tier_key}"),
            self._read(f"{vendor_key}_MODEL_{layer_key}"),
            self._read(f"{vendor_key}_{layer_key}_MODEL_{tier_key}"),
            self._read(f"{vendor_key}_{layer_key}_MODEL"),
            self._read(f"{vendor_key}_{layer_key}"),
        ]
        candidates += self._vendor_default_candidates(vendor, tier)

        selected = ""
        for candidate in candidates:
            value = self._interpolate(candidate or "").strip()
            if value:
                selected = value
                break

        if not selected:
            raise ModelConfigError(
                f"No model configured for layer={layer} tier={tier} provider={vendor}"
            )

        assert_vendor_model_compatible(vendor, selected, layer, tier)
        return selected

    def resolve_chain(
        self,
        layer: str,
        tier: ModelTier = "balanced",
        vendor_override: str | None = None,
        model_override: str | None = None,
    ) -> ModelChain:
        """Resolve the primary model and ordered fallbacks for a layer."""
        layer_key = to_env_segment(layer)
        tier_key = tier.upper()

        primary_vendor = (
            normalize_vendor(vendor_override)
            or self._configured_vendor(layer_key, tier_key)
            or self._read_vendor("AI_LAYER_DEFAULT_PROVIDER")
            or DEFAULT_VENDOR
        )

        fallback_vendors = _unique(
            [
                *self._read_vendor_list(f"AI_LAYER_{layer_key}_FALLBACK_PROVIDERS_{tier_key}"),
                *self._read_vendor_list(f"AI_LAYER_{layer_key}_FALLBACK_PROVIDERS"),
                *self._read_vendor_list("AI_LAYER_FALLBACK_PROVIDERS"),
                *SAFETY_NET_VENDORS,
            ]
        )

        primary = ResolvedModel(
            vendor=primary_vendor,
            model=self.resolve_model(layer, tier, primary_vendor, model_override),
        )

        fallbacks: list[ResolvedModel] = []
        seen = {primary.key}
        for vendor in fallback_vendors:
            if vendor == primary_vendor:
                continue
            resolved = ResolvedModel(vendor=vendor, model=self.resolve_model(layer, tier, vendor))
            if resolved.key in seen:
                continue
            seen.add(resolved.key)
            fallbacks.append(resolved)

        return ModelChain(layer=layer, tier=tier, primary=primary, fallbacks=fallbacks)

    def collect_configured_models(
        self,
        vendor: str,
        layers: Iterable[str] = KNOWN_LAYERS,
    ) -> list[str]:
        """List every model id the routing table would send to a vendor.

        Best effort: unresolvable entries are skipped, not raised.
        """
        found: list[str] = []
        for layer in layers:
            for tier in MODEL_TIERS:
                try:
                    model = self.resolve_model(layer, tier, vendor)
                except ModelConfigError:
                    continue
                if model not in found:
                    found.append(model)
        return found

    def check_routing(self, layers: Iterable[str] = KNOWN_LAYERS) -> list[str]:
        """Resolve every layer/tier chain and report configuration problems.

        Never raises; each problem is logged and returned.
        """
        problems: list[str] = []
        for layer in layers:
            for tier in MODEL_TIERS:
                try:
                    self.resolve_chain(layer, tier)
                except ModelConfigError as exc:
                    problems.append(f"layer={layer} tier={tier}: {exc}")
                    logger.warning(
                        "layer_routing_config_issue",
                        layer=layer,
                        tier=tier,
                        error=str(exc),
                    )
        return problems

    # ------------------------------------------------------------------

    def _configured_vendor(self, layer_key: str, tier_key: str) -> str | None:
        return self._read_vendor(f"AI_LAYER_{layer_key}_PROVIDER_{tier_key}") or self._read_vendor(
            f"AI_LAYER_{layer_key}_PROVIDER"
        )

    def _read(self, key: str) -> str | None:
        return self._table.get(key)

    def _read_vendor(self, key: str) -> str | None:
        return normalize_vendor(self._interpolate(self._read(key) or ""))

    def _read_vendor_list(self, key: str) -> list[str]:
        raw = self._read(key)
        if not raw:
            return []
        vendors = (normalize_vendor(item) for item in self._interpolate(raw).split(","))
        return [vendor for vendor in vendors if vendor]

    def _vendor_default_candidates(self, vendor: str, tier: ModelTier) -> list[str | None]:
        defaults = _VENDOR_DEFAULTS.get(vendor)
        if not defaults:
            return []
        alias_keys, hard_coded = defaults[tier]
        return [*(self._read(key) for key in alias_keys), hard_coded]

    def _interpolate(self, value: str) -> str:
        """Resolve ${NAME} references, at most five rounds deep.

        Unknown names stay literal so the compatibility check can flag them.
        """
        out = value
        for _ in range(_MAX_INTERPOLATION_ROUNDS):
            nxt = _PLACEHOLDER.sub(self._replacement, out)
            if nxt == out:
                break
            out = nxt
        return out

    def _replacement(self, match: re.Match[str]) -> str:
        found = self._read(match.group(1))
        return found if found is not None else match.group(0)


def assert_vendor_model_compatible(vendor: str, model: str, layer: str, tier: str) -> None:
    """Reject model ids whose shape the vendor cannot serve.

    Raises:
        ModelConfigError: on an empty id, an unresolved placeholder, or a
            vendor/model shape mismatch
    """
    trimmed = str(model or "").strip()
    where = f"layer={layer} tier={tier} provider={vendor}"

    if not trimmed:
        raise ModelConfigError(f"Empty model resolved for {where}")

    if "${" in trimmed:
        raise ModelConfigError(f"Unresolved interpolation in model '{trimmed}' for {where}")

    is_gemini_id = trimmed.lower().startswith("gemini-")
    namespaced = "/" in trimmed

    if vendor == "gemini" and not is_gemini_id:
        raise ModelConfigError(
            f"Gemini provider requires gemini-* model ids. Got '{trimmed}' for {where}"
        )
    if vendor == "openrouter" and not namespaced:
        raise ModelConfigError(
            f"OpenRouter models must be namespaced (scope/model). Got '{trimmed}' for {where}"
        )
    if vendor == "groq" and (is_gemini_id or namespaced):
        raise ModelConfigError(f"Groq provider received incompatible model '{trimmed}' for {where}")
    if vendor in ("openai", "anthropic") and is_gemini_id:
        raise ModelConfigError(f"Provider received Gemini model '{trimmed}' for {where}")


def _unique(items: Iterable[str]) -> list[str]:
    seen: list[str] = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen
