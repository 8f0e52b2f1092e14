"""LLM vendor configuration models."""

from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel, Field, SecretStr

Vendor = Literal["gemini", "openrouter", "groq", "openai", "anthropic"]

VENDORS: tuple[Vendor, ...] = ("gemini", "openrouter", "groq", "openai", "anthropic")

# Conventional environment variables holding each vendor's credential
VENDOR_KEY_ENV: dict[str, tuple[str, ...]] = {
    "gemini": ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
    "openrouter": ("OPENROUTER_API_KEY",),
    "groq": ("GROQ_API_KEY",),
    "openai": ("OPENAI_API_KEY",),
    "anthropic": ("ANTHROPIC_API_KEY",),
}


class VendorConfig(BaseModel):
    """Configuration for a single LLM vendor."""

    api_key: SecretStr | None = Field(
        default=None,
        description="API key (prefer the vendor's conventional env var)",
    )
    base_url: str | None = Field(
        default=None,
        description="Custom API base URL",
    )
    input_cost_per_1k: float = Field(
        default=0.0,
        ge=0.0,
        description="USD per 1000 prompt tokens",
    )
    output_cost_per_1k: float = Field(
        default=0.0,
        ge=0.0,
        description="USD per 1000 completion tokens",
    )
    timeout: int = Field(
        default=60,
        gt=0,
        description="Request timeout in seconds",
    )


class ProvidersConfig(BaseModel):
    """Configuration for all LLM vendors."""

    vendors: dict[str, VendorConfig] = Field(
        default_factory=dict,
        description="Per-vendor settings keyed by vendor name",
    )

    def vendor(self, name: str) -> VendorConfig:
        """Return the settings for a vendor, defaults when unconfigured."""
        return self.vendors.get(name) or VendorConfig()

    def resolve_api_key(self, name: str, environ: Mapping[str, str]) -> str | None:
        """Return the vendor's API key from config, then its env variables."""
        configured = self.vendor(name).api_key
        if configured is not None and configured.get_secret_value().strip():
            return configured.get_secret_value().strip()

        for env_name in VENDOR_KEY_ENV.get(name, ()):
            value = environ.get(env_name, "").strip()
            if value:
                return value
        return None
