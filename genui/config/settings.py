"""Root settings model for genui configuration."""

from collections.abc import Mapping
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from genui.config.loader import flatten_routing
from genui.config.models.observability import ObservabilityConfig
from genui.config.models.pipeline import PipelineConfig
from genui.config.models.providers import ProvidersConfig

# Merged TOML files, installed by get_settings()
_toml_config: dict[str, Any] = {}


def set_toml_config(config: dict[str, Any]) -> None:
    """Install the TOML configuration read by the TOML settings source."""
    global _toml_config
    _toml_config = config


class TomlConfigSettingsSource(PydanticBaseSettingsSource):
    """Settings source backed by the installed TOML configuration."""

    def get_field_value(
        self, field: Any, field_name: str  # noqa: ARG002
    ) -> tuple[Any, str, bool]:
        value = _toml_config.get(field_name)
        return value, field_name, value is not None

    def __call__(self) -> dict[str, Any]:
        return dict(_toml_config)


class Settings(BaseSettings):
    """Root configuration for the generation service.

    Sources, lowest to highest precedence:
    1. Model defaults
    2. config/default.toml and config/{GENUI_ENV}.toml
    3. GENUI_* environment variables (nested with `__`)
    4. Constructor arguments
    """

    model_config = SettingsConfigDict(
        env_prefix="GENUI_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    manifest_path: str | None = Field(
        default=None,
        description="Component manifest JSON file, relative to the config directory",
    )
    default_provider: str = Field(
        default="gemini",
        description="UI provider used when a request does not name one",
    )

    providers: ProvidersConfig = Field(
        default_factory=ProvidersConfig,
        description="Vendor credentials and cost rates",
    )
    routing: dict[str, str] = Field(
        default_factory=dict,
        description="Model-routing table (AI_LAYER_* and vendor alias keys)",
    )
    pipeline: PipelineConfig = Field(
        default_factory=PipelineConfig,
        description="Generation pipeline configuration",
    )
    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig,
        description="Logging and metrics configuration",
    )

    @field_validator("routing", mode="before")
    @classmethod
    def flatten_routing_table(cls, value: Any) -> Any:
        """Accept per-layer tables and lower-cased keys from env vars."""
        if isinstance(value, Mapping):
            return flatten_routing(value)
        return value

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            TomlConfigSettingsSource(settings_cls),
        )
