"""Component manifest models.

The manifest describes the component vocabulary the renderer supports:
component types, their categories, declared props and child rules.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ChildrenRules(BaseModel):
    """Whether a component hosts children."""

    model_config = ConfigDict(populate_by_name=True)

    is_container: bool = Field(default=False, alias="isContainer")
    content_host: str | None = Field(default=None, alias="contentHost")


class ManifestComponent(BaseModel):
    """One renderable component type."""

    model_config = ConfigDict(populate_by_name=True)

    type: str
    category: str = "misc"
    description: str = ""
    props_schema: dict[str, Any] = Field(default_factory=dict, alias="propsSchema")
    children_rules: ChildrenRules = Field(default_factory=ChildrenRules, alias="childrenRules")
    defaults: dict[str, Any] = Field(default_factory=dict)
    constraints: Any = None
    deprecated: bool = False

    @property
    def prop_names(self) -> set[str]:
        """Props this component declares."""
        return set(self.props_schema)


class DensityPolicy(BaseModel):
    """Default spacing density and its tokens."""

    model_config = ConfigDict(populate_by_name=True)

    default_mode: str = Field(default="compact", alias="defaultMode")
    tokens: dict[str, str] = Field(default_factory=dict)


class IconPolicy(BaseModel):
    """Icon naming policy."""

    provider: str = "lucide"
    format: str = "kebab-case"
    fallback: list[str] = Field(default_factory=lambda: ["circle"])


class InteractionSafetyPolicy(BaseModel):
    """Interaction patterns the renderer forbids or allows."""

    model_config = ConfigDict(populate_by_name=True)

    forbidden_patterns: list[str] = Field(default_factory=list, alias="forbiddenPatterns")
    allowed_interactions: list[str] = Field(default_factory=list, alias="allowedInteractions")


class ComponentManifest(BaseModel):
    """The full component manifest."""

    model_config = ConfigDict(populate_by_name=True)

    manifest_version: str = Field(alias="manifestVersion")
    renderer_version: str = Field(default="1.0.0", alias="rendererVersion")
    generated_at: str | None = Field(default=None, alias="generatedAt")
    components: list[ManifestComponent] = Field(default_factory=list)
    density: DensityPolicy = Field(default_factory=DensityPolicy)
    icon_policy: IconPolicy = Field(default_factory=IconPolicy, alias="iconPolicy")
    interaction_safety: InteractionSafetyPolicy = Field(
        default_factory=InteractionSafetyPolicy, alias="interactionSafety"
    )
