"""Shared test fixtures for the genui test suite."""

import os
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from genui.config.models.pipeline import CompletionConfig, PolicyConfig
from genui.manifest.static import StaticManifestRegistry
from genui.pipeline.models.context import GenerationContext
from genui.providers.llm import LayerLLMExecutor, MockVendorClients, ModelResolver, RoutingTable

MANIFEST_DATA: dict[str, Any] = {
    "manifestVersion": "2025.1.0",
    "rendererVersion": "1.4.0",
    "components": [
        {
            "type": "container",
            "category": "layout",
            "description": "Page-level wrapper",
            "propsSchema": {"maxWidth": {}, "padding": {}, "gap": {}},
            "childrenRules": {"isContainer": True},
        },
        {
            "type": "flexbox",
            "category": "layout",
            "description": "Row or column of children",
            "propsSchema": {"direction": {}, "gap": {}, "padding": {}},
            "childrenRules": {"isContainer": True},
        },
        {
            "type": "card",
            "category": "layout",
            "description": "Bordered section",
            "propsSchema": {"title": {}, "padding": {}, "icon": {}},
            "childrenRules": {"isContainer": True},
        },
        {
            "type": "heading",
            "category": "text",
            "description": "Section heading",
            "propsSchema": {"text": {}, "level": {}, "icon": {}},
        },
        {
            "type": "paragraph",
            "category": "text",
            "description": "Body text",
            "propsSchema": {"text": {}},
        },
        {
            "type": "button",
            "category": "input",
            "description": "Clickable action",
            "propsSchema": {"label": {}, "type": {}, "variant": {}, "icon": {}, "size": {}},
        },
        {
            "type": "image",
            "category": "media",
            "description": "Image",
            "propsSchema": {"src": {}, "alt": {}},
        },
        {
            "type": "stats-card",
            "category": "data",
            "description": "Single metric",
            "propsSchema": {"label": {}, "value": {}, "icon": {}},
        },
    ],
}


def build_valid_schema() -> dict[str, Any]:
    """A bare UI tree that passes every validation pass."""
    return {
        "type": "container",
        "props": {"padding": 12},
        "children": [
            {"type": "heading", "props": {"text": "Sales", "level": 2}},
            {
                "type": "button",
                "props": {"label": "Refresh", "icon": "refresh-cw"},
                "events": {"onClick": "state.update"},
            },
        ],
    }


async def no_sleep(_seconds: float) -> None:
    """Sleep replacement that returns immediately."""


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    """Create a temporary config directory for testing."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def mock_toml_files(test_config_dir: Path) -> Callable[[dict[str, str]], None]:
    """Factory fixture to create TOML files in the test config directory.

    Usage:
        def test_something(mock_toml_files):
            mock_toml_files({
                "default.toml": "app_name = 'test'",
                "development.toml": "debug = true",
            })
    """

    def _create_toml_files(files: dict[str, str]) -> None:
        for filename, content in files.items():
            toml_file = test_config_dir / filename
            toml_file.write_text(content)

    return _create_toml_files


class EnvOverrideContext:
    """Context manager for temporarily setting environment variables."""

    def __init__(self, overrides: dict[str, str]) -> None:
        self.overrides = overrides
        self.original_env: dict[str, str | None] = {}

    def __enter__(self) -> None:
        for key, value in self.overrides.items():
            self.original_env[key] = os.environ.get(key)
            os.environ[key] = value

    def __exit__(self, *args: Any) -> None:
        for key in self.overrides:
            if self.original_env[key] is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = self.original_env[key]


@pytest.fixture
def env_override() -> Generator[Callable[[dict[str, str]], EnvOverrideContext], None, None]:
    """Context manager for temporarily setting environment variables.

    Usage:
        def test_something(env_override):
            with env_override({"GENUI_DEBUG": "true"}):
                # test code here
    """

    def _env_override(overrides: dict[str, str]) -> EnvOverrideContext:
        return EnvOverrideContext(overrides)

    yield _env_override


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Clear the settings cache and loaded TOML before and after each test.

    This ensures test isolation for configuration tests.
    """
    from genui.config import get_settings
    from genui.config.settings import set_toml_config

    get_settings.cache_clear()
    set_toml_config({})
    yield
    get_settings.cache_clear()
    set_toml_config({})


@pytest.fixture
def manifest() -> StaticManifestRegistry:
    """Manifest registry with a small component vocabulary."""
    return StaticManifestRegistry.from_dict(MANIFEST_DATA)


@pytest.fixture
def policy() -> PolicyConfig:
    """Default interaction-safety policy."""
    return PolicyConfig()


@pytest.fixture
def valid_schema() -> dict[str, Any]:
    return build_valid_schema()


@pytest.fixture
def context() -> GenerationContext:
    return GenerationContext(user_prompt="Build me a sales dashboard", trace_id="trace-test")


@pytest.fixture
def mock_clients() -> MockVendorClients:
    """Vendor clients with every vendor configured."""
    return MockVendorClients()


@pytest.fixture
def make_executor() -> Callable[..., LayerLLMExecutor]:
    """Factory for executors over a routing table and mock clients."""

    def _make(
        clients: MockVendorClients,
        routing: dict[str, str] | None = None,
        completion: CompletionConfig | None = None,
        sleep: Callable[[float], Any] = no_sleep,
    ) -> LayerLLMExecutor:
        return LayerLLMExecutor(
            resolver=ModelResolver(RoutingTable(routing or {})),
            clients=clients,
            completion=completion,
            sleep=sleep,
        )

    return _make


@pytest.fixture
def executor(
    mock_clients: MockVendorClients,
    make_executor: Callable[..., LayerLLMExecutor],
) -> LayerLLMExecutor:
    return make_executor(mock_clients)
