"""TOML configuration loading.

Files are read from the config directory and deep merged: `default.toml`
first, then the optional `{GENUI_ENV}.toml`. The `[routing]` table may be
written flat (`AI_LAYER_ROUTER_PROVIDER = "groq"`) or grouped per layer
(`[routing.router] provider = "groq"`); flatten_routing turns both into the
flat key space the model resolver reads.
"""

import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

CONFIG_DIR_ENV = "GENUI_CONFIG_DIR"
ENVIRONMENT_ENV = "GENUI_ENV"
LAYER_KEY_PREFIX = "AI_LAYER_"


def get_config_dir() -> Path:
    """Locate the configuration directory.

    GENUI_CONFIG_DIR wins and must exist. Otherwise the nearest `config/`
    at or above the working directory is used (up to five levels).
    """
    configured = os.environ.get(CONFIG_DIR_ENV)
    if configured:
        path = Path(configured)
        if not path.exists():
            raise FileNotFoundError(f"Config directory not found: {configured}")
        return path

    search_root = Path.cwd()
    for directory in [search_root, *search_root.parents][:5]:
        candidate = directory / "config"
        if candidate.exists():
            return candidate

    return Path("config")


def get_environment() -> str:
    """Name of the environment overlay, from GENUI_ENV (default 'development')."""
    return os.environ.get(ENVIRONMENT_ENV, "development")


def load_toml(file_path: Path) -> dict[str, Any]:
    """Read one TOML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        tomllib.TOMLDecodeError: If the TOML syntax is invalid
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    with file_path.open("rb") as f:
        return tomllib.load(f)


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge override into a copy of base.

    Tables merge key by key; lists and scalars in override replace what base
    holds. Neither input is modified.
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _routing_value(value: Any) -> str:
    if isinstance(value, list | tuple):
        return ",".join(str(item).strip() for item in value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def flatten_routing(table: Mapping[str, Any]) -> dict[str, str]:
    """Flatten a routing table into upper-case routing keys.

    Top-level keys pass through upper-cased. A nested table names a layer,
    so `[routing.schema] gemini_model_quality = "..."` becomes
    `AI_LAYER_SCHEMA_GEMINI_MODEL_QUALITY`. Lists are joined with commas to
    match the environment variable form of fallback provider lists.

    Raises:
        ValueError: If a layer table contains another table
    """
    flat: dict[str, str] = {}
    for key, value in table.items():
        name = key.strip().upper()
        if not isinstance(value, Mapping):
            flat[name] = _routing_value(value)
            continue

        for option, option_value in value.items():
            if isinstance(option_value, Mapping):
                raise ValueError(f"routing.{key}.{option}: layer tables cannot be nested")
            flat[f"{LAYER_KEY_PREFIX}{name}_{option.strip().upper()}"] = _routing_value(
                option_value
            )
    return flat


def load_config(config_dir: Path | None = None, env: str | None = None) -> dict[str, Any]:
    """Load and merge the TOML configuration.

    Args:
        config_dir: Directory holding the TOML files (located when omitted)
        env: Environment overlay name (GENUI_ENV when omitted)

    Returns:
        Merged configuration dictionary
    """
    config_dir = config_dir or get_config_dir()
    env = env or get_environment()

    default_path = config_dir / "default.toml"
    if not default_path.exists():
        raise FileNotFoundError(
            f"Default configuration file not found: {default_path}. "
            f"Create config/default.toml or set {CONFIG_DIR_ENV}."
        )

    config = load_toml(default_path)

    overlay_path = config_dir / f"{env}.toml"
    if overlay_path.exists():
        config = deep_merge(config, load_toml(overlay_path))

    return config
