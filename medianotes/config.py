"""
Configuration management for medianotes stores.

The configuration is stored as a TOML file in the store directory.
It selects the model runtime used for insights and its parameters.
"""

import os
import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import tomli_w

from .providers.base import MAX_TOOL_ROUNDS, ModelRuntime, get_registry

CONFIG_FILENAME = "medianotes.toml"
CONFIG_VERSION = 1


@dataclass
class ModelConfig:
    """Which model runtime to use, and its constructor parameters."""
    name: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class StoreConfig:
    """Complete store configuration."""
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    model: ModelConfig = field(default_factory=lambda: ModelConfig("none"))

    @property
    def config_path(self) -> Path:
        """Path to the TOML config file."""
        return self.path / CONFIG_FILENAME

    def exists(self) -> bool:
        return self.config_path.exists()


def detect_default_model() -> ModelConfig:
    """
    Pick a model runtime for a new store.

    Priority:
    1. Anthropic (ANTHROPIC_API_KEY or CLAUDE_CODE_OAUTH_TOKEN set)
    2. OpenAI (MEDIANOTES_OPENAI_API_KEY or OPENAI_API_KEY set)
    3. Ollama (local; availability is checked when insights run)
    """
    has_anthropic_key = bool(
        os.environ.get("ANTHROPIC_API_KEY") or
        os.environ.get("CLAUDE_CODE_OAUTH_TOKEN")
    )
    has_openai_key = bool(
        os.environ.get("MEDIANOTES_OPENAI_API_KEY") or
        os.environ.get("OPENAI_API_KEY")
    )

    if has_anthropic_key:
        return ModelConfig("anthropic", {
            "model": "claude-haiku-4-5-20251001",
            "max_tool_rounds": MAX_TOOL_ROUNDS,
        })
    if has_openai_key:
        return ModelConfig("openai", {
            "model": "gpt-4.1-mini",
            "max_tool_rounds": MAX_TOOL_ROUNDS,
        })
    return ModelConfig("ollama", {
        "model": "llama3.2",
        "max_tool_rounds": MAX_TOOL_ROUNDS,
    })


def create_default_config(store_path: Path) -> StoreConfig:
    """Create a new config with an auto-detected model."""
    return StoreConfig(path=store_path, model=detect_default_model())


def load_config(store_path: Path) -> StoreConfig:
    """
    Load configuration from a store directory.

    Raises:
        FileNotFoundError: If config doesn't exist
        ValueError: If config is invalid
    """
    config_path = store_path / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid config {config_path}: {e}") from e

    version = data.get("store", {}).get("version", 1)
    if version > CONFIG_VERSION:
        raise ValueError(f"Config version {version} is newer than supported ({CONFIG_VERSION})")

    section = data.get("model", {"name": "none"})
    model = ModelConfig(
        name=section.get("name", "none"),
        params={k: v for k, v in section.items() if k != "name"},
    )

    return StoreConfig(
        path=store_path,
        version=version,
        created=data.get("store", {}).get("created", ""),
        model=model,
    )


def save_config(config: StoreConfig) -> None:
    """
    Save configuration to the store directory.

    Creates the directory if it doesn't exist.
    """
    config.path.mkdir(parents=True, exist_ok=True)

    model = {"name": config.model.name}
    model.update(config.model.params)

    data = {
        "store": {
            "version": config.version,
            "created": config.created,
        },
        "model": model,
    }

    with open(config.config_path, "wb") as f:
        tomli_w.dump(data, f)


def load_or_create_config(store_path: Path) -> StoreConfig:
    """
    Load existing config or create a new one with defaults.

    This is the main entry point for config management.
    """
    config_path = store_path / CONFIG_FILENAME

    if config_path.exists():
        return load_config(store_path)
    config = create_default_config(store_path)
    save_config(config)
    return config


def create_runtime(config: StoreConfig) -> ModelRuntime:
    """Instantiate the configured model runtime."""
    return get_registry().create(config.model.name, config.model.params)
