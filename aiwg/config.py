"""
Configuration management for the AIWG plugin engine.

Precedence: env vars > .env file > config.yaml > defaults

Config file: {root}/config.yaml
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_ROOT = Path.home() / ".local" / "share" / "ai-writing-guide"

# Known config keys that can be written to config.yaml
CONFIG_KEYS = {
    "root", "log_level", "log_format", "health_stale_threshold_hours",
    "lock_timeout_seconds", "lock_stale_seconds",
}


def _resolve_root() -> Path:
    """Resolve the plugin root from env or default, before Settings init."""
    raw = os.environ.get("AIWG_ROOT", "")
    if raw:
        return Path(raw).expanduser().resolve()
    return DEFAULT_ROOT


def _load_yaml_config(root: Path) -> dict[str, Any]:
    """Load config.yaml from the plugin root."""
    config_file = root / "config.yaml"
    if not config_file.exists():
        return {}
    try:
        with open(config_file) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            logger.warning(f"config.yaml is not a dict, ignoring: {config_file}")
            return {}
        return data
    except Exception as e:
        logger.warning(f"Error loading config.yaml: {e}")
        return {}


def save_yaml_config(root: Path, data: dict[str, Any]) -> Path:
    """Write config values to {root}/config.yaml."""
    unknown = set(data) - CONFIG_KEYS
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")
    config_file = get_config_path(root)
    config_file.parent.mkdir(parents=True, exist_ok=True)
    with open(config_file, "w") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    return config_file


def get_config_path(root: Path) -> Path:
    """Get the config.yaml path for a plugin root."""
    return root / "config.yaml"


class Settings(BaseSettings):
    """Engine configuration. Precedence: env vars > .env > config.yaml > defaults."""

    root: Path = Field(
        default=DEFAULT_ROOT,
        description="Root directory holding registry.json and installed plugins",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string",
    )

    # Health
    health_stale_threshold_hours: float = Field(
        default=24.0,
        description="Age after which a plugin health check is reported stale",
    )

    # Registry lock
    lock_timeout_seconds: float = Field(
        default=10.0,
        description="How long a mutating operation waits for the registry lock",
    )
    lock_stale_seconds: float = Field(
        default=300.0,
        description="Age after which an abandoned registry lock is broken",
    )

    model_config = {
        "env_prefix": "AIWG_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="before")
    @classmethod
    def _inject_yaml_config(cls, data: Any) -> Any:
        """Inject config.yaml values as fallbacks below env vars and .env."""
        if not isinstance(data, dict):
            data = {}

        root = Path(data["root"]).expanduser() if data.get("root") else _resolve_root()
        yaml_config = _load_yaml_config(root)

        for key, value in yaml_config.items():
            if key not in CONFIG_KEYS:
                continue
            if key not in data or data[key] is None:
                env_val = os.environ.get(f"AIWG_{key.upper()}")
                if env_val is None:
                    data[key] = value

        return data

    @property
    def registry_path(self) -> Path:
        return self.root / "registry.json"


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the global settings instance."""
    return settings


def reload_settings() -> Settings:
    """Reload settings from environment."""
    global settings
    settings = Settings()
    return settings
