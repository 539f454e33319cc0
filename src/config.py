"""Configuration management for the filtered action indexer."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_REPO_ROOT = Path(__file__).resolve().parents[1]
_DEFAULT_CONFIG_PATH = _REPO_ROOT / "config" / "filter-indexer.yml"
_USER_CONFIG_PATHS = [
    Path("~/.config/filter-indexer/config.yml").expanduser(),
    Path("/config/filter-indexer.yml"),
]

DEFAULT_QUEUE_SIZE = 256


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML mapping from disk, returning an empty mapping if missing."""
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def _yaml_settings_source(paths: list[Path]):
    """Create a Pydantic settings source for a list of YAML paths."""

    def source() -> dict[str, Any]:
        merged: dict[str, Any] = {}
        for path in paths:
            merged.update(_load_yaml(path))
        return merged

    return source


def _set_nested_value(target: dict[str, Any], path: str, value: Any) -> None:
    """Set a dotted-path value on a nested mapping, creating containers."""
    parts = path.split(".")
    cursor = target
    for key in parts[:-1]:
        node = cursor.get(key)
        if not isinstance(node, dict):
            node = {}
            cursor[key] = node
        cursor = node
    cursor[parts[-1]] = value


def _parse_env_value(raw: str, kind: str) -> Any:
    """Parse an environment value into the requested primitive type."""
    if kind == "int":
        return int(raw)
    if kind == "bool":
        return raw.strip().lower() in {"1", "true", "yes", "on"}
    if kind == "json":
        return json.loads(raw)
    return raw


def _env_settings_source():
    """Create a settings source that maps environment variables to config keys."""
    mapping = {
        "LOG_LEVEL": ("log_level", "str"),
        "LOG_JSON": ("log_json", "bool"),
        "DATABASE_URL": ("filter.database_url", "str"),
        "FILTER_DATABASE_URL": ("filter.database_url", "str"),
        "FILTER_CONTRACTS": ("filter.contracts", "json"),
        "FILTER_QUEUE_SIZE": ("filter.queue_size", "int"),
        "FILTER_WIPE": ("filter.wipe", "bool"),
        "FILTER_BLOCK_START": ("filter.block_start", "int"),
        "REPLAY_BLOCKCHAIN": ("chain.replay_blockchain", "bool"),
        "HARD_REPLAY_BLOCKCHAIN": ("chain.hard_replay_blockchain", "bool"),
        "DELETE_ALL_BLOCKS": ("chain.delete_all_blocks", "bool"),
    }

    def source() -> dict[str, Any]:
        data: dict[str, Any] = {}
        for env_key, (path, kind) in mapping.items():
            raw = os.environ.get(env_key)
            if raw is None:
                continue
            _set_nested_value(data, path, _parse_env_value(raw, kind))
        return data

    return source


class BackoffConfig(BaseModel):
    """Adaptive producer delay applied when the queue is over its target size."""

    initial_ms: int = 100
    step_ms: int = 100
    minimum_ms: int = 100
    maximum_ms: int = 5000

    @model_validator(mode="after")
    def validate_bounds(self) -> "BackoffConfig":
        """Ensure the delay bounds are ordered and non-negative."""
        if min(self.initial_ms, self.step_ms, self.minimum_ms, self.maximum_ms) < 0:
            raise ValueError("filter.backoff values must be >= 0.")
        if self.minimum_ms > self.maximum_ms:
            raise ValueError("filter.backoff.minimum_ms must be <= filter.backoff.maximum_ms.")
        return self


class FilterConfig(BaseModel):
    """Filter plugin options: store target, filter set, and queue sizing."""

    contracts: list[str] = Field(default_factory=list)
    queue_size: int = DEFAULT_QUEUE_SIZE
    wipe: bool = False
    block_start: int = 0
    database_url: str | None = None
    backoff: BackoffConfig = Field(default_factory=BackoffConfig)

    @field_validator("contracts")
    @classmethod
    def validate_contracts(cls, value: list[str]) -> list[str]:
        """Strip blanks from configured contract names."""
        return [name.strip() for name in value if name and name.strip()]

    @field_validator("queue_size")
    @classmethod
    def validate_queue_size(cls, value: int) -> int:
        """Ensure the queue target size is non-negative."""
        if value < 0:
            raise ValueError("filter.queue_size must be >= 0.")
        return value

    @field_validator("block_start")
    @classmethod
    def validate_block_start(cls, value: int) -> int:
        """Ensure the start block is non-negative."""
        if value < 0:
            raise ValueError("filter.block_start must be >= 0.")
        return value


class ChainConfig(BaseModel):
    """Chain startup flags that require a wipe of previously indexed data."""

    replay_blockchain: bool = False
    hard_replay_blockchain: bool = False
    delete_all_blocks: bool = False

    @property
    def replay_requested(self) -> bool:
        """Return True when any flag that rebuilds chain state is set."""
        return self.replay_blockchain or self.hard_replay_blockchain or self.delete_all_blocks


class Settings(BaseSettings):
    """Application settings loaded from YAML files and environment variables."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        """Layer settings sources in descending order of precedence."""
        return (
            init_settings,
            _env_settings_source(),
            _yaml_settings_source(_USER_CONFIG_PATHS),
            _yaml_settings_source([_DEFAULT_CONFIG_PATH]),
        )

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Filter plugin
    filter: FilterConfig = Field(default_factory=FilterConfig)

    # Chain startup flags
    chain: ChainConfig = Field(default_factory=ChainConfig)


# Global settings instance
settings = Settings()
