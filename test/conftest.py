"""Pytest configuration for the filter indexer test suite."""

import os
import sys
from pathlib import Path

import pytest

_SETTINGS_ENV_KEYS = (
    "LOG_LEVEL",
    "LOG_JSON",
    "DATABASE_URL",
    "FILTER_DATABASE_URL",
    "FILTER_CONTRACTS",
    "FILTER_QUEUE_SIZE",
    "FILTER_WIPE",
    "FILTER_BLOCK_START",
    "REPLAY_BLOCKCHAIN",
    "HARD_REPLAY_BLOCKCHAIN",
    "DELETE_ALL_BLOCKS",
)


def _ensure_test_env() -> None:
    """Drop environment variables that would leak into settings under test."""
    for key in _SETTINGS_ENV_KEYS:
        os.environ.pop(key, None)


_ensure_test_env()

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))
sys.path.insert(0, str(ROOT / "test" / "helpers"))


@pytest.fixture
def store():
    """Provide an initialized in-memory document store."""
    from services.store import DocumentStore

    document_store = DocumentStore.from_url("sqlite://")
    document_store.init_collections()
    yield document_store
    document_store.dispose()


@pytest.fixture
def isolated_config(monkeypatch, tmp_path):
    """Point YAML config sources at missing files so only env and init apply."""
    import config as config_module

    monkeypatch.setattr(config_module, "_DEFAULT_CONFIG_PATH", tmp_path / "missing-default.yml")
    monkeypatch.setattr(config_module, "_USER_CONFIG_PATHS", [tmp_path / "missing-user.yml"])
    for key in _SETTINGS_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return config_module
