"""Tests for configuration and wiring."""

from pathlib import Path

import pytest

from taskflow import factory
from taskflow.config import MAX_SESSION_MS, Config
from taskflow.persistence.kv_store import FileKeyValueStore, MemoryKeyValueStore
from taskflow.remote import OfflineRemoteTaskService


def test_config_defaults() -> None:
    config = Config()

    assert config.max_session_ms == MAX_SESSION_MS
    assert config.cap_check_interval_seconds == 60.0
    assert config.seed_default_tasks is True


def test_config_reads_prefixed_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TASKFLOW_MAX_SESSION_MS", "1000")
    monkeypatch.setenv("TASKFLOW_SEED_DEFAULT_TASKS", "false")

    config = Config()

    assert config.max_session_ms == 1000
    assert config.seed_default_tasks is False


def test_create_kv_store(tmp_path: Path) -> None:
    assert isinstance(factory.create_kv_store(Config(storage_dir="")), MemoryKeyValueStore)
    file_store = factory.create_kv_store(Config(storage_dir=str(tmp_path / "data")))
    assert isinstance(file_store, FileKeyValueStore)
    assert (tmp_path / "data").is_dir()


def test_get_store_uses_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that the store singleton is built from the configured settings."""
    monkeypatch.setattr(
        "taskflow.factory._config",
        Config(storage_dir=str(tmp_path), seed_default_tasks=False),
    )
    monkeypatch.setattr("taskflow.factory._store", None)
    monkeypatch.setattr("taskflow.factory._remote", None)

    store = factory.get_store()

    assert store is factory.get_store()
    assert isinstance(factory.get_remote_service(), OfflineRemoteTaskService)
    assert store.is_authenticated is False
