"""Tests for configuration loading."""

import pytest

from kobansync.config import load_config
from kobansync.locks import InMemoryLock, RedisLock
from kobansync.persistence import InMemoryStore, SQLiteStore, get_store, reset_store
from kobansync.transports import InMemoryJobQueue, get_lock, get_queue
from kobansync.transports.redis import RedisJobQueue


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "KOBANSYNC_CONFIG",
        "KOBAN_API_URL",
        "KOBAN_API_KEY",
        "KOBAN_USER_KEY",
        "KOBANSYNC_TRANSPORT",
        "KOBANSYNC_DATABASE_URL",
        "DATABASE_URL",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_store()
    yield
    reset_store()


def test_defaults_without_config_file(tmp_path, monkeypatch):
    monkeypatch.setenv("KOBANSYNC_CONFIG", str(tmp_path / "missing.yaml"))

    config = load_config()

    assert config.transport.backend == "inmemory"
    assert config.workflow.max_retries == 2
    assert config.workflow.retry_delay == 60
    assert config.workflow.product_lock_ttl == 3
    assert config.koban.timeout == 15
    assert config.koban.max_attempts == 3
    assert config.database_url is None


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
koban:
  api_url: https://koban.example/api/v1
  invoice_prefix: SHOP-
transport:
  backend: redis
  redis:
    host: testhost
    port: 1234
workflow:
  retry_delay: 5
"""
    )
    monkeypatch.setenv("KOBANSYNC_CONFIG", str(config_path))
    monkeypatch.setenv("KOBAN_API_KEY", "secret")

    config = load_config()

    assert config.koban.api_url == "https://koban.example/api/v1"
    assert config.koban.api_key == "secret"
    assert config.koban.invoice_prefix == "SHOP-"
    assert config.transport.backend == "redis"
    assert config.transport.redis.host == "testhost"
    assert config.transport.redis.port == 1234
    assert config.workflow.retry_delay == 5


def test_get_queue_and_lock_use_config(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
transport:
  backend: redis
  redis:
    host: confighost
    port: 6380
"""
    )
    monkeypatch.setenv("KOBANSYNC_CONFIG", str(config_path))

    queue = get_queue()
    assert isinstance(queue, RedisJobQueue)
    assert queue.host == "confighost"
    assert queue.port == 6380
    assert isinstance(get_lock(), RedisLock)

    monkeypatch.setenv("KOBANSYNC_TRANSPORT", "inmemory")
    assert isinstance(get_queue(), InMemoryJobQueue)
    assert isinstance(get_lock(), InMemoryLock)


def test_get_queue_rejects_unknown_backend(tmp_path, monkeypatch):
    monkeypatch.setenv("KOBANSYNC_CONFIG", str(tmp_path / "missing.yaml"))

    with pytest.raises(ValueError):
        get_queue("carrier-pigeon")


def test_get_store_selects_backend(tmp_path, monkeypatch):
    monkeypatch.setenv("KOBANSYNC_CONFIG", str(tmp_path / "missing.yaml"))

    assert isinstance(get_store(), InMemoryStore)
    assert get_store() is get_store()

    monkeypatch.setenv("KOBANSYNC_DATABASE_URL", f"sqlite://{tmp_path / 'sync.db'}")
    store = get_store(config=load_config())
    assert isinstance(store, SQLiteStore)
    store.close()

    with pytest.raises(ValueError):
        get_store("mysql://localhost/koban")
