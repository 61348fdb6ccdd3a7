"""Unit tests for DbConfig and environment settings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from crudql.config import DatabaseSettings, DbConfig, PoolKey, get_settings
from crudql.errors import ConfigurationError


def test_defaults_per_dialect():
    my = DbConfig(database="shop")
    assert (my.dialect, my.driver, my.host, my.port) == ("mysql", "aiomysql", "localhost", 3306)
    assert my.connection_limit == 10

    pg = DbConfig(dialect="postgresql", database="shop")
    assert (pg.driver, pg.port) == ("psycopg", 5432)

    sq = DbConfig(dialect="sqlite", database="app.db")
    assert (sq.driver, sq.host, sq.port) == ("aiosqlite", None, None)


def test_pool_key_fills_default_port():
    implicit = DbConfig(host="db", user="app", database="shop")
    explicit = DbConfig(host="db", port=3306, user="app", database="shop", connection_limit=4)
    assert implicit.pool_key == explicit.pool_key == PoolKey("db", 3306, "app", "shop")
    assert DbConfig(host="db", user="other", database="shop").pool_key != implicit.pool_key


def test_url_includes_driver_and_secret():
    config = DbConfig(host="db", user="app", password="s3cret", database="shop")
    url = config.url()
    assert url.drivername == "mysql+aiomysql"
    assert url.password == "s3cret"
    assert "s3cret" not in repr(config)


def test_memory_database():
    assert DbConfig(dialect="sqlite", database=":memory:").is_memory
    assert not DbConfig(dialect="sqlite", database="app.db").is_memory


def test_config_is_frozen():
    config = DbConfig(database="shop")
    with pytest.raises(ValidationError):
        config.database = "other"


@pytest.mark.parametrize(
    "raw",
    [
        {},
        {"database": ""},
        {"database": "shop", "connection_limit": 0},
        {"database": "shop", "dialect": "oracle"},
        {"database": "shop", "pool_size": 5},
    ],
)
def test_coerce_rejects_invalid(raw):
    with pytest.raises(ConfigurationError):
        DbConfig.coerce(raw)


def test_coerce_rejects_non_mapping():
    with pytest.raises(ConfigurationError):
        DbConfig.coerce("mysql://db/shop")


def test_coerce_passes_instances_through():
    config = DbConfig(database="shop")
    assert DbConfig.coerce(config) is config


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("CRUDQL_DIALECT", "postgresql")
    monkeypatch.setenv("CRUDQL_HOST", "pg")
    monkeypatch.setenv("CRUDQL_USER", "app")
    monkeypatch.setenv("CRUDQL_PASSWORD", "pw")
    monkeypatch.setenv("CRUDQL_DATABASE", "shop")
    monkeypatch.setenv("CRUDQL_CONNECTION_LIMIT", "3")

    config = DatabaseSettings(_env_file=None).to_config()

    assert config.dialect == "postgresql"
    assert config.pool_key == PoolKey("pg", 5432, "app", "shop")
    assert config.connection_limit == 3
    assert config.password.get_secret_value() == "pw"


def test_settings_require_database(monkeypatch):
    monkeypatch.delenv("CRUDQL_DATABASE", raising=False)
    with pytest.raises(ConfigurationError, match="CRUDQL_DATABASE"):
        DatabaseSettings(_env_file=None).to_config()


def test_get_settings_is_cached():
    get_settings.cache_clear()
    assert get_settings() is get_settings()
    get_settings.cache_clear()
