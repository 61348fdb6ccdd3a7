"""Shared pytest fixtures for crudql unit and integration tests."""
from __future__ import annotations

import pytest

from crudql.config import DbConfig
from tests.fixtures import FakePool, FakePools, RecordingLogger


@pytest.fixture()
def logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture()
def mysql_config() -> DbConfig:
    return DbConfig(host="db", user="app", password="secret", database="shop")


@pytest.fixture()
def sqlite_config(tmp_path) -> DbConfig:
    """File-backed SQLite database, fresh per test."""
    return DbConfig(
        dialect="sqlite", database=str(tmp_path / "crudql.db"), connection_limit=2,
        pool_timeout=5.0,
    )


@pytest.fixture()
def pool() -> FakePool:
    return FakePool()


@pytest.fixture()
def pools(pool: FakePool) -> FakePools:
    return FakePools(pool)
