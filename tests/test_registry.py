"""Unit tests for TransactionRegistry and PoolRegistry."""

from __future__ import annotations

import pytest

from crudql.config import DbConfig
from crudql.execution.pool import PoolRegistry
from crudql.execution.registry import TransactionRegistry
from crudql.execution.transaction import TransactionSession
from tests.fixtures import FakePools


@pytest.mark.asyncio
async def test_has_active_transaction_tracks_session_state(mysql_config):
    registry = TransactionRegistry()
    assert registry.get() is None
    assert not registry.has_active_transaction()

    session = TransactionSession(FakePools(), mysql_config)
    registry.set(session)
    assert registry.get() is session
    assert not registry.has_active_transaction()

    await session.init()
    assert registry.has_active_transaction()

    await session.commit()
    assert not registry.has_active_transaction()
    assert registry.get() is session

    registry.clear()
    assert registry.get() is None


def test_set_replaces_previous_session(mysql_config):
    registry = TransactionRegistry()
    first = TransactionSession(FakePools(), mysql_config)
    second = TransactionSession(FakePools(), mysql_config)
    registry.set(first)
    registry.set(second)
    assert registry.get() is second


# ---------------------------------------------------------------------------
# PoolRegistry
# ---------------------------------------------------------------------------


def test_pool_registry_caches_by_pool_key(logger):
    pools = PoolRegistry(logger)
    a = DbConfig(dialect="sqlite", database="a.db")
    same_key = DbConfig(dialect="sqlite", database="a.db", connection_limit=3)
    b = DbConfig(dialect="sqlite", database="b.db")

    first = pools.resolve(a)
    assert pools.resolve(same_key) is first
    assert pools.resolve(b) is not first
    assert len(pools) == 2
    assert a in pools
    assert sum("Creating new connection pool" in m for m in logger.messages("info")) == 2


@pytest.mark.asyncio
async def test_close_pool_forgets_it(logger):
    pools = PoolRegistry(logger)
    config = DbConfig(dialect="sqlite", database="a.db")
    pool = pools.resolve(config)

    await pools.close_pool(config)
    await pools.close_pool(config)

    assert pool.closed
    assert config not in pools
    assert pools.resolve(config) is not pool


@pytest.mark.asyncio
async def test_close_all_continues_after_failure(logger):
    pools = PoolRegistry(logger)
    broken = pools.resolve(DbConfig(dialect="sqlite", database="a.db"))
    healthy = pools.resolve(DbConfig(dialect="sqlite", database="b.db"))

    async def fail() -> None:
        raise RuntimeError("dispose failed")

    broken.close = fail
    await pools.close_all()

    assert healthy.closed
    assert len(pools) == 0
    assert any("dispose failed" in m for m in logger.messages("error"))
