"""Unit tests for StatementExecutor: timing, failure logging, error translation."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

import crudql.execution.executor as executor_module
from crudql.compile.base import CompiledStatement
from crudql.errors import DatabaseConnectionError, PoolClosedError
from crudql.execution.executor import (
    SLOW_STATEMENT_THRESHOLD_MS,
    StatementExecutor,
    translate_connection_error,
)
from crudql.execution.pool import ExecutionResult
from tests.fixtures import FakePool

STATEMENT = CompiledStatement("SELECT * FROM users WHERE id = %s", (7,), "mysql")


class _DriverError(Exception):
    """Mimics a PyMySQL error carrying a numeric code in ``args[0]``."""


def _clock(*readings: float) -> SimpleNamespace:
    values = iter(readings)
    return SimpleNamespace(perf_counter=lambda: next(values))


@pytest.mark.asyncio
async def test_returns_target_result(logger):
    result = ExecutionResult(rows=[{"id": 7}], rowcount=1)
    pool = FakePool(result=result)
    assert await StatementExecutor(logger).run(pool, STATEMENT, "find") is result
    assert pool.statements == [("SELECT * FROM users WHERE id = %s", (7,))]
    assert logger.records == []


@pytest.mark.asyncio
async def test_slow_statement_emits_one_structured_warning(logger, monkeypatch):
    monkeypatch.setattr(executor_module, "time", _clock(10.0, 11.5))
    await StatementExecutor(logger).run(FakePool(), STATEMENT, "find")

    assert len(logger.messages("warning")) == 1
    extra = logger.extras("warning")[0]
    assert extra["operation"] == "find"
    assert extra["sql"] == STATEMENT.sql
    assert extra["params"] == [7]
    assert extra["duration_ms"] == pytest.approx(1500.0)
    assert extra["threshold_ms"] == SLOW_STATEMENT_THRESHOLD_MS


@pytest.mark.asyncio
async def test_threshold_is_exclusive(logger, monkeypatch):
    monkeypatch.setattr(executor_module, "time", _clock(0.0, 1.0))
    await StatementExecutor(logger).run(FakePool(), STATEMENT, "find")
    assert logger.messages("warning") == []


@pytest.mark.asyncio
async def test_failure_is_logged_and_reraised_unchanged(logger):
    error = _DriverError(1062, "Duplicate entry")
    pool = FakePool(execute_error=error)

    with pytest.raises(_DriverError) as exc:
        await StatementExecutor(logger).run(pool, STATEMENT, "insert")

    assert exc.value is error
    extra = logger.extras("error")[0]
    assert extra["operation"] == "insert"
    assert extra["sql"] == STATEMENT.sql
    assert extra["params"] == [7]
    assert "Duplicate entry" in extra["error"]
    assert logger.messages("warning") == []


@pytest.mark.asyncio
async def test_translation_is_off_by_default(logger):
    error = _DriverError(2013, "Lost connection")
    with pytest.raises(_DriverError):
        await StatementExecutor(logger).run(FakePool(execute_error=error), STATEMENT)


@pytest.mark.asyncio
async def test_translation_chains_original(logger):
    error = _DriverError(2013, "Lost connection")
    executor = StatementExecutor(logger, translate_errors=True)

    with pytest.raises(DatabaseConnectionError, match="connection was closed") as exc:
        await executor.run(FakePool(execute_error=error), STATEMENT)

    assert exc.value.code == 2013
    assert exc.value.__cause__ is error
    assert len(logger.messages("error")) == 1


@pytest.mark.asyncio
async def test_translation_leaves_unknown_errors_alone(logger):
    error = _DriverError(1062, "Duplicate entry")
    executor = StatementExecutor(logger, translate_errors=True)
    with pytest.raises(_DriverError):
        await executor.run(FakePool(execute_error=error), STATEMENT)


@pytest.mark.parametrize(
    "error, message",
    [
        (_DriverError(2006, "gone away"), "Database connection was closed."),
        (_DriverError(1040, "Too many connections"), "Database has too many connections."),
        (_DriverError(2003, "Can't connect"), "Database connection was refused."),
        (ConnectionRefusedError(111, "refused"), "Database connection was refused."),
        (PoolClosedError("Connection pool was closed"), "Connection pool was closed"),
        (
            OperationalError("SELECT 1", (), _DriverError(1040, "Too many connections")),
            "Database has too many connections.",
        ),
    ],
)
def test_translate_connection_error(error, message):
    translated = translate_connection_error(error)
    assert isinstance(translated, DatabaseConnectionError)
    assert str(translated) == message


def test_translate_refusal_found_in_cause_chain():
    try:
        try:
            raise ConnectionRefusedError(111, "refused")
        except ConnectionRefusedError as inner:
            raise OSError("connect failed") from inner
    except OSError as outer:
        assert str(translate_connection_error(outer)) == "Database connection was refused."


def test_translate_unknown_returns_none():
    assert translate_connection_error(ValueError("nope")) is None
    assert translate_connection_error(_DriverError(1062, "dup")) is None
