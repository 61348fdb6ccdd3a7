"""Test fixtures: in-process stand-ins for pools and connections, a recording
log sink, and the sample SQLite schema."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from crudql.execution.pool import ExecutionResult

SQLITE_DDL = """
CREATE TABLE users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    email TEXT UNIQUE,
    age INTEGER,
    status TEXT DEFAULT 'active',
    deleted_at TEXT
);
CREATE TABLE orders (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id),
    total REAL NOT NULL,
    stock INTEGER DEFAULT 0
);
"""


class RecordingLogger:
    """Log sink that keeps every record for assertions."""

    def __init__(self) -> None:
        self.records: list[tuple[str, str, dict[str, Any]]] = []

    def info(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self.records.append(("info", str(msg), kwargs.get("extra") or {}))

    def warning(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self.records.append(("warning", str(msg), kwargs.get("extra") or {}))

    def error(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self.records.append(("error", str(msg), kwargs.get("extra") or {}))

    def messages(self, level: str) -> list[str]:
        return [msg for lvl, msg, _ in self.records if lvl == level]

    def extras(self, level: str) -> list[dict[str, Any]]:
        return [extra for lvl, _, extra in self.records if lvl == level]


class FakeConnection:
    """Reserved connection that records calls and fails on request.

    Args:
        result: Returned by every ``execute``.
        fail_on: Step name (``begin``, ``execute``, ``commit``, ``rollback``)
            → exception raised when that step runs.
    """

    def __init__(
        self,
        result: ExecutionResult | None = None,
        fail_on: dict[str, Exception] | None = None,
    ) -> None:
        self.result = result or ExecutionResult()
        self.fail_on = fail_on or {}
        self.calls: list[str] = []
        self.statements: list[tuple[str, tuple[Any, ...]]] = []
        self.release_count = 0

    def _step(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_on:
            raise self.fail_on[name]

    async def begin(self) -> None:
        self._step("begin")

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> ExecutionResult:
        self._step("execute")
        self.statements.append((sql, tuple(params)))
        return self.result

    async def commit(self) -> None:
        self._step("commit")

    async def rollback(self) -> None:
        self._step("rollback")

    async def release(self) -> None:
        self.calls.append("release")
        self.release_count += 1


class FakePool:
    """Connection pool handing out one :class:`FakeConnection`."""

    def __init__(
        self,
        connection: FakeConnection | None = None,
        result: ExecutionResult | None = None,
        reserve_error: Exception | None = None,
        execute_error: Exception | None = None,
    ) -> None:
        self.connection = connection or FakeConnection()
        self.result = result or ExecutionResult()
        self.reserve_error = reserve_error
        self.execute_error = execute_error
        self.reserved = 0
        self.statements: list[tuple[str, tuple[Any, ...]]] = []

    @property
    def in_use(self) -> int:
        return self.reserved - self.connection.release_count

    async def reserve_connection(self) -> FakeConnection:
        if self.reserve_error is not None:
            raise self.reserve_error
        self.reserved += 1
        return self.connection

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> ExecutionResult:
        self.statements.append((sql, tuple(params)))
        if self.execute_error is not None:
            raise self.execute_error
        return self.result


class FakePools:
    """Stands in for :class:`crudql.execution.pool.PoolRegistry`."""

    def __init__(self, pool: FakePool | None = None) -> None:
        self.pool = pool or FakePool()
        self.resolved: list[Any] = []
        self.closed = False
        self.logger: Any = None

    def resolve(self, config: Any) -> FakePool:
        self.resolved.append(config)
        return self.pool

    async def close_pool(self, config: Any) -> None:
        self.resolved.append(config)

    async def close_all(self) -> None:
        self.closed = True
