"""Dialect name → compiler lookup.

The three built-in compilers register themselves under their SQLAlchemy
backend names (``mysql``, ``postgresql``, ``sqlite``).  Common spellings
such as ``postgres`` or ``mariadb`` resolve through an alias table, and
lookups ignore case.

Usage::

    from crudql.compile.registry import CompilerFactory

    @CompilerFactory.register("cockroachdb")
    class CockroachCompiler(PostgresCompiler):
        ...
"""

from __future__ import annotations

from collections.abc import Callable
from typing import ClassVar

from crudql.compile.base import SQLCompiler
from crudql.compile.mysql import MySQLCompiler
from crudql.compile.postgres import PostgresCompiler
from crudql.compile.sqlite import SQLiteCompiler
from crudql.errors import ConfigurationError

_Registrar = Callable[[type[SQLCompiler]], type[SQLCompiler]]


class CompilerFactory:
    """Maps dialect names to :class:`SQLCompiler` classes.

    Compilers hold no per-statement state, so :meth:`create` hands out one
    shared instance per dialect.
    """

    _compilers: ClassVar[dict[str, type[SQLCompiler]]] = {}
    _instances: ClassVar[dict[str, SQLCompiler]] = {}
    _aliases: ClassVar[dict[str, str]] = {
        "mariadb": "mysql",
        "postgres": "postgresql",
        "pg": "postgresql",
        "sqlite3": "sqlite",
    }

    @classmethod
    def register(cls, name: str, *aliases: str) -> _Registrar:
        """Class decorator registering a compiler under ``name``.

        Args:
            name: Canonical dialect name.
            *aliases: Extra names that resolve to ``name``.
        """

        def decorator(compiler_cls: type[SQLCompiler]) -> type[SQLCompiler]:
            key = name.lower()
            cls._compilers[key] = compiler_cls
            cls._instances.pop(key, None)
            for alias in aliases:
                cls._aliases[alias.lower()] = key
            return compiler_cls

        return decorator

    @classmethod
    def canonical(cls, name: str) -> str:
        key = name.lower()
        return cls._aliases.get(key, key)

    @classmethod
    def create(cls, name: str) -> SQLCompiler:
        """Return the compiler for ``name`` (or one of its aliases).

        Raises:
            ConfigurationError: If nothing is registered under that name.
        """
        key = cls.canonical(name)
        compiler = cls._instances.get(key)
        if compiler is not None:
            return compiler
        compiler_cls = cls._compilers.get(key)
        if compiler_cls is None:
            raise ConfigurationError(
                f"Unsupported dialect: '{name}'. Registered dialects: {cls.registered_dialects()}."
            )
        compiler = cls._instances[key] = compiler_cls()
        return compiler

    @classmethod
    def registered_dialects(cls) -> list[str]:
        return sorted(cls._compilers)


CompilerFactory.register("mysql")(MySQLCompiler)
CompilerFactory.register("postgresql")(PostgresCompiler)
CompilerFactory.register("sqlite")(SQLiteCompiler)
