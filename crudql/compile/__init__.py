"""crudql compilation layer: descriptors and condition trees → parameterized SQL."""
from crudql.compile.base import CompiledStatement, SQLCompiler
from crudql.compile.builder import QueryBuilder
from crudql.compile.condition_builder import ConditionBuilder, compile_condition
from crudql.compile.mysql import MySQLCompiler
from crudql.compile.postgres import PostgresCompiler
from crudql.compile.registry import CompilerFactory
from crudql.compile.sqlite import SQLiteCompiler

__all__ = [
    "CompiledStatement",
    "SQLCompiler",
    "QueryBuilder",
    "ConditionBuilder",
    "compile_condition",
    "CompilerFactory",
    "MySQLCompiler",
    "PostgresCompiler",
    "SQLiteCompiler",
]
