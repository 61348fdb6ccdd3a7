"""Connection configuration.

``DbConfig`` describes one database target and doubles as the lookup key of
its connection pool.  ``DatabaseSettings`` reads the same fields from the
environment (``CRUDQL_HOST``, ``CRUDQL_DATABASE`` ...) or a ``.env`` file.

Invariants:
    - A ``DbConfig`` is immutable; two configs with the same
      (host, port, user, database) share one pool.
    - get_settings() is cached (lru_cache), one instance per process.
"""
from __future__ import annotations

from collections.abc import Mapping
from functools import lru_cache
from typing import Any, Literal, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL

from crudql.errors import ConfigurationError

Dialect = Literal["mysql", "postgresql", "sqlite"]

#: Async DB-API driver used when a config names none.
DEFAULT_DRIVERS: dict[str, str] = {
    "mysql": "aiomysql",
    "postgresql": "psycopg",
    "sqlite": "aiosqlite",
}

DEFAULT_PORTS: dict[str, int | None] = {
    "mysql": 3306,
    "postgresql": 5432,
    "sqlite": None,
}


class PoolKey(NamedTuple):
    host: str | None
    port: int | None
    user: str | None
    database: str


class DbConfig(BaseModel):
    """Target database and pool sizing.

    Attributes:
        dialect: SQL dialect; selects the statement compiler.
        driver: Async DB-API driver; defaults per dialect.
        host: Server host (ignored for SQLite).
        port: Server port; the dialect's default when omitted.
        user: Login user.
        password: Login password.
        database: Database name, or the file path for SQLite
            (``":memory:"`` for an in-memory database).
        connection_limit: Maximum connections the pool keeps open.
        pool_timeout: Seconds a caller waits for a free connection.
        connect_args: Extra keyword arguments for the driver's ``connect()``.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    dialect: Dialect = "mysql"
    driver: str | None = None
    host: str | None = "localhost"
    port: int | None = None
    user: str | None = None
    password: SecretStr | None = None
    database: str = Field(min_length=1)
    connection_limit: int = Field(default=10, ge=1)
    pool_timeout: float = Field(default=30.0, gt=0)
    connect_args: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _fill_defaults(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        data = dict(data)
        dialect = data.get("dialect") or "mysql"
        if data.get("driver") is None:
            data["driver"] = DEFAULT_DRIVERS.get(dialect)
        if data.get("port") is None:
            data["port"] = DEFAULT_PORTS.get(dialect)
        if dialect == "sqlite":
            data["host"] = None
        return data

    @property
    def pool_key(self) -> PoolKey:
        """Identity of the pool serving this config."""
        return PoolKey(self.host, self.port, self.user, self.database)

    @property
    def is_memory(self) -> bool:
        return self.dialect == "sqlite" and self.database == ":memory:"

    def url(self) -> URL:
        """SQLAlchemy URL, e.g. ``mysql+aiomysql://app@db:3306/shop``."""
        return URL.create(
            f"{self.dialect}+{self.driver}",
            username=self.user,
            password=self.password.get_secret_value() if self.password else None,
            host=self.host,
            port=self.port,
            database=self.database,
        )

    @classmethod
    def coerce(cls, config: DbConfig | Mapping[str, Any]) -> DbConfig:
        """Return ``config`` as a :class:`DbConfig`.

        Raises:
            ConfigurationError: If the mapping is not a valid configuration.
        """
        if isinstance(config, DbConfig):
            return config
        if not isinstance(config, Mapping):
            raise ConfigurationError(
                f"Database config must be a mapping, got {type(config).__name__}"
            )
        try:
            return cls.model_validate(dict(config))
        except ValidationError as exc:
            raise ConfigurationError(
                f"Invalid database config: {exc}",
                details={"errors": exc.errors(include_url=False)},
            ) from exc


# ---------------------------------------------------------------------------
# Environment settings
# ---------------------------------------------------------------------------


class DatabaseSettings(BaseSettings):
    """Connection settings from ``CRUDQL_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CRUDQL_", env_file=".env", case_sensitive=False, extra="ignore"
    )

    dialect: Dialect = "mysql"
    driver: str | None = None
    host: str | None = "localhost"
    port: int | None = None
    user: str | None = None
    password: SecretStr | None = None
    database: str | None = None
    connection_limit: int = 10
    pool_timeout: float = 30.0

    # Observability
    log_level: str = "INFO"
    log_format: str = "text"

    def to_config(self) -> DbConfig:
        """Build the :class:`DbConfig` these settings describe.

        Raises:
            ConfigurationError: If ``CRUDQL_DATABASE`` is unset or a value is
                out of range.
        """
        if not self.database:
            raise ConfigurationError("CRUDQL_DATABASE is not set")
        return DbConfig.coerce(
            self.model_dump(exclude={"log_level", "log_format"})
        )


@lru_cache
def get_settings() -> DatabaseSettings:
    return DatabaseSettings()
