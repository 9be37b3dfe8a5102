"""Dialect adapters package.

Provides the ``DialectAdapter`` Protocol and one adapter per supported
database.  Adapters are plain objects constructed on demand and passed
into the orchestrator; there is no shared registry of instances.

Usage:
    from db_reset.adapters import get_adapter, infer_adapter

    adapter = get_adapter("postgres")
    adapter = infer_adapter(conn)  # from conn.dialect.name
"""

from sqlalchemy.ext.asyncio import AsyncConnection

from db_reset.adapters.base import BaseDialectAdapter, DialectAdapter
from db_reset.adapters.mysql import MySqlAdapter
from db_reset.adapters.postgres import PostgresAdapter
from db_reset.adapters.sqlite import SqliteAdapter
from db_reset.adapters.sqlserver import SqlServerAdapter
from db_reset.errors import ConfigurationError

_ADAPTERS: dict[str, type[BaseDialectAdapter]] = {
    "postgres": PostgresAdapter,
    "postgresql": PostgresAdapter,
    "sqlite": SqliteAdapter,
    "mysql": MySqlAdapter,
    "mariadb": MySqlAdapter,
    "mssql": SqlServerAdapter,
    "sqlserver": SqlServerAdapter,
}


def get_adapter(name: str) -> DialectAdapter:
    """Create an adapter by dialect name.

    Raises:
        ConfigurationError: If ``name`` is not a known dialect.
    """
    try:
        return _ADAPTERS[name.lower()]()
    except KeyError:
        available = ", ".join(sorted(_ADAPTERS))
        raise ConfigurationError(
            f"Unknown database adapter '{name}'. Available: {available}"
        ) from None


def infer_adapter(conn: AsyncConnection) -> DialectAdapter:
    """Create the adapter matching a connection's SQLAlchemy dialect.

    Raises:
        ConfigurationError: If the dialect has no adapter; pass one
            explicitly via ``ResetOptions(adapter=...)``.
    """
    dialect = conn.dialect.name
    if dialect not in _ADAPTERS:
        raise ConfigurationError(
            f"The database adapter could not be inferred from dialect "
            f"'{dialect}'. Pass an explicit adapter in the options."
        )
    return _ADAPTERS[dialect]()


__all__ = [
    "BaseDialectAdapter",
    "DialectAdapter",
    "MySqlAdapter",
    "PostgresAdapter",
    "SqliteAdapter",
    "SqlServerAdapter",
    "get_adapter",
    "infer_adapter",
]
