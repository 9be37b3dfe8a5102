"""db-reset: Empty a test database in foreign-key safe order.

Discovers tables and foreign keys, orders deletes so no constraint is
violated, isolates circular references, and replays the resulting SQL
between tests.  PostgreSQL, SQLite, MySQL and SQL Server dialects.

Usage:
    from db_reset import Respawner, ResetOptions
    from db_reset import GraphBuilder, Relationship, Table
    from db_reset import get_adapter, load_reset_config
"""

__version__ = "0.1.0"

# Graph
from db_reset.graph.builder import GraphBuilder
from db_reset.graph.models import Relationship, Table, TemporalTable

# Adapters
from db_reset.adapters import (
    DialectAdapter,
    MySqlAdapter,
    PostgresAdapter,
    SqliteAdapter,
    SqlServerAdapter,
    get_adapter,
    infer_adapter,
)

# Orchestrator
from db_reset.options import ResetOptions
from db_reset.respawner import Respawner

# Config
from db_reset.config.loader import get_profile, load_reset_config
from db_reset.config.models import DatabaseProfile, ResetConfig, resolve_url

# Errors
from db_reset.errors import (
    ConfigurationError,
    DbResetError,
    EmptyGraphError,
    ExecutionError,
    NoTablesFoundError,
    UnsupportedCapabilityError,
)

__all__ = [
    # Graph
    "GraphBuilder",
    "Relationship",
    "Table",
    "TemporalTable",
    # Adapters
    "DialectAdapter",
    "PostgresAdapter",
    "SqliteAdapter",
    "MySqlAdapter",
    "SqlServerAdapter",
    "get_adapter",
    "infer_adapter",
    # Orchestrator
    "Respawner",
    "ResetOptions",
    # Config
    "load_reset_config",
    "get_profile",
    "resolve_url",
    "DatabaseProfile",
    "ResetConfig",
    # Errors
    "DbResetError",
    "ConfigurationError",
    "EmptyGraphError",
    "NoTablesFoundError",
    "UnsupportedCapabilityError",
    "ExecutionError",
]
