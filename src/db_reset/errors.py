"""Exceptions raised by the reset orchestrator.

The graph builder never raises.  The orchestrator raises fast for
configuration and precondition problems (before any SQL is generated or
executed) and wraps execution-time database failures in
``ExecutionError`` with the original driver error chained as
``__cause__``.
"""


class DbResetError(Exception):
    """Base class for all db-reset errors."""


class ConfigurationError(DbResetError):
    """Raised when the adapter or options are inconsistent.

    Example: the connection-string entry point invoked with a
    non-PostgreSQL adapter, or an adapter that cannot be inferred from
    the connection's dialect.
    """


class EmptyGraphError(DbResetError):
    """Raised when no tables remain after include/exclude filters."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or "No tables found. Ensure your target database has at least one "
            "non-ignored table to reset. Consider initializing the database "
            "and/or running migrations."
        )


# Alias for callers that catch the "no tables found" condition by name
NoTablesFoundError = EmptyGraphError


class UnsupportedCapabilityError(DbResetError):
    """Raised when reseed or temporal handling is requested from an adapter
    that does not implement it."""

    def __init__(self, capability: str, adapter: str) -> None:
        self.capability = capability
        self.adapter = adapter
        super().__init__(f"{adapter} adapter does not support {capability}")


class ExecutionError(DbResetError):
    """Raised when generated SQL fails against the live database.

    Attributes:
        sql: The SQL text that was executing when the failure occurred.
    """

    def __init__(self, message: str, sql: str) -> None:
        self.sql = sql
        super().__init__(message)
