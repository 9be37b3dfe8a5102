"""Dialect adapter protocol definition.

Defines the ``DialectAdapter`` Protocol that every dialect must implement,
plus ``BaseDialectAdapter`` which holds the parts all dialects share:
running the metadata queries over a SQLAlchemy ``AsyncConnection`` and
rendering include/exclude filters as SQL predicates.

Capabilities a dialect lacks are reported, not raised: ``supports_reseed``
and ``supports_temporal_tables`` are plain flags and the matching
``build_*`` methods return ``None``.  The orchestrator checks the flags up
front and raises ``UnsupportedCapabilityError`` before any I/O.

Usage:
    from db_reset.adapters.base import DialectAdapter

    async def count_tables(adapter: DialectAdapter, conn, options) -> int:
        return len(await adapter.list_tables(conn, options))
"""

from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Protocol

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection

from db_reset.graph.models import Relationship, Table, TemporalTable

if TYPE_CHECKING:
    from db_reset.graph.builder import GraphBuilder
    from db_reset.options import ResetOptions


class DialectAdapter(Protocol):
    """Dialect interface that the reset orchestrator consumes.

    Metadata listing methods are async and run against the caller's
    connection; every ``build_*`` method is pure string rendering.
    """

    name: str
    quote_character: str
    supports_reseed: bool
    supports_temporal_tables: bool
    requires_statements_executed_individually: bool

    async def list_tables(
        self, conn: AsyncConnection, options: "ResetOptions"
    ) -> set[Table]:
        """List base tables honoring the include/exclude filters."""
        ...

    async def list_relationships(
        self, conn: AsyncConnection, options: "ResetOptions"
    ) -> set[Relationship]:
        """List foreign keys honoring the same filters.

        One ``Relationship`` per constraint name even when the query
        returns a row per column.
        """
        ...

    async def list_temporal_tables(
        self, conn: AsyncConnection, options: "ResetOptions"
    ) -> list[TemporalTable]:
        """List system-versioned tables and their history tables."""
        ...

    async def check_supports_temporal_tables(self, conn: AsyncConnection) -> bool:
        """Whether the connected server can have temporal tables at all."""
        ...

    async def check_supports_reseed(self, conn: AsyncConnection) -> bool:
        """Whether the connected database has any counters to reseed."""
        ...

    def build_delete_sql(self, graph: "GraphBuilder", options: "ResetOptions") -> str:
        """Render the script that empties every table in ``graph``.

        Includes any constraint disable/enable bracketing required for
        ``graph.cyclical_table_relationships``.
        """
        ...

    def build_reseed_sql(self, tables: Sequence[Table]) -> str | None:
        """Render identity/sequence reseed SQL, or ``None`` if unsupported."""
        ...

    def build_turn_off_versioning_sql(
        self, temporal_tables: Sequence[TemporalTable]
    ) -> str | None:
        """Render SQL that suspends system versioning, or ``None``."""
        ...

    def build_turn_on_versioning_sql(
        self, temporal_tables: Sequence[TemporalTable]
    ) -> str | None:
        """Render SQL that restores system versioning, or ``None``."""
        ...

    def build_command_timeout_sql(self, seconds: int) -> str | None:
        """Render a transaction-scoped statement timeout, or ``None``."""
        ...


def sql_literal(value: str) -> str:
    """Quote a string as a SQL literal."""
    return "'" + value.replace("'", "''") + "'"


class BaseDialectAdapter:
    """Shared metadata execution and filter rendering.

    Subclasses provide the three ``build_*_query`` methods and the SQL
    rendering methods.  Every metadata query returns rows shaped as:

    - tables: ``(schema, name)``
    - relationships: ``(pk_schema, pk_table, fk_schema, fk_table, constraint)``
    - temporal tables: ``(schema, name, history_schema, history_name)``

    Empty-string schemas are normalized to ``None``.
    """

    name: str = "base"
    quote_character: str = '"'
    supports_reseed: bool = False
    supports_temporal_tables: bool = False
    requires_statements_executed_individually: bool = False

    # ------------------------------------------------------------------
    # Metadata queries (dialect specific)
    # ------------------------------------------------------------------

    def build_table_query(self, options: "ResetOptions") -> str:
        raise NotImplementedError

    def build_relationship_query(self, options: "ResetOptions") -> str:
        raise NotImplementedError

    def build_temporal_table_query(self, options: "ResetOptions") -> str | None:
        return None

    # ------------------------------------------------------------------
    # Metadata execution
    # ------------------------------------------------------------------

    async def list_tables(
        self, conn: AsyncConnection, options: "ResetOptions"
    ) -> set[Table]:
        result = await conn.execute(text(self.build_table_query(options)))
        return {Table(row[0] or None, row[1]) for row in result.fetchall()}

    async def list_relationships(
        self, conn: AsyncConnection, options: "ResetOptions"
    ) -> set[Relationship]:
        result = await conn.execute(text(self.build_relationship_query(options)))
        relationships: set[Relationship] = set()
        for pk_schema, pk_table, fk_schema, fk_table, constraint in result.fetchall():
            relationships.add(
                Relationship(
                    Table(pk_schema or None, pk_table),
                    Table(fk_schema or None, fk_table),
                    constraint,
                )
            )
        return relationships

    async def list_temporal_tables(
        self, conn: AsyncConnection, options: "ResetOptions"
    ) -> list[TemporalTable]:
        query = self.build_temporal_table_query(options)
        if query is None:
            return []
        result = await conn.execute(text(query))
        return [
            TemporalTable(row[0] or None, row[1], row[2] or None, row[3])
            for row in result.fetchall()
        ]

    async def check_supports_temporal_tables(self, conn: AsyncConnection) -> bool:
        return False

    async def check_supports_reseed(self, conn: AsyncConnection) -> bool:
        return self.supports_reseed

    # ------------------------------------------------------------------
    # SQL rendering defaults
    # ------------------------------------------------------------------

    def build_delete_sql(self, graph: "GraphBuilder", options: "ResetOptions") -> str:
        raise NotImplementedError

    def build_reseed_sql(self, tables: Sequence[Table]) -> str | None:
        return None

    def build_turn_off_versioning_sql(
        self, temporal_tables: Sequence[TemporalTable]
    ) -> str | None:
        return None

    def build_turn_on_versioning_sql(
        self, temporal_tables: Sequence[TemporalTable]
    ) -> str | None:
        return None

    def build_command_timeout_sql(self, seconds: int) -> str | None:
        return None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def full_name(self, table: Table) -> str:
        return table.full_name(self.quote_character)

    def delete_statement(self, table: Table, options: "ResetOptions") -> str:
        """Default ``DELETE`` for one table, or the caller's formatter."""
        if options.format_delete_statement is not None:
            return options.format_delete_statement(table)
        return f"DELETE FROM {self.full_name(table)};"

    def qualified_name_expr(self, schema_column: str, name_column: str) -> str:
        """SQL expression producing ``schema.name`` from two columns."""
        return f"{schema_column} || '.' || {name_column}"

    def table_filter_clauses(
        self,
        options: "ResetOptions",
        schema_column: str,
        name_column: str,
    ) -> list[str]:
        """``AND`` predicates for the ignore and include table lists.

        Schema-qualified entries compare against ``schema.name``;
        unqualified entries compare against the name alone.
        """
        clauses: list[str] = []
        for tables, operator in (
            (options.tables_to_ignore, "NOT IN"),
            (options.tables_to_include, "IN"),
        ):
            qualified = [t for t in tables if t.schema is not None]
            unqualified = [t for t in tables if t.schema is None]
            if qualified:
                expr = self.qualified_name_expr(schema_column, name_column)
                args = ", ".join(sql_literal(str(t)) for t in qualified)
                clauses.append(f" AND {expr} {operator} ({args})")
            if unqualified:
                args = ", ".join(sql_literal(t.name) for t in unqualified)
                clauses.append(f" AND {name_column} {operator} ({args})")
        return clauses

    def schema_filter_clauses(
        self,
        options: "ResetOptions",
        schema_column: str,
        system_schemas: Iterable[str] = (),
    ) -> list[str]:
        """``AND`` predicates for the schema axis.

        The exclude list wins over the include list.  ``system_schemas``
        are excluded unless an include list is given.
        """
        system = list(system_schemas)
        if options.schemas_to_exclude:
            args = ", ".join(
                sql_literal(s) for s in [*options.schemas_to_exclude, *system]
            )
            return [f" AND {schema_column} NOT IN ({args})"]
        if options.schemas_to_include:
            args = ", ".join(sql_literal(s) for s in options.schemas_to_include)
            return [f" AND {schema_column} IN ({args})"]
        if system:
            args = ", ".join(sql_literal(s) for s in system)
            return [f" AND {schema_column} NOT IN ({args})"]
        return []


def split_statements(script: str) -> list[str]:
    """Split a rendered script into individual statements.

    A statement ends at a line ending in ``;``.  Lines inside a
    dollar-quoted ``$$ ... $$`` body never end a statement, so a
    PostgreSQL ``DO`` block stays whole.

    Example:
        >>> split_statements("DELETE FROM a;\\nDELETE FROM b;\\n")
        ['DELETE FROM a;', 'DELETE FROM b;']
    """
    statements: list[str] = []
    current: list[str] = []
    in_dollar_quote = False
    for line in script.splitlines():
        if not line.strip() and not current:
            continue
        current.append(line)
        if line.count("$$") % 2 == 1:
            in_dollar_quote = not in_dollar_quote
        if not in_dollar_quote and line.rstrip().endswith(";"):
            statements.append("\n".join(current).strip())
            current = []
    tail = "\n".join(current).strip()
    if tail:
        statements.append(tail)
    return statements
