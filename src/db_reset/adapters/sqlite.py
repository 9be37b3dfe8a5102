"""SQLite dialect adapter.

SQLite has no catalog of foreign keys, so relationships come from
``pragma_foreign_key_list`` joined against ``sqlite_master``.  The pragma
reports no constraint names; each key is named ``<table>_fk<id>``, which
is unique per database and shared by the rows of a multi-column key.

``PRAGMA foreign_keys`` cannot change inside a transaction, so the delete
script defers foreign-key checks to commit instead.  By then every table
is empty and nothing can be violated.

Schemas do not apply: every table is reported with ``schema=None`` and
schema filters are ignored.
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection

from db_reset.adapters.base import BaseDialectAdapter, sql_literal
from db_reset.graph.models import Table

if TYPE_CHECKING:
    from db_reset.graph.builder import GraphBuilder
    from db_reset.options import ResetOptions


class SqliteAdapter(BaseDialectAdapter):
    """SQLite implementation of the ``DialectAdapter`` protocol."""

    name = "sqlite"
    quote_character = '"'
    supports_reseed = True
    supports_temporal_tables = False
    # sqlite3 cursors accept a single statement per execute()
    requires_statements_executed_individually = True

    def _name_filters(self, options: "ResetOptions", column: str) -> str:
        clauses = []
        for tables, operator in (
            (options.tables_to_ignore, "NOT IN"),
            (options.tables_to_include, "IN"),
        ):
            if tables:
                args = ", ".join(sql_literal(t.name) for t in tables)
                clauses.append(f" AND {column} {operator} ({args})")
        return "".join(clauses)

    def build_table_query(self, options: "ResetOptions") -> str:
        query = (
            "SELECT '' AS schema_name, name AS table_name\n"
            "FROM sqlite_master\n"
            "WHERE type = 'table'\n"
            "AND name NOT LIKE 'sqlite\\_%' ESCAPE '\\'"
        )
        return query + self._name_filters(options, "name")

    def build_relationship_query(self, options: "ResetOptions") -> str:
        query = (
            "SELECT DISTINCT\n"
            "    '' AS pk_schema,\n"
            "    p.\"table\" AS pk_table,\n"
            "    '' AS fk_schema,\n"
            "    m.name AS fk_table,\n"
            "    m.name || '_fk' || p.id AS constraint_name\n"
            "FROM sqlite_master m, pragma_foreign_key_list(m.name) p\n"
            "WHERE m.type = 'table'"
        )
        return query + self._name_filters(options, "m.name")

    async def check_supports_reseed(self, conn: AsyncConnection) -> bool:
        # sqlite_sequence only exists once an AUTOINCREMENT table has been created
        result = await conn.execute(
            text(
                "SELECT COUNT(*) FROM sqlite_master "
                "WHERE type = 'table' AND name = 'sqlite_sequence'"
            )
        )
        return bool(result.scalar())

    def full_name(self, table: Table) -> str:
        return Table(None, table.name).full_name(self.quote_character)

    def build_delete_sql(self, graph: "GraphBuilder", options: "ResetOptions") -> str:
        tables = graph.delete_sequence
        lines = []
        if tables:
            # pysqlite only opens its implicit transaction on DML; the pragma
            # must run inside it
            lines.append(f"DELETE FROM {self.full_name(tables[0])} WHERE 0 = 1;")
        lines.append("PRAGMA defer_foreign_keys = ON;")
        lines.extend(self.delete_statement(table, options) for table in tables)
        return "\n".join(lines) + "\n"

    def build_reseed_sql(self, tables: Sequence[Table]) -> str | None:
        """Clear AUTOINCREMENT counters.

        Only rendered when ``sqlite_sequence`` exists, which SQLite creates
        with the first AUTOINCREMENT table.
        """
        if not tables:
            return ""
        names = ", ".join(sql_literal(table.name) for table in tables)
        return f"DELETE FROM sqlite_sequence WHERE name IN ({names});"
