"""PostgreSQL dialect adapter.

Lists tables and foreign keys from ``information_schema`` and empties
every table with a single ``TRUNCATE ... CASCADE``.  Triggers (and with
them foreign-key enforcement) are disabled on the referencing side of
every cyclic relationship for the duration of the script.

Statements run one at a time because the asyncpg driver prepares each
``execute()`` and refuses multi-statement text.

Usage:
    from db_reset.adapters.postgres import PostgresAdapter
    from db_reset.options import ResetOptions

    options = ResetOptions(adapter=PostgresAdapter(), with_reseed=True)
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING

from db_reset.adapters.base import BaseDialectAdapter, sql_literal
from db_reset.graph.models import Table

if TYPE_CHECKING:
    from db_reset.graph.builder import GraphBuilder
    from db_reset.options import ResetOptions

# Internal schemas that must never be truncated
INFORMATION_SCHEMA = "information_schema"
SYSTEM_SCHEMA_PREFIX = "pg_"


class PostgresAdapter(BaseDialectAdapter):
    """PostgreSQL implementation of the ``DialectAdapter`` protocol."""

    name = "postgres"
    quote_character = '"'
    supports_reseed = True
    supports_temporal_tables = False
    requires_statements_executed_individually = True

    def build_table_query(self, options: "ResetOptions") -> str:
        query = (
            "SELECT table_schema, table_name\n"
            "FROM information_schema.tables\n"
            "WHERE table_type = 'BASE TABLE'"
        )
        query += "".join(
            self.table_filter_clauses(options, "table_schema", "table_name")
        )
        query += "".join(
            self.schema_filter_clauses(
                options, "table_schema", system_schemas=[INFORMATION_SCHEMA]
            )
        )
        if options.schemas_to_exclude or not options.schemas_to_include:
            query += f" AND table_schema NOT LIKE '{SYSTEM_SCHEMA_PREFIX}%'"
        return query

    def build_relationship_query(self, options: "ResetOptions") -> str:
        query = (
            "SELECT ctu.table_schema, ctu.table_name,"
            " tc.table_schema, tc.table_name, rc.constraint_name\n"
            "FROM information_schema.referential_constraints rc\n"
            "INNER JOIN information_schema.constraint_table_usage ctu\n"
            "    ON rc.constraint_name = ctu.constraint_name\n"
            "    AND rc.constraint_schema = ctu.constraint_schema\n"
            "INNER JOIN information_schema.table_constraints tc\n"
            "    ON rc.constraint_name = tc.constraint_name\n"
            "    AND rc.constraint_schema = tc.constraint_schema\n"
            "WHERE 1=1"
        )
        query += "".join(
            self.table_filter_clauses(options, "tc.table_schema", "tc.table_name")
        )
        query += "".join(self.schema_filter_clauses(options, "tc.table_schema"))
        return query

    def build_delete_sql(self, graph: "GraphBuilder", options: "ResetOptions") -> str:
        cyclic_owners = list(
            dict.fromkeys(
                rel.foreign_key_table for rel in graph.cyclical_table_relationships
            )
        )
        lines = [
            f"ALTER TABLE {self.full_name(table)} DISABLE TRIGGER ALL;"
            for table in cyclic_owners
        ]
        tables = graph.delete_sequence
        if tables:
            names = ", ".join(self.full_name(table) for table in tables)
            lines.append(f"TRUNCATE TABLE {names} CASCADE;")
        lines.extend(
            f"ALTER TABLE {self.full_name(table)} ENABLE TRIGGER ALL;"
            for table in cyclic_owners
        )
        return "\n".join(lines) + "\n" if lines else ""

    def build_reseed_sql(self, tables: Sequence[Table]) -> str | None:
        """Restart every serial and identity sequence owned by ``tables``.

        Sequences are found through ``pg_get_serial_sequence`` rather than
        by name, so renamed sequences are still restarted.
        """
        if not tables:
            return ""
        names = ", ".join(sql_literal(self.full_name(table)) for table in tables)
        qualified = "quote_ident(table_schema) || '.' || quote_ident(table_name)"
        quoted = "'\"' || table_schema || '\".\"' || table_name || '\"'"
        return (
            "DO $$\n"
            "DECLARE\n"
            "    seq text;\n"
            "BEGIN\n"
            "    FOR seq IN\n"
            f"        SELECT pg_get_serial_sequence({qualified}, column_name)\n"
            "        FROM information_schema.columns\n"
            f"        WHERE pg_get_serial_sequence({qualified}, column_name) IS NOT NULL\n"
            f"          AND {quoted} IN ({names})\n"
            "    LOOP\n"
            "        EXECUTE 'ALTER SEQUENCE ' || seq || ' RESTART';\n"
            "    END LOOP;\n"
            "END $$;"
        )

    def build_command_timeout_sql(self, seconds: int) -> str | None:
        return f"SET LOCAL statement_timeout = {int(seconds) * 1000}"
