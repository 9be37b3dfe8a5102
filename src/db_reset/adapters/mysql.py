"""MySQL / MariaDB dialect adapter.

Foreign-key checks are switched off for the session around a run of
``DELETE`` statements.  Constraint names are only unique per schema in
MySQL, so relationships are named ``<schema>.<constraint>``.
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING

from db_reset.adapters.base import BaseDialectAdapter
from db_reset.graph.models import Table

if TYPE_CHECKING:
    from db_reset.graph.builder import GraphBuilder
    from db_reset.options import ResetOptions

SYSTEM_SCHEMAS = ("mysql", "performance_schema", "information_schema", "sys")


class MySqlAdapter(BaseDialectAdapter):
    """MySQL implementation of the ``DialectAdapter`` protocol."""

    name = "mysql"
    quote_character = "`"
    supports_reseed = True
    supports_temporal_tables = False
    requires_statements_executed_individually = True

    def qualified_name_expr(self, schema_column: str, name_column: str) -> str:
        return f"CONCAT({schema_column}, '.', {name_column})"

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
                options, "table_schema", system_schemas=SYSTEM_SCHEMAS
            )
        )
        return query

    def build_relationship_query(self, options: "ResetOptions") -> str:
        query = (
            "SELECT DISTINCT referenced_table_schema, referenced_table_name,"
            " table_schema, table_name,"
            " CONCAT(constraint_schema, '.', constraint_name)\n"
            "FROM information_schema.key_column_usage\n"
            "WHERE referenced_table_name IS NOT NULL"
        )
        query += "".join(
            self.table_filter_clauses(options, "table_schema", "table_name")
        )
        query += "".join(
            self.schema_filter_clauses(
                options, "table_schema", system_schemas=SYSTEM_SCHEMAS
            )
        )
        return query

    def build_delete_sql(self, graph: "GraphBuilder", options: "ResetOptions") -> str:
        lines = ["SET FOREIGN_KEY_CHECKS = 0;"]
        lines.extend(
            self.delete_statement(table, options) for table in graph.delete_sequence
        )
        lines.append("SET FOREIGN_KEY_CHECKS = 1;")
        return "\n".join(lines) + "\n"

    def build_reseed_sql(self, tables: Sequence[Table]) -> str | None:
        return "".join(
            f"ALTER TABLE {self.full_name(table)} AUTO_INCREMENT = 1;\n"
            for table in tables
        )
