"""Microsoft SQL Server dialect adapter.

The only dialect with temporal (system-versioned) tables.  Constraints
on the referencing side of every cyclic relationship are switched to
``NOCHECK`` while the tables are emptied and re-validated afterwards.
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection

from db_reset.adapters.base import BaseDialectAdapter, sql_literal
from db_reset.graph.models import Table, TemporalTable

if TYPE_CHECKING:
    from db_reset.graph.builder import GraphBuilder
    from db_reset.options import ResetOptions

# SQL Server 2016 introduced system-versioned tables
TEMPORAL_COMPATIBILITY_LEVEL = 130


class SqlServerAdapter(BaseDialectAdapter):
    """SQL Server implementation of the ``DialectAdapter`` protocol."""

    name = "mssql"
    quote_character = "["
    supports_reseed = True
    supports_temporal_tables = True
    requires_statements_executed_individually = False

    def qualified_name_expr(self, schema_column: str, name_column: str) -> str:
        return f"{schema_column} + '.' + {name_column}"

    def build_table_query(self, options: "ResetOptions") -> str:
        query = (
            "SELECT s.name, t.name\n"
            "FROM sys.tables t\n"
            "INNER JOIN sys.schemas s ON t.schema_id = s.schema_id\n"
            "WHERE 1=1"
        )
        query += "".join(self.table_filter_clauses(options, "s.name", "t.name"))
        query += "".join(self.schema_filter_clauses(options, "s.name"))
        return query

    def build_relationship_query(self, options: "ResetOptions") -> str:
        query = (
            "SELECT pk_schema.name, so_pk.name, fk_schema.name, so_fk.name, sfk.name\n"
            "FROM sys.foreign_keys sfk\n"
            "INNER JOIN sys.objects so_pk ON sfk.referenced_object_id = so_pk.object_id\n"
            "INNER JOIN sys.schemas pk_schema ON so_pk.schema_id = pk_schema.schema_id\n"
            "INNER JOIN sys.objects so_fk ON sfk.parent_object_id = so_fk.object_id\n"
            "INNER JOIN sys.schemas fk_schema ON so_fk.schema_id = fk_schema.schema_id\n"
            "WHERE 1=1"
        )
        query += "".join(
            self.table_filter_clauses(options, "fk_schema.name", "so_fk.name")
        )
        query += "".join(self.schema_filter_clauses(options, "fk_schema.name"))
        return query

    def build_temporal_table_query(self, options: "ResetOptions") -> str | None:
        query = (
            "SELECT s.name, t.name, temp_s.name, temp_t.name\n"
            "FROM sys.tables t\n"
            "INNER JOIN sys.schemas s ON t.schema_id = s.schema_id\n"
            "INNER JOIN sys.tables temp_t ON t.history_table_id = temp_t.object_id\n"
            "INNER JOIN sys.schemas temp_s ON temp_t.schema_id = temp_s.schema_id\n"
            "WHERE t.temporal_type = 2"
        )
        query += "".join(self.table_filter_clauses(options, "s.name", "t.name"))
        query += "".join(self.schema_filter_clauses(options, "s.name"))
        return query

    async def check_supports_temporal_tables(self, conn: AsyncConnection) -> bool:
        result = await conn.execute(
            text("SELECT compatibility_level FROM sys.databases WHERE name = DB_NAME()")
        )
        level = result.scalar()
        return level is not None and int(level) >= TEMPORAL_COMPATIBILITY_LEVEL

    def delete_statement(self, table: Table, options: "ResetOptions") -> str:
        if options.format_delete_statement is not None:
            return options.format_delete_statement(table)
        return f"DELETE {self.full_name(table)};"

    def build_delete_sql(self, graph: "GraphBuilder", options: "ResetOptions") -> str:
        cyclic_owners = list(
            dict.fromkeys(
                rel.foreign_key_table for rel in graph.cyclical_table_relationships
            )
        )
        lines = [
            f"ALTER TABLE {self.full_name(table)} NOCHECK CONSTRAINT ALL;"
            for table in cyclic_owners
        ]
        lines.extend(
            self.delete_statement(table, options) for table in graph.delete_sequence
        )
        lines.extend(
            f"ALTER TABLE {self.full_name(table)} WITH CHECK CHECK CONSTRAINT ALL;"
            for table in cyclic_owners
        )
        return "\n".join(lines) + "\n"

    def build_reseed_sql(self, tables: Sequence[Table]) -> str | None:
        """Reseed identity columns of ``tables`` back to their initial seed.

        Tables whose identity was never used keep their seed; reseeding
        them would make the next value off by one.
        """
        if not tables:
            return ""
        names = ", ".join(sql_literal(str(table)) for table in tables)
        return (
            "DECLARE @Schema sysname, @TableName sysname, @LastValue sql_variant,"
            " @Seed bigint, @SQL nvarchar(4000);\n"
            "DECLARE IdentityTables CURSOR FAST_FORWARD FOR\n"
            "    SELECT OBJECT_SCHEMA_NAME(t.object_id), t.name, ic.last_value,\n"
            "           CONVERT(bigint, IDENT_SEED(OBJECT_SCHEMA_NAME(t.object_id) + '.' + t.name))\n"
            "    FROM sys.tables t\n"
            "    JOIN sys.identity_columns ic ON ic.object_id = t.object_id\n"
            f"    WHERE OBJECT_SCHEMA_NAME(t.object_id) + '.' + t.name IN ({names});\n"
            "OPEN IdentityTables;\n"
            "FETCH NEXT FROM IdentityTables INTO @Schema, @TableName, @LastValue, @Seed;\n"
            "WHILE @@FETCH_STATUS = 0\n"
            "BEGIN\n"
            "    IF @LastValue IS NOT NULL\n"
            "    BEGIN\n"
            "        SET @SQL = N'DBCC CHECKIDENT(''' + QUOTENAME(@Schema) + '.' + QUOTENAME(@TableName)"
            " + ''', RESEED, ' + CONVERT(varchar(30), @Seed - 1) + ')';\n"
            "        EXECUTE (@SQL);\n"
            "    END\n"
            "    FETCH NEXT FROM IdentityTables INTO @Schema, @TableName, @LastValue, @Seed;\n"
            "END\n"
            "CLOSE IdentityTables;\n"
            "DEALLOCATE IdentityTables;\n"
        )

    def build_turn_off_versioning_sql(
        self, temporal_tables: Sequence[TemporalTable]
    ) -> str | None:
        return "".join(
            f"ALTER TABLE {self.full_name(t.table)} SET (SYSTEM_VERSIONING = OFF);\n"
            for t in temporal_tables
        )

    def build_turn_on_versioning_sql(
        self, temporal_tables: Sequence[TemporalTable]
    ) -> str | None:
        return "".join(
            f"ALTER TABLE {self.full_name(t.table)} SET (SYSTEM_VERSIONING = ON"
            f" (HISTORY_TABLE = {self.full_name(t.history_table)}));\n"
            for t in temporal_tables
        )

    def build_command_timeout_sql(self, seconds: int) -> str | None:
        return f"SET LOCK_TIMEOUT {int(seconds) * 1000};"
