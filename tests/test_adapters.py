"""Tests for dialect adapters: metadata queries, SQL rendering, lookup."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from db_reset.adapters import get_adapter, infer_adapter
from db_reset.adapters.base import DialectAdapter, split_statements, sql_literal
from db_reset.adapters.mysql import MySqlAdapter
from db_reset.adapters.postgres import PostgresAdapter
from db_reset.adapters.sqlite import SqliteAdapter
from db_reset.adapters.sqlserver import SqlServerAdapter
from db_reset.errors import ConfigurationError
from db_reset.graph.builder import GraphBuilder
from db_reset.graph.models import Relationship, Table, TemporalTable
from db_reset.options import ResetOptions


def _result(rows: list[tuple]) -> MagicMock:
    result = MagicMock()
    result.fetchall.return_value = rows
    return result


@pytest.fixture
def cyclic_graph() -> GraphBuilder:
    """orders -> users plus a mutual cycle between a and b."""
    users = Table("public", "users")
    orders = Table("public", "orders")
    a, b = Table("public", "a"), Table("public", "b")
    return GraphBuilder(
        [users, orders, a, b],
        [
            Relationship(users, orders, "fk_orders_users"),
            Relationship(a, b, "fk_b_a"),
            Relationship(b, a, "fk_a_b"),
        ],
    )


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


class TestSqlLiteral:
    def test_escapes_quotes(self) -> None:
        assert sql_literal("o'brien") == "'o''brien'"


class TestSplitStatements:
    """split_statements() keeps dollar-quoted bodies whole."""

    def test_splits_lines(self) -> None:
        assert split_statements("DELETE FROM a;\nDELETE FROM b;\n") == [
            "DELETE FROM a;",
            "DELETE FROM b;",
        ]

    def test_skips_blank_lines(self) -> None:
        assert split_statements("\n\nSELECT 1;\n\n") == ["SELECT 1;"]

    def test_keeps_unterminated_tail(self) -> None:
        assert split_statements("SELECT 1;\nSELECT 2") == ["SELECT 1;", "SELECT 2"]

    def test_dollar_quoted_block_is_one_statement(self) -> None:
        script = PostgresAdapter().build_reseed_sql([Table("public", "users")])
        statements = split_statements("TRUNCATE TABLE x;\n" + script)
        assert len(statements) == 2
        assert statements[1].startswith("DO $$")
        assert statements[1].endswith("END $$;")

    def test_empty(self) -> None:
        assert split_statements("") == []


# ------------------------------------------------------------------
# Filters
# ------------------------------------------------------------------


class TestFilterClauses:
    """Include/exclude predicates shared by the information_schema dialects."""

    def test_qualified_and_unqualified_ignore(self) -> None:
        options = ResetOptions(tables_to_ignore=["public.migrations", "audit_log"])
        clauses = PostgresAdapter().table_filter_clauses(
            options, "table_schema", "table_name"
        )
        assert clauses == [
            " AND table_schema || '.' || table_name NOT IN ('public.migrations')",
            " AND table_name NOT IN ('audit_log')",
        ]

    def test_include(self) -> None:
        options = ResetOptions(tables_to_include=["users"])
        clauses = PostgresAdapter().table_filter_clauses(
            options, "table_schema", "table_name"
        )
        assert clauses == [" AND table_name IN ('users')"]

    def test_schema_exclude_wins_over_include(self) -> None:
        options = ResetOptions(
            schemas_to_include=["app"], schemas_to_exclude=["audit"]
        )
        clauses = PostgresAdapter().schema_filter_clauses(
            options, "s", system_schemas=["information_schema"]
        )
        assert clauses == [" AND s NOT IN ('audit', 'information_schema')"]

    def test_schema_include(self) -> None:
        options = ResetOptions(schemas_to_include=["app"])
        clauses = PostgresAdapter().schema_filter_clauses(
            options, "s", system_schemas=["information_schema"]
        )
        assert clauses == [" AND s IN ('app')"]

    def test_system_schemas_excluded_by_default(self) -> None:
        clauses = PostgresAdapter().schema_filter_clauses(
            ResetOptions(), "s", system_schemas=["sys"]
        )
        assert clauses == [" AND s NOT IN ('sys')"]

    def test_no_filters(self) -> None:
        assert PostgresAdapter().schema_filter_clauses(ResetOptions(), "s") == []


# ------------------------------------------------------------------
# Metadata execution
# ------------------------------------------------------------------


class TestMetadataListing:
    """BaseDialectAdapter maps rows onto graph value objects."""

    async def test_list_tables_normalizes_empty_schema(self) -> None:
        conn = MagicMock()
        conn.execute = AsyncMock(return_value=_result([("", "users"), ("app", "orders")]))
        tables = await SqliteAdapter().list_tables(conn, ResetOptions())
        assert tables == {Table(None, "users"), Table("app", "orders")}

    async def test_list_relationships_collapses_multi_column_keys(self) -> None:
        conn = MagicMock()
        conn.execute = AsyncMock(
            return_value=_result(
                [
                    ("public", "users", "public", "orders", "fk_orders_users"),
                    ("public", "users", "public", "orders", "fk_orders_users"),
                ]
            )
        )
        rels = await PostgresAdapter().list_relationships(conn, ResetOptions())
        assert len(rels) == 1
        (only,) = rels
        assert only.primary_key_table == Table("public", "users")
        assert only.foreign_key_table == Table("public", "orders")

    async def test_list_temporal_tables(self) -> None:
        conn = MagicMock()
        conn.execute = AsyncMock(
            return_value=_result([("dbo", "Prices", "dbo", "PricesHistory")])
        )
        temporal = await SqlServerAdapter().list_temporal_tables(conn, ResetOptions())
        assert temporal == [TemporalTable("dbo", "Prices", "dbo", "PricesHistory")]

    async def test_no_temporal_query_means_no_io(self) -> None:
        conn = MagicMock()
        conn.execute = AsyncMock()
        assert await PostgresAdapter().list_temporal_tables(conn, ResetOptions()) == []
        conn.execute.assert_not_called()

    async def test_sqlserver_temporal_support_by_compatibility_level(self) -> None:
        conn = MagicMock()
        result = MagicMock()
        result.scalar.return_value = 130
        conn.execute = AsyncMock(return_value=result)
        assert await SqlServerAdapter().check_supports_temporal_tables(conn) is True

        result.scalar.return_value = 120
        assert await SqlServerAdapter().check_supports_temporal_tables(conn) is False


# ------------------------------------------------------------------
# PostgreSQL
# ------------------------------------------------------------------


class TestPostgresAdapter:
    def test_satisfies_protocol(self) -> None:
        adapter: DialectAdapter = PostgresAdapter()
        assert adapter.supports_reseed
        assert not adapter.supports_temporal_tables
        assert adapter.requires_statements_executed_individually

    def test_table_query_excludes_system_schemas(self) -> None:
        query = PostgresAdapter().build_table_query(ResetOptions())
        assert "table_type = 'BASE TABLE'" in query
        assert "NOT IN ('information_schema')" in query
        assert "NOT LIKE 'pg_%'" in query

    def test_table_query_include_only_skips_pg_prefix(self) -> None:
        query = PostgresAdapter().build_table_query(
            ResetOptions(schemas_to_include=["app"])
        )
        assert "table_schema IN ('app')" in query
        assert "pg_%" not in query

    def test_relationship_query_filters_referencing_side(self) -> None:
        query = PostgresAdapter().build_relationship_query(
            ResetOptions(tables_to_ignore=["public.migrations"])
        )
        assert "tc.table_schema || '.' || tc.table_name NOT IN" in query

    def test_delete_sql_truncates_everything_once(self, cyclic_graph) -> None:
        sql = PostgresAdapter().build_delete_sql(cyclic_graph, ResetOptions())
        truncates = [line for line in sql.splitlines() if line.startswith("TRUNCATE")]
        assert truncates == [
            'TRUNCATE TABLE "public"."orders", "public"."users", '
            '"public"."a", "public"."b" CASCADE;'
        ]

    def test_delete_sql_brackets_cyclic_owners(self, cyclic_graph) -> None:
        lines = PostgresAdapter().build_delete_sql(
            cyclic_graph, ResetOptions()
        ).splitlines()
        assert lines[0] == 'ALTER TABLE "public"."a" DISABLE TRIGGER ALL;'
        assert lines[1] == 'ALTER TABLE "public"."b" DISABLE TRIGGER ALL;'
        assert lines[-2] == 'ALTER TABLE "public"."a" ENABLE TRIGGER ALL;'
        assert lines[-1] == 'ALTER TABLE "public"."b" ENABLE TRIGGER ALL;'

    def test_delete_sql_empty_graph(self) -> None:
        assert PostgresAdapter().build_delete_sql(GraphBuilder([], []), ResetOptions()) == ""

    def test_reseed_sql(self) -> None:
        sql = PostgresAdapter().build_reseed_sql([Table("public", "users")])
        assert "pg_get_serial_sequence" in sql
        assert "'\"public\".\"users\"'" in sql
        assert "RESTART" in sql

    def test_reseed_sql_no_tables(self) -> None:
        assert PostgresAdapter().build_reseed_sql([]) == ""

    def test_command_timeout(self) -> None:
        assert (
            PostgresAdapter().build_command_timeout_sql(30)
            == "SET LOCAL statement_timeout = 30000"
        )

    def test_no_versioning(self) -> None:
        assert PostgresAdapter().build_turn_off_versioning_sql([]) is None


# ------------------------------------------------------------------
# SQLite
# ------------------------------------------------------------------


class TestSqliteAdapter:
    def test_table_query_skips_internal_tables(self) -> None:
        query = SqliteAdapter().build_table_query(ResetOptions())
        assert "sqlite_master" in query
        assert "NOT LIKE 'sqlite\\_%'" in query

    def test_filters_by_name_only(self) -> None:
        query = SqliteAdapter().build_table_query(
            ResetOptions(tables_to_ignore=["main.migrations"])
        )
        assert "name NOT IN ('migrations')" in query

    def test_relationship_query_synthesizes_names(self) -> None:
        query = SqliteAdapter().build_relationship_query(ResetOptions())
        assert "pragma_foreign_key_list" in query
        assert "'_fk' || p.id" in query

    def test_delete_sql_defers_foreign_keys(self, cyclic_graph) -> None:
        lines = SqliteAdapter().build_delete_sql(cyclic_graph, ResetOptions()).splitlines()
        assert lines[0] == 'DELETE FROM "orders" WHERE 0 = 1;'
        assert lines[1] == "PRAGMA defer_foreign_keys = ON;"
        assert lines[2:] == [
            'DELETE FROM "orders";',
            'DELETE FROM "users";',
            'DELETE FROM "a";',
            'DELETE FROM "b";',
        ]

    def test_custom_delete_statement(self) -> None:
        options = ResetOptions(
            format_delete_statement=lambda t: f"DELETE FROM {t.name} WHERE id > 0;"
        )
        sql = SqliteAdapter().build_delete_sql(GraphBuilder([Table(None, "x")], []), options)
        assert "DELETE FROM x WHERE id > 0;" in sql

    def test_reseed_sql(self) -> None:
        assert (
            SqliteAdapter().build_reseed_sql([Table(None, "users")])
            == "DELETE FROM sqlite_sequence WHERE name IN ('users');"
        )


# ------------------------------------------------------------------
# MySQL
# ------------------------------------------------------------------


class TestMySqlAdapter:
    def test_qualified_filter_uses_concat(self) -> None:
        query = MySqlAdapter().build_table_query(
            ResetOptions(tables_to_ignore=["app.migrations"])
        )
        assert "CONCAT(table_schema, '.', table_name) NOT IN ('app.migrations')" in query
        assert "'performance_schema'" in query

    def test_relationship_names_schema_qualified(self) -> None:
        query = MySqlAdapter().build_relationship_query(ResetOptions())
        assert "CONCAT(constraint_schema, '.', constraint_name)" in query
        assert "referenced_table_name IS NOT NULL" in query

    def test_delete_sql_disables_checks(self, cyclic_graph) -> None:
        lines = MySqlAdapter().build_delete_sql(cyclic_graph, ResetOptions()).splitlines()
        assert lines[0] == "SET FOREIGN_KEY_CHECKS = 0;"
        assert lines[1] == "DELETE FROM `public`.`orders`;"
        assert lines[-1] == "SET FOREIGN_KEY_CHECKS = 1;"
        assert len(lines) == 6

    def test_reseed_sql(self) -> None:
        assert (
            MySqlAdapter().build_reseed_sql([Table("app", "users")])
            == "ALTER TABLE `app`.`users` AUTO_INCREMENT = 1;\n"
        )


# ------------------------------------------------------------------
# SQL Server
# ------------------------------------------------------------------


class TestSqlServerAdapter:
    def test_delete_sql(self, cyclic_graph) -> None:
        lines = SqlServerAdapter().build_delete_sql(
            cyclic_graph, ResetOptions()
        ).splitlines()
        assert lines == [
            "ALTER TABLE [public].[a] NOCHECK CONSTRAINT ALL;",
            "ALTER TABLE [public].[b] NOCHECK CONSTRAINT ALL;",
            "DELETE [public].[orders];",
            "DELETE [public].[users];",
            "DELETE [public].[a];",
            "DELETE [public].[b];",
            "ALTER TABLE [public].[a] WITH CHECK CHECK CONSTRAINT ALL;",
            "ALTER TABLE [public].[b] WITH CHECK CHECK CONSTRAINT ALL;",
        ]

    def test_qualified_filter_uses_plus(self) -> None:
        query = SqlServerAdapter().build_table_query(
            ResetOptions(tables_to_include=["dbo.Users"])
        )
        assert "s.name + '.' + t.name IN ('dbo.Users')" in query

    def test_reseed_sql(self) -> None:
        sql = SqlServerAdapter().build_reseed_sql([Table("dbo", "Users")])
        assert "DBCC CHECKIDENT" in sql
        assert "IN ('dbo.Users')" in sql

    def test_versioning_toggle(self) -> None:
        temporal = [TemporalTable("dbo", "Prices", "dbo", "PricesHistory")]
        adapter = SqlServerAdapter()
        assert adapter.build_turn_off_versioning_sql(temporal) == (
            "ALTER TABLE [dbo].[Prices] SET (SYSTEM_VERSIONING = OFF);\n"
        )
        assert adapter.build_turn_on_versioning_sql(temporal) == (
            "ALTER TABLE [dbo].[Prices] SET (SYSTEM_VERSIONING = ON"
            " (HISTORY_TABLE = [dbo].[PricesHistory]));\n"
        )

    def test_command_timeout(self) -> None:
        assert SqlServerAdapter().build_command_timeout_sql(5) == "SET LOCK_TIMEOUT 5000;"


# ------------------------------------------------------------------
# Lookup
# ------------------------------------------------------------------


class TestAdapterLookup:
    @pytest.mark.parametrize(
        ("name", "cls"),
        [
            ("postgres", PostgresAdapter),
            ("PostgreSQL", PostgresAdapter),
            ("sqlite", SqliteAdapter),
            ("mariadb", MySqlAdapter),
            ("mssql", SqlServerAdapter),
        ],
    )
    def test_get_adapter(self, name: str, cls: type) -> None:
        assert isinstance(get_adapter(name), cls)

    def test_get_adapter_unknown(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown database adapter"):
            get_adapter("oracle")

    def test_infer_adapter(self) -> None:
        conn = MagicMock()
        conn.dialect.name = "sqlite"
        assert isinstance(infer_adapter(conn), SqliteAdapter)

    def test_infer_adapter_unknown_dialect(self) -> None:
        conn = MagicMock()
        conn.dialect.name = "oracle"
        with pytest.raises(ConfigurationError, match="could not be inferred"):
            infer_adapter(conn)

    def test_new_instance_each_call(self) -> None:
        assert get_adapter("postgres") is not get_adapter("postgres")
