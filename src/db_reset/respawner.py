"""Reset orchestrator: build a plan once, reset many times.

``Respawner.create()`` discovers tables and foreign keys through a
dialect adapter, orders them with ``GraphBuilder`` and renders the delete
(and optional reseed) SQL.  ``Respawner.reset()`` replays that SQL against
a connection:

1. versioning off for temporal tables (own transaction)
2. delete + reseed (one transaction)
3. versioning back on (own transaction, runs even if step 2 failed)

The rendered SQL stays on the instance (``delete_sql``, ``reseed_sql``)
so callers can log it when a reset fails.

Usage:
    from db_reset import Respawner, ResetOptions

    async with engine.connect() as conn:
        respawner = await Respawner.create(
            conn, ResetOptions(tables_to_ignore=["public.schema_migrations"])
        )

    # between tests
    async with engine.connect() as conn:
        await respawner.reset(conn)
"""

import asyncio
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from db_reset.adapters import infer_adapter
from db_reset.adapters.base import DialectAdapter, split_statements
from db_reset.adapters.postgres import PostgresAdapter
from db_reset.engine import create_async_engine_pooled, normalize_url
from db_reset.errors import (
    ConfigurationError,
    EmptyGraphError,
    ExecutionError,
    UnsupportedCapabilityError,
)
from db_reset.graph.builder import GraphBuilder
from db_reset.graph.models import TemporalTable
from db_reset.options import ResetOptions

logger = logging.getLogger(__name__)


class Respawner:
    """A reusable reset plan for one database.

    Build with ``Respawner.create()`` (or ``create_from_url()``) rather
    than the constructor; the constructor does no I/O and leaves the
    plan empty.

    Attributes:
        options: Options the plan was built with, bound to ``adapter``.
        adapter: Dialect adapter rendering the SQL.
        graph: Dependency graph of the discovered tables.
        delete_sql: Script that empties every table.
        reseed_sql: Identity/sequence reseed script, or ``None``.
        temporal_tables: System-versioned tables suspended during reset.
    """

    def __init__(self, options: ResetOptions, adapter: DialectAdapter) -> None:
        self.options = options
        self.adapter = adapter
        self.graph: GraphBuilder | None = None
        self.delete_sql: str | None = None
        self.reseed_sql: str | None = None
        self.temporal_tables: list[TemporalTable] = []

    # ------------------------------------------------------------------
    # Plan
    # ------------------------------------------------------------------

    @classmethod
    async def create(
        cls,
        conn: AsyncConnection,
        options: ResetOptions | None = None,
    ) -> "Respawner":
        """Discover the schema behind ``conn`` and build a reset plan.

        Args:
            conn: Open connection to the target database.
            options: Filters and side steps.  ``options.adapter`` of
                ``None`` infers the adapter from ``conn.dialect``.

        Returns:
            A ``Respawner`` with ``delete_sql`` (and ``reseed_sql`` when
            requested) rendered.

        Raises:
            ConfigurationError: If no adapter can be inferred.
            UnsupportedCapabilityError: If reseed or temporal handling is
                requested from an adapter without it.
            EmptyGraphError: If no tables survive the filters.
        """
        options = options or ResetOptions()
        adapter = options.adapter or infer_adapter(conn)
        respawner = cls(options.with_adapter(adapter), adapter)
        respawner._check_capabilities()
        await respawner._build_plan(conn)
        return respawner

    @classmethod
    async def create_from_url(
        cls,
        database_url: str,
        options: ResetOptions | None = None,
    ) -> "Respawner":
        """Build a plan from a PostgreSQL connection URL.

        The connection-string entry point only knows how to open
        PostgreSQL connections.  Other dialects must open their own
        connection and call ``create()``.

        Raises:
            ConfigurationError: If ``options.adapter`` is set to anything
                but a ``PostgresAdapter``.  Checked before any I/O.
        """
        options = _postgres_options(options)
        engine = create_async_engine_pooled(normalize_url(database_url))
        try:
            async with engine.connect() as conn:
                return await cls.create(conn, options)
        finally:
            await engine.dispose()

    def _check_capabilities(self) -> None:
        if self.options.with_reseed and not self.adapter.supports_reseed:
            raise UnsupportedCapabilityError("reseed", self.adapter.name)
        if (
            self.options.check_temporal_tables
            and not self.adapter.supports_temporal_tables
        ):
            raise UnsupportedCapabilityError("temporal tables", self.adapter.name)

    async def _build_plan(self, conn: AsyncConnection) -> None:
        # Metadata reads run in a throwaway transaction so the connection
        # is idle again when the first reset() begins its own.
        owns_transaction = not conn.in_transaction()
        try:
            tables = await self.adapter.list_tables(conn, self.options)
            if not tables:
                raise EmptyGraphError()

            if self.options.check_temporal_tables:
                if await self.adapter.check_supports_temporal_tables(conn):
                    self.temporal_tables = await self.adapter.list_temporal_tables(
                        conn, self.options
                    )
                else:
                    logger.info(
                        "Server does not support temporal tables; skipping check"
                    )

            relationships = await self.adapter.list_relationships(conn, self.options)

            reseed = self.options.with_reseed
            if reseed and not await self.adapter.check_supports_reseed(conn):
                logger.info("Nothing to reseed; skipping reseed SQL")
                reseed = False
        finally:
            if owns_transaction and conn.in_transaction():
                await conn.rollback()

        self.graph = GraphBuilder(tables, relationships)
        self.delete_sql = self.adapter.build_delete_sql(self.graph, self.options)
        if reseed:
            self.reseed_sql = self.adapter.build_reseed_sql(self.graph.delete_sequence)

        if self.graph.cyclical_tables:
            logger.warning(
                "Circular foreign keys between %s; constraints are bypassed "
                "for these tables during reset",
                ", ".join(str(t) for t in sorted(self.graph.cyclical_tables)),
            )
        logger.info(
            "Reset plan built (%s): %d tables, %d cyclic, %d temporal",
            self.adapter.name,
            len(self.graph.delete_sequence),
            len(self.graph.cyclical_tables),
            len(self.temporal_tables),
        )
        logger.debug("Delete SQL:\n%s", self.delete_sql)
        if self.reseed_sql:
            logger.debug("Reseed SQL:\n%s", self.reseed_sql)

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------

    async def reset(self, conn: AsyncConnection) -> None:
        """Empty every planned table through ``conn``.

        Raises:
            ConfigurationError: If the plan was never built, or ``conn``
                already has a transaction in progress.
            ExecutionError: If any statement or the COMMIT fails.  The
                delete/reseed transaction is rolled back and versioning is
                restored; a failed restore is logged, not raised.
        """
        if self.delete_sql is None:
            raise ConfigurationError(
                "Reset plan not built. Use Respawner.create() first."
            )
        if conn.in_transaction():
            raise ConfigurationError(
                "Connection already has a transaction in progress. "
                "Commit or roll back before reset."
            )

        if self.temporal_tables:
            await self._run_transaction(
                conn,
                self.adapter.build_turn_off_versioning_sql(self.temporal_tables),
            )

        failed = True
        try:
            statements = self._statements(self.delete_sql)
            if self.reseed_sql:
                statements += self._statements(self.reseed_sql)
            await self._run_transaction(conn, statements)
            failed = False
        finally:
            if self.temporal_tables:
                await self._restore_versioning(conn, failed)

        logger.info("Reset complete (%s)", self.adapter.name)

    async def _restore_versioning(self, conn: AsyncConnection, failed: bool) -> None:
        sql = self.adapter.build_turn_on_versioning_sql(self.temporal_tables)
        if not failed:
            await self._run_transaction(conn, sql)
            return

        logger.warning("Reset failed; restoring system versioning")
        try:
            await self._run_transaction(conn, sql)
        except ExecutionError:
            # the delete failure is the one that propagates
            logger.exception("Could not restore system versioning")

    async def reset_url(self, database_url: str) -> None:
        """Run ``reset()`` over a fresh PostgreSQL connection to ``database_url``."""
        _postgres_options(self.options)
        engine = create_async_engine_pooled(normalize_url(database_url))
        try:
            async with engine.connect() as conn:
                await self.reset(conn)
        finally:
            await engine.dispose()

    def _statements(self, script: str | list[str] | None) -> list[str]:
        if not script:
            return []
        if isinstance(script, list):
            return script
        if self.adapter.requires_statements_executed_individually:
            return split_statements(script)
        return [script]

    async def _run_transaction(
        self,
        conn: AsyncConnection,
        script: str | list[str] | None,
    ) -> None:
        statements = self._statements(script)
        if not statements:
            return

        timeout = self.options.command_timeout
        try:
            async with conn.begin():
                if timeout is not None:
                    timeout_sql = self.adapter.build_command_timeout_sql(timeout)
                    if timeout_sql:
                        await self._execute(conn, timeout_sql)
                for statement in statements:
                    await self._execute(conn, statement)
        except SQLAlchemyError as e:
            # deferred constraints are only checked at COMMIT
            raise ExecutionError(f"Reset transaction failed to commit: {e}", "COMMIT") from e

    async def _execute(self, conn: AsyncConnection, sql: str) -> None:
        timeout = self.options.command_timeout
        try:
            if timeout is None:
                await conn.exec_driver_sql(sql)
            else:
                await asyncio.wait_for(conn.exec_driver_sql(sql), timeout)
        except asyncio.TimeoutError as e:
            raise ExecutionError(
                f"Statement exceeded command timeout of {timeout}s", sql
            ) from e
        except SQLAlchemyError as e:
            raise ExecutionError(f"Reset SQL failed: {e}", sql) from e


def _postgres_options(options: ResetOptions | None) -> ResetOptions:
    options = options or ResetOptions()
    if options.adapter is None:
        return options.with_adapter(PostgresAdapter())
    if not isinstance(options.adapter, PostgresAdapter):
        raise ConfigurationError(
            "Connection-string entry points only support the PostgreSQL adapter; "
            f"got '{options.adapter.name}'. Open a connection and use "
            "Respawner.create() instead."
        )
    return options
