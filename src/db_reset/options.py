"""Reset options: what to include, what to skip, and side steps to run.

Usage:
    from db_reset.options import ResetOptions

    options = ResetOptions(
        tables_to_ignore=["public.schema_migrations"],
        schemas_to_exclude=["audit"],
        with_reseed=True,
        command_timeout=30,
    )
"""

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from db_reset.graph.models import Table

if TYPE_CHECKING:
    from db_reset.adapters.base import DialectAdapter


class ResetOptions(BaseModel):
    """Filter and behavior options for building a reset plan.

    Table and schema filters are two independent axes.  On the schema
    axis an exclude list, when given, wins and the include list is
    ignored; the table axis applies both its lists.

    Attributes:
        tables_to_ignore: Tables never reset.  Accepts ``Table`` objects or
            ``"schema.name"`` / ``"name"`` strings; a table without a schema
            matches that name in every schema.
        tables_to_include: When non-empty, only these tables are reset.
        schemas_to_include: When non-empty (and no exclude list), only these
            schemas are reset.
        schemas_to_exclude: Schemas never reset.
        with_reseed: Reset identity/sequence counters after deleting.
        check_temporal_tables: Suspend system versioning around the delete.
        command_timeout: Statement timeout in seconds, forwarded to every
            executed transaction.  ``None`` leaves the server default.
        format_delete_statement: Optional hook rendering the DELETE statement
            for one table (dialects that emit per-table DELETEs).
        adapter: Dialect adapter.  ``None`` infers it from the connection.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    tables_to_ignore: list[Table] = Field(default_factory=list)
    tables_to_include: list[Table] = Field(default_factory=list)
    schemas_to_include: list[str] = Field(default_factory=list)
    schemas_to_exclude: list[str] = Field(default_factory=list)
    with_reseed: bool = False
    check_temporal_tables: bool = False
    command_timeout: int | None = None
    format_delete_statement: Callable[[Table], str] | None = None
    adapter: Any = None  # DialectAdapter; Protocol types can't be validated

    @field_validator("tables_to_ignore", "tables_to_include", mode="before")
    @classmethod
    def _parse_tables(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple, set, frozenset)):
            return [Table.parse(item) for item in value]
        return value

    def with_adapter(self, adapter: "DialectAdapter") -> "ResetOptions":
        """Return a copy bound to ``adapter``."""
        return self.model_copy(update={"adapter": adapter})
