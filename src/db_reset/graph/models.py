"""Value objects for the foreign-key dependency graph.

This module contains graph-domain models:
- Table: schema-qualified table identifier (case-insensitive identity)
- Relationship: one foreign-key constraint between two tables
- TemporalTable: system-versioned table paired with its history table

None of these objects carry adjacency -- edges live in
``db_reset.graph.builder.GraphBuilder``'s index arena.
"""

from dataclasses import dataclass
from functools import total_ordering


@total_ordering
@dataclass(frozen=True, eq=False)
class Table:
    """A relational table identified by optional schema and name.

    Equality, hashing and ordering are case-insensitive on the
    ``(schema, name)`` pair.  A ``None`` schema only equals another
    ``None`` schema.

    Example:
        >>> Table("dbo", "Users") == Table("DBO", "users")
        True
        >>> Table.parse("public.orders")
        Table(schema='public', name='orders')
    """

    schema: str | None
    name: str

    @classmethod
    def parse(cls, value: "str | Table") -> "Table":
        """Build a Table from ``"schema.name"`` or ``"name"``."""
        if isinstance(value, Table):
            return value
        schema, sep, name = value.rpartition(".")
        if not sep:
            return cls(None, value)
        return cls(schema or None, name)

    @property
    def _key(self) -> tuple[str | None, str]:
        return (
            self.schema.casefold() if self.schema is not None else None,
            self.name.casefold(),
        )

    @property
    def sort_key(self) -> tuple[str, str]:
        """Case-insensitive ``(schema, name)`` key for deterministic output."""
        return (self.schema or "").casefold(), self.name.casefold()

    def full_name(self, quote: str = '"') -> str:
        """Render the quoted, schema-qualified name.

        Args:
            quote: Identifier quote character.  ``"["`` renders SQL Server
                style ``[schema].[name]``.
        """
        close = "]" if quote == "[" else quote
        if self.schema is None:
            return f"{quote}{self.name}{close}"
        return f"{quote}{self.schema}{close}.{quote}{self.name}{close}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Table):
            return NotImplemented
        return self._key == other._key

    def __lt__(self, other: "Table") -> bool:
        if not isinstance(other, Table):
            return NotImplemented
        return self.sort_key < other.sort_key

    def __hash__(self) -> int:
        return hash(self._key)

    def __str__(self) -> str:
        return self.name if self.schema is None else f"{self.schema}.{self.name}"


@dataclass(frozen=True, eq=False)
class Relationship:
    """A foreign-key constraint.

    ``primary_key_table`` is the referenced table, ``foreign_key_table``
    the referencing one.  Identity is the constraint name alone, so the
    multiple rows some dialects return for a multi-column key collapse
    into one relationship inside a set.
    """

    primary_key_table: Table
    foreign_key_table: Table
    name: str

    @property
    def is_self_referencing(self) -> bool:
        return self.primary_key_table == self.foreign_key_table

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Relationship):
            return NotImplemented
        return self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)

    def __str__(self) -> str:
        return f"{self.primary_key_table} -> {self.foreign_key_table} [{self.name}]"


@dataclass(frozen=True)
class TemporalTable:
    """A system-versioned table and the history table it writes to."""

    schema: str | None
    name: str
    history_table_schema: str | None
    history_table_name: str

    @property
    def table(self) -> Table:
        return Table(self.schema, self.name)

    @property
    def history_table(self) -> Table:
        return Table(self.history_table_schema, self.history_table_name)
