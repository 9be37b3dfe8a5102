"""Deletion-order computation over the foreign-key dependency graph.

``GraphBuilder`` takes the full set of tables and foreign-key
relationships discovered for a database and produces:

- ``to_delete``: tables in an order that never violates a foreign key
  when rows are deleted in sequence (referencing tables first).
- ``cyclical_tables``: tables that sit on a foreign-key cycle and so
  cannot be ordered.  They never appear in ``to_delete``.
- ``cyclical_table_relationships``: the relationships touching a cyclic
  table, which dialects disable around the delete script.

Tables live in a sorted list (the arena) and edges are integer
adjacency lists keyed by arena index.  Both graph walks use explicit
stacks, so schema depth never touches the interpreter recursion limit.

Usage:
    from db_reset.graph.builder import GraphBuilder
    from db_reset.graph.models import Relationship, Table

    users, orders = Table("public", "users"), Table("public", "orders")
    graph = GraphBuilder(
        [users, orders],
        [Relationship(users, orders, "fk_orders_users")],
    )
    graph.to_delete
    # (Table(schema='public', name='orders'), Table(schema='public', name='users'))
"""

import logging
from collections.abc import Iterable

from db_reset.graph.models import Relationship, Table

logger = logging.getLogger(__name__)

_NOT_VISITED = 0
_VISITING = 1
_VISITED = 2
_CYCLIC = 3


class GraphBuilder:
    """Builds the deletion order and isolates cyclic tables.

    The computation runs once in ``__init__``; the results are read-only
    tuples and frozensets.  Malformed input never raises: relationships
    whose endpoints are not in ``tables`` are dropped, self references
    add no edge, and an all-cyclic graph simply yields an empty
    ``to_delete``.

    Ordering is deterministic.  Tables are walked in case-insensitive
    ``(schema, name)`` order, so tables with no dependency between them
    come out alphabetically.

    Args:
        tables: Tables to order.  Duplicates (case-insensitive) collapse.
        relationships: Foreign keys between those tables.  Duplicates by
            constraint name collapse; the first one seen wins.
    """

    def __init__(
        self,
        tables: Iterable[Table],
        relationships: Iterable[Relationship],
    ) -> None:
        self._tables: list[Table] = sorted(set(tables))
        self._index: dict[Table, int] = {
            table: i for i, table in enumerate(self._tables)
        }
        self._relationships: tuple[Relationship, ...] = tuple(
            dict.fromkeys(relationships)
        )
        self._adjacency: list[list[int]] = self._build_adjacency()

        cyclic = self._find_cycles()
        order = self._build_delete_order(cyclic)

        self.to_delete: tuple[Table, ...] = tuple(self._tables[i] for i in order)
        self.cyclical_tables: frozenset[Table] = frozenset(
            self._tables[i] for i in cyclic
        )
        self.cyclical_table_relationships: tuple[Relationship, ...] = (
            self._select_cyclic_relationships()
        )

        logger.debug(
            "Dependency graph: %d tables, %d edges, %d to delete, %d cyclic",
            len(self._tables),
            sum(len(targets) for targets in self._adjacency),
            len(self.to_delete),
            len(self.cyclical_tables),
        )

    @property
    def tables(self) -> tuple[Table, ...]:
        """All distinct input tables in arena order."""
        return tuple(self._tables)

    @property
    def relationships(self) -> tuple[Relationship, ...]:
        """All distinct input relationships."""
        return self._relationships

    @property
    def delete_sequence(self) -> tuple[Table, ...]:
        """Every table to empty: ``to_delete`` then the cyclic tables.

        Dialects delete the cyclic tables last, after disabling the
        constraints in ``cyclical_table_relationships``.
        """
        return self.to_delete + tuple(sorted(self.cyclical_tables))

    @property
    def edges(self) -> tuple[tuple[Table, Table], ...]:
        """Resolved ``(referenced, referencing)`` pairs, in arena order."""
        return tuple(
            (self._tables[source], self._tables[target])
            for source, targets in enumerate(self._adjacency)
            for target in targets
        )

    # ------------------------------------------------------------------
    # Edge construction
    # ------------------------------------------------------------------

    def _resolve(self, table: Table, by_name: dict[str, list[int]]) -> int | None:
        """Find the arena index of a relationship endpoint.

        Exact ``(schema, name)`` match first.  An endpoint without a schema
        (SQLite reports none) falls back to a unique match on name.
        """
        index = self._index.get(table)
        if index is not None:
            return index
        if table.schema is None:
            candidates = by_name.get(table.name.casefold(), [])
            if len(candidates) == 1:
                return candidates[0]
        return None

    def _build_adjacency(self) -> list[list[int]]:
        by_name: dict[str, list[int]] = {}
        for i, table in enumerate(self._tables):
            by_name.setdefault(table.name.casefold(), []).append(i)

        targets: list[set[int]] = [set() for _ in self._tables]
        for relationship in self._relationships:
            source = self._resolve(relationship.primary_key_table, by_name)
            target = self._resolve(relationship.foreign_key_table, by_name)
            if source is None or target is None:
                logger.debug("Skipping unresolved relationship %s", relationship)
                continue
            if source == target:
                continue
            targets[source].add(target)

        # Arena order is sorted, so sorted indices visit children alphabetically
        return [sorted(t) for t in targets]

    # ------------------------------------------------------------------
    # Cycle detection
    # ------------------------------------------------------------------

    def _find_cycles(self) -> set[int]:
        """Classify every table as acyclic or cyclic.

        Each pass runs a depth-first search from the first unclassified
        table.  A pass that reaches a back edge marks the cycle on the
        current path as cyclic and returns the rest of the path to the
        unvisited pool; a pass that completes marks everything it
        finished as visited.  Every pass classifies at least one table,
        so the loop ends.
        """
        state = [_NOT_VISITED] * len(self._tables)
        cyclic: set[int] = set()
        cursor = 0

        while True:
            while cursor < len(state) and state[cursor] != _NOT_VISITED:
                cursor += 1
            if cursor == len(state):
                break

            cycle, path = self._search_from(cursor, state)
            for node in cycle:
                state[node] = _CYCLIC
            cyclic.update(cycle)
            for node in path:
                if state[node] == _VISITING:
                    state[node] = _NOT_VISITED
                    cursor = min(cursor, node)

        return cyclic

    def _search_from(self, start: int, state: list[int]) -> tuple[list[int], list[int]]:
        """Iterative DFS from ``start``.

        Returns:
            ``(cycle, path)`` when a back edge is found -- ``cycle`` is the
            slice of ``path`` from the back-edge target to the top.
            ``([], [])`` when the search finished without one.
        """
        stack: list[list[int]] = [[start, 0]]
        state[start] = _VISITING

        while stack:
            frame = stack[-1]
            node, position = frame
            edges = self._adjacency[node]

            if position == len(edges):
                stack.pop()
                state[node] = _VISITED
                continue

            frame[1] += 1
            target = edges[position]
            target_state = state[target]

            if target_state in (_VISITED, _CYCLIC):
                continue
            if target_state == _VISITING:
                path = [n for n, _ in stack]
                return path[path.index(target):], path

            state[target] = _VISITING
            stack.append([target, 0])

        return [], []

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    def _build_delete_order(self, cyclic: set[int]) -> list[int]:
        """Post-order walk of the acyclic remainder: children before parents.

        Cyclic tables start out marked as seen so the walk never enters
        them.
        """
        seen = [False] * len(self._tables)
        for node in cyclic:
            seen[node] = True

        order: list[int] = []
        for root in range(len(self._tables)):
            if seen[root]:
                continue
            seen[root] = True
            stack: list[list[int]] = [[root, 0]]
            while stack:
                frame = stack[-1]
                node, position = frame
                edges = self._adjacency[node]
                if position < len(edges):
                    frame[1] += 1
                    target = edges[position]
                    if not seen[target]:
                        seen[target] = True
                        stack.append([target, 0])
                else:
                    stack.pop()
                    order.append(node)

        return order

    def _select_cyclic_relationships(self) -> tuple[Relationship, ...]:
        """Relationships with either end named like a cyclic table.

        Matching is on table name alone, ignoring schema.
        """
        names = {table.name.casefold() for table in self.cyclical_tables}
        selected = [
            relationship
            for relationship in self._relationships
            if relationship.primary_key_table.name.casefold() in names
            or relationship.foreign_key_table.name.casefold() in names
        ]
        return tuple(sorted(selected, key=lambda r: r.name))
