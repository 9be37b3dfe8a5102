"""Foreign-key dependency graph: value objects and deletion ordering.

Usage:
    from db_reset.graph import GraphBuilder, Relationship, Table, TemporalTable
"""

from db_reset.graph.builder import GraphBuilder
from db_reset.graph.models import Relationship, Table, TemporalTable

__all__ = [
    "GraphBuilder",
    "Relationship",
    "Table",
    "TemporalTable",
]
