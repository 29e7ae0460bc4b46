"""Asset graph stores."""

from discovery.graph.base import GraphStore
from discovery.graph.memory import MemoryGraphStore
from discovery.graph.types import Entity, Relation

__all__ = [
    "GraphStore",
    "MemoryGraphStore",
    "Entity",
    "Relation",
]
