"""Finding: one relationship a pipeline run reports downstream."""

from __future__ import annotations

from dataclasses import dataclass

from discovery.graph.types import Entity


@dataclass
class Finding:
    from_entity: Entity
    from_name: str
    to_entity: Entity
    to_name: str
    rel: str

    def key(self):
        return (self.from_entity.id, self.rel, self.to_entity.id)
