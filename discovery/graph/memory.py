"""In-process GraphStore used for single runs and tests."""

from __future__ import annotations

import itertools
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from discovery.assets import Asset
from discovery.graph.base import GraphStore
from discovery.graph.types import Entity, Relation


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MemoryGraphStore(GraphStore):
    """Dictionary-backed store. Not safe for concurrent writers."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self.clock = clock
        self._ids = itertools.count(1)
        self._entities: Dict[str, Entity] = {}
        self._by_content: Dict[Tuple[str, str], str] = {}
        self._edges: Dict[Tuple[str, str, str], Relation] = {}

    async def create_entity(self, asset: Asset) -> Entity:
        now = self.clock()
        content_key = (str(asset.kind), asset.key)
        existing_id = self._by_content.get(content_key)
        if existing_id is not None:
            entity = self._entities[existing_id]
            entity.last_seen = now
            return entity

        entity = Entity(id=str(next(self._ids)), asset=asset, created_at=now, last_seen=now)
        self._entities[entity.id] = entity
        self._by_content[content_key] = entity.id
        return entity

    async def link(self, from_entity: Entity, relation: str, to_entity: Entity) -> Relation:
        now = self.clock()
        edge_key = (from_entity.id, relation, to_entity.id)
        edge = self._edges.get(edge_key)
        if edge is not None:
            edge.last_seen = now
            return edge

        edge = Relation(
            id=str(next(self._ids)),
            type=relation,
            from_entity=self._entities.get(from_entity.id, from_entity),
            to_entity=self._entities.get(to_entity.id, to_entity),
            created_at=now,
            last_seen=now,
        )
        self._edges[edge_key] = edge
        return edge

    async def find_by_id(self, entity_id: str) -> Optional[Entity]:
        return self._entities.get(entity_id)

    async def find_by_content(self, asset: Asset) -> Optional[Entity]:
        entity_id = self._by_content.get((str(asset.kind), asset.key))
        return self._entities.get(entity_id) if entity_id else None

    async def outgoing_relations(
        self, entity: Entity, since: Optional[datetime] = None, *types: str
    ) -> List[Relation]:
        return [
            edge for (from_id, rtype, _), edge in self._edges.items()
            if from_id == entity.id and self._matches(edge, rtype, since, types)
        ]

    async def incoming_relations(
        self, entity: Entity, since: Optional[datetime] = None, *types: str
    ) -> List[Relation]:
        return [
            edge for (_, rtype, to_id), edge in self._edges.items()
            if to_id == entity.id and self._matches(edge, rtype, since, types)
        ]

    @staticmethod
    def _matches(edge: Relation, rtype: str, since: Optional[datetime], types) -> bool:
        if types and rtype not in types:
            return False
        if since is not None and edge.last_seen < since:
            return False
        return True

    def __len__(self) -> int:
        return len(self._entities)
