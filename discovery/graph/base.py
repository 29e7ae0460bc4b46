"""GraphStore interface.

Writes (create_entity, create, link) must only be issued from inside a
MutationQueue mutation body. Reads may happen anywhere.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from discovery.assets import Asset
from discovery.graph.types import Entity, Relation


class GraphStore(ABC):

    @abstractmethod
    async def create_entity(self, asset: Asset) -> Entity:
        """Insert the asset or refresh last_seen on the existing entity."""

    @abstractmethod
    async def link(self, from_entity: Entity, relation: str, to_entity: Entity) -> Relation:
        """Insert the edge or refresh last_seen on the existing edge."""

    async def create(self, parent: Optional[Entity], relation: str, asset: Asset) -> Entity:
        entity = await self.create_entity(asset)
        if parent is not None and relation:
            await self.link(parent, relation, entity)
        return entity

    @abstractmethod
    async def find_by_id(self, entity_id: str) -> Optional[Entity]:
        ...

    @abstractmethod
    async def find_by_content(self, asset: Asset) -> Optional[Entity]:
        ...

    @abstractmethod
    async def outgoing_relations(
        self, entity: Entity, since: Optional[datetime] = None, *types: str
    ) -> List[Relation]:
        """Edges leaving entity with last_seen >= since, optionally filtered by type."""

    @abstractmethod
    async def incoming_relations(
        self, entity: Entity, since: Optional[datetime] = None, *types: str
    ) -> List[Relation]:
        ...

    async def close(self) -> None:
        pass
