"""Entity and Relation: graph records returned by every GraphStore."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from discovery.assets import Asset


@dataclass
class Entity:
    id: str
    asset: Asset
    created_at: datetime
    last_seen: datetime


@dataclass
class Relation:
    id: str
    type: str
    from_entity: Entity
    to_entity: Entity
    created_at: datetime
    last_seen: datetime
