"""
PostgreSQL-backed GraphStore

Entities and edges live in two tables (graph_entities, graph_edges). Upserts
use ON CONFLICT ... DO UPDATE so that re-observing an asset or relation only
refreshes its last_seen timestamp.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import List, Optional

import asyncpg

from discovery.assets import Asset, asset_from_dict, asset_to_dict
from discovery.graph.base import GraphStore
from discovery.graph.types import Entity, Relation

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS graph_entities (
    id          BIGSERIAL PRIMARY KEY,
    etype       TEXT NOT NULL,
    ekey        TEXT NOT NULL,
    content     JSONB NOT NULL,
    created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    last_seen   TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (etype, ekey)
);

CREATE TABLE IF NOT EXISTS graph_edges (
    id              BIGSERIAL PRIMARY KEY,
    etype           TEXT NOT NULL,
    from_entity_id  BIGINT NOT NULL REFERENCES graph_entities(id) ON DELETE CASCADE,
    to_entity_id    BIGINT NOT NULL REFERENCES graph_entities(id) ON DELETE CASCADE,
    created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    last_seen       TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (etype, from_entity_id, to_entity_id)
);

CREATE INDEX IF NOT EXISTS graph_edges_from_idx ON graph_edges (from_entity_id, etype, last_seen);
CREATE INDEX IF NOT EXISTS graph_edges_to_idx ON graph_edges (to_entity_id, etype, last_seen);
"""

_EDGE_SELECT = """
    SELECT e.id, e.etype, e.created_at, e.last_seen,
           f.id AS f_id, f.etype AS f_etype, f.content AS f_content,
           f.created_at AS f_created_at, f.last_seen AS f_last_seen,
           t.id AS t_id, t.etype AS t_etype, t.content AS t_content,
           t.created_at AS t_created_at, t.last_seen AS t_last_seen
    FROM graph_edges e
    JOIN graph_entities f ON f.id = e.from_entity_id
    JOIN graph_entities t ON t.id = e.to_entity_id
"""


def _entity_from_row(row, prefix: str = "") -> Entity:
    content = row[f"{prefix}content"]
    if isinstance(content, str):
        content = json.loads(content)
    return Entity(
        id=str(row[f"{prefix}id"]),
        asset=asset_from_dict(row[f"{prefix}etype"], content),
        created_at=row[f"{prefix}created_at"],
        last_seen=row[f"{prefix}last_seen"],
    )


def _relation_from_row(row) -> Relation:
    return Relation(
        id=str(row["id"]),
        type=row["etype"],
        from_entity=_entity_from_row(row, "f_"),
        to_entity=_entity_from_row(row, "t_"),
        created_at=row["created_at"],
        last_seen=row["last_seen"],
    )


class PostgresGraphStore(GraphStore):
    """asyncpg-backed graph store."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    @classmethod
    async def connect(cls, db_url: str, min_size: int = 1, max_size: int = 5) -> "PostgresGraphStore":
        pool = await asyncpg.create_pool(db_url, min_size=min_size, max_size=max_size)
        store = cls(pool)
        await store.ensure_schema()
        return store

    async def ensure_schema(self) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(SCHEMA)
        logger.info("Graph schema ready")

    async def create_entity(self, asset: Asset) -> Entity:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO graph_entities (etype, ekey, content)
                VALUES ($1, $2, $3::JSONB)
                ON CONFLICT (etype, ekey) DO UPDATE SET last_seen = NOW()
                RETURNING id, etype, content, created_at, last_seen
                """,
                str(asset.kind),
                asset.key,
                json.dumps(asset_to_dict(asset)),
            )
        return _entity_from_row(row)

    async def link(self, from_entity: Entity, relation: str, to_entity: Entity) -> Relation:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO graph_edges (etype, from_entity_id, to_entity_id)
                VALUES ($1, $2, $3)
                ON CONFLICT (etype, from_entity_id, to_entity_id) DO UPDATE SET last_seen = NOW()
                RETURNING id, etype, created_at, last_seen
                """,
                relation,
                int(from_entity.id),
                int(to_entity.id),
            )
        return Relation(
            id=str(row["id"]),
            type=row["etype"],
            from_entity=from_entity,
            to_entity=to_entity,
            created_at=row["created_at"],
            last_seen=row["last_seen"],
        )

    async def find_by_id(self, entity_id: str) -> Optional[Entity]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT id, etype, content, created_at, last_seen FROM graph_entities WHERE id = $1",
                int(entity_id),
            )
        return _entity_from_row(row) if row else None

    async def find_by_content(self, asset: Asset) -> Optional[Entity]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT id, etype, content, created_at, last_seen
                FROM graph_entities WHERE etype = $1 AND ekey = $2
                """,
                str(asset.kind),
                asset.key,
            )
        return _entity_from_row(row) if row else None

    async def outgoing_relations(
        self, entity: Entity, since: Optional[datetime] = None, *types: str
    ) -> List[Relation]:
        return await self._relations("e.from_entity_id", entity, since, types)

    async def incoming_relations(
        self, entity: Entity, since: Optional[datetime] = None, *types: str
    ) -> List[Relation]:
        return await self._relations("e.to_entity_id", entity, since, types)

    async def _relations(self, column: str, entity: Entity, since, types) -> List[Relation]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                _EDGE_SELECT
                + f"""
                WHERE {column} = $1
                  AND ($2::TIMESTAMPTZ IS NULL OR e.last_seen >= $2)
                  AND (cardinality($3::TEXT[]) = 0 OR e.etype = ANY($3))
                ORDER BY e.id ASC
                """,
                int(entity.id),
                since,
                list(types),
            )
        return [_relation_from_row(row) for row in rows]

    async def close(self) -> None:
        await self.pool.close()
