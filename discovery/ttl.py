"""
Revisit cache (TTL gate)

A subject is freshly monitored by a source when a ``subject -[source]-> source``
edge was seen at or after ``now - ttl``. Fresh subjects are answered from the
graph instead of the external source.

Writes go through the session's MutationQueue, so a concurrent reader never
sees the freshness edge before the data it vouches for.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, List

from discovery.config import Config
from discovery.errors import ConfigurationMissing
from discovery.graph.types import Entity, Relation

if TYPE_CHECKING:
    from discovery.session import Session

logger = logging.getLogger(__name__)

SOURCE_RELATION = "source"


def ttl_start_time(
    config: Config, subject_kind: str, evidence_kind: str, source_name: str, now: datetime
) -> datetime:
    """Return ``now - ttl`` for the pairing, or raise ConfigurationMissing."""
    ttl = config.ttl_minutes(subject_kind, evidence_kind, source_name)
    if ttl is None:
        raise ConfigurationMissing(
            f"failed to obtain the TTL for {subject_kind}->{evidence_kind} ({source_name})"
        )
    return now - timedelta(minutes=ttl)


class RevisitCache:
    """TTL-gated reuse of prior results, keyed by (subject, evidence kind, source)."""

    def __init__(self, session: Session):
        self.session = session

    def since(self, subject_kind: str, evidence_kind: str, source_name: str) -> datetime:
        return ttl_start_time(
            self.session.config, subject_kind, evidence_kind, source_name, self.session.clock()
        )

    async def is_fresh(self, subject: Entity, source: Entity, since: datetime) -> bool:
        rels = await self.session.store.outgoing_relations(subject, since, SOURCE_RELATION)
        return any(rel.to_entity.id == source.id for rel in rels)

    async def mark_fresh(self, subject: Entity, source: Entity) -> bool:
        """Record (or refresh) the subject->source edge. Idempotent."""
        session = self.session

        async def mutation():
            if session.done:
                return False
            await session.store.link(subject, SOURCE_RELATION, source)
            return True

        return await session.queue.submit(mutation)

    async def has_source(self, entity: Entity, source: Entity, since: datetime) -> bool:
        rels = await self.session.store.outgoing_relations(entity, since, SOURCE_RELATION)
        return any(rel.to_entity.id == source.id for rel in rels)

    async def reuse(
        self,
        subject: Entity,
        evidence_kind: str,
        source: Entity,
        since: datetime,
        *relations: str,
    ) -> List[Relation]:
        """Prior results of ``evidence_kind`` reachable from subject via this source.

        Only edges and targets seen at or after ``since`` qualify, and each target
        must carry its own source edge to ``source``. Never contacts the network.
        """
        session = self.session

        async def read():
            if session.done:
                return []
            found = []
            for rel in await session.store.outgoing_relations(subject, since, *relations):
                target = rel.to_entity
                if target.asset.kind != evidence_kind or target.last_seen < since:
                    continue
                if not await self.has_source(target, source, since):
                    continue
                found.append(rel)
            return found

        found = await session.queue.submit(read)
        logger.debug(f"Reused {len(found)} {evidence_kind} results for {subject.asset.label}")
        return found
