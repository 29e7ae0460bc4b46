"""SourcePipeline: the control discipline every source plugin runs.

validate -> scope check -> resolve source -> TTL decision ->
    fresh:  reuse prior results from the graph
    stale:  rate-limited fetch -> normalize -> scope filter -> dedup -> store -> mark fresh
-> findings
"""

from __future__ import annotations

import logging
from typing import List

from discovery.dedup import DedupSet
from discovery.errors import DiscoveryError, InvalidAssetKind
from discovery.findings import Finding
from discovery.graph.types import Entity
from discovery.pipeline.context import Event, HandlerContext
from discovery.pipeline.handler import Handler
from discovery.pipeline.retrieval import RetrievalResult
from discovery.pipeline.source import SourceSpec
from discovery.session import Session
from discovery.ttl import SOURCE_RELATION

logger = logging.getLogger(__name__)


class SourcePipeline:
    """Generic pipeline parameterized by a SourceSpec."""

    def __init__(self, spec: SourceSpec):
        self.spec = spec
        self.log = logging.getLogger(f"{__name__}.{spec.name}")

    def handler(self) -> Handler:
        return Handler(
            name=self.spec.handler_name,
            event_type=self.spec.subject_kind,
            callback=self.run,
            priority=self.spec.priority,
            max_instances=self.spec.max_instances,
            transforms=[str(self.spec.evidence_kind)],
        )

    async def run(self, event: Event) -> List[Finding]:
        spec = self.spec
        session = event.session
        entity = event.entity
        subject = entity.asset

        if subject.kind != spec.subject_kind:
            raise InvalidAssetKind(str(spec.subject_kind), str(subject.kind))
        if session.done:
            return []

        credentials: List[str] = []
        if spec.credentialed:
            credentials = session.config.credentials(spec.name)
            if not credentials:
                return []

        canonical, conf = session.scope.is_asset_in_scope(subject, 0)
        if conf == 0 or canonical is None:
            return []
        if canonical.kind != subject.kind or canonical.key.lower() != subject.key.lower():
            return []

        try:
            src = await session.get_source(spec.source)
            since = session.cache.since(str(spec.subject_kind), str(spec.evidence_kind), spec.name)
        except DiscoveryError as e:
            self.log.error(f"{spec.name}: {subject.label}: {e}")
            raise

        if await session.cache.is_fresh(entity, src, since):
            rels = await session.cache.reuse(entity, str(spec.evidence_kind), src, since, spec.relation)
            findings = [self._finding(entity, rel.to_entity, rel.type) for rel in rels]
            self.log.debug(f"{spec.name}: {subject.label} is fresh, reused {len(findings)} results")
        else:
            ctx = HandlerContext(
                session=session,
                spec=spec,
                limiter=session.limiter_for(spec.name, spec.rate),
                http=session.http,
                credentials=credentials,
                event=event,
            )
            findings = await self.query(ctx, entity, src)

        if findings:
            self.log.info(f"{spec.name}: {len(findings)} findings for {subject.label}")
        return findings

    async def query(self, ctx: HandlerContext, entity: Entity, src: Entity) -> List[Finding]:
        spec = self.spec
        session = ctx.session

        result: RetrievalResult = await spec.retrieval.retrieve(ctx, entity.asset.label)
        values = self.filter(session, result.names)

        if session.done:
            self.log.debug(f"{spec.name}: session done, discarding {len(values)} results")
            return []

        try:
            stored = await self.store(session, entity, values, src)
        except Exception as e:
            self.log.error(f"{spec.name}: failed to store results for {entity.asset.label}: {e}")
            return []

        # Only after the batch above has committed
        if result.succeeded and not session.done:
            await session.cache.mark_fresh(entity, src)
        return [self._finding(entity, target, spec.relation) for target in stored]

    def filter(self, session: Session, names: List[str]) -> DedupSet:
        """Normalize, drop out-of-scope values and duplicates."""
        values = DedupSet()
        for raw in names:
            value = self.spec.normalize(raw)
            if not value:
                continue
            _, conf = session.scope.is_asset_in_scope(self.spec.candidate(value), 0)
            if conf > 0:
                values.insert(value)
        return values

    async def store(self, session: Session, entity: Entity, values: DedupSet, src: Entity) -> List[Entity]:
        if not len(values):
            return []
        spec = self.spec
        store = session.store

        async def mutation():
            if session.done:
                return []
            stored = []
            for value in sorted(values.values()):
                target = await store.create(entity, spec.relation, spec.candidate(value))
                await store.link(target, SOURCE_RELATION, src)
                stored.append(target)
            return stored

        return await session.queue.submit(mutation)

    def _finding(self, entity: Entity, target: Entity, rel: str) -> Finding:
        return Finding(
            from_entity=entity,
            from_name=entity.asset.label,
            to_entity=target,
            to_name=target.asset.label,
            rel=rel,
        )
