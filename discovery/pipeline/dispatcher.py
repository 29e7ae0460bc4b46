"""Dispatcher: delivers asset events to registered handlers.

Handlers for one asset kind run in priority groups (lower first); handlers
sharing a priority run concurrently. Findings are re-injected as new events
until no unseen assets remain or ``max_depth`` is reached.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set

from discovery.assets import Asset
from discovery.errors import DiscoveryError, InvalidAssetKind
from discovery.findings import Finding
from discovery.pipeline.context import Event
from discovery.pipeline.handler import Handler, Registry
from discovery.session import Session

logger = logging.getLogger(__name__)


class Dispatcher:
    def __init__(self, registry: Registry, session: Session):
        self.registry = registry
        self.session = session

    async def dispatch(self, event: Event) -> List[Finding]:
        """Run every handler registered for the event's asset kind."""
        groups: Dict[int, List[Handler]] = defaultdict(list)
        for handler in self.registry.handlers_for(event.entity.asset.kind):
            groups[handler.priority].append(handler)

        findings: List[Finding] = []
        for priority in sorted(groups):
            if self.session.done:
                break
            handlers = groups[priority]
            results = await asyncio.gather(
                *(handler(event) for handler in handlers), return_exceptions=True
            )
            for handler, result in zip(handlers, results):
                if isinstance(result, InvalidAssetKind):
                    logger.debug(f"{handler.name}: {result}")
                elif isinstance(result, DiscoveryError):
                    logger.error(f"{handler.name} failed for {event.entity.asset.label}: {result}")
                elif isinstance(result, asyncio.CancelledError):
                    raise result
                elif isinstance(result, BaseException):
                    logger.error(
                        f"{handler.name} crashed for {event.entity.asset.label}: {result}",
                        exc_info=result,
                    )
                elif result:
                    findings.extend(result)
        return findings

    async def seed(self, asset: Asset) -> Event:
        """Persist a seed asset and wrap it in an event."""
        store = self.session.store
        entity = await self.session.queue.submit(lambda: store.create_entity(asset))
        return Event(entity=entity, session=self.session)

    async def run(
        self,
        seeds: Iterable[Asset],
        max_depth: int = 1,
        meta: Optional[Dict[str, object]] = None,
    ) -> List[Finding]:
        """Breadth-first discovery from seed assets.

        ``meta`` maps an asset key to pre-fetched evidence for that seed.
        Each entity is dispatched at most once per run.
        """
        meta = meta or {}
        frontier: List[Event] = []
        for asset in seeds:
            event = await self.seed(asset)
            event.meta = meta.get(asset.key)
            frontier.append(event)

        seen: Set[str] = {event.entity.id for event in frontier}
        all_findings: List[Finding] = []
        reported: Set[tuple] = set()

        while frontier and not self.session.done:
            batches = await asyncio.gather(*(self.dispatch(event) for event in frontier))
            next_frontier: List[Event] = []
            for event, findings in zip(frontier, batches):
                for finding in findings:
                    if finding.key() not in reported:
                        reported.add(finding.key())
                        all_findings.append(finding)
                    target = finding.to_entity
                    if event.depth + 1 > max_depth or target.id in seen:
                        continue
                    seen.add(target.id)
                    next_frontier.append(
                        Event(entity=target, session=self.session, depth=event.depth + 1)
                    )
            frontier = next_frontier

        logger.info(f"Discovery finished with {len(all_findings)} findings")
        return all_findings
