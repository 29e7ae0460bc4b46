"""Session: shared state for one discovery run.

Owns the mutation queue, the per-source rate limiters, the revisit cache and
the HTTP client. Passed to every pipeline invocation through the Event; there
is no module-level mutable state.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

import httpx

from discovery import http
from discovery.assets import Source
from discovery.config import Config
from discovery.errors import SourceUnavailable
from discovery.graph.base import GraphStore
from discovery.graph.memory import MemoryGraphStore
from discovery.graph.types import Entity
from discovery.queue import MutationQueue
from discovery.ratelimit import RateLimiter
from discovery.scope import DomainScope, ScopeFilter
from discovery.ttl import RevisitCache

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Session:
    def __init__(
        self,
        config: Config,
        scope: Optional[ScopeFilter] = None,
        store: Optional[GraphStore] = None,
        clock: Callable[[], datetime] = utcnow,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config
        self.scope = scope if scope is not None else DomainScope.from_config(config.scope)
        self.clock = clock
        self.store = store if store is not None else MemoryGraphStore(clock=clock)
        self.queue = MutationQueue()
        self.cache = RevisitCache(self)
        self.http = http_client
        self._owns_http = http_client is None
        self._limiters: Dict[str, RateLimiter] = {}
        self._sources: Dict[str, Entity] = {}
        self._source_lock = asyncio.Lock()
        self._done = asyncio.Event()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    async def start(self):
        if self.http is None:
            self.http = http.client()
        await self.queue.start()
        logger.info("Session started")

    async def close(self):
        """Terminate the session. Queued mutations observe ``done`` and no-op."""
        self._done.set()
        await self.queue.stop()
        if self._owns_http and self.http is not None:
            await self.http.aclose()
            self.http = None
        logger.info("Session closed")

    async def __aenter__(self) -> "Session":
        await self.start()
        return self

    async def __aexit__(self, *exc):
        await self.close()

    def limiter_for(self, name: str, rate: float, per: float = 1.0) -> RateLimiter:
        """The rate limiter of a source, created on first use and shared afterwards."""
        limiter = self._limiters.get(name)
        if limiter is None:
            limiter = RateLimiter(rate, per)
            self._limiters[name] = limiter
        return limiter

    async def get_source(self, source: Source) -> Entity:
        """Resolve (creating if needed) the graph node for a source."""
        cached = self._sources.get(source.name)
        if cached is not None:
            return cached

        async with self._source_lock:
            cached = self._sources.get(source.name)
            if cached is not None:
                return cached

            async def mutation():
                if self.done:
                    return None
                return await self.store.create_entity(source)

            try:
                entity = await self.queue.submit(mutation)
            except Exception as e:
                raise SourceUnavailable(
                    f"failed to obtain the source information for {source.name}: {e}"
                ) from e
            if entity is None:
                raise SourceUnavailable(f"failed to obtain the source information for {source.name}")

            self._sources[source.name] = entity
            return entity
