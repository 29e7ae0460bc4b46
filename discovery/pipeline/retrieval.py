"""
Retrieval policies

How a source turns one subject into raw candidate strings:

- Single: one call.
- Paginated: pages 1..max_pages-1, stopping at the first page that fails or
  comes back empty.
- FirstCredential: one call per configured API key, stopping at the first key
  that yields a non-empty, parseable result.

Every attempt waits on the source's rate limiter first. RetrievalFailure is
absorbed here; it only shrinks the candidate set.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List

from discovery.errors import RetrievalFailure
from discovery.pipeline.context import HandlerContext

logger = logging.getLogger(__name__)


@dataclass
class RetrievalResult:
    names: List[str] = field(default_factory=list)
    attempts: int = 0
    succeeded: bool = False  # at least one attempt returned a parseable answer


class RetrievalPolicy(ABC):
    credentialed = False

    @abstractmethod
    async def retrieve(self, ctx: HandlerContext, name: str) -> RetrievalResult:
        ...


@dataclass
class Single(RetrievalPolicy):
    fetch: Callable[[HandlerContext, str], Awaitable[List[str]]]

    async def retrieve(self, ctx: HandlerContext, name: str) -> RetrievalResult:
        result = RetrievalResult()
        await ctx.limiter.acquire()
        result.attempts += 1
        try:
            result.names = list(await self.fetch(ctx, name))
        except RetrievalFailure as e:
            logger.debug(f"{ctx.spec.name}: retrieval for {name} failed: {e}")
            return result
        result.succeeded = True
        return result


@dataclass
class Paginated(RetrievalPolicy):
    fetch_page: Callable[[HandlerContext, str, int], Awaitable[List[str]]]
    max_pages: int = 20

    async def retrieve(self, ctx: HandlerContext, name: str) -> RetrievalResult:
        result = RetrievalResult()
        for page in range(1, self.max_pages):
            await ctx.limiter.acquire()
            result.attempts += 1
            try:
                names = list(await self.fetch_page(ctx, name, page))
            except RetrievalFailure as e:
                logger.debug(f"{ctx.spec.name}: page {page} for {name} failed: {e}")
                break
            result.succeeded = True
            if not names:
                break
            result.names.extend(names)
        return result


@dataclass
class FirstCredential(RetrievalPolicy):
    fetch: Callable[[HandlerContext, str, str], Awaitable[List[str]]]
    credentialed = True

    async def retrieve(self, ctx: HandlerContext, name: str) -> RetrievalResult:
        result = RetrievalResult()
        for key in ctx.credentials:
            await ctx.limiter.acquire()
            result.attempts += 1
            try:
                names = list(await self.fetch(ctx, name, key))
            except RetrievalFailure as e:
                logger.debug(f"{ctx.spec.name}: credential #{result.attempts} failed for {name}: {e}")
                continue
            result.succeeded = True
            if names:
                result.names = names
                break
        return result
