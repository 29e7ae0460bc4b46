"""Event and HandlerContext: what handlers and fetch functions receive."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, List, Optional

if TYPE_CHECKING:
    import httpx
    from discovery.graph.types import Entity
    from discovery.pipeline.source import SourceSpec
    from discovery.ratelimit import RateLimiter
    from discovery.session import Session


@dataclass
class Event:
    entity: Entity
    session: Session
    meta: Optional[Any] = None  # pre-fetched evidence, e.g. an RDAP record
    depth: int = 0


@dataclass
class HandlerContext:
    session: Session
    spec: SourceSpec
    limiter: RateLimiter
    http: Optional[httpx.AsyncClient] = None
    credentials: List[str] = field(default_factory=list)
    event: Optional[Event] = None
