"""Handler types and registration."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from discovery.assets import AssetKind
from discovery.findings import Finding
from discovery.pipeline.context import Event

logger = logging.getLogger(__name__)


@dataclass
class Handler:
    name: str
    event_type: AssetKind
    callback: Callable[[Event], Awaitable[List[Finding]]]
    priority: int = 5
    max_instances: int = 0  # 0 = unbounded
    transforms: List[str] = field(default_factory=list)
    _slots: Optional[asyncio.Semaphore] = field(default=None, init=False, repr=False)

    def __post_init__(self):
        if self.max_instances > 0:
            self._slots = asyncio.Semaphore(self.max_instances)

    async def __call__(self, event: Event) -> List[Finding]:
        if self._slots is None:
            return await self.callback(event)
        async with self._slots:
            return await self.callback(event)


class Registry:
    """Handlers by asset kind, ordered by priority (lower runs first)."""

    def __init__(self):
        self._handlers: Dict[str, Handler] = {}

    def register_handler(self, handler: Handler) -> None:
        if handler.name in self._handlers:
            raise ValueError(f"handler {handler.name} is already registered")
        self._handlers[handler.name] = handler
        logger.info(
            f"Registered handler {handler.name} for {handler.event_type} "
            f"(priority={handler.priority}, max_instances={handler.max_instances})"
        )

    def handlers_for(self, kind: str) -> List[Handler]:
        matching = [h for h in self._handlers.values() if h.event_type == kind]
        return sorted(matching, key=lambda h: h.priority)

    def __len__(self) -> int:
        return len(self._handlers)

    def __contains__(self, name: str) -> bool:
        return name in self._handlers
