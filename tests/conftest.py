"""Shared pytest configuration and helpers for discovery tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from discovery.config import Config, ScopeConfig, Transformation


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: exercises real wall-clock waits")


class FakeClock:
    """Settable UTC clock shared by the session and the in-memory store."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_config(ttl_minutes: int | None = 24 * 60, domains=("example.com",), **kwargs) -> Config:
    transformations = {}
    if ttl_minutes is not None:
        transformations["FQDN->FQDN"] = Transformation(ttl=ttl_minutes)
    transformations.update(kwargs.pop("transformations", {}))
    return Config(
        scope=ScopeConfig(domains=list(domains), asns=kwargs.pop("asns", [])),
        transformations=transformations,
        **kwargs,
    )


def offline_client(handler=None) -> httpx.AsyncClient:
    """httpx client whose transport never leaves the process."""
    def default(request):
        return httpx.Response(404)
    return httpx.AsyncClient(transport=httpx.MockTransport(handler or default))


@pytest.fixture
def clock():
    return FakeClock()
