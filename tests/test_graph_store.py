"""Tests for the graph stores.

MemoryGraphStore: pure Python.
PostgresGraphStore: mock asyncpg pool, verify issued SQL and row mapping.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import List, Tuple

import pytest

from conftest import FakeClock
from discovery.assets import AutnumRecord, ContactRecord, FQDN, Source, URL, asset_from_dict, asset_to_dict
from discovery.graph.memory import MemoryGraphStore
from discovery.graph.postgres import PostgresGraphStore
from discovery.graph.types import Entity


# =============================================================================
# Assets
# =============================================================================


def test_asset_dict_round_trip_for_autnum():
    record = AutnumRecord(handle="AS64496", number=64496, name="EXAMPLE", whois_server="whois.example.net", status=("active",))
    assert asset_from_dict("AutnumRecord", asset_to_dict(record)) == record


def test_asset_dict_round_trip_for_contact():
    contact = ContactRecord(discovered_at="https://rdap.example.net/entity/X", handle="X", email="noc@example.net")
    assert asset_from_dict("ContactRecord", asset_to_dict(contact)) == contact
    assert contact.key == "https://rdap.example.net/entity/X"


def test_source_confidence_bounds():
    with pytest.raises(ValueError):
        Source(name="bad", confidence=101)


# =============================================================================
# MemoryGraphStore
# =============================================================================


@pytest.mark.asyncio
async def test_create_entity_is_an_upsert():
    clock = FakeClock()
    store = MemoryGraphStore(clock=clock)
    first = await store.create_entity(FQDN("www.example.com"))
    clock.advance(minutes=5)
    again = await store.create_entity(FQDN("WWW.example.com"))
    assert again.id == first.id
    assert again.last_seen == clock.now
    assert again.created_at < again.last_seen
    assert len(store) == 1


@pytest.mark.asyncio
async def test_link_refreshes_last_seen_and_filters():
    clock = FakeClock()
    store = MemoryGraphStore(clock=clock)
    parent = await store.create_entity(FQDN("example.com"))
    child = await store.create(parent, "crt.sh-discovered", FQDN("www.example.com"))
    src = await store.create_entity(Source("crt.sh", 100))
    await store.link(child, "source", src)

    cutoff = clock.now
    clock.advance(hours=1)
    await store.link(parent, "source", src)

    assert [r.to_entity.id for r in await store.outgoing_relations(parent)] == [child.id, src.id]
    assert [r.type for r in await store.outgoing_relations(parent, None, "source")] == ["source"]
    recent = await store.outgoing_relations(parent, cutoff + (clock.now - cutoff) / 2)
    assert [r.type for r in recent] == ["source"]
    incoming = await store.incoming_relations(src, None, "source")
    assert {r.from_entity.id for r in incoming} == {parent.id, child.id}


@pytest.mark.asyncio
async def test_find_by_id_and_content():
    store = MemoryGraphStore()
    url = await store.create_entity(URL("https://rdap.example.net/autnum/64496"))
    assert await store.find_by_id(url.id) is url
    assert await store.find_by_content(URL("https://rdap.example.net/autnum/64496")) is url
    assert await store.find_by_content(URL("https://other")) is None
    assert await store.find_by_id("missing") is None


# =============================================================================
# PostgresGraphStore (mock pool)
# =============================================================================

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


class MockConnection:
    """Mock asyncpg connection with recorded SQL calls."""

    def __init__(self, fetchrow_result=None, fetch_result=None):
        self._fetchrow_result = fetchrow_result
        self._fetch_result = fetch_result or []
        self.executed: List[Tuple[str, tuple]] = []
        self.fetchrow_calls: List[Tuple[str, tuple]] = []
        self.fetch_calls: List[Tuple[str, tuple]] = []

    async def execute(self, query, *args):
        self.executed.append((query, args))

    async def fetchrow(self, query, *args):
        self.fetchrow_calls.append((query, args))
        return self._fetchrow_result

    async def fetch(self, query, *args):
        self.fetch_calls.append((query, args))
        return self._fetch_result


class MockPool:
    def __init__(self, conn: MockConnection):
        self._conn = conn

    def acquire(self):
        return _MockAcquire(self._conn)


class _MockAcquire:
    def __init__(self, conn):
        self._conn = conn

    async def __aenter__(self):
        return self._conn

    async def __aexit__(self, *args):
        pass


def _entity_row(id_, etype, content, prefix=""):
    return {
        f"{prefix}id": id_,
        f"{prefix}etype": etype,
        f"{prefix}content": json.dumps(content),
        f"{prefix}created_at": NOW,
        f"{prefix}last_seen": NOW,
    }


@pytest.mark.asyncio
async def test_pg_ensure_schema_creates_tables():
    conn = MockConnection()
    store = PostgresGraphStore(MockPool(conn))
    await store.ensure_schema()
    sql = conn.executed[0][0]
    assert "CREATE TABLE IF NOT EXISTS graph_entities" in sql
    assert "CREATE TABLE IF NOT EXISTS graph_edges" in sql


@pytest.mark.asyncio
async def test_pg_create_entity_upserts():
    conn = MockConnection(fetchrow_result=_entity_row(7, "FQDN", {"name": "www.example.com"}))
    store = PostgresGraphStore(MockPool(conn))
    entity = await store.create_entity(FQDN("www.example.com"))

    sql, args = conn.fetchrow_calls[0]
    assert "ON CONFLICT (etype, ekey) DO UPDATE SET last_seen = NOW()" in sql
    assert args[:2] == ("FQDN", "www.example.com")
    assert json.loads(args[2]) == {"name": "www.example.com"}
    assert entity.id == "7"
    assert entity.asset == FQDN("www.example.com")


@pytest.mark.asyncio
async def test_pg_link_upserts_edge():
    conn = MockConnection(fetchrow_result={"id": 3, "etype": "source", "created_at": NOW, "last_seen": NOW})
    store = PostgresGraphStore(MockPool(conn))
    a = Entity(id="1", asset=FQDN("example.com"), created_at=NOW, last_seen=NOW)
    b = Entity(id="2", asset=Source("crt.sh", 100), created_at=NOW, last_seen=NOW)
    rel = await store.link(a, "source", b)

    sql, args = conn.fetchrow_calls[0]
    assert "INSERT INTO graph_edges" in sql
    assert args == ("source", 1, 2)
    assert rel.from_entity is a and rel.to_entity is b
    assert rel.type == "source"


@pytest.mark.asyncio
async def test_pg_outgoing_relations_maps_rows():
    row = {"id": 9, "etype": "crt.sh-discovered", "created_at": NOW, "last_seen": NOW}
    row.update(_entity_row(1, "FQDN", {"name": "example.com"}, prefix="f_"))
    row.update(_entity_row(2, "FQDN", {"name": "www.example.com"}, prefix="t_"))
    conn = MockConnection(fetch_result=[row])
    store = PostgresGraphStore(MockPool(conn))
    subject = Entity(id="1", asset=FQDN("example.com"), created_at=NOW, last_seen=NOW)

    rels = await store.outgoing_relations(subject, NOW, "crt.sh-discovered")

    sql, args = conn.fetch_calls[0]
    assert "WHERE e.from_entity_id = $1" in sql
    assert args == (1, NOW, ["crt.sh-discovered"])
    assert len(rels) == 1
    assert rels[0].to_entity.asset == FQDN("www.example.com")
    assert rels[0].type == "crt.sh-discovered"


@pytest.mark.asyncio
async def test_pg_find_by_id_missing_returns_none():
    conn = MockConnection(fetchrow_result=None)
    store = PostgresGraphStore(MockPool(conn))
    assert await store.find_by_id("12") is None
    assert conn.fetchrow_calls[0][1] == (12,)
