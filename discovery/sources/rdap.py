"""
RDAP autnum handler

Handles AutnumRecord events. When the event carries a pre-fetched RDAP autnum
response (``event.meta``), its RDAP self link, WHOIS server and registry
contacts (by role) are stored under the record. Otherwise previously stored
relations are reused, each evidence kind gated by its own TTL.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from discovery.assets import AssetKind, AutnumRecord, ContactRecord, FQDN, Source, URL
from discovery.config import Matches
from discovery.errors import ConfigurationMissing, DiscoveryError, InvalidAssetKind
from discovery.findings import Finding
from discovery.graph.types import Entity
from discovery.pipeline.context import Event
from discovery.pipeline.handler import Handler
from discovery.ttl import SOURCE_RELATION, ttl_start_time

logger = logging.getLogger(__name__)

RDAP_JSON = "application/rdap+json"

RELATIONS = {
    AssetKind.URL: ["rdap_url"],
    AssetKind.FQDN: ["whois_server"],
    AssetKind.ContactRecord: ["registrant", "admin_contact", "abuse_contact", "technical_contact"],
}

# RDAP entity role -> relation from the autnum record
ROLE_RELATIONS = {
    "registrant": "registrant",
    "administrative": "admin_contact",
    "abuse": "abuse_contact",
    "technical": "technical_contact",
}

# Nested entities deeper than this are ignored
MAX_ENTITY_DEPTH = 2


def json_self_link(links: Optional[List[Dict[str, Any]]]) -> Optional[URL]:
    for link in links or []:
        if link.get("rel") == "self" and link.get("type") == RDAP_JSON and link.get("href"):
            return URL(raw=link["href"])
    return None


def _vcard_properties(entity: Dict[str, Any]) -> Dict[str, str]:
    """First text value of each jCard property: ``["vcard", [[name, params, type, value], ...]]``."""
    props: Dict[str, str] = {}
    vcard = entity.get("vcardArray")
    if not isinstance(vcard, list) or len(vcard) < 2 or not isinstance(vcard[1], list):
        return props
    for prop in vcard[1]:
        if not isinstance(prop, list) or len(prop) < 4 or prop[0] in props:
            continue
        value = prop[3]
        if isinstance(value, list):
            value = " ".join(str(v) for v in value if v)
        props[str(prop[0])] = str(value)
    return props


def contact_from_entity(entity: Dict[str, Any], parent_url: str = "") -> Optional[ContactRecord]:
    """Build a ContactRecord from one RDAP entity object.

    The entity's own RDAP self link identifies it; without one, the handle
    under the parent record's URL is used. Entities with neither are skipped.
    """
    handle = str(entity.get("handle") or "")
    link = json_self_link(entity.get("links"))
    if link is not None:
        discovered_at = link.raw
    elif handle and parent_url:
        discovered_at = f"{parent_url}#{handle}"
    else:
        return None
    props = _vcard_properties(entity)
    return ContactRecord(
        discovered_at=discovered_at,
        handle=handle,
        name=props.get("fn", ""),
        organization=props.get("org", ""),
        email=props.get("email", ""),
    )


def walk_entities(entities: Any, depth: int = 1):
    """Yield (entity, relation) for every contact role, descending into nested entities."""
    if depth > MAX_ENTITY_DEPTH or not isinstance(entities, list):
        return
    for entity in entities:
        if not isinstance(entity, dict):
            continue
        for role in entity.get("roles") or []:
            relation = ROLE_RELATIONS.get(role)
            if relation:
                yield entity, relation
        yield from walk_entities(entity.get("entities"), depth + 1)


class AutnumHandler:
    plugin_name = "RDAP"
    name = "RDAP-Autnum-Handler"
    transforms = [AssetKind.URL, AssetKind.FQDN, AssetKind.ContactRecord]

    def __init__(self, confidence: int = 100, priority: int = 8, max_instances: int = 10):
        self.source = Source(name=self.plugin_name, confidence=confidence)
        self.priority = priority
        self.max_instances = max_instances

    def handler(self) -> Handler:
        return Handler(
            name=self.name,
            event_type=AssetKind.AutnumRecord,
            callback=self.run,
            priority=self.priority,
            max_instances=self.max_instances,
            transforms=[str(t) for t in self.transforms],
        )

    async def run(self, event: Event) -> List[Finding]:
        asset = event.entity.asset
        if not isinstance(asset, AutnumRecord):
            raise InvalidAssetKind(str(AssetKind.AutnumRecord), str(asset.kind))

        session = event.session
        try:
            src = await session.get_source(self.source)
        except DiscoveryError as e:
            logger.error(f"{self.name}: {asset.label}: {e}")
            raise

        matches = session.config.check_transformations(
            str(AssetKind.AutnumRecord), *[str(t) for t in self.transforms], self.plugin_name
        )
        if not len(matches):
            return []

        if isinstance(event.meta, dict) and event.meta.get("objectClassName") == "autnum":
            findings = await self.store(event, event.meta, src, matches)
        else:
            findings = await self.lookup(event, src, matches)

        if findings:
            logger.info(f"{self.name}: {len(findings)} findings for {asset.label}")
        return findings

    async def lookup(self, event: Event, src: Entity, matches: Matches) -> List[Finding]:
        session = event.session
        subject = event.entity
        sinces: Dict[str, datetime] = {}
        rtypes: List[str] = []

        for atype in self.transforms:
            if not matches.is_match(str(atype)):
                continue
            try:
                since = ttl_start_time(
                    session.config, str(AssetKind.AutnumRecord), str(atype), self.plugin_name, session.clock()
                )
            except ConfigurationMissing:
                continue
            sinces[str(atype)] = since
            rtypes.extend(RELATIONS[atype])

        if not rtypes:
            return []

        async def read():
            if session.done:
                return []
            found = []
            for rel in await session.store.outgoing_relations(subject, None, *rtypes):
                target = rel.to_entity
                since = sinces.get(str(target.asset.kind))
                if since is None or target.last_seen < since:
                    continue
                if not await session.cache.has_source(target, src, since):
                    continue
                found.append(self._finding(subject, target, rel.type))
            return found

        return await session.queue.submit(read)

    async def store(self, event: Event, record: Dict[str, Any], src: Entity, matches: Matches) -> List[Finding]:
        session = event.session
        subject = event.entity
        autrec: AutnumRecord = subject.asset
        whois_server = autrec.whois_server or record.get("port43", "")
        url = json_self_link(record.get("links"))

        async def mutation():
            if session.done:
                return []
            store = session.store
            found = []
            if url is not None and matches.is_match(str(AssetKind.URL)):
                target = await store.create(subject, "rdap_url", url)
                await store.link(target, SOURCE_RELATION, src)
                found.append(self._finding(subject, target, "rdap_url"))
            if whois_server and matches.is_match(str(AssetKind.FQDN)):
                fqdn = FQDN(name=whois_server.strip().lower())
                target = await store.create(subject, "whois_server", fqdn)
                await store.link(target, SOURCE_RELATION, src)
                _, conf = session.scope.is_asset_in_scope(fqdn, 0)
                if conf > 0:
                    found.append(self._finding(subject, target, "whois_server"))
            if matches.is_match(str(AssetKind.ContactRecord)):
                parent_url = url.raw if url is not None else ""
                for entity, relation in walk_entities(record.get("entities")):
                    contact = contact_from_entity(entity, parent_url)
                    if contact is None:
                        continue
                    target = await store.create(subject, relation, contact)
                    await store.link(target, SOURCE_RELATION, src)
                    found.append(self._finding(subject, target, relation))
            return found

        try:
            return await session.queue.submit(mutation)
        except Exception as e:
            logger.error(f"{self.name}: failed to store RDAP data for {autrec.label}: {e}")
            return []

    @staticmethod
    def _finding(subject: Entity, target: Entity, rel: str) -> Finding:
        return Finding(
            from_entity=subject,
            from_name=subject.asset.label,
            to_entity=target,
            to_name=target.asset.label,
            rel=rel,
        )
