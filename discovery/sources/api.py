"""REST API sources: crt.sh, Chaos, SecurityTrails."""

from __future__ import annotations

import json
import logging
from typing import Any, List
from urllib.parse import quote

from discovery.errors import RetrievalFailure
from discovery.http import request_web_page
from discovery.pipeline.context import HandlerContext
from discovery.pipeline.retrieval import FirstCredential, Single
from discovery.pipeline.source import SourceSpec

logger = logging.getLogger(__name__)

CRTSH_URL = "https://crt.sh/?CN={name}&output=json&exclude=expired"
CHAOS_URL = "https://dns.projectdiscovery.io/dns/{name}/subdomains"
SECURITYTRAILS_URL = "https://api.securitytrails.com/v1/domain/{name}/subdomains"


def _parse_json(body: str) -> Any:
    try:
        return json.loads(body)
    except json.JSONDecodeError as e:
        raise RetrievalFailure(f"invalid JSON: {e}") from e


def parse_crtsh(body: str) -> List[str]:
    """Certificate names; ``name_value`` holds newline-separated SANs."""
    certs = _parse_json(body)
    if not isinstance(certs, list):
        raise RetrievalFailure("unexpected crt.sh response")
    names = []
    for cert in certs:
        if not isinstance(cert, dict):
            continue
        value = cert.get("name_value")
        if value is None:
            continue
        if not isinstance(value, str):
            raise RetrievalFailure("unexpected crt.sh name_value")
        names.extend(n for n in value.split("\n") if n.strip())
    return names


def parse_subdomain_labels(body: str, name: str) -> List[str]:
    """``{"subdomains": ["www", "api"]}`` -> ``["www.<name>", "api.<name>"]``."""
    result = _parse_json(body)
    if not isinstance(result, dict):
        raise RetrievalFailure("unexpected subdomains response")
    subs = result.get("subdomains")
    if subs is None:
        return []
    if not isinstance(subs, list):
        raise RetrievalFailure("unexpected subdomains list")
    return [f"{sub}.{name}" for sub in subs if isinstance(sub, str) and sub]


async def fetch_crtsh(ctx: HandlerContext, name: str) -> List[str]:
    body = await request_web_page(ctx.http, CRTSH_URL.format(name=quote(name)))
    return parse_crtsh(body)


async def fetch_chaos(ctx: HandlerContext, name: str, key: str) -> List[str]:
    body = await request_web_page(ctx.http, CHAOS_URL.format(name=name), headers={"Authorization": key})
    return parse_subdomain_labels(body, name)


async def fetch_securitytrails(ctx: HandlerContext, name: str, key: str) -> List[str]:
    body = await request_web_page(ctx.http, SECURITYTRAILS_URL.format(name=name), headers={"APIKEY": key})
    if not body:
        raise RetrievalFailure("empty response")
    return parse_subdomain_labels(body, name)


def crtsh() -> SourceSpec:
    return SourceSpec(name="crt.sh", confidence=100, rate=2, priority=5, retrieval=Single(fetch_crtsh))


def chaos() -> SourceSpec:
    return SourceSpec(name="Chaos", confidence=80, rate=10, priority=5, retrieval=FirstCredential(fetch_chaos))


def securitytrails() -> SourceSpec:
    return SourceSpec(
        name="SecurityTrails",
        confidence=80,
        rate=2,
        priority=6,
        retrieval=FirstCredential(fetch_securitytrails),
    )
