"""Scraping sources: DuckDuckGo, SiteDossier."""

from __future__ import annotations

from typing import List

from discovery.dedup import scrape_subdomain_names
from discovery.errors import RetrievalFailure
from discovery.http import request_web_page
from discovery.pipeline.context import HandlerContext
from discovery.pipeline.retrieval import Paginated, Single
from discovery.pipeline.source import SourceSpec

DUCKDUCKGO_URL = "https://html.duckduckgo.com/html/?q=site:{name} -site:www.{name}"
SITEDOSSIER_URL = "http://www.sitedossier.com/parentdomain/{name}/{page}"
SITEDOSSIER_MAX_PAGES = 20


async def _scrape(ctx: HandlerContext, url: str) -> List[str]:
    body = await request_web_page(ctx.http, url)
    if not body:
        raise RetrievalFailure(f"{url}: empty body")
    return scrape_subdomain_names(body)


async def fetch_duckduckgo(ctx: HandlerContext, name: str) -> List[str]:
    return await _scrape(ctx, DUCKDUCKGO_URL.format(name=name))


async def fetch_sitedossier_page(ctx: HandlerContext, name: str, page: int) -> List[str]:
    return await _scrape(ctx, SITEDOSSIER_URL.format(name=name, page=page))


def duckduckgo() -> SourceSpec:
    return SourceSpec(
        name="DuckDuckGo", confidence=60, rate=2, priority=7, retrieval=Single(fetch_duckduckgo)
    )


def sitedossier() -> SourceSpec:
    return SourceSpec(
        name="SiteDossier",
        confidence=60,
        rate=4,
        priority=7,
        retrieval=Paginated(fetch_sitedossier_page, max_pages=SITEDOSSIER_MAX_PAGES),
    )
