"""
HTTP retrieval helpers for sources.

One shared httpx.AsyncClient per session. Transient failures (timeouts,
network errors, 429 and 5xx gateway statuses) are retried with exponential
jitter; whatever still fails surfaces as RetrievalFailure.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential, wait_random

from discovery.config import HTTP_RETRIES, HTTP_TIMEOUT, USER_AGENT
from discovery.errors import RetrievalFailure

logger = logging.getLogger(__name__)

TRANSIENT_STATUS = {429, 500, 502, 503, 504}

RETRY_WAIT = wait_exponential(multiplier=0.5, max=10.0) + wait_random(0, 1)


class TransientStatus(Exception):
    def __init__(self, response: httpx.Response):
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


TransientHttpError = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
    TransientStatus,
)


def default_timeout() -> httpx.Timeout:
    return httpx.Timeout(HTTP_TIMEOUT, connect=10.0)


def default_limits() -> httpx.Limits:
    return httpx.Limits(max_connections=100, max_keepalive_connections=20)


def client(headers: Optional[Dict[str, str]] = None, **kwargs) -> httpx.AsyncClient:
    """Create the shared client. Keep one per session, not one per request."""
    merged = {"User-Agent": USER_AGENT}
    merged.update(headers or {})
    return httpx.AsyncClient(
        headers=merged,
        timeout=default_timeout(),
        limits=default_limits(),
        follow_redirects=True,
        **kwargs,
    )


async def _get(http_client: httpx.AsyncClient, url: str, headers: Optional[Dict[str, str]]) -> httpx.Response:
    async for attempt in AsyncRetrying(
        reraise=True,
        stop=stop_after_attempt(max(1, HTTP_RETRIES)),
        wait=RETRY_WAIT,
        retry=retry_if_exception_type(TransientHttpError),
    ):
        with attempt:
            response = await http_client.get(url, headers=headers)
            if response.status_code in TRANSIENT_STATUS:
                raise TransientStatus(response)
    return response


async def request_web_page(
    http_client: httpx.AsyncClient, url: str, headers: Optional[Dict[str, str]] = None
) -> str:
    """GET a page and return its body, or raise RetrievalFailure."""
    try:
        response = await _get(http_client, url, headers)
    except TransientStatus as e:
        raise RetrievalFailure(f"{url}: {e} after retries") from e
    except httpx.HTTPError as e:
        raise RetrievalFailure(f"{url}: {type(e).__name__}: {e}") from e

    if response.status_code >= 400:
        raise RetrievalFailure(f"{url}: HTTP {response.status_code}")
    return response.text
