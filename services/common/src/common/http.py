"""Standard HTTP client helpers for the brokerage API and public lookups."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

import httpx

USER_AGENT = "BrokerageConsole/1.0"
JSON_ACCEPT = "application/json"


def build_headers(
    bearer_token: Optional[str] = None,
    api_key: Optional[str] = None,
    accept: str = JSON_ACCEPT,
) -> Dict[str, str]:
    headers: Dict[str, str] = {"User-Agent": USER_AGENT, "Accept": accept}
    if bearer_token:
        headers["Authorization"] = f"Bearer {bearer_token}"
    if api_key:
        headers["x-api-key"] = api_key
    return headers


def create_client(
    base_url: str = "",
    bearer_token: Optional[str] = None,
    api_key: Optional[str] = None,
    timeout: float = 30.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    accept: str = JSON_ACCEPT,
) -> httpx.AsyncClient:
    """Build a long-lived async client; the caller owns ``aclose()``."""

    return httpx.AsyncClient(
        base_url=base_url,
        timeout=timeout,
        headers=build_headers(bearer_token, api_key, accept),
        transport=transport,
    )


@asynccontextmanager
async def http_client(
    base_url: str = "",
    bearer_token: Optional[str] = None,
    api_key: Optional[str] = None,
    timeout: float = 30.0,
) -> AsyncIterator[httpx.AsyncClient]:
    """Provide a configured async HTTP client scoped to a ``with`` block."""

    async with create_client(base_url, bearer_token, api_key, timeout) as client:
        yield client


__all__ = ["JSON_ACCEPT", "build_headers", "create_client", "http_client"]
