"""HTTP implementations of the entity, taxonomy and media stores.

All three talk to the brokerage REST API through a shared ``httpx.AsyncClient``.
Transport failures and 5xx answers become ``StoreUnavailableError``; 4xx
answers become ``StoreRejectedError`` carrying the server's message.
"""

from __future__ import annotations

import json
import logging
from typing import Any, List, Mapping, Optional, Sequence

import httpx

from common.config import settings
from common.http import create_client
from common.schemas import unwrap_content

from ..errors import MediaFetchError, StoreRejectedError, StoreUnavailableError
from ..models import (
    BinaryPayload,
    EntityKind,
    EntitySnapshot,
    RemoteLocator,
    TaxonomyNode,
    filename_from_locator,
    guess_media_type,
)

logger = logging.getLogger(__name__)

MEDIA_ACCEPT = "image/*,*/*;q=0.8"


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)


def _node_or(body: Any, fallback: TaxonomyNode) -> TaxonomyNode:
    # Mutations may answer with an empty envelope such as {"content": null}.
    if isinstance(body, dict) and body.get("name"):
        return TaxonomyNode.model_validate(body)
    return fallback


class ApiClient:
    """Thin request helper shared by the API-backed stores."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        bearer_token: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._client = client or create_client(
            base_url=(base_url or settings.api_base_url).rstrip("/"),
            bearer_token=bearer_token or settings.api_bearer_token,
            timeout=timeout or settings.http_timeout_seconds,
        )

    async def request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            logger.error("API %s %s timed out", method, path)
            raise StoreUnavailableError(f"{method} {path} timed out") from exc
        except httpx.TransportError as exc:
            logger.error("API %s %s unreachable: %s", method, path, exc)
            raise StoreUnavailableError(f"{method} {path} unreachable: {exc}") from exc

        if response.status_code >= 500:
            logger.error("API %s %s failed with HTTP %s", method, path, response.status_code)
            raise StoreUnavailableError(f"{method} {path} failed with HTTP {response.status_code}")
        if response.status_code >= 400:
            raise StoreRejectedError(response.status_code, _error_message(response))

        if not response.content:
            return None
        try:
            return unwrap_content(response.json())
        except ValueError:
            return response.text

    async def close(self) -> None:
        await self._client.aclose()


class ApiEntityStore:
    """Apartments and projects: ``GET``/``PUT {resource}/{id}``."""

    def __init__(self, api: ApiClient) -> None:
        self._api = api

    async def get_entity(self, kind: EntityKind, entity_id: str) -> EntitySnapshot:
        body = await self._api.request("GET", f"{kind.resource}/{entity_id}")
        if not isinstance(body, dict):
            raise StoreRejectedError(404, f"{kind.value} {entity_id} not found")
        return EntitySnapshot.from_api(kind, body)

    async def update_entity(
        self,
        kind: EntityKind,
        entity_id: str,
        fields: Mapping[str, Any],
        media: Sequence[BinaryPayload],
    ) -> EntitySnapshot:
        data_part = json.dumps(dict(fields), ensure_ascii=False).encode("utf-8")
        files: List[tuple] = [("data", ("blob", data_part, "application/json"))]
        files.extend((kind.file_field, item.as_multipart()) for item in media)

        logger.info("Updating %s %s with %d media files", kind.value, entity_id, len(media))
        body = await self._api.request("PUT", f"{kind.resource}/{entity_id}", files=files)
        if isinstance(body, dict) and body.get("id"):
            return EntitySnapshot.from_api(kind, body)
        return await self.get_entity(kind, entity_id)


class ApiTaxonomyStore:
    """Amenities (categories and items) live under ``/utilities``."""

    def __init__(self, api: ApiClient) -> None:
        self._api = api

    async def list_nodes(self, entity_id: str) -> List[TaxonomyNode]:
        body = await self._api.request("GET", f"/utilities/project/{entity_id}")
        return [TaxonomyNode.model_validate(item) for item in body or []]

    async def create_node(self, entity_id: str, name: str, parent_id: Optional[str]) -> TaxonomyNode:
        payload = {"name": name, "projectId": entity_id, "parentId": parent_id}
        body = await self._api.request("POST", "/utilities", json=payload)
        return _node_or(body, TaxonomyNode(name=name, parent_id=parent_id))

    async def rename_node(
        self, node_id: str, name: str, parent_id: Optional[str] = None, entity_id: Optional[str] = None
    ) -> TaxonomyNode:
        # A PUT replaces the row, so the owning project has to be resent.
        payload = {"name": name, "parentId": parent_id, "projectId": entity_id}
        body = await self._api.request("PUT", f"/utilities/{node_id}", json=payload)
        return _node_or(body, TaxonomyNode(id=node_id, name=name, parent_id=parent_id))

    async def delete_node(self, node_id: str) -> None:
        await self._api.request("DELETE", f"/utilities/{node_id}")


class HttpMediaByteStore:
    """Dereferences absolute media URLs returned by the server."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = client or create_client(
            timeout=timeout or settings.media_fetch_timeout_seconds,
            transport=transport,
            accept=MEDIA_ACCEPT,
        )

    async def fetch_bytes(self, locator: RemoteLocator) -> BinaryPayload:
        try:
            response = await self._client.get(locator, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise MediaFetchError(locator, str(exc)) from exc

        filename = filename_from_locator(locator)
        content_type = response.headers.get("content-type", "").split(";", 1)[0].strip()
        return BinaryPayload(
            filename=filename,
            content=response.content,
            content_type=content_type or guess_media_type(filename),
        )

    async def close(self) -> None:
        await self._client.aclose()


__all__ = ["ApiClient", "ApiEntityStore", "ApiTaxonomyStore", "HttpMediaByteStore"]
