"""Province / district / ward lookups against the public provinces API."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from common.config import settings
from common.http import create_client
from common.schemas import LabelledOption

from ..errors import StoreRejectedError, StoreUnavailableError

logger = logging.getLogger(__name__)


def _options(items: Optional[List[Dict[str, Any]]]) -> List[LabelledOption]:
    options: List[LabelledOption] = []
    for item in items or []:
        code = item.get("code")
        name = item.get("name")
        if code is None or not name:
            continue
        options.append(LabelledOption(code=str(code), label=str(name)))
    return options


class ProvincesGeoStore:
    """``GeoHierarchyStore`` over provinces.open-api.vn (v1 endpoints).

    Region = province, sub-region = district, sub-sub-region = ward.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._client = client or create_client(
            base_url=(base_url or settings.provinces_api_base_url).rstrip("/"),
            timeout=timeout or settings.http_timeout_seconds,
        )

    async def _get(self, path: str, **params: Any) -> Any:
        try:
            response = await self._client.get(path, params=params or None)
        except httpx.HTTPError as exc:
            raise StoreUnavailableError(f"GET {path} failed: {exc}") from exc
        if response.status_code >= 500:
            raise StoreUnavailableError(f"GET {path} failed with HTTP {response.status_code}")
        if response.status_code >= 400:
            raise StoreRejectedError(response.status_code, response.text or response.reason_phrase)
        return response.json()

    async def list_regions(self) -> List[LabelledOption]:
        data = await self._get("/api/v1/p/")
        options = _options(data if isinstance(data, list) else [])
        logger.info("Provinces loaded: %d", len(options))
        return options

    async def list_sub_regions(self, region_code: str) -> List[LabelledOption]:
        data = await self._get(f"/api/v1/p/{region_code}", depth=2)
        options = _options((data or {}).get("districts"))
        logger.info("Districts loaded for province %s: %d", region_code, len(options))
        return options

    async def list_sub_sub_regions(self, sub_region_code: str) -> List[LabelledOption]:
        data = await self._get(f"/api/v1/d/{sub_region_code}", depth=2)
        options = _options((data or {}).get("wards"))
        logger.info("Wards loaded for district %s: %d", sub_region_code, len(options))
        return options

    async def close(self) -> None:
        await self._client.aclose()


__all__ = ["ProvincesGeoStore"]
