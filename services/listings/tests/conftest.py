"""
Shared fixtures and in-memory collaborators for edit-session tests.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pytest

from common.cache import InMemoryByteCache
from common.schemas import LabelledOption
from listings.errors import MediaFetchError, StoreRejectedError, StoreUnavailableError
from listings.models import BinaryPayload, EntityKind, EntitySnapshot, TaxonomyNode, filename_from_locator


# ============================================================================
# Fake collaborators
# ============================================================================

class FakeByteStore:
    """Serves bytes for known URLs; anything else fails like a dead link."""

    def __init__(self, blobs: Optional[Dict[str, bytes]] = None, failing: Sequence[str] = ()) -> None:
        self.blobs = dict(blobs or {})
        self.failing = set(failing)
        self.calls: List[str] = []

    async def fetch_bytes(self, locator: str) -> BinaryPayload:
        self.calls.append(locator)
        await asyncio.sleep(0)
        if locator in self.failing or locator not in self.blobs:
            raise MediaFetchError(locator, "HTTP 404")
        return BinaryPayload(filename_from_locator(locator), self.blobs[locator], "image/png")


class FakeTaxonomyStore:
    """Flat amenity table with server-generated ids and duplicate rejection."""

    def __init__(self, nodes: Optional[List[Dict[str, Any]]] = None, cascade_deletes: bool = True) -> None:
        self.rows: List[Dict[str, Any]] = [dict(node) for node in nodes or []]
        self.cascade_deletes = cascade_deletes
        self._next_id = 100
        self.list_calls = 0
        self.unavailable = False

    def _check(self) -> None:
        if self.unavailable:
            raise StoreUnavailableError("taxonomy store down")

    async def list_nodes(self, entity_id: str) -> List[TaxonomyNode]:
        self._check()
        self.list_calls += 1
        await asyncio.sleep(0)
        return [
            TaxonomyNode.model_validate(row)
            for row in self.rows
            if row.get("projectId", entity_id) == entity_id
        ]

    async def create_node(self, entity_id: str, name: str, parent_id: Optional[str]) -> TaxonomyNode:
        self._check()
        for row in self.rows:
            if row["name"] == name and row.get("parentId") == parent_id and row.get("projectId") == entity_id:
                raise StoreRejectedError(409, f"Amenity '{name}' already exists")
        self._next_id += 1
        row = {"id": str(self._next_id), "name": name, "parentId": parent_id, "projectId": entity_id}
        self.rows.append(row)
        return TaxonomyNode.model_validate(row)

    async def rename_node(
        self, node_id: str, name: str, parent_id: Optional[str] = None, entity_id: Optional[str] = None
    ) -> TaxonomyNode:
        self._check()
        for row in self.rows:
            if row["id"] == node_id:
                row["name"] = name
                row["parentId"] = parent_id
                row["projectId"] = entity_id
                return TaxonomyNode.model_validate(row)
        raise StoreRejectedError(404, "Amenity not found")

    async def delete_node(self, node_id: str) -> None:
        self._check()
        self.rows = [row for row in self.rows if row["id"] != node_id]
        if self.cascade_deletes:
            self.rows = [row for row in self.rows if row.get("parentId") != node_id]


class FakeGeoStore:
    """Province / district / ward tables; individual codes can be held or failed."""

    def __init__(self) -> None:
        self.regions = [LabelledOption(code="79", label="Ho Chi Minh"), LabelledOption(code="1", label="Ha Noi")]
        self.sub_regions = {
            "79": [LabelledOption(code="760", label="Quan 1"), LabelledOption(code="761", label="Quan 12")],
            "1": [LabelledOption(code="1", label="Ba Dinh"), LabelledOption(code="2", label="Hoan Kiem")],
        }
        self.sub_sub_regions = {
            "760": [LabelledOption(code="26734", label="Ben Nghe"), LabelledOption(code="26737", label="Da Kao")],
            "1": [LabelledOption(code="4", label="Truc Bach")],
        }
        self.gates: Dict[str, asyncio.Event] = {}
        self.failing: set = set()
        self.calls: List[tuple] = []

    def hold(self, code: str) -> asyncio.Event:
        gate = asyncio.Event()
        self.gates[code] = gate
        return gate

    async def _wait(self, code: str) -> None:
        gate = self.gates.get(code)
        if gate is not None:
            await gate.wait()
        if code in self.failing:
            raise StoreUnavailableError(f"lookup for {code} failed")

    async def list_regions(self) -> List[LabelledOption]:
        self.calls.append(("regions", None))
        await self._wait("root")
        return list(self.regions)

    async def list_sub_regions(self, region_code: str) -> List[LabelledOption]:
        self.calls.append(("sub_regions", region_code))
        await self._wait(region_code)
        return list(self.sub_regions.get(region_code, []))

    async def list_sub_sub_regions(self, sub_region_code: str) -> List[LabelledOption]:
        self.calls.append(("sub_sub_regions", sub_region_code))
        await self._wait(f"d{sub_region_code}")
        return list(self.sub_sub_regions.get(sub_region_code, []))


class FakeEntityStore:
    """Holds one entity per (kind, id) and records every update."""

    def __init__(self, bodies: Dict[tuple, Dict[str, Any]]) -> None:
        self.bodies = {key: dict(body) for key, body in bodies.items()}
        self.updates: List[Dict[str, Any]] = []
        self.fail_updates = False

    async def get_entity(self, kind: EntityKind, entity_id: str) -> EntitySnapshot:
        body = self.bodies.get((kind, entity_id))
        if body is None:
            raise StoreRejectedError(404, "not found")
        return EntitySnapshot.from_api(kind, body)

    async def update_entity(
        self,
        kind: EntityKind,
        entity_id: str,
        fields: Mapping[str, Any],
        media: Sequence[BinaryPayload],
    ) -> EntitySnapshot:
        await asyncio.sleep(0)
        if self.fail_updates:
            raise StoreUnavailableError("entity store down")
        self.updates.append({"kind": kind, "id": entity_id, "fields": dict(fields), "media": list(media)})
        body = self.bodies[(kind, entity_id)]
        body.update(fields)
        body["images"] = [f"https://cdn.example.com/{kind.value}s/{entity_id}/{item.filename}" for item in media]
        return EntitySnapshot.from_api(kind, body)


# ============================================================================
# Fixtures
# ============================================================================

IMG_A = "https://cdn.example.com/projects/p1/a.png"
IMG_B = "https://cdn.example.com/projects/p1/b.png"


@pytest.fixture
def byte_store() -> FakeByteStore:
    return FakeByteStore({IMG_A: b"AAA", IMG_B: b"BBB"})


@pytest.fixture
def byte_cache() -> InMemoryByteCache:
    return InMemoryByteCache()


@pytest.fixture
def geo_store() -> FakeGeoStore:
    return FakeGeoStore()


@pytest.fixture
def amenity_rows() -> List[Dict[str, Any]]:
    return [
        {"id": "c1", "name": "Tien ich noi khu", "parentId": None, "projectId": "p1"},
        {"id": "c2", "name": "Tien ich ngoai khu", "parentId": None, "projectId": "p1"},
        {"id": "i1", "name": "Ho boi", "parentId": "c1", "projectId": "p1"},
        {"id": "i2", "name": "Phong gym", "parentId": "c1", "projectId": "p1"},
        {"id": "i3", "name": "Truong hoc", "parentId": "c2", "projectId": "p1"},
    ]


@pytest.fixture
def taxonomy_store(amenity_rows) -> FakeTaxonomyStore:
    return FakeTaxonomyStore(amenity_rows)


@pytest.fixture
def project_body() -> Dict[str, Any]:
    return {
        "id": "p1",
        "name": "Sunrise Riverside",
        "fullAddress": "12 Nguyen Hue, Ben Nghe, Quan 1, Ho Chi Minh",
        "address": "12 Nguyen Hue",
        "provinceCode": 79,
        "districtCode": 760,
        "wardCode": 26734,
        "latitude": "10.7769",
        "longitude": "106.7009",
        "images": [IMG_A, {"url": IMG_B}],
    }


@pytest.fixture
def entity_store(project_body) -> FakeEntityStore:
    return FakeEntityStore({(EntityKind.PROJECT, "p1"): project_body})
