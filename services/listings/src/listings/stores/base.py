"""Collaborator interfaces the edit-session core is written against.

Any transport that satisfies these signatures is acceptable; the HTTP
implementations in this package are one such transport.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Protocol, Sequence, runtime_checkable

from common.schemas import LabelledOption

from ..models import BinaryPayload, EntityKind, EntitySnapshot, RemoteLocator, TaxonomyNode


@runtime_checkable
class EntityStore(Protocol):
    async def get_entity(self, kind: EntityKind, entity_id: str) -> EntitySnapshot: ...

    async def update_entity(
        self,
        kind: EntityKind,
        entity_id: str,
        fields: Mapping[str, Any],
        media: Sequence[BinaryPayload],
    ) -> EntitySnapshot: ...


@runtime_checkable
class TaxonomyStore(Protocol):
    async def list_nodes(self, entity_id: str) -> List[TaxonomyNode]: ...

    async def create_node(self, entity_id: str, name: str, parent_id: Optional[str]) -> TaxonomyNode: ...

    async def rename_node(
        self, node_id: str, name: str, parent_id: Optional[str] = None, entity_id: Optional[str] = None
    ) -> TaxonomyNode: ...

    async def delete_node(self, node_id: str) -> None: ...


@runtime_checkable
class GeoHierarchyStore(Protocol):
    async def list_regions(self) -> List[LabelledOption]: ...

    async def list_sub_regions(self, region_code: str) -> List[LabelledOption]: ...

    async def list_sub_sub_regions(self, sub_region_code: str) -> List[LabelledOption]: ...


@runtime_checkable
class MediaByteStore(Protocol):
    async def fetch_bytes(self, locator: RemoteLocator) -> BinaryPayload: ...


__all__ = ["EntityStore", "GeoHierarchyStore", "MediaByteStore", "TaxonomyStore"]
