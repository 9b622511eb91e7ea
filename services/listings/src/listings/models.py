"""Data models for entities, taxonomy nodes, media and coordinates.

Wire-facing records are pydantic models (camelCase aliases match the API);
values that never leave the process are plain dataclasses.
"""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import unquote, urlparse

from pydantic import Field

from common.schemas import ConsoleModel

# A remote locator is the opaque URL string the server returned for a media item.
RemoteLocator = str

DEFAULT_MEDIA_FILENAME = "image.jpg"
DEFAULT_MEDIA_TYPE = "image/jpeg"

UNPERSISTED_ID_PREFIX = "temp_"

# Body keys lifted into typed snapshot attributes rather than kept in ``fields``.
_STRUCTURED_KEYS = frozenset(
    {"id", "images", "latitude", "longitude", "address", "provinceCode", "districtCode", "wardCode"}
)


class EntityKind(str, Enum):
    """Entity kinds that own media, amenities and an address."""

    APARTMENT = "apartment"
    PROJECT = "project"

    @property
    def resource(self) -> str:
        return f"/{self.value}s"

    @property
    def file_field(self) -> str:
        # Apartment updates take repeated ``files`` parts, project updates ``file``.
        return "files" if self is EntityKind.APARTMENT else "file"

    @property
    def cache_prefix(self) -> str:
        return f"{self.value}_image"


class EditMode(str, Enum):
    VIEWING = "viewing"
    EDITING = "editing"
    SAVING = "saving"


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class BinaryPayload:
    """One file part of a multipart submission."""

    filename: str
    content: bytes
    content_type: str = DEFAULT_MEDIA_TYPE

    @classmethod
    def from_path(cls, path: Any) -> "BinaryPayload":
        file_path = Path(path)
        content_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
        return cls(filename=file_path.name, content=file_path.read_bytes(), content_type=content_type)

    def as_multipart(self) -> tuple[str, bytes, str]:
        return (self.filename, self.content, self.content_type)


# Locally staged media is exactly a binary payload that has not been sent yet.
LocalMedia = BinaryPayload


def filename_from_locator(locator: RemoteLocator) -> str:
    """Last path segment of a media URL, ignoring any query string."""

    path = urlparse(locator).path if "://" in locator else locator.split("?", 1)[0]
    segment = unquote(path.rstrip("/").rsplit("/", 1)[-1]) if path else ""
    return segment or DEFAULT_MEDIA_FILENAME


def guess_media_type(filename: str) -> str:
    return mimetypes.guess_type(filename)[0] or DEFAULT_MEDIA_TYPE


def is_unpersisted(entity_id: Optional[str]) -> bool:
    return not entity_id or entity_id.startswith(UNPERSISTED_ID_PREFIX)


class TaxonomyNode(ConsoleModel):
    """A category (``parent_id is None``) or an item under one category."""

    id: Optional[str] = None
    name: str
    parent_id: Optional[str] = Field(default=None, alias="parentId")

    @property
    def is_category(self) -> bool:
        return self.parent_id is None


class EntitySnapshot(ConsoleModel):
    """An apartment or project as last returned by the server.

    Only the parts the edit session needs are typed; every other scalar the
    API sends is kept verbatim in ``fields``.
    """

    id: str
    kind: EntityKind
    fields: Dict[str, Any] = Field(default_factory=dict)
    media: List[RemoteLocator] = Field(default_factory=list)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    street: Optional[str] = None
    region_code: Optional[str] = None
    sub_region_code: Optional[str] = None
    sub_sub_region_code: Optional[str] = None

    @classmethod
    def from_api(cls, kind: EntityKind, body: Dict[str, Any]) -> "EntitySnapshot":
        media: List[RemoteLocator] = []
        for entry in body.get("images") or []:
            locator = entry.get("url") if isinstance(entry, dict) else entry
            if locator:
                media.append(str(locator))

        def _code(name: str) -> Optional[str]:
            value = body.get(name)
            return str(value) if value not in (None, "") else None

        return cls(
            id=str(body["id"]),
            kind=kind,
            fields={k: v for k, v in body.items() if k not in _STRUCTURED_KEYS},
            media=media,
            latitude=_to_float(body.get("latitude")),
            longitude=_to_float(body.get("longitude")),
            street=body.get("address") or None,
            region_code=_code("provinceCode"),
            sub_region_code=_code("districtCode"),
            sub_sub_region_code=_code("wardCode"),
        )

    @property
    def has_structured_address(self) -> bool:
        return self.region_code is not None

    @property
    def coordinates(self) -> Optional[Coordinates]:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinates(self.latitude, self.longitude)


def _to_float(value: Any) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


__all__ = [
    "BinaryPayload",
    "Coordinates",
    "EditMode",
    "EntityKind",
    "EntitySnapshot",
    "LocalMedia",
    "RemoteLocator",
    "TaxonomyNode",
    "filename_from_locator",
    "guess_media_type",
    "is_unpersisted",
]
